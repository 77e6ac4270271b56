"""HueBridgeClient class for Hue Bridge API interactions.

This module contains the client that handles all HTTP communication with a
Philips Hue Bridge using the local v1 API (http://<bridge>/api/...).
"""

import requests

from core.config import REQUEST_TIMEOUT, LINK_BUTTON_ERROR
from core.errors import TransportError, ProtocolError, NeedsPhysicalConfirmation
from models.types import BridgeConnection


def raise_for_bridge_error(result):
    """Raise if a v1 API response body carries an error object.

    The bridge answers most writes with a list of {"success": ...} or
    {"error": {"type": int, "description": str}} objects; the first error
    found is raised.

    Raises:
        NeedsPhysicalConfirmation: For error type 101 (link button not pressed)
        ProtocolError: For any other bridge error
    """
    if not isinstance(result, list):
        return

    for item in result:
        if isinstance(item, dict) and 'error' in item:
            error = item['error'] or {}
            error_type = error.get('type')
            description = error.get('description', 'Unknown error')
            if error_type == LINK_BUTTON_ERROR:
                raise NeedsPhysicalConfirmation(description, error_type)
            raise ProtocolError(description, error_type)


class HueBridgeClient:
    """Manages HTTP requests to one Hue Bridge."""

    def __init__(self, connection: BridgeConnection, session: requests.Session | None = None,
                 timeout: float = REQUEST_TIMEOUT):
        """Initialise HueBridgeClient.

        Args:
            connection: Bridge address and (optional) credential
            session: requests session to reuse (a new one is created if omitted)
            timeout: Per-request timeout in seconds
        """
        self.connection = connection
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def address(self) -> str:
        return self.connection.address

    def _url(self, path: str, authenticated: bool) -> str:
        if authenticated:
            if not self.connection.credential:
                raise TransportError(f"Not paired with bridge at {self.address}")
            return f"http://{self.address}/api/{self.connection.credential}{path}"
        return f"http://{self.address}/api{path}"

    def _request(self, method: str, path: str, data: dict | None = None,
                 authenticated: bool = True, timeout: float | None = None):
        """Make a request to the bridge and return the decoded JSON body.

        Raises:
            TransportError: On timeouts, connection errors, non-2xx statuses
                or bodies that aren't JSON
            ProtocolError: If the body carries a bridge error object
        """
        url = self._url(path, authenticated)

        try:
            response = self.session.request(method, url, json=data,
                                            timeout=timeout or self.timeout)
            response.raise_for_status()
            result = response.json()
        except requests.exceptions.RequestException as e:
            raise TransportError(f"{method} {path} failed: {e}") from e
        except ValueError as e:
            raise TransportError(f"{method} {path} returned invalid JSON: {e}") from e

        raise_for_bridge_error(result)
        return result

    def get_config(self, timeout: float | None = None) -> dict:
        """Get the unauthenticated bridge configuration (name, modelid, ...)."""
        result = self._request('GET', '/config', authenticated=False, timeout=timeout)
        if not isinstance(result, dict):
            raise TransportError(f"Unexpected /config response from {self.address}")
        return result

    def create_user(self, app_name: str) -> str:
        """Ask the bridge for a new API username (credential).

        Succeeds only within 30 seconds of the link button being pressed.

        Args:
            app_name: Application identifier (devicetype)

        Returns:
            The new credential

        Raises:
            NeedsPhysicalConfirmation: Link button not pressed
            ProtocolError: Any other bridge error
            TransportError: Network failure or malformed response
        """
        result = self._request('POST', '', {'devicetype': app_name}, authenticated=False)

        try:
            return result[0]['success']['username']
        except (IndexError, KeyError, TypeError) as e:
            raise TransportError(f"Unexpected pairing response: {result!r}") from e

    def get_lights(self) -> dict:
        """Get all lights as a mapping of light ID to raw light fields."""
        result = self._request('GET', '/lights')
        if not isinstance(result, dict):
            raise TransportError(f"Unexpected /lights response from {self.address}")
        return result

    def set_light_state(self, light_id: str, state: dict) -> bool:
        """Set the state of a light.

        Args:
            light_id: Bridge light ID
            state: Any subset of {'on', 'bri', 'xy'}

        Returns:
            True once the bridge accepted the change

        Raises:
            TransportError, ProtocolError: If the change wasn't accepted
        """
        self._request('PUT', f'/lights/{light_id}/state', state)
        return True

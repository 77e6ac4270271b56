"""
Authentication module for Hue Bridge.

Handles link button pairing, saved connection management and the
interactive discover-then-pair setup flow.
"""

import enum
import threading
import time
from collections.abc import Callable

import click

from core.config import (
    APP_NAME,
    PAIRING_MAX_ATTEMPTS,
    PAIRING_BACKOFF,
    USER_CONFIG_FILE,
    load_config,
    save_config,
)
from core.controller import HueBridgeClient
from core.discovery import discover_bridges
from core.errors import (
    TransportError,
    ProtocolError,
    NeedsPhysicalConfirmation,
    LinkButtonNotPressed,
)
from models.types import AuthCredentials, BridgeCandidate, BridgeConnection


class PairingState(enum.Enum):
    UNPAIRED = 'unpaired'
    AWAITING_BUTTON_PRESS = 'awaiting_button_press'
    PAIRED = 'paired'
    FAILED = 'failed'


class PairingSession:
    """Drives the link button handshake against one bridge.

    pair() polls the bridge until it issues a credential. Each "link button
    not pressed" answer waits the backoff and retries; any other bridge
    error fails immediately. Network errors are retried except on the last
    attempt. Running out of attempts (or time, or being cancelled) raises
    LinkButtonNotPressed so the UI can ask the user to press the button again.
    """

    def __init__(self, client: HueBridgeClient, app_name: str = APP_NAME,
                 max_attempts: int = PAIRING_MAX_ATTEMPTS,
                 backoff: float = PAIRING_BACKOFF,
                 sleep: Callable[[float], None] | None = None,
                 on_attempt: Callable[[int, int], None] | None = None):
        """Initialise PairingSession.

        Args:
            client: Client for the bridge to pair with (credential unused)
            app_name: Application identifier sent as devicetype
            max_attempts: Retry ceiling
            backoff: Seconds to wait between attempts
            sleep: Wait function; defaults to a wait that cancel() interrupts
            on_attempt: Called with (attempt, max_attempts) before each request
        """
        self.client = client
        self.app_name = app_name
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.on_attempt = on_attempt
        self._cancelled = threading.Event()
        self._sleep = sleep or self._cancelled.wait
        self.state = PairingState.UNPAIRED
        self.attempts = 0
        self.credential: str | None = None
        self.error: Exception | None = None

    def cancel(self):
        """Abort pairing; pair() raises LinkButtonNotPressed."""
        self._cancelled.set()

    def _fail(self, error: Exception) -> Exception:
        self.state = PairingState.FAILED
        self.error = error
        return error

    def pair(self, timeout: float | None = None) -> str:
        """Poll the bridge until it issues a credential.

        Args:
            timeout: Overall deadline in seconds (None: bounded by attempts only)

        Returns:
            The new credential

        Raises:
            LinkButtonNotPressed: Button not pressed before attempts/time ran out
            ProtocolError: The bridge reported any other error
            TransportError: The final attempt failed at the network level
        """
        deadline = time.monotonic() + timeout if timeout is not None else None

        for attempt in range(1, self.max_attempts + 1):
            if self._cancelled.is_set():
                raise self._fail(LinkButtonNotPressed("Pairing cancelled"))
            if deadline is not None and time.monotonic() >= deadline:
                raise self._fail(LinkButtonNotPressed(
                    f"Link button not pressed within {timeout:g} seconds"))

            self.attempts = attempt
            if self.on_attempt:
                self.on_attempt(attempt, self.max_attempts)

            try:
                credential = self.client.create_user(self.app_name)
            except NeedsPhysicalConfirmation:
                self.state = PairingState.AWAITING_BUTTON_PRESS
            except TransportError as e:
                if attempt == self.max_attempts:
                    raise self._fail(e)
            except ProtocolError as e:
                raise self._fail(e)
            else:
                self.state = PairingState.PAIRED
                self.credential = credential
                return credential

            if attempt < self.max_attempts:
                self._sleep(self.backoff)

        raise self._fail(LinkButtonNotPressed(
            f"Link button not pressed after {self.max_attempts} attempts"))


def load_connection() -> BridgeConnection | None:
    """Load the saved bridge connection from the user config file.

    Returns:
        BridgeConnection, or None if nothing valid is saved
    """
    try:
        config = load_config()
    except (ValueError, OSError) as e:
        click.echo(f"Warning: Failed to load config from {USER_CONFIG_FILE}: {e}", err=True)
        return None

    bridge_ip = config.get('bridge_ip')
    api_token = config.get('api_token')

    if not bridge_ip or not isinstance(bridge_ip, str):
        return None
    if api_token is not None and not isinstance(api_token, str):
        return None

    return BridgeConnection(address=bridge_ip, credential=api_token or None,
                            display_name=config.get('bridge_name'))


def save_connection(connection: BridgeConnection) -> bool:
    """Save a bridge connection, keeping any other keys in the config file.

    Returns:
        True if saved successfully, False otherwise
    """
    try:
        config = load_config()
    except (ValueError, OSError):
        # If existing file is corrupt, start fresh
        config = {}

    credentials: AuthCredentials = {
        'bridge_ip': connection.address,
        'api_token': connection.credential or '',
        'bridge_name': connection.display_name,
    }
    config.update(credentials)

    try:
        save_config(config)
        return True
    except OSError as e:
        click.echo(f"Error: Failed to save config to {USER_CONFIG_FILE}: {e}", err=True)
        return False


def clear_connection() -> bool:
    """Forget the saved bridge connection (explicit disconnect).

    Returns:
        True if a saved connection was removed
    """
    try:
        config = load_config()
    except (ValueError, OSError):
        config = {}

    if not any(key in config for key in AuthCredentials.__annotations__):
        return False

    for key in AuthCredentials.__annotations__:
        config.pop(key, None)
    save_config(config)
    return True


def select_bridge_interactive(bridges: list[BridgeCandidate]) -> BridgeCandidate | None:
    """Display interactive menu to select a bridge from discovered list.

    Returns:
        Selected bridge, or None if cancelled/invalid
    """
    if not bridges:
        return None

    click.echo()
    click.secho(f"Found {len(bridges)} Hue bridge{'s' if len(bridges) > 1 else ''}:", fg='cyan', bold=True)
    click.echo()

    for i, bridge in enumerate(bridges, 1):
        click.echo(f"  {click.style(str(i), fg='green', bold=True)}. "
                   f"{bridge.display_name} ({bridge.address}) - ID: {bridge.advertised_id}")

    click.echo()

    try:
        choice = click.prompt(
            f"Select bridge [1-{len(bridges)}] or 'q' to cancel",
            type=str,
            default='1'
        )

        if choice.lower() == 'q':
            return None

        index = int(choice) - 1
        if 0 <= index < len(bridges):
            return bridges[index]

        click.echo(f"Invalid selection: {choice}", err=True)
        return None

    except (ValueError, click.Abort):
        click.echo("\nSelection cancelled.", err=True)
        return None


def choose_bridge(timeout: float | None = None, use_cloud: bool = True) -> BridgeCandidate | None:
    """Discover bridges and let the user pick one (or enter an IP manually)."""
    click.echo("Discovering Hue bridges...")
    bridges = discover_bridges(timeout=timeout, use_cloud=use_cloud)

    if not bridges:
        click.secho("⚠ No bridges found via automatic discovery", fg='yellow')
        click.echo()
        if click.confirm("Enter bridge IP manually?", default=True):
            address = click.prompt("Bridge IP address", type=str)
            return BridgeCandidate(address=address, advertised_id=address, display_name=address)
        return None

    if len(bridges) == 1:
        bridge = bridges[0]
        click.secho(f"✓ Found 1 bridge: {bridge.display_name} ({bridge.address})", fg='green')
        return bridge

    return select_bridge_interactive(bridges)

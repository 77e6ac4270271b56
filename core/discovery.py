"""Bridge discovery on the local network.

Stages, first non-empty verified result wins:
1. SSDP multicast M-SEARCH, filtered by bridge-identifying tokens
2. N-UPnP lookup through the Philips discovery service
Every candidate address is then confirmed with an unauthenticated probe of
/api/config. Finding nothing is not an error: discover() returns [].
"""

import re
import socket
import threading
import time

import click
import requests

from core.config import (
    SSDP_ADDRESS,
    SSDP_PORT,
    SSDP_MX,
    SSDP_LISTEN_WINDOW,
    DESCRIPTION_TIMEOUT,
    PROBE_TIMEOUT,
    CLOUD_DISCOVERY_URL,
    BRIDGE_TOKENS,
)
from models.types import BridgeCandidate

M_SEARCH = (
    'M-SEARCH * HTTP/1.1\r\n'
    f'HOST: {SSDP_ADDRESS}:{SSDP_PORT}\r\n'
    'MAN: "ssdp:discover"\r\n'
    f'MX: {SSDP_MX}\r\n'
    'ST: upnp:rootdevice\r\n'
    '\r\n'
).encode('ascii')

LOCATION_RE = re.compile(r'^location:\s*(.+?)\s*$', re.IGNORECASE | re.MULTILINE)

DEFAULT_BRIDGE_NAME = 'Philips Hue'
IDENTIFYING_FIELDS = ('name', 'modelid', 'swversion')


def has_bridge_tokens(text: str) -> bool:
    """True if text mentions a Hue bridge (vendor, model code or 'hue')."""
    return any(token in text for token in BRIDGE_TOKENS) or 'hue' in text.lower()


def parse_location(response: str) -> str | None:
    """Extract the Location header from an SSDP reply."""
    match = LOCATION_RE.search(response)
    return match.group(1) if match else None


class BridgeDiscovery:
    """Finds and verifies Hue bridges without prior knowledge of the network."""

    def __init__(self, session: requests.Session | None = None,
                 listen_window: float = SSDP_LISTEN_WINDOW,
                 probe_timeout: float = PROBE_TIMEOUT,
                 description_timeout: float = DESCRIPTION_TIMEOUT,
                 use_cloud: bool = True):
        self.session = session or requests.Session()
        self.listen_window = listen_window
        self.probe_timeout = probe_timeout
        self.description_timeout = description_timeout
        self.use_cloud = use_cloud
        self._cancelled = threading.Event()
        self._confirmed: dict[str, BridgeCandidate] = {}
        self._checked: set[str] = set()

    def cancel(self):
        """Stop an in-flight discovery; verified bridges are still returned."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def discover(self, timeout: float | None = None) -> list[BridgeCandidate]:
        """Run all discovery stages until one yields verified bridges.

        Args:
            timeout: Overall deadline in seconds (None for no deadline)

        Returns:
            Verified bridges, possibly empty
        """
        self._cancelled.clear()
        deadline = time.monotonic() + timeout if timeout is not None else None

        stages = [self.listen_ssdp]
        if self.use_cloud:
            stages.append(self.discover_via_cloud)

        for stage in stages:
            if self._expired(deadline):
                break
            try:
                candidates = stage(deadline)
            except (OSError, requests.exceptions.RequestException) as e:
                click.echo(f"Bridge discovery stage failed: {e}", err=True)
                continue

            found = self.verify_candidates(candidates, deadline)
            if found:
                return found

        return list(self._confirmed.values())

    def _expired(self, deadline: float | None) -> bool:
        if self.cancelled:
            return True
        return deadline is not None and time.monotonic() >= deadline

    def listen_ssdp(self, deadline: float | None = None) -> list[str]:
        """Send an SSDP M-SEARCH and collect addresses that look like bridges.

        Listens for the configured window (cut short by the deadline or
        cancel()). The socket is closed on every path.

        Returns:
            Candidate addresses in reply order
        """
        candidates = []
        seen = set()
        window_end = time.monotonic() + self.listen_window
        if deadline is not None:
            window_end = min(window_end, deadline)

        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP) as sock:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, 2)
            sock.settimeout(0.5)
            sock.sendto(M_SEARCH, (SSDP_ADDRESS, SSDP_PORT))

            while not self.cancelled and time.monotonic() < window_end:
                try:
                    data, (address, _port) = sock.recvfrom(4096)
                except socket.timeout:
                    continue

                if address in seen:
                    continue
                seen.add(address)

                response = data.decode('utf-8', errors='replace')
                if self._reply_is_bridge(response):
                    candidates.append(address)

        return candidates

    def _reply_is_bridge(self, response: str) -> bool:
        if has_bridge_tokens(response):
            return True

        location = parse_location(response)
        if not location:
            return False
        return self.check_description(location)

    def check_description(self, location: str) -> bool:
        """Fetch a UPnP description document and look for bridge tokens."""
        try:
            response = self.session.get(location, timeout=self.description_timeout)
        except requests.exceptions.RequestException:
            # Not every device serves a readable description
            return False
        return response.ok and has_bridge_tokens(response.text)

    def discover_via_cloud(self, deadline: float | None = None) -> list[str]:
        """Ask the Philips N-UPnP service for bridges on this network.

        Returns:
            Candidate addresses, sorted for consistency
        """
        response = self.session.get(CLOUD_DISCOVERY_URL, timeout=5)
        if response.status_code == 429:
            click.secho("⚠ Philips discovery service rate limit reached", fg='yellow', err=True)
            return []
        response.raise_for_status()

        try:
            bridges = response.json()
        except ValueError as e:
            click.echo(f"Failed to parse discovery response: {e}", err=True)
            return []
        if not isinstance(bridges, list):
            return []

        addresses = [b.get('internalipaddress') for b in bridges if isinstance(b, dict)]
        return sorted(a for a in addresses if a)

    def verify_candidates(self, addresses: list[str], deadline: float | None = None) -> list[BridgeCandidate]:
        """Probe each new address; already-checked addresses are skipped.

        Returns:
            Bridges confirmed by this call
        """
        found = []
        for address in addresses:
            if self._expired(deadline):
                break
            if address in self._checked:
                continue
            self._checked.add(address)

            candidate = self.probe(address)
            if candidate:
                self._confirmed[address] = candidate
                found.append(candidate)
        return found

    def probe(self, address: str) -> BridgeCandidate | None:
        """Confirm a bridge with GET http://<address>/api/config.

        A 200 carrying name/modelid/swversion confirms it, and so does a bare
        401 (the endpoint exists but wants credentials).

        Returns:
            BridgeCandidate, or None if the address isn't a bridge
        """
        try:
            response = self.session.get(f"http://{address}/api/config", timeout=self.probe_timeout)
        except requests.exceptions.RequestException:
            return None

        if response.status_code == 401:
            return BridgeCandidate(address=address, advertised_id=address,
                                   display_name=DEFAULT_BRIDGE_NAME)

        if response.status_code != 200:
            return None

        try:
            config = response.json()
        except ValueError:
            return None

        if not isinstance(config, dict) or not any(config.get(f) for f in IDENTIFYING_FIELDS):
            return None

        return BridgeCandidate(
            address=address,
            advertised_id=config.get('bridgeid') or address,
            display_name=config.get('name') or DEFAULT_BRIDGE_NAME,
        )


def discover_bridges(timeout: float | None = None, use_cloud: bool = True) -> list[BridgeCandidate]:
    """Discover Hue bridges on the network.

    Returns:
        List of verified bridges sorted by address, empty if none found
    """
    discovery = BridgeDiscovery(use_cloud=use_cloud)
    return sorted(discovery.discover(timeout=timeout), key=lambda b: b.address)


def verify_bridge(address: str, timeout: float = PROBE_TIMEOUT) -> BridgeCandidate | None:
    """Confirm that a manually entered address is a Hue bridge."""
    return BridgeDiscovery(probe_timeout=timeout, use_cloud=False).probe(address)

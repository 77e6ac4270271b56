"""Light registry for an authenticated bridge.

Each fetch replaces the cached light list wholesale. A failed fetch raises
StaleDataError and leaves the previous list in place.
"""

from datetime import datetime

import click

from core.controller import HueBridgeClient
from core.errors import BridgeError, StaleDataError
from models.types import BridgeConnection, Device, DeviceCapabilities
from models.utils import find_similar_strings


def device_from_raw(light_id: str, data: dict) -> Device:
    """Map a raw /lights entry to a Device.

    Missing state fields default to unreachable, off, full brightness so that
    lights still joining the network don't block the registry.
    """
    state = data.get('state') or {}
    brightness = state.get('bri')
    colour_mode = state.get('colormode')

    capabilities = DeviceCapabilities(
        supports_color=colour_mode is not None and colour_mode != 'none',
        supports_color_temperature='ct' in state,
        supports_brightness=True,
    )

    return Device(
        id=str(light_id),
        name=data.get('name', 'Unknown'),
        capabilities=capabilities,
        reachable=bool(state.get('reachable', False)),
        on=bool(state.get('on', False)),
        brightness=254 if brightness is None else int(brightness),
    )


class DeviceRegistry:
    """Fetches and caches the lights known to a bridge."""

    def __init__(self, client_factory=HueBridgeClient):
        """Initialise DeviceRegistry.

        Args:
            client_factory: Builds a client from a BridgeConnection
        """
        self.client_factory = client_factory
        self._devices: dict[str, Device] = {}
        self.last_updated: datetime | None = None

    @property
    def devices(self) -> list[Device]:
        return list(self._devices.values())

    def fetch_devices(self, address: str, credential: str) -> list[Device]:
        """Fetch all lights from the bridge and replace the cache.

        Args:
            address: Bridge IP address
            credential: API username from pairing

        Returns:
            Lights sorted by name

        Raises:
            StaleDataError: If the fetch failed; the previous cache is kept
        """
        client = self.client_factory(BridgeConnection(address=address, credential=credential))

        try:
            raw = client.get_lights()
            devices = [device_from_raw(light_id, data) for light_id, data in raw.items()
                       if isinstance(data, dict)]
        except BridgeError as e:
            raise StaleDataError(f"Failed to fetch lights from {address}: {e}") from e
        except (TypeError, ValueError, AttributeError) as e:
            raise StaleDataError(f"Unexpected lights data from {address}: {e}") from e

        devices.sort(key=lambda d: d.name)
        self._devices = {d.id: d for d in devices}
        self.last_updated = datetime.now()
        return devices

    def get_device(self, device_id: str) -> Device | None:
        return self._devices.get(str(device_id))

    def find_device_by_name(self, name: str) -> Device | None:
        """Get a light by name (case-insensitive).

        Prints close matches if nothing matches exactly.
        """
        for device in self._devices.values():
            if device.name.lower() == name.lower():
                return device

        suggestions = find_similar_strings(name, [d.name for d in self._devices.values()], limit=3)
        if suggestions:
            click.echo(f"Light '{name}' not found. Did you mean: {', '.join(suggestions)}?", err=True)
        return None

    def get_cache_info(self) -> dict:
        """Get information about the cached light list.

        Returns:
            Dictionary with exists, last_updated, age_minutes and counts
        """
        if self.last_updated is None:
            return {
                'exists': False,
                'last_updated': None,
                'age_minutes': None,
                'counts': {}
            }

        age = datetime.now() - self.last_updated
        devices = self.devices
        return {
            'exists': True,
            'last_updated': self.last_updated.isoformat(),
            'age_minutes': age.total_seconds() / 60,
            'counts': {
                'lights': len(devices),
                'reachable': sum(1 for d in devices if d.reachable),
                'colour': sum(1 for d in devices if d.capabilities.supports_color),
            }
        }

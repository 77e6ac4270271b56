"""Type definitions for Hue Show.

This module provides the data types passed between discovery, pairing, the
light registry and the sync engine.
"""

from dataclasses import dataclass, field
from typing import TypedDict


class AuthCredentials(TypedDict):
    """Saved connection as stored in the user config file."""
    bridge_ip: str
    api_token: str
    bridge_name: str | None


@dataclass(frozen=True)
class BridgeCandidate:
    """A bridge found and verified by discovery."""
    address: str
    advertised_id: str
    display_name: str


@dataclass
class BridgeConnection:
    """Address and (once paired) credential for one bridge."""
    address: str
    credential: str | None = None
    display_name: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.credential)


@dataclass(frozen=True)
class DeviceCapabilities:
    """What a light can do, derived from its reported state."""
    supports_color: bool = False
    supports_color_temperature: bool = False
    supports_brightness: bool = True


@dataclass(frozen=True)
class Device:
    """A controllable light as reported by the bridge."""
    id: str
    name: str
    capabilities: DeviceCapabilities = field(default_factory=DeviceCapabilities)
    reachable: bool = False
    on: bool = False
    brightness: int = 254


@dataclass(frozen=True)
class DeviceTargetState:
    """State a light should be in (or was last sent)."""
    device_id: str
    on: bool
    brightness: int = 0
    xy: tuple[float, float] | None = None

    def to_payload(self) -> dict:
        """Build the body for PUT /lights/<id>/state.

        Off-states only carry the on flag; the bridge ignores bri/xy for a
        light being switched off.
        """
        if not self.on:
            return {'on': False}
        payload = {'on': True, 'bri': self.brightness}
        if self.xy is not None:
            payload['xy'] = [self.xy[0], self.xy[1]]
        return payload

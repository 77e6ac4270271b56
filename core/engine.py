"""Playback-driven light synchronisation.

SyncEngine turns "playback is at time T" into the minimal set of light state
commands for the bridge. It remembers the last state it sent per light
(LastKnownState) and only sends when the target differs beyond a small
tolerance, at most 10 times per second unless forced by a seek.

Commands are fire-and-forget: each runs on a per-light worker lane so that a
slow bridge never blocks the playback thread, and a failing light never
holds up the others. A failed send restores the previous record so the next
tick retries it.
"""

import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial

import click

from core.config import THROTTLE_INTERVAL, BRIGHTNESS_TOLERANCE, XY_TOLERANCE, MAX_BRIGHTNESS
from core.controller import HueBridgeClient
from core.registry import DeviceRegistry
from models.colour import to_device_space
from models.timeline import TimelineTrack, active_element
from models.types import DeviceTargetState


def compute_targets(timestamp: float, tracks: Iterable[TimelineTrack],
                    report: Callable[[str], None] | None = None) -> dict[str, DeviceTargetState]:
    """Work out which lights should be on, and how, at timestamp.

    Only light tracks count, and each contributes at most its first active
    element. If several tracks target the same light, the last track wins.
    Lights with no active element are absent from the result.

    An element with an unusable colour or brightness is skipped (and passed
    to report, if given) so that it never holds up the other lights.
    """
    targets = {}
    for track in tracks:
        if not track.is_light_track:
            continue

        element = active_element(track, timestamp)
        if element is None:
            continue

        try:
            brightness = max(0, min(MAX_BRIGHTNESS, int(element.brightness)))
            xy = to_device_space(element.colour)
        except (TypeError, ValueError, AttributeError) as e:
            if report:
                report(f"Skipping element for light {element.light_id} on track {track.id}: {e}")
            continue

        targets[element.light_id] = DeviceTargetState(
            device_id=element.light_id,
            on=True,
            brightness=brightness,
            xy=xy,
        )
    return targets


def should_update(current: DeviceTargetState | None, target: DeviceTargetState,
                  brightness_tolerance: int = BRIGHTNESS_TOLERANCE,
                  xy_tolerance: float = XY_TOLERANCE) -> bool:
    """Decide whether target is different enough from current to send."""
    if current is None:
        return True
    if current.on != target.on:
        return True
    if abs(current.brightness - target.brightness) > brightness_tolerance:
        return True
    if current.xy is not None and target.xy is not None:
        if (abs(current.xy[0] - target.xy[0]) > xy_tolerance
                or abs(current.xy[1] - target.xy[1]) > xy_tolerance):
            return True
    return False


class DeviceDispatcher:
    """Runs jobs on one single-worker lane per light.

    Jobs for different lights run concurrently; jobs for the same light run
    in submission order.
    """

    def __init__(self):
        self._lanes: dict[str, ThreadPoolExecutor] = {}
        self._lock = threading.Lock()

    def submit(self, key: str, fn: Callable[[], None]) -> Future:
        with self._lock:
            lane = self._lanes.get(key)
            if lane is None:
                lane = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"hue-light-{key}")
                self._lanes[key] = lane
        return lane.submit(fn)

    def shutdown(self, wait: bool = True):
        with self._lock:
            lanes = list(self._lanes.values())
            self._lanes.clear()
        for lane in lanes:
            lane.shutdown(wait=wait)


class InlineDispatcher:
    """Runs jobs immediately on the calling thread (one-shot commands, tests)."""

    def submit(self, key: str, fn: Callable[[], None]) -> Future:
        future = Future()
        try:
            future.set_result(fn())
        except Exception as e:
            future.set_exception(e)
        return future

    def shutdown(self, wait: bool = True):
        pass


def _report_to_stderr(message: str):
    click.echo(message, err=True)


class SyncEngine:
    """Keeps the lights of one bridge in step with the playback position."""

    def __init__(self, client: HueBridgeClient,
                 tracks_provider: Callable[[], list[TimelineTrack]] | None = None,
                 registry: DeviceRegistry | None = None,
                 dispatcher=None,
                 clock: Callable[[], float] = time.monotonic,
                 throttle_interval: float = THROTTLE_INTERVAL,
                 report: Callable[[str], None] = _report_to_stderr):
        """Initialise SyncEngine.

        Args:
            client: Client bound to the active bridge connection
            tracks_provider: Returns the current track list (for on_tick/on_seek)
            registry: Known lights; used to drop unsupported fields from commands
            dispatcher: Job runner with submit(key, fn); per-light lanes by default
            clock: Monotonic clock in seconds, used for throttling
            throttle_interval: Minimum seconds between unforced syncs
            report: Receives a message for every failed command
        """
        self.client = client
        self.tracks_provider = tracks_provider
        self.registry = registry
        self.dispatcher = dispatcher or DeviceDispatcher()
        self.clock = clock
        self.throttle_interval = throttle_interval
        self.report = report
        self._last_known: dict[str, DeviceTargetState] = {}
        self._last_accepted: float | None = None
        self._lock = threading.Lock()

    @property
    def last_known_state(self) -> dict[str, DeviceTargetState]:
        """Snapshot of the last state sent per light."""
        with self._lock:
            return dict(self._last_known)

    def on_tick(self, timestamp: float) -> list[tuple[str, dict]]:
        """Playback advanced to timestamp (throttled)."""
        return self.sync(timestamp, self._current_tracks())

    def on_seek(self, timestamp: float) -> list[tuple[str, dict]]:
        """Playback jumped to timestamp (always applied)."""
        return self.sync(timestamp, self._current_tracks(), force=True)

    def _current_tracks(self) -> list[TimelineTrack]:
        if self.tracks_provider is None:
            raise RuntimeError("SyncEngine has no tracks_provider; call sync() directly")
        return self.tracks_provider()

    def reset(self):
        """Forget everything sent; the next sync re-sends every target."""
        with self._lock:
            self._last_known.clear()
            self._last_accepted = None

    def shutdown(self, wait: bool = True):
        self.dispatcher.shutdown(wait=wait)

    def sync(self, timestamp: float, tracks: Iterable[TimelineTrack],
             force: bool = False) -> list[tuple[str, dict]]:
        """Bring the lights in line with the timeline at timestamp.

        Args:
            timestamp: Playback position in seconds
            tracks: Timeline tracks (non-light tracks are ignored)
            force: Skip the throttle (seek events)

        Returns:
            (light_id, payload) for every command issued; empty if throttled
        """
        now = self.clock()
        commands = []

        with self._lock:
            if (not force and self._last_accepted is not None
                    and now - self._last_accepted < self.throttle_interval):
                return []
            self._last_accepted = now

            targets = compute_targets(timestamp, tracks, report=self.report)
            involved = dict.fromkeys([*self._last_known, *targets])

            for device_id in involved:
                target = targets.get(device_id)
                current = self._last_known.get(device_id)

                if target is not None:
                    if not should_update(current, target):
                        continue
                    new_state = target
                elif current is not None and current.on:
                    new_state = DeviceTargetState(device_id=device_id, on=False)
                else:
                    continue

                # Recorded before sending; _send rolls back on failure
                self._last_known[device_id] = new_state
                commands.append((device_id, new_state, current))

        issued = []
        for device_id, new_state, previous in commands:
            payload = self._gate(device_id, new_state.to_payload())
            self.dispatcher.submit(device_id, partial(self._send, device_id, payload, new_state, previous))
            issued.append((device_id, payload))
        return issued

    def _gate(self, device_id: str, payload: dict) -> dict:
        """Drop fields the light can't handle, if the registry knows it."""
        if self.registry is None:
            return payload

        device = self.registry.get_device(device_id)
        if device is None:
            return payload

        if not device.capabilities.supports_color:
            payload.pop('xy', None)
        if not device.capabilities.supports_brightness:
            payload.pop('bri', None)
        return payload

    def _send(self, device_id: str, payload: dict, sent: DeviceTargetState,
              previous: DeviceTargetState | None):
        try:
            self.client.set_light_state(device_id, payload)
        except Exception as e:
            self._rollback(device_id, sent, previous)
            self.report(f"Failed to set light {device_id} to {payload}: {e}")

    def _rollback(self, device_id: str, sent: DeviceTargetState, previous: DeviceTargetState | None):
        with self._lock:
            # A newer command already replaced this record
            if self._last_known.get(device_id) is not sent:
                return
            if previous is None:
                self._last_known.pop(device_id, None)
            else:
                self._last_known[device_id] = previous

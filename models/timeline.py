"""Read-only view of the editor timeline.

Only light tracks matter here. The editor exports its timeline as JSON with
camelCase keys; load_timeline() accepts that format as well as snake_case.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path

LIGHT_TRACK = 'light'


@dataclass(frozen=True)
class LightElement:
    """A time-bounded light assignment on a track."""
    light_id: str
    colour: str
    brightness: int
    start_time: float
    duration: float
    trim_start: float = 0.0
    trim_end: float = 0.0
    id: str = ''
    name: str = ''

    @property
    def end_time(self) -> float:
        return self.start_time + (self.duration - self.trim_start - self.trim_end)

    def is_active_at(self, timestamp: float) -> bool:
        """True if timestamp falls in [start_time, end_time)."""
        return self.start_time <= timestamp < self.end_time


@dataclass(frozen=True)
class TimelineTrack:
    """A timeline track; only tracks of type 'light' drive lights."""
    id: str
    type: str
    elements: tuple = field(default_factory=tuple)
    name: str = ''

    @property
    def is_light_track(self) -> bool:
        return self.type == LIGHT_TRACK


def active_element(track: TimelineTrack, timestamp: float) -> LightElement | None:
    """Return the first element on the track active at timestamp, if any."""
    for element in track.elements:
        if element.is_active_at(timestamp):
            return element
    return None


def _get(data: dict, snake: str, camel: str, default=None):
    if snake in data:
        return data[snake]
    return data.get(camel, default)


def element_from_dict(data: dict) -> LightElement:
    """Build a LightElement from an exported element dict."""
    return LightElement(
        id=str(data.get('id', '')),
        name=data.get('name', ''),
        light_id=str(_get(data, 'light_id', 'lightId')),
        colour=_get(data, 'colour', 'color', '#FFFFFF'),
        brightness=int(data.get('brightness', 254)),
        start_time=float(_get(data, 'start_time', 'startTime', 0.0)),
        duration=float(data.get('duration', 0.0)),
        trim_start=float(_get(data, 'trim_start', 'trimStart', 0.0)),
        trim_end=float(_get(data, 'trim_end', 'trimEnd', 0.0)),
    )


def track_from_dict(data: dict) -> TimelineTrack:
    """Build a TimelineTrack; elements of non-light tracks are not parsed."""
    track_type = data.get('type', '')
    elements = ()
    if track_type == LIGHT_TRACK:
        elements = tuple(element_from_dict(e) for e in data.get('elements', []))
    return TimelineTrack(
        id=str(data.get('id', '')),
        name=data.get('name', ''),
        type=track_type,
        elements=elements,
    )


def load_timeline(path: Path | str) -> list[TimelineTrack]:
    """Load tracks from a timeline JSON file.

    The file is either a list of tracks or an object with a 'tracks' key.

    Raises:
        ValueError: If the document has no track list
    """
    with open(path, 'r') as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get('tracks')
    if not isinstance(data, list):
        raise ValueError(f"No track list found in {path}")

    return [track_from_dict(t) for t in data]


def timeline_duration(tracks: list[TimelineTrack]) -> float:
    """End time of the last light element, or 0 for an empty timeline."""
    ends = [e.end_time for t in tracks if t.is_light_track for e in t.elements]
    return max(ends, default=0.0)

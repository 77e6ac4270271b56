"""Pytest configuration and fixtures for Hue Show tests."""

import pytest
from pathlib import Path
from unittest.mock import MagicMock

from core.engine import InlineDispatcher, SyncEngine
from models.timeline import LightElement, TimelineTrack


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def light_track(*elements: LightElement, track_id: str = 'track1') -> TimelineTrack:
    """Build a light track from elements."""
    return TimelineTrack(id=track_id, type='light', elements=tuple(elements))


def element(light_id: str, colour: str, brightness: int, start: float, duration: float,
            trim_start: float = 0.0, trim_end: float = 0.0) -> LightElement:
    """Build a light element."""
    return LightElement(light_id=light_id, colour=colour, brightness=brightness,
                        start_time=start, duration=duration,
                        trim_start=trim_start, trim_end=trim_end)


@pytest.fixture
def project_root():
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_client():
    """Bridge client whose set_light_state always succeeds."""
    client = MagicMock()
    client.set_light_state.return_value = True
    return client


@pytest.fixture
def reports():
    """Collects messages the engine reports for failed sends."""
    return []


@pytest.fixture
def engine(mock_client, clock, reports):
    """SyncEngine that sends synchronously on the test thread."""
    return SyncEngine(mock_client, dispatcher=InlineDispatcher(), clock=clock, report=reports.append)


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Point the user config file at a temporary path."""
    path = tmp_path / 'hue_show' / 'config.json'
    monkeypatch.setattr('core.config.USER_CONFIG_FILE', path)
    monkeypatch.setattr('core.auth.USER_CONFIG_FILE', path)
    return path

"""Tests for the playback sync engine in core/engine.py

The engine fixture uses InlineDispatcher so commands are sent on the test
thread, and a FakeClock so throttling is deterministic.
"""

import threading

import pytest
from unittest.mock import MagicMock

from core.engine import (
    DeviceDispatcher,
    InlineDispatcher,
    SyncEngine,
    compute_targets,
    should_update,
)
from core.errors import TransportError
from models.timeline import TimelineTrack
from models.types import Device, DeviceCapabilities, DeviceTargetState
from tests.conftest import element, light_track


@pytest.fixture
def show():
    """One light track: red at 200 for [0, 2), green at 100 for [2, 4), on light '1'."""
    return [light_track(
        element('1', '#FF0000', 200, start=0.0, duration=2.0),
        element('1', '#00FF00', 100, start=2.0, duration=2.0),
    )]


def state(on=True, brightness=100, xy=(0.5, 0.5), device_id='1'):
    return DeviceTargetState(device_id=device_id, on=on, brightness=brightness, xy=xy)


class TestShouldUpdate:
    """Test tolerance-based diffing."""

    def test_no_current_record(self):
        assert should_update(None, state()) is True

    def test_identical_state(self):
        assert should_update(state(), state()) is False

    def test_on_flag_differs(self):
        assert should_update(state(on=False, brightness=0, xy=None), state()) is True

    def test_brightness_delta_of_six_sends(self):
        assert should_update(state(brightness=100), state(brightness=106)) is True

    def test_brightness_delta_of_four_does_not(self):
        assert should_update(state(brightness=100), state(brightness=96)) is False

    def test_brightness_delta_of_five_does_not(self):
        assert should_update(state(brightness=100), state(brightness=105)) is False

    def test_xy_delta_of_0_011_sends(self):
        assert should_update(state(xy=(0.5, 0.5)), state(xy=(0.511, 0.5))) is True
        assert should_update(state(xy=(0.5, 0.5)), state(xy=(0.5, 0.489))) is True

    def test_xy_delta_of_0_009_does_not(self):
        assert should_update(state(xy=(0.5, 0.5)), state(xy=(0.509, 0.5))) is False

    def test_xy_ignored_when_current_has_none(self):
        assert should_update(state(xy=None), state(xy=(0.7, 0.3))) is False


class TestComputeTargets:
    """Test target state computation from tracks."""

    def test_active_element_becomes_target(self, show):
        targets = compute_targets(1.0, show)

        assert list(targets) == ['1']
        target = targets['1']
        assert target.on is True
        assert target.brightness == 200
        assert target.xy == pytest.approx((0.701, 0.299), abs=0.001)

    def test_no_active_element(self, show):
        assert compute_targets(4.0, show) == {}

    def test_non_light_tracks_ignored(self):
        media = TimelineTrack(id='m', type='media',
                              elements=(element('1', '#FF0000', 200, start=0.0, duration=10.0),))
        assert compute_targets(1.0, [media]) == {}

    def test_last_track_wins_for_same_light(self):
        tracks = [
            light_track(element('1', '#FF0000', 200, start=0.0, duration=5.0), track_id='a'),
            light_track(element('1', '#0000FF', 50, start=0.0, duration=5.0), track_id='b'),
        ]
        assert compute_targets(1.0, tracks)['1'].brightness == 50

    def test_brightness_clamped(self):
        tracks = [light_track(element('1', '#FF0000', 300, start=0.0, duration=5.0))]
        assert compute_targets(1.0, tracks)['1'].brightness == 254

    def test_bad_colour_skips_only_that_element(self):
        reports = []
        tracks = [
            light_track(element('1', '#FF0000', 200, start=0.0, duration=5.0), track_id='a'),
            light_track(element('2', '#FFF', 200, start=0.0, duration=5.0), track_id='b'),
            light_track(element('3', None, 200, start=0.0, duration=5.0), track_id='c'),
        ]

        targets = compute_targets(1.0, tracks, report=reports.append)

        assert list(targets) == ['1']
        assert len(reports) == 2
        assert 'light 2' in reports[0]


class TestEndToEnd:
    """Back-to-back red and green elements on one light."""

    def test_scenario(self, engine, clock, show, mock_client):
        sent = engine.sync(1.9, show)
        assert len(sent) == 1
        light_id, payload = sent[0]
        assert light_id == '1'
        assert payload['on'] is True
        assert payload['bri'] == 200
        assert payload['xy'] == pytest.approx([0.701, 0.299], abs=0.001)

        clock.advance(0.2)
        sent = engine.sync(2.1, show)
        assert len(sent) == 1
        payload = sent[0][1]
        assert payload['on'] is True
        assert payload['bri'] == 100
        assert payload['xy'] == pytest.approx([0.17, 0.72], abs=0.04)

        clock.advance(0.2)
        assert engine.sync(4.1, show) == [('1', {'on': False})]

        assert mock_client.set_light_state.call_count == 3
        mock_client.set_light_state.assert_called_with('1', {'on': False})


class TestThrottle:
    """Test the 100 ms throttle and seek override."""

    @pytest.fixture
    def two_colours(self):
        return [light_track(
            element('1', '#FF0000', 200, start=0.0, duration=1.0),
            element('1', '#0000FF', 50, start=1.0, duration=1.0),
        )]

    def test_calls_50ms_apart(self, engine, clock, two_colours, mock_client):
        assert engine.sync(0.5, two_colours)
        clock.advance(0.05)
        assert engine.sync(1.5, two_colours) == []
        assert mock_client.set_light_state.call_count == 1

    def test_calls_150ms_apart(self, engine, clock, two_colours, mock_client):
        assert engine.sync(0.5, two_colours)
        clock.advance(0.15)
        assert engine.sync(1.5, two_colours)
        assert mock_client.set_light_state.call_count == 2

    def test_dropped_call_does_not_reset_window(self, engine, clock, two_colours):
        engine.sync(0.5, two_colours)
        clock.advance(0.06)
        engine.sync(1.5, two_colours)
        clock.advance(0.06)
        assert engine.sync(1.5, two_colours)

    def test_force_ignores_throttle(self, engine, clock, two_colours, mock_client):
        assert engine.sync(0.5, two_colours)
        clock.advance(0.001)
        assert engine.sync(1.5, two_colours, force=True)
        assert mock_client.set_light_state.call_count == 2

    def test_identical_ticks_send_once(self, engine, clock, show, mock_client):
        engine.sync(1.0, show)
        for _ in range(5):
            clock.advance(0.2)
            assert engine.sync(1.0, show) == []
        assert mock_client.set_light_state.call_count == 1


class TestAbandonedLights:
    """Test turning off lights no element targets any more."""

    def test_single_off_command(self, engine, clock, show, mock_client):
        engine.sync(1.0, show)

        clock.advance(0.2)
        assert engine.sync(10.0, show) == [('1', {'on': False})]

        for _ in range(3):
            clock.advance(0.2)
            assert engine.sync(10.0, show) == []

        assert mock_client.set_light_state.call_count == 2
        assert engine.last_known_state['1'].on is False

    def test_light_turns_back_on(self, engine, clock, show):
        engine.sync(1.0, show)
        clock.advance(0.2)
        engine.sync(10.0, show)
        clock.advance(0.2)

        sent = engine.sync(1.0, show)
        assert sent[0][1]['on'] is True

    def test_never_targeted_lights_untouched(self, engine, show, mock_client):
        assert engine.sync(10.0, show) == []
        mock_client.set_light_state.assert_not_called()


class TestFailedSends:
    """Test that failed sends are reported and rolled back."""

    def test_failure_is_reported_not_raised(self, engine, show, mock_client, reports):
        mock_client.set_light_state.side_effect = TransportError('timed out')

        sent = engine.sync(1.0, show)

        assert len(sent) == 1
        assert len(reports) == 1
        assert 'timed out' in reports[0]

    def test_failed_first_send_is_retried(self, engine, clock, show, mock_client):
        mock_client.set_light_state.side_effect = TransportError('timed out')
        engine.sync(1.0, show)
        assert '1' not in engine.last_known_state

        mock_client.set_light_state.side_effect = None
        clock.advance(0.2)
        assert len(engine.sync(1.0, show)) == 1
        assert engine.last_known_state['1'].brightness == 200

    def test_failed_update_restores_previous(self, engine, clock, show, mock_client):
        engine.sync(1.0, show)
        red = engine.last_known_state['1']

        mock_client.set_light_state.side_effect = TransportError('timed out')
        clock.advance(0.2)
        engine.sync(3.0, show)

        assert engine.last_known_state['1'] is red

    def test_failed_off_is_retried(self, engine, clock, show, mock_client):
        engine.sync(1.0, show)

        mock_client.set_light_state.side_effect = TransportError('timed out')
        clock.advance(0.2)
        engine.sync(10.0, show)
        assert engine.last_known_state['1'].on is True

        mock_client.set_light_state.side_effect = None
        clock.advance(0.2)
        assert engine.sync(10.0, show) == [('1', {'on': False})]

    def test_failure_does_not_block_other_lights(self, engine, mock_client, reports):
        tracks = [
            light_track(element('1', '#FF0000', 200, start=0.0, duration=5.0), track_id='a'),
            light_track(element('2', '#00FF00', 100, start=0.0, duration=5.0), track_id='b'),
        ]

        def fail_light_one(light_id, payload):
            if light_id == '1':
                raise TransportError('unreachable')
            return True

        mock_client.set_light_state.side_effect = fail_light_one

        sent = engine.sync(1.0, tracks)

        assert [light_id for light_id, _ in sent] == ['1', '2']
        assert set(engine.last_known_state) == {'2'}
        assert len(reports) == 1

    def test_rollback_skipped_when_newer_state_recorded(self, engine, show):
        engine.sync(1.0, show)
        current = engine.last_known_state['1']

        engine._rollback('1', state(brightness=10), None)

        assert engine.last_known_state['1'] is current


class TestCapabilityGating:
    """Test dropping fields lights can't handle."""

    def test_xy_dropped_for_white_lights(self, mock_client, clock, show):
        registry = MagicMock()
        registry.get_device.return_value = Device(
            id='1', name='Hall', capabilities=DeviceCapabilities(supports_color=False))
        engine = SyncEngine(mock_client, registry=registry, dispatcher=InlineDispatcher(), clock=clock)

        sent = engine.sync(1.0, show)

        assert sent == [('1', {'on': True, 'bri': 200})]
        mock_client.set_light_state.assert_called_once_with('1', {'on': True, 'bri': 200})

    def test_unknown_light_unchanged(self, mock_client, clock, show):
        registry = MagicMock()
        registry.get_device.return_value = None
        engine = SyncEngine(mock_client, registry=registry, dispatcher=InlineDispatcher(), clock=clock)

        assert 'xy' in engine.sync(1.0, show)[0][1]


class TestPlaybackEvents:
    """Test on_tick/on_seek and reset."""

    def test_tick_and_seek_use_provider(self, mock_client, clock, show):
        engine = SyncEngine(mock_client, tracks_provider=lambda: show,
                            dispatcher=InlineDispatcher(), clock=clock)

        assert engine.on_tick(1.0)
        clock.advance(0.01)
        assert engine.on_tick(3.0) == []
        assert engine.on_seek(3.0)

    def test_tick_without_provider(self, engine):
        with pytest.raises(RuntimeError):
            engine.on_tick(1.0)

    def test_reset_resends(self, engine, show, mock_client):
        engine.sync(1.0, show)
        engine.reset()

        assert engine.last_known_state == {}
        assert len(engine.sync(1.0, show)) == 1
        assert mock_client.set_light_state.call_count == 2


class TestDeviceDispatcher:
    """Test per-light worker lanes."""

    def test_same_light_runs_in_order(self):
        dispatcher = DeviceDispatcher()
        order = []
        for i in range(20):
            dispatcher.submit('1', lambda i=i: order.append(i))
        dispatcher.shutdown(wait=True)

        assert order == list(range(20))

    def test_lights_run_on_separate_threads(self):
        dispatcher = DeviceDispatcher()
        threads = {}
        for key in ('1', '2'):
            dispatcher.submit(key, lambda key=key: threads.__setitem__(key, threading.current_thread().name))
        dispatcher.shutdown(wait=True)

        assert threads['1'] != threads['2']

    def test_engine_sends_in_background(self, mock_client, clock, show):
        engine = SyncEngine(mock_client, clock=clock)

        engine.sync(1.0, show)
        engine.shutdown(wait=True)

        mock_client.set_light_state.assert_called_once()


class TestBadElements:
    """Test that one broken element doesn't hold up other lights."""

    def test_good_light_still_sent(self, engine, mock_client, reports):
        tracks = [
            light_track(element('1', '#FF0000', 200, start=0.0, duration=5.0), track_id='a'),
            light_track(element('2', '#FFF', 100, start=0.0, duration=5.0), track_id='b'),
        ]

        sent = engine.sync(1.0, tracks, force=True)

        assert [light_id for light_id, _ in sent] == ['1']
        mock_client.set_light_state.assert_called_once()
        assert mock_client.set_light_state.call_args[0][0] == '1'
        assert len(reports) == 1
        assert 'Invalid hex colour' in reports[0]

    def test_bad_brightness(self, engine, reports):
        tracks = [light_track(element('1', '#FF0000', 'bright', start=0.0, duration=5.0))]

        assert engine.sync(1.0, tracks) == []
        assert len(reports) == 1

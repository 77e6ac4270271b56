"""
Control commands: timeline playback and manual light switching.

The timeline file is the editor's JSON export: a list of tracks (or an
object with a 'tracks' key), where light tracks carry elements with
startTime, duration, trimStart, trimEnd, color, brightness and lightId.
"""

import time

import click

from core.engine import InlineDispatcher, SyncEngine
from commands.setup import explain_bridge_error
from core.errors import BridgeError, StaleDataError
from core.registry import DeviceRegistry
from models.colour import to_device_space
from models.timeline import load_timeline, timeline_duration
from models.utils import create_name_lookup, format_payload, get_client


def _load_tracks(timeline_file: str):
    try:
        return load_timeline(timeline_file)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Could not load timeline {timeline_file}: {e}")


def _load_registry(client) -> DeviceRegistry | None:
    registry = DeviceRegistry()
    try:
        registry.fetch_devices(client.address, client.connection.credential)
    except StaleDataError as e:
        click.secho(f"⚠ {e}; sending commands without capability checks", fg='yellow', err=True)
        return None
    return registry


def _echo_commands(position: float, commands, names: dict[str, str]):
    for light_id, payload in commands:
        name = names.get(light_id, f"light {light_id}")
        click.echo(f"  {position:8.2f}s  {name:<20} {format_payload(payload)}")


@click.command(name='seek')
@click.argument('timeline_file', type=click.Path(exists=True, dir_okay=False))
@click.argument('position', type=float)
def seek_command(timeline_file: str, position: float):
    """Set the lights to the timeline state at POSITION seconds.

    \b
    Examples:
      uv run python hue_show.py seek show.json 12.5
    """
    client = get_client()
    if not client:
        return

    tracks = _load_tracks(timeline_file)
    registry = _load_registry(client)
    names = create_name_lookup(registry.devices) if registry else {}

    engine = SyncEngine(client, tracks_provider=lambda: tracks, registry=registry,
                        dispatcher=InlineDispatcher())
    commands = engine.on_seek(position)

    if not commands:
        click.echo(f"No light commands at {position:.2f}s")
        return
    _echo_commands(position, commands, names)


@click.command(name='play')
@click.argument('timeline_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--start', type=float, default=0.0, show_default=True, help='Start position in seconds')
@click.option('--end', type=float, default=None, help='End position in seconds (default: end of the last light element)')
@click.option('--fps', type=click.IntRange(1, 120), default=30, show_default=True, help='Playback ticks per second')
@click.option('--speed', type=float, default=1.0, show_default=True, help='Playback speed multiplier')
@click.option('--quiet', '-q', is_flag=True, help="Don't print commands as they are sent")
def play_command(timeline_file: str, start: float, end: float | None, fps: int, speed: float, quiet: bool):
    """Play a timeline against the lights.

    Simulates a playback clock: one seek at the start, then a tick every
    frame. The engine sends at most 10 updates per second and only when a
    light actually changes. Lights are switched off when playback ends or
    is interrupted with Ctrl+C.

    \b
    Examples:
      uv run python hue_show.py play show.json
      uv run python hue_show.py play show.json --start 30 --speed 2
    """
    if speed <= 0:
        raise click.BadParameter('must be greater than 0', param_hint='--speed')

    client = get_client()
    if not client:
        return

    tracks = _load_tracks(timeline_file)
    if end is None:
        end = timeline_duration(tracks)
    if end <= start:
        click.echo("Nothing to play: the timeline has no light elements after the start position.")
        return

    registry = _load_registry(client)
    names = create_name_lookup(registry.devices) if registry else {}
    engine = SyncEngine(client, tracks_provider=lambda: tracks, registry=registry)

    def show(position, commands):
        if not quiet:
            _echo_commands(position, commands, names)

    click.secho(f"Playing {timeline_file} from {start:.2f}s to {end:.2f}s at {speed:g}x "
                "(Press Ctrl+C to stop)\n", fg='cyan')

    position = start
    finished = False
    try:
        show(position, engine.on_seek(position))
        started = time.monotonic()
        while position < end:
            time.sleep(1 / fps)
            position = min(end, start + (time.monotonic() - started) * speed)
            show(position, engine.on_tick(position))
        finished = True
    except KeyboardInterrupt:
        click.echo("\n\nPlayback stopped.")
    finally:
        # An empty timeline switches off every light the engine turned on
        show(position, engine.sync(position, [], force=True))
        engine.shutdown(wait=True)

    if finished:
        click.secho("✓ Playback finished", fg='green')


@click.command(name='light')
@click.argument('light')
@click.argument('power', type=click.Choice(['on', 'off'], case_sensitive=False))
@click.option('--brightness', '-b', type=click.IntRange(0, 254), default=None, help='Brightness (0-254)')
@click.option('--colour', '-c', default=None, help='Hex colour such as #FF8800')
def light_command(light: str, power: str, brightness: int | None, colour: str | None):
    """Switch one light on or off by ID or name.

    \b
    Examples:
      uv run python hue_show.py light 3 off
      uv run python hue_show.py light "Living Room" on -b 120 -c "#FF8800"
    """
    xy = None
    if colour:
        try:
            xy = to_device_space(colour)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint='--colour')

    client = get_client()
    if not client:
        return

    registry = DeviceRegistry()
    try:
        registry.fetch_devices(client.address, client.connection.credential)
    except StaleDataError as e:
        click.secho(f"✗ {e}", fg='red')
        return

    device = registry.get_device(light) or registry.find_device_by_name(light)
    if not device:
        click.secho(f"✗ Light '{light}' not found", fg='red')
        return

    if power.lower() == 'off':
        payload = {'on': False}
    else:
        payload = {'on': True}
        if brightness is not None:
            payload['bri'] = brightness
        if xy is not None:
            if device.capabilities.supports_color:
                payload['xy'] = [xy[0], xy[1]]
            else:
                click.secho(f"⚠ {device.name} has no colour support; ignoring --colour", fg='yellow', err=True)

    try:
        client.set_light_state(device.id, payload)
    except BridgeError as e:
        explain_bridge_error(e)
        return

    click.echo(f"✓ {device.name}: {format_payload(payload)}")

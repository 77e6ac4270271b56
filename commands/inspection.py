"""
Inspection commands: bridge discovery and the light list.
"""

import click

from core.discovery import BridgeDiscovery
from core.errors import StaleDataError
from core.registry import DeviceRegistry
from models.utils import get_client


@click.command(name='discover')
@click.option('--timeout', '-t', type=float, default=15.0, show_default=True,
              help='Overall discovery deadline in seconds')
@click.option('--no-cloud', is_flag=True, help='Only use local SSDP discovery')
def discover_command(timeout: float, no_cloud: bool):
    """Find Hue bridges on the local network.

    Sends an SSDP search and, if nothing answers, asks the Philips discovery
    service. Every address is confirmed against the bridge's /api/config.
    """
    click.echo("Discovering Hue bridges (SSDP)...")
    discovery = BridgeDiscovery(use_cloud=not no_cloud)

    try:
        bridges = discovery.discover(timeout=timeout)
    except KeyboardInterrupt:
        discovery.cancel()
        click.echo("\nDiscovery cancelled.")
        return

    if not bridges:
        click.secho("No Hue bridges found.", fg='yellow')
        click.echo()
        click.echo("Troubleshooting:")
        click.echo("  • Make sure the bridge is powered on")
        click.echo("  • Ensure this computer is on the same network")
        click.echo("  • Check firewall settings (UDP port 1900)")
        click.echo("  • Pair with a known address: uv run python hue_show.py pair --ip <address>")
        return

    click.secho(f"\nFound {len(bridges)} bridge{'s' if len(bridges) > 1 else ''}:", fg='cyan', bold=True)
    for bridge in sorted(bridges, key=lambda b: b.address):
        click.echo(f"  {click.style(bridge.address, fg='green')}  {bridge.display_name}  "
                   f"(ID: {bridge.advertised_id})")


@click.command(name='lights')
def lights_command():
    """List lights with their state and capabilities."""
    client = get_client()
    if not client:
        return

    registry = DeviceRegistry()
    try:
        devices = registry.fetch_devices(client.address, client.connection.credential)
    except StaleDataError as e:
        click.secho(f"✗ {e}", fg='red')
        return

    if not devices:
        click.echo("No lights found.")
        return

    click.secho(f"\n=== Lights ({len(devices)}) ===\n", fg='cyan', bold=True)

    id_width = max(len(d.id) for d in devices)
    name_width = max(len(d.name) for d in devices)
    for device in devices:
        if not device.reachable:
            state = click.style('unreachable', fg='yellow')
        elif device.on:
            state = click.style(f"on {device.brightness:>3}", fg='green')
        else:
            state = click.style('off', fg='red')

        caps = []
        if device.capabilities.supports_color:
            caps.append('colour')
        if device.capabilities.supports_color_temperature:
            caps.append('ct')
        if device.capabilities.supports_brightness:
            caps.append('dim')

        click.echo(f"  {device.id:>{id_width}}  {device.name:<{name_width}}  {state}  "
                   f"{click.style(', '.join(caps), dim=True)}")

    counts = registry.get_cache_info()['counts']
    click.echo()
    click.echo(f"{counts['reachable']} of {counts['lights']} reachable, {counts['colour']} with colour")
    click.echo()

"""
Setup and help commands for Hue Show CLI.

Contains the custom Click group class (coloured help output, typo
suggestions) plus pairing, status and disconnect commands.
"""

from dataclasses import dataclass

import click

from core.config import APP_NAME, USER_CONFIG_FILE
from core.errors import BridgeError, LinkButtonNotPressed, ProtocolError, TransportError
from models.utils import similarity_score


@dataclass(frozen=True)
class CommandSection:
    """Represents a section in the help command."""
    name: str
    commands: list[tuple[str, str]]


class ColouredGroup(click.Group):
    """Click group with coloured command listing and suggestions for typos."""

    def resolve_command(self, ctx, args):
        try:
            return super().resolve_command(ctx, args)
        except click.UsageError as e:
            if 'No such command' not in str(e):
                raise
            cmd_name = args[0] if args else ''
            suggestions = self._get_suggestions(ctx, cmd_name)
            if not suggestions:
                raise

            error_msg = f"No such command '{cmd_name}'.\n\n"
            error_msg += click.style("Did you mean one of these?\n", fg='yellow')
            for suggestion in suggestions:
                error_msg += click.style(f"  • {suggestion}\n", fg='green')
            raise click.UsageError(error_msg, ctx) from None

    def _get_suggestions(self, ctx, cmd_name, max_suggestions=3):
        """Get visible command names ranked by similarity to cmd_name."""
        if not cmd_name:
            return []

        scored = []
        for command in self.list_commands(ctx):
            cmd_obj = self.get_command(ctx, command)
            if cmd_obj is None or cmd_obj.hidden:
                continue
            score = similarity_score(cmd_name, command)
            if score > 0:
                scored.append((score, command))

        scored.sort(reverse=True, key=lambda x: x[0])
        return [cmd for _, cmd in scored[:max_suggestions]]

    def format_commands(self, ctx, formatter):
        """List commands in green with dimmed one-line help."""
        commands = []
        for subcommand in self.list_commands(ctx):
            cmd = self.get_command(ctx, subcommand)
            if cmd is None or cmd.hidden:
                continue
            commands.append((subcommand, cmd.get_short_help_str(limit=200)))

        if not commands:
            return

        formatter.write_paragraph()
        formatter.write_text(click.style('Commands:', fg='yellow', bold=True))
        width = max(max(len(name) for name, _ in commands), 12)
        with formatter.indentation():
            for name, help_text in commands:
                formatter.write_text(
                    click.style(name.ljust(width), fg='green') + '  ' +
                    click.style(help_text, dim=True)
                )


@click.command(name='help')
def help_command():
    """Display help and common commands."""
    click.echo()
    click.secho("Hue Show - Quick Reference", fg='cyan', bold=True)
    click.echo()

    sections = [
        CommandSection(
            name="BRIDGE",
            commands=[
                ("discover", "Find Hue bridges on the local network"),
                ("pair", "Discover a bridge and pair via the link button"),
                ("pair --ip <address>", "Pair with a known bridge address"),
                ("status", "Show saved bridge and test the connection"),
                ("disconnect", "Forget the saved bridge"),
            ]
        ),
        CommandSection(
            name="LIGHTS",
            commands=[
                ("lights", "List lights with capabilities"),
                ("light <id|name> on|off", "Switch one light by hand"),
                ("light <name> on -b 120 -c #FF8800", "Set brightness and colour"),
            ]
        ),
        CommandSection(
            name="PLAYBACK",
            commands=[
                ("seek <timeline> <seconds>", "Apply the timeline state at one position"),
                ("play <timeline>", "Play a timeline against the lights"),
                ("play <timeline> --speed 2", "Play at double speed"),
            ]
        ),
    ]

    for section in sections:
        click.secho(section.name, fg='yellow', bold=True)
        for cmd, desc in section.commands:
            click.echo("  ", nl=False)
            click.secho(cmd.ljust(34), fg='green', nl=False)
            click.echo("  " + desc)
        click.echo()

    click.secho("For detailed help on any command:", fg='cyan')
    click.echo(f"  uv run python hue_show.py {click.style('<command> -h', fg='white', bold=True)}")
    click.echo()


def explain_bridge_error(error: BridgeError):
    """Print the remediation step for a bridge error."""
    if isinstance(error, LinkButtonNotPressed):
        click.secho(f"✗ {error}", fg='red')
        click.echo("Press the link button on the bridge, then run 'pair' again.")
    elif isinstance(error, ProtocolError):
        click.secho(f"✗ Bridge reported an error: {error.description}", fg='red')
    elif isinstance(error, TransportError):
        click.secho(f"✗ Could not reach the bridge: {error}", fg='red')
        click.echo("Check that the bridge is powered on and on the same network.")
    else:
        click.secho(f"✗ {error}", fg='red')


@click.command()
@click.option('--ip', '-i', 'bridge_ip', help='Bridge IP address (skips discovery)')
@click.option('--app-name', default=APP_NAME, show_default=True, help='Application identifier sent to the bridge')
@click.option('--timeout', type=float, default=None, help='Give up waiting for the button after this many seconds')
@click.option('--no-cloud', is_flag=True, help='Only use local SSDP discovery')
def pair_command(bridge_ip, app_name, timeout, no_cloud):
    """Pair with a Hue bridge using the link button.

    Discovers bridges (unless --ip is given), then polls the bridge for up to
    30 seconds while you press its link button. The credential is saved to
    the user config file.
    """
    from core.auth import PairingSession, choose_bridge, save_connection
    from core.controller import HueBridgeClient
    from core.discovery import verify_bridge
    from models.types import BridgeConnection

    if bridge_ip:
        candidate = verify_bridge(bridge_ip)
        if not candidate:
            click.secho(f"⚠ No Hue bridge answered at {bridge_ip}; trying anyway", fg='yellow')
        name = candidate.display_name if candidate else None
    else:
        candidate = choose_bridge(use_cloud=not no_cloud)
        if not candidate:
            click.echo("Pairing cancelled.")
            return
        bridge_ip = candidate.address
        name = candidate.display_name

    connection = BridgeConnection(address=bridge_ip, display_name=name)

    click.echo()
    click.secho("Press the LINK BUTTON on your Hue Bridge now", fg='yellow', bold=True)
    click.echo()

    def show_attempt(attempt, max_attempts):
        if attempt == 1 or attempt % 5 == 0:
            click.echo(f"Waiting for button press... (attempt {attempt}/{max_attempts})")

    session = PairingSession(HueBridgeClient(connection), app_name=app_name, on_attempt=show_attempt)
    try:
        connection.credential = session.pair(timeout=timeout)
    except BridgeError as e:
        explain_bridge_error(e)
        return
    except KeyboardInterrupt:
        session.cancel()
        click.echo("\nPairing cancelled.")
        return

    click.secho("✓ Successfully paired with the bridge!", fg='green', bold=True)

    if save_connection(connection):
        click.secho(f"✓ Configuration saved to {USER_CONFIG_FILE}", fg='green')
    else:
        click.echo("\nYou can manually create the config file:")
        click.echo(f'  {{"bridge_ip": "{connection.address}", "api_token": "{connection.credential}"}}')


@click.command()
def status_command():
    """Show the saved bridge and test the connection."""
    from core.auth import load_connection
    from core.controller import HueBridgeClient

    click.echo()
    click.secho("=== Hue Bridge Configuration ===", fg='cyan', bold=True)
    click.echo()

    connection = load_connection()
    if not connection:
        click.echo(f"   Status:      {click.style('✗ Not configured', fg='yellow')}")
        click.echo(f"   Path:        {USER_CONFIG_FILE} (does not exist)")
        click.echo()
        click.echo("Run this command to pair with your bridge:")
        click.echo(click.style("  uv run python hue_show.py pair", fg='green', bold=True))
        click.echo()
        return

    paired = click.style('✓ Paired', fg='green') if connection.is_authenticated else click.style('⚠ Not paired', fg='yellow')
    click.echo(f"   Status:      {paired}")
    click.echo(f"   Path:        {USER_CONFIG_FILE}")
    click.echo(f"   Bridge IP:   {connection.address}")
    click.echo(f"   Bridge name: {connection.display_name or 'Unknown'}")
    click.echo()

    click.echo("Testing connection to bridge...")
    client = HueBridgeClient(connection)
    try:
        config = client.get_config()
        if connection.is_authenticated:
            lights = client.get_lights()
    except BridgeError as e:
        explain_bridge_error(e)
        click.echo()
        return

    click.secho(f"✓ Bridge at {connection.address} is reachable", fg='green', bold=True)
    click.echo(f"  Bridge ID:  {config.get('bridgeid', 'Unknown')}")
    click.echo(f"  Model ID:   {config.get('modelid', 'Unknown')}")
    click.echo(f"  Software:   {config.get('swversion', 'Unknown')}")
    if connection.is_authenticated:
        click.echo(f"  Lights:     {len(lights)}")
    click.echo()


@click.command()
@click.option('--yes', '-y', is_flag=True, help='Skip confirmation prompt')
def disconnect_command(yes):
    """Forget the saved bridge connection."""
    from core.auth import clear_connection

    if not yes and not click.confirm("Forget the saved bridge?", default=False):
        return

    if clear_connection():
        click.secho("✓ Saved bridge removed", fg='green')
    else:
        click.echo("No saved bridge to remove.")

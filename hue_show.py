#!/usr/bin/env python3
"""
Hue Show CLI
Play editor light timelines on Philips Hue lights.
"""

import click

from commands.setup import (
    ColouredGroup,
    help_command,
    pair_command,
    status_command,
    disconnect_command,
)
from commands.inspection import discover_command, lights_command
from commands.control import seek_command, play_command, light_command


@click.group(
    cls=ColouredGroup,
    context_settings={
        'help_option_names': ['-h', '--help'],
        'max_content_width': 999
    }
)
@click.version_option(version='0.1.0', prog_name='Hue Show')
def cli():
    """Hue Show - Play light timelines on your Philips Hue lights.

Pair once with 'pair' (press the bridge link button when asked), then use
'play' or 'seek' with a timeline exported from the editor.

Use 'help' for a quick reference of all commands.
Use 'COMMAND -h' or 'COMMAND --help' for detailed help on a specific command."""
    pass


# Register setup and help commands
cli.add_command(help_command)
cli.add_command(pair_command, name='pair')
cli.add_command(status_command, name='status')
cli.add_command(disconnect_command, name='disconnect')

# Register inspection commands
cli.add_command(discover_command)
cli.add_command(lights_command)
cli.add_command(light_command)

# Register playback commands
cli.add_command(seek_command)
cli.add_command(play_command)


if __name__ == '__main__':
    cli()

"""CLI command modules.

This package contains:
- setup: Help, pairing, status and disconnect commands
- inspection: Bridge discovery and light listing commands
- control: Timeline seek and playback commands
"""

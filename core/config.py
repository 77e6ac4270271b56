"""Configuration constants and the user configuration file.

This module handles:
- Protocol and timing constants shared by discovery, pairing and the engine
- Loading/saving the user configuration file (saved bridge connection)
"""

import json
import os
from pathlib import Path

# User configuration file location (saved bridge connection)
USER_CONFIG_FILE = Path(os.getenv('HUE_SHOW_CONFIG', Path.home() / '.hue_show' / 'config.json'))

# Application identifier sent as 'devicetype' when pairing
APP_NAME = 'hue_show#cli'

# SSDP discovery
SSDP_ADDRESS = '239.255.255.250'
SSDP_PORT = 1900
SSDP_MX = 3
SSDP_LISTEN_WINDOW = 5.0
DESCRIPTION_TIMEOUT = 2.0
PROBE_TIMEOUT = 3.0
CLOUD_DISCOVERY_URL = 'https://discovery.meethue.com/'

# Tokens that identify a Hue bridge in an SSDP reply or description document
BRIDGE_TOKENS = ('IpBridge', 'Philips', 'BSB001', 'BSB002', 'hue-bridgeid')

# Link button pairing
PAIRING_MAX_ATTEMPTS = 30
PAIRING_BACKOFF = 1.0
LINK_BUTTON_ERROR = 101

# Bridge requests
REQUEST_TIMEOUT = 5.0

# Sync engine
THROTTLE_INTERVAL = 0.1  # seconds, at most 10 accepted syncs per second
BRIGHTNESS_TOLERANCE = 5
XY_TOLERANCE = 0.01
MAX_BRIGHTNESS = 254


def load_config() -> dict:
    """Load the user configuration file.

    Returns:
        Parsed config dict, or an empty dict if the file doesn't exist
    """
    if USER_CONFIG_FILE.exists():
        with open(USER_CONFIG_FILE, 'r') as f:
            return json.load(f)
    return {}


def save_config(config: dict):
    """Save the user configuration file.

    Creates the parent directory if needed and restricts the file to the
    current user (mode 600), since it holds the bridge credential.

    Args:
        config: Configuration dict to save
    """
    USER_CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)

    with open(USER_CONFIG_FILE, 'w') as f:
        json.dump(config, f, indent=2)

    os.chmod(USER_CONFIG_FILE, 0o600)

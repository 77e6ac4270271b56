"""Core functionality for Hue Show.

This package contains:
- controller: HueBridgeClient for the bridge HTTP API
- discovery: SSDP / N-UPnP bridge discovery and verification
- auth: Link button pairing and saved connection management
- registry: Light list fetching and caching
- engine: Playback-driven light synchronisation
- config: Constants and the user config file
- errors: Bridge error types
"""

"""Data models and utility functions.

This package contains:
- types: Bridge, light and target-state types
- colour: RGB to Hue xy conversion
- timeline: Read-only timeline tracks and light elements
- utils: Utility functions (name lookups, fuzzy matching, etc.)
"""

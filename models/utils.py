"""Utility functions for Hue Show.

This module contains helper functions used across the application:
- create_name_lookup: Build ID-to-name mappings for lights
- format_payload: Render a light state payload for terminal output
- get_client: Helper to create a client from the saved connection
- similarity_score: Canonical fuzzy string matching algorithm
- find_similar_strings: Find similar strings using fuzzy matching
"""

import click

from models.types import Device


def create_name_lookup(devices: list[Device]) -> dict[str, str]:
    """Create a lookup dict mapping light IDs to names.

    Args:
        devices: List of Device objects from the registry

    Returns:
        Dict mapping light ID to name
    """
    return {d.id: d.name for d in devices}


def format_payload(payload: dict) -> str:
    """Format a light state payload, e.g. 'on bri=200 xy=(0.701, 0.299)'."""
    if not payload.get('on'):
        return click.style('off', fg='red')

    parts = [click.style('on', fg='green')]
    if 'bri' in payload:
        parts.append(f"bri={payload['bri']}")
    if 'xy' in payload:
        x, y = payload['xy']
        parts.append(f"xy=({x:.3f}, {y:.3f})")
    return ' '.join(parts)


def get_client():
    """Get a bridge client for the saved connection.

    This helper reduces boilerplate in commands that need a paired bridge.

    Returns:
        A HueBridgeClient, or None if no paired bridge is saved
    """
    # Import here to avoid circular dependency
    from core.auth import load_connection
    from core.controller import HueBridgeClient

    connection = load_connection()
    if not connection or not connection.is_authenticated:
        click.echo("Error: No paired bridge found.", err=True)
        click.echo("Run 'uv run python hue_show.py pair' to pair with your bridge.")
        return None
    return HueBridgeClient(connection)


def similarity_score(s1: str, s2: str) -> int:
    """Calculate similarity score between two strings.

    This is the canonical implementation used throughout the application
    for fuzzy matching (command typo suggestions, light name matching).

    Args:
        s1: First string to compare
        s2: Second string to compare

    Returns:
        Similarity score:
        - 100: Exact match (case-insensitive)
        - 80: Prefix match
        - 60: Substring match
        - 0-50: Character sequence match (proportional to matching characters)
        - 0: No match
    """
    s1_lower = s1.lower()
    s2_lower = s2.lower()

    if s1_lower == s2_lower:
        return 100

    if s2_lower.startswith(s1_lower) or s1_lower.startswith(s2_lower):
        return 80

    if s1_lower in s2_lower or s2_lower in s1_lower:
        return 60

    # Character sequence matching
    matches = 0
    j = 0
    for char in s1_lower:
        while j < len(s2_lower):
            if s2_lower[j] == char:
                matches += 1
                j += 1
                break
            j += 1

    if matches > 0:
        score = int((matches / max(len(s1_lower), len(s2_lower))) * 50)
        return score if score > 20 else 0

    return 0


def find_similar_strings(target: str, candidates: list[str], limit: int = 5) -> list[str]:
    """Find similar strings using simple similarity scoring.

    Args:
        target: The string to match against
        candidates: List of candidate strings to search
        limit: Maximum number of results to return

    Returns:
        List of similar strings, sorted by similarity score (most similar first)
    """
    scored = [(candidate, similarity_score(target, candidate)) for candidate in candidates]
    filtered = [(c, s) for c, s in scored if s > 0]
    sorted_matches = sorted(filtered, key=lambda x: x[1], reverse=True)

    return [c for c, s in sorted_matches[:limit]]

"""Tests for Hue Show."""

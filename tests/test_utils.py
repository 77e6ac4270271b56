"""Tests for utility functions in models/utils.py"""

import click
import pytest
from unittest.mock import patch

from models.types import BridgeConnection, Device
from models.utils import (
    create_name_lookup,
    find_similar_strings,
    format_payload,
    get_client,
    similarity_score,
)


class TestCreateNameLookup:
    """Tests for create_name_lookup function."""

    def test_maps_ids_to_names(self):
        devices = [Device(id='1', name='Living Room'), Device(id='2', name='Hallway')]
        assert create_name_lookup(devices) == {'1': 'Living Room', '2': 'Hallway'}

    def test_empty(self):
        assert create_name_lookup([]) == {}


class TestFormatPayload:
    """Tests for format_payload function."""

    def test_off(self):
        assert click.unstyle(format_payload({'on': False})) == 'off'

    def test_on_with_colour(self):
        text = click.unstyle(format_payload({'on': True, 'bri': 200, 'xy': [0.70061, 0.29939]}))
        assert text == 'on bri=200 xy=(0.701, 0.299)'

    def test_on_without_colour(self):
        assert click.unstyle(format_payload({'on': True, 'bri': 50})) == 'on bri=50'


class TestSimilarityScore:
    """Tests for similarity_score function."""

    def test_exact_match_ignores_case(self):
        assert similarity_score('Play', 'play') == 100

    def test_prefix_match(self):
        assert similarity_score('disc', 'discover') == 80

    def test_substring_match(self):
        assert similarity_score('cover', 'discover') == 60

    def test_no_match(self):
        assert similarity_score('xyz', 'pair') == 0


class TestFindSimilarStrings:
    """Tests for find_similar_strings function."""

    def test_ranked_by_score(self):
        assert find_similar_strings('pla', ['status', 'play', 'pair'])[0] == 'play'

    def test_limit(self):
        assert len(find_similar_strings('a', ['a', 'ab', 'abc', 'abcd'], limit=2)) == 2


class TestGetClient:
    """Tests for get_client helper."""

    @patch('core.auth.load_connection')
    def test_not_paired(self, mock_load, capsys):
        mock_load.return_value = None

        assert get_client() is None
        assert 'No paired bridge' in capsys.readouterr().err

    @patch('core.auth.load_connection')
    def test_connection_without_credential(self, mock_load):
        mock_load.return_value = BridgeConnection('192.168.1.2')
        assert get_client() is None

    @patch('core.auth.load_connection')
    def test_paired(self, mock_load):
        mock_load.return_value = BridgeConnection('192.168.1.2', 'abc123')

        client = get_client()

        assert client.address == '192.168.1.2'
        assert client.connection.credential == 'abc123'

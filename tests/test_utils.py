"""
Tests for helper functions
"""
import pytest

from solana_indexer.utils import is_valid_public_key, parse_account_data, shorten_address

from conftest import TOKEN_PROGRAM, WSOL


class TestPublicKeys:

    @pytest.mark.parametrize("address", [WSOL, TOKEN_PROGRAM, "11111111111111111111111111111111"])
    def test_valid_keys(self, address):
        assert is_valid_public_key(address) is True

    @pytest.mark.parametrize("address", ["", "not-a-key", "0OIl" * 11, WSOL + "1", None, 42])
    def test_invalid_keys(self, address):
        assert is_valid_public_key(address) is False

    def test_shorten_address(self):
        assert shorten_address(WSOL) == "So11...1112"
        assert shorten_address(WSOL, chars=2) == "So...12"


class TestParseAccountData:

    def test_empty_data(self):
        assert parse_account_data(b"", "base64") is None
        assert parse_account_data(None) is None

    def test_base64(self):
        assert parse_account_data(b"\x00\x01", "base64") == "AAE="

    def test_json(self):
        assert parse_account_data(b'{"mint": "abc"}', "jsonParsed") == {"mint": "abc"}

    def test_undecodable_json_returns_raw(self):
        assert parse_account_data(b"\xff\xfe", "jsonParsed") == b"\xff\xfe"

    def test_unknown_encoding_returns_raw(self):
        assert parse_account_data(b"\x01", "base58") == b"\x01"

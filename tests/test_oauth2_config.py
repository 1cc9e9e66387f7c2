# Tests for configuration parsing and small helpers.

from datetime import datetime

import pytest

from oauth2.config import CLIENT_ID_PATTERN, OAuth2Config, parse_duration
from oauth2.utils import from_unix, normalize_scope_ids, split_authorization_header


class TestParseDuration:

    @pytest.mark.parametrize("value, seconds", [
        ("30d", 30 * 86400),
        ("12h", 12 * 3600),
        ("15m", 900),
        ("90s", 90),
        ("3600", 3600),
        (42, 42),
    ])
    def test_units(self, value, seconds):
        assert parse_duration(value) == seconds

    @pytest.mark.parametrize("value", ["", "abc", "10w", "-5d", "1.5h"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_duration(value)


class TestOAuth2Config:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("JWT_REFRESH_EXPIRATION_TIME", raising=False)
        monkeypatch.delenv("OAUTH2_ISSUER", raising=False)
        config = OAuth2Config()
        assert config.refresh_token_expiry == 30 * 86400
        assert config.access_token_expiry == 7 * 86400
        assert config.id_token_expiry == 7 * 86400
        assert config.issuer == "https://ckdebuggers.com"
        assert config.jwt_algorithm == "HS256"

    def test_refresh_expiry_from_env(self, monkeypatch):
        monkeypatch.setenv("JWT_REFRESH_EXPIRATION_TIME", "60d")
        assert OAuth2Config().refresh_token_expiry == 60 * 86400

    def test_missing_secret(self, monkeypatch):
        monkeypatch.delenv("JWT_SECRET")
        with pytest.raises(ValueError):
            OAuth2Config()


class TestClientIdPattern:

    def test_uuid4_any_case(self):
        assert CLIENT_ID_PATTERN.match("3f1c2a9e-7b7d-4c3e-9a51-0d7d9d4a2b10")
        assert CLIENT_ID_PATTERN.match("3F1C2A9E-7B7D-4C3E-9A51-0D7D9D4A2B10")

    @pytest.mark.parametrize("value", [
        "not-a-uuid",
        "3f1c2a9e-7b7d-1c3e-9a51-0d7d9d4a2b10",  # version 1
        "3f1c2a9e-7b7d-4c3e-7a51-0d7d9d4a2b10",  # bad variant
        "3f1c2a9e7b7d4c3e9a510d7d9d4a2b10",
    ])
    def test_rejects(self, value):
        assert not CLIENT_ID_PATTERN.match(value)


class TestUtils:

    def test_normalize_scope_ids(self):
        assert normalize_scope_ids(["2", "1", "2", "x", 3, "", None, True]) == [2, 1, 3]
        assert normalize_scope_ids(None) == []

    def test_split_authorization_header(self):
        assert split_authorization_header("Bearer abc") == ("Bearer", "abc")
        assert split_authorization_header("Bearer") is None
        assert split_authorization_header("Bearer a b") is None
        assert split_authorization_header(None) is None

    def test_from_unix_is_naive_utc(self):
        assert from_unix(1700000000) == datetime(2023, 11, 14, 22, 13, 20)

# Tests for JWT minting, verification and refresh-token persistence.

import time

import jwt
import pytest

from oauth2.models import RefreshToken
from oauth2.tokens import TokenIssuer
from oauth2.utils import from_unix


@pytest.fixture
def issuer(config):
    return TokenIssuer(config)


class TestAccessToken:

    def test_payload_and_absolute_expiry(self, issuer, config):
        before = int(time.time())
        result = issuer.generate_access_token(7, "client-a")

        payload = issuer.verify_access_token(result["access_token"])
        assert payload["user_id"] == 7
        assert payload["app_id"] == "client-a"
        assert result["expires_in"] == payload["exp"]
        assert payload["exp"] - payload["iat"] == config.access_token_expiry
        assert payload["exp"] >= before + config.access_token_expiry

    def test_expired_token_rejected(self, issuer, config):
        token = jwt.encode(
            {"user_id": 7, "app_id": "client-a", "exp": int(time.time()) - 10},
            config.jwt_secret,
            algorithm="HS256"
        )
        with pytest.raises(jwt.ExpiredSignatureError):
            issuer.verify_access_token(token)

    def test_wrong_signature_rejected(self, issuer):
        token = jwt.encode(
            {"user_id": 7, "app_id": "client-a", "exp": int(time.time()) + 60},
            "another-secret-of-sufficient-length-000000",
            algorithm="HS256"
        )
        with pytest.raises(jwt.InvalidSignatureError):
            issuer.verify_access_token(token)

    def test_missing_claims_rejected(self, issuer, config):
        token = jwt.encode({"user_id": 7, "exp": int(time.time()) + 60}, config.jwt_secret, algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError):
            issuer.verify_access_token(token)


class TestRefreshToken:

    def test_at_most_one_row_per_pair(self, issuer, db, seeded):
        user_id, client_id = seeded.member.id, seeded.client.id

        first = issuer.generate_refresh_token(db, user_id, client_id)
        db.commit()
        second = issuer.generate_refresh_token(db, user_id, client_id)
        db.commit()

        assert first["refresh_token"] != second["refresh_token"]
        rows = db.query(RefreshToken).filter_by(user_id=user_id, client_id=client_id).all()
        assert len(rows) == 1
        assert rows[0].value == second["refresh_token"]
        assert rows[0].expires_at == from_unix(second["refresh_token_expires_in"])

    def test_payload(self, issuer, db, seeded, config):
        result = issuer.generate_refresh_token(db, seeded.member.id, seeded.client.id)
        payload = issuer.verify_refresh_token(result["refresh_token"])
        assert payload["user_id"] == seeded.member.id
        assert payload["client_id"] == seeded.client.id
        assert payload["jti"]
        assert payload["exp"] - payload["iat"] == config.refresh_token_expiry

    def test_access_token_is_not_a_refresh_token(self, issuer):
        access = issuer.generate_access_token(7, "client-a")["access_token"]
        with pytest.raises(jwt.InvalidTokenError):
            issuer.verify_refresh_token(access)


class TestIdToken:

    def test_claims(self, issuer, seeded, config):
        token = issuer.generate_id_token(
            seeded.member, seeded.client.id, [seeded.email, seeded.school_number], nonce="n-123"
        )
        payload = issuer.decode_unverified(token)
        assert payload["iss"] == config.issuer
        assert payload["aud"] == seeded.client.id
        assert payload["sub"] == str(seeded.member.id)
        assert payload["exp"] - payload["iat"] == config.id_token_expiry
        assert payload["nonce"] == "n-123"
        assert payload["email"] == "alice@example.com"
        assert payload["school_number"] == "20230001"
        assert "username" not in payload

    def test_no_nonce(self, issuer, seeded):
        payload = issuer.decode_unverified(issuer.generate_id_token(seeded.member, seeded.client.id, []))
        assert "nonce" not in payload

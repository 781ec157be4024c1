"""Unit tests for session token creation and decoding."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import ExpiredSignatureError, JWTError, jwt

from natours.auth.jwt import create_access_token, decode_token


class TestCreateAccessToken:
    """Test session token creation."""

    def test_contains_sub_claim(self):
        token = create_access_token("user-abc")
        payload = decode_token(token)
        assert payload["sub"] == "user-abc"

    def test_contains_iat_and_exp_claims(self):
        payload = decode_token(create_access_token("user-123"))
        assert "iat" in payload
        assert "exp" in payload

    def test_default_lifetime_is_90_days(self):
        payload = decode_token(create_access_token("user-123"))
        assert payload["exp"] - payload["iat"] == 90 * 24 * 60 * 60

    def test_custom_issued_at(self):
        issued = datetime.now(timezone.utc) - timedelta(minutes=5)
        payload = decode_token(create_access_token("user-123", issued_at=issued))
        assert payload["iat"] == int(issued.timestamp())


class TestDecodeToken:
    """Test token decoding and verification failures."""

    def test_expired_token_raises(self):
        token = create_access_token("user-123", expires_delta=timedelta(seconds=-1))
        with pytest.raises(ExpiredSignatureError):
            decode_token(token)

    def test_wrong_secret_raises(self):
        forged = jwt.encode({"sub": "user-123"}, "some-other-secret", algorithm="HS256")
        with pytest.raises(JWTError):
            decode_token(forged)

    def test_malformed_token_raises(self):
        with pytest.raises(JWTError):
            decode_token("not.a.valid.jwt")

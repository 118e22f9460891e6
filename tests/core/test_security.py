"""
Tests for bearer token helpers.
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import JWTError, jwt

from qred.core.config import settings
from qred.core.security import create_access_token, decode_token


@pytest.mark.unit
class TestSecurity:
    """Test security utilities."""

    def test_create_access_token(self):
        """Test access token creation."""
        subject = "0b8e7c2e-6a51-4a4e-9c55-0b2f1f0a8d11"
        token = create_access_token(subject)

        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )

        assert payload["sub"] == subject
        assert payload["type"] == "access"
        exp_datetime = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        assert exp_datetime > datetime.now(timezone.utc)

    def test_create_access_token_with_custom_expiry(self):
        """Test access token creation with custom expiry."""
        expires_delta = timedelta(minutes=5)
        token = create_access_token("user-1", expires_delta)

        payload = decode_token(token)

        exp_datetime = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        expected_exp = datetime.now(timezone.utc) + expires_delta
        # Allow 1 second tolerance for test execution time
        assert abs((exp_datetime - expected_exp).total_seconds()) < 1

    def test_create_access_token_with_additional_claims(self):
        token = create_access_token("user-1", additional_claims={"phone": "+2348012345678"})
        assert decode_token(token)["phone"] == "+2348012345678"

    def test_decode_invalid_token(self):
        with pytest.raises(JWTError):
            decode_token("invalid.token.here")

    def test_decode_expired_token(self):
        token = create_access_token("user-1", timedelta(seconds=-1))

        with pytest.raises(JWTError):
            decode_token(token)

    def test_decode_token_with_wrong_algorithm(self):
        token = jwt.encode(
            {"sub": "user-1", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            settings.jwt_secret_key,
            algorithm="HS512",
        )

        with pytest.raises(JWTError):
            decode_token(token)

    def test_token_subject_as_integer(self):
        token = create_access_token(456)
        assert decode_token(token)["sub"] == "456"

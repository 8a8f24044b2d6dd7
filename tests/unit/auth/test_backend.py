"""Unit tests for bearer token handling."""

from datetime import timedelta

from jose import jwt

from firmsync.config import settings
from firmsync.core.auth.backend import create_access_token, decode_token


class TestAccessTokens:
    """Tests for create_access_token and decode_token."""

    def test_create_access_token_returns_jwt(self):
        """create_access_token should return a JWT string."""
        token = create_access_token(7)

        assert isinstance(token, str)
        # JWT has three parts separated by dots
        assert token.count(".") == 2

    def test_decode_token_valid(self):
        """decode_token should recover the principal id."""
        token = create_access_token(7)
        data = decode_token(token)

        assert data is not None
        assert data.user_id == 7
        assert data.type == "access"
        assert data.jti

    def test_decode_token_invalid(self):
        """decode_token should return None for invalid token."""
        assert decode_token("invalid.token.here") is None

    def test_decode_token_expired(self):
        """decode_token should return None for expired token."""
        token = create_access_token(7, expires_delta=timedelta(seconds=-10))

        assert decode_token(token) is None

    def test_decode_token_wrong_key(self):
        token = jwt.encode(
            {"iss": "firmsync", "sub": "7", "exp": 9999999999, "type": "access"},
            "another-secret-key-that-is-long-enough",
            algorithm=settings.jwt_algorithm,
        )

        assert decode_token(token) is None

    def test_decode_token_other_issuer(self):
        token = create_access_token(7, additional_claims={"iss": "billing-service"})

        assert decode_token(token) is None

    def test_decode_token_non_numeric_subject(self):
        token = create_access_token(7, additional_claims={"sub": "not-a-number"})

        assert decode_token(token) is None

    def test_additional_claims_are_kept(self):
        token = create_access_token(7, additional_claims={"type": "refresh"})
        data = decode_token(token)

        assert data is not None
        assert data.type == "refresh"

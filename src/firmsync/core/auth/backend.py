"""Signed bearer tokens naming a principal.

Passwords and OAuth are verified upstream. A token only says which user
is calling; role and home firm are read from the central store on every
request, so changing a user's firm takes effect without revoking tokens.
"""

import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from firmsync.config import settings
from firmsync.core.auth.schemas import TokenData
from firmsync.core.constants import ACCESS_TOKEN_JTI_LENGTH


TOKEN_ISSUER = "firmsync"
ACCESS_TOKEN_TYPE = "access"


def create_access_token(
    user_id: int,
    expires_delta: timedelta | None = None,
    additional_claims: dict[str, Any] | None = None,
) -> str:
    """Issue an access token for a user.

    Args:
        user_id: The user's id in the central store
        expires_delta: Lifetime, defaults to ``access_token_expire_minutes``
        additional_claims: Extra claims; they override the standard ones

    Returns:
        Encoded JWT
    """
    issued_at = datetime.now(UTC)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)

    claims: dict[str, Any] = {
        "iss": TOKEN_ISSUER,
        "sub": str(user_id),
        "type": ACCESS_TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
        "jti": secrets.token_urlsafe(ACCESS_TOKEN_JTI_LENGTH),
    }
    claims.update(additional_claims or {})

    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> TokenData | None:
    """Verify a token and read the principal from it.

    Returns:
        The token data, or None for bad signatures, expired tokens, other
        issuers and subjects that are not user ids
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=TOKEN_ISSUER,
        )
    except JWTError:
        return None

    subject = payload.get("sub")
    if not subject or not str(subject).isdigit() or payload.get("exp") is None:
        return None

    return TokenData(
        user_id=int(subject),
        exp=datetime.fromtimestamp(payload["exp"], tz=UTC),
        type=payload.get("type", ACCESS_TOKEN_TYPE),
        jti=payload.get("jti"),
    )

"""Authentication schemas."""

from datetime import datetime

from pydantic import BaseModel


class TokenData(BaseModel):
    """Decoded bearer token payload.

    The token only names the principal. Role and home tenant are always
    read from the central store so a stale token cannot widen access.
    """

    user_id: int
    exp: datetime
    type: str = "access"
    jti: str | None = None


"""Access tokens for tidyWeek.

A token names the user (`sub`) and the email address it was issued for. A
token only resolves while both still match the stored user, so changing an
account's email invalidates tokens issued before the change.
"""

import logging
import os
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
from dotenv import load_dotenv
from pydantic import BaseModel

from tidyweek.models.user import User

load_dotenv()

logger = logging.getLogger(__name__)

# Token settings
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
TOKEN_LIFETIME = timedelta(hours=int(os.getenv("JWT_EXPIRATION_HOURS", "24")))
TOKEN_ISSUER = "tidyweek"

REQUIRED_CLAIMS = ["sub", "email", "exp", "iat"]


class TokenClaims(BaseModel):
    """Verified contents of an access token."""
    user_id: str
    email: str
    expires_at: datetime


def issue_access_token(user: User, now: Optional[datetime] = None) -> str:
    """Sign an access token for a user.

    Args:
        user: User the token authenticates
        now: Issue instant (defaults to the current time)

    Returns:
        Encoded token string
    """
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": user.id,
        "email": user.email,
        "iss": TOKEN_ISSUER,
        "iat": issued_at,
        "exp": issued_at + TOKEN_LIFETIME,
    }
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def read_access_token(token: str) -> Optional[TokenClaims]:
    """Verify a token and return its claims, or None if it is unusable.

    Expired, tampered, foreign-issuer and incomplete tokens are all rejected.
    """
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET_KEY,
            algorithms=[JWT_ALGORITHM],
            issuer=TOKEN_ISSUER,
            options={"require": REQUIRED_CLAIMS},
        )
    except jwt.PyJWTError as e:
        logger.debug(f"Rejected access token: {type(e).__name__}")
        return None

    return TokenClaims(
        user_id=payload["sub"],
        email=payload["email"],
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )

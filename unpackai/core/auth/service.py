"""Authentication Service.

Verifies the HS256 JWTs issued by the web application and extracts the
caller identity (userId and email claims).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from unpackai.core.config import AuthConfig
from unpackai.core.logging import get_logger

logger = get_logger(__name__)
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7  # 7 days, matching the web session


@dataclass(frozen=True)
class CallerIdentity:
    """Authenticated caller."""

    user_id: str
    email: str


class AuthService:
    """Service for verifying caller tokens."""

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self.secret = secret
        self.algorithm = algorithm

    @classmethod
    def from_config(cls, config: AuthConfig) -> AuthService:
        return cls(config.jwt_secret, config.algorithm)

    def create_access_token(
        self,
        user_id: str,
        email: str,
        expires_in: timedelta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    ) -> str:
        """Generate a signed JWT token for a user."""
        to_encode: Dict[str, Any] = {
            "userId": user_id,
            "email": email,
            "exp": datetime.now(timezone.utc) + expires_in,
        }
        return jwt.encode(to_encode, self.secret, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Optional[CallerIdentity]:
        """Validate and decode a JWT token.

        Returns None for bad signatures, expired tokens and tokens without
        the userId and email claims.
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as e:
            logger.debug(f"Token verification failed: {e}")
            return None

        user_id = payload.get("userId")
        email = payload.get("email")
        if not user_id or not email:
            logger.debug("Token is missing userId or email claim")
            return None
        return CallerIdentity(user_id=str(user_id), email=str(email))

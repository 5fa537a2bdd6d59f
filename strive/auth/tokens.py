"""Bearer-token verification."""

import logging
from typing import Optional

from strive.errors import AuthError
from strive.web.database import Database

logger = logging.getLogger(__name__)


class TokenVerifier:
    """Maps bearer tokens to user ids using the token table."""

    def __init__(self, database: Database):
        self.db = database

    def verify(self, token: str) -> str:
        """Return the user id for ``token`` or raise AuthError."""
        user_id = self.db.resolve_token(token) if token else None
        if not user_id:
            raise AuthError("Unauthorized: Invalid token")
        return user_id

    def authenticate(self, authorization: Optional[str]) -> str:
        """Verify an ``Authorization: Bearer <token>`` header value."""
        if not authorization or not authorization.startswith("Bearer "):
            raise AuthError("Unauthorized: Missing or invalid authorization header")

        user_id = self.verify(authorization[len("Bearer "):].strip())
        logger.debug(f"Authenticated request for user {user_id}")
        return user_id

"""Signed session tokens.

`TokenService` issues and verifies the HS256 JWT carried in the
`Authorization: Bearer` header. The payload is
`{id, username, fullName, role, exp}` with `exp` in Unix seconds. The
signing key is handed in by the caller; this module never reads it from
the environment.
"""

import logging
import time
from typing import Callable

import jwt
from pydantic import ValidationError

from .errors import InvalidToken
from .models import Role
from .schemas import UserSession

logger = logging.getLogger("noodle.tokens")


class TokenService:
    """Issue and verify session tokens with a process-wide signing key."""

    def __init__(self, signing_key: str, algorithm: str = "HS256", expire_hours: int = 12,
                 clock: Callable[[], float] = time.time):
        if not signing_key:
            raise ValueError("signing key must not be empty")
        self._key = signing_key
        self._algorithm = algorithm
        self._lifetime = expire_hours * 60 * 60
        self._clock = clock

    def issue(self, account_id: int, username: str, full_name: str, role: Role) -> str:
        """Return a signed token expiring `expire_hours` after now."""
        payload = {
            "id": account_id,
            "username": username,
            "fullName": full_name,
            "role": Role(role).value,
            "exp": int(self._clock()) + self._lifetime,
        }
        return jwt.encode(payload, self._key, algorithm=self._algorithm)

    def verify(self, token: str) -> UserSession:
        """Decode `token` into a `UserSession`.

        Raises `InvalidToken` for a bad signature, a malformed token or
        payload, or an `exp` in the past.
        """
        if not token:
            raise InvalidToken("missing token")
        try:
            payload = jwt.decode(
                token, self._key, algorithms=[self._algorithm], options={"require": ["exp"]}
            )
        except jwt.ExpiredSignatureError:
            raise InvalidToken("token expired")
        except jwt.InvalidTokenError as exc:
            raise InvalidToken(f"invalid token: {exc}")
        try:
            return UserSession.model_validate(payload)
        except ValidationError:
            raise InvalidToken("invalid token payload")

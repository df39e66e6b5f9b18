"""Server-side login sessions and the signed cookie that carries them."""
from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

import jwt

from .config import SESSION_SWEEP_SECONDS, SESSION_TTL_SECONDS
from .models.base import utcnow

logger = logging.getLogger(__name__)

COOKIE_ALGORITHM = "HS256"


@dataclass(frozen=True)
class SessionEntry:
    user_id: int
    expires_at: datetime


class SessionManager:
    """
    Process-local session table: token -> (user id, expiry).

    Tokens are Active until they pass ``expires_at`` or are destroyed; there
    is no way back from either state. Expiry is checked on every lookup, and
    ``sweep`` only reclaims memory.
    """

    def __init__(
        self,
        ttl: timedelta = timedelta(seconds=SESSION_TTL_SECONDS),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._sessions: dict[str, SessionEntry] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, user_id: int) -> str:
        """Issue a new unguessable token for ``user_id``."""

        token = secrets.token_urlsafe(32)
        self._sessions[token] = SessionEntry(user_id=user_id, expires_at=self._clock() + self.ttl)
        logger.debug("Session created for user id=%s", user_id)
        return token

    def expires_at(self, token: str) -> datetime | None:
        entry = self._sessions.get(token)
        return None if entry is None else entry.expires_at

    def resolve(self, token: str | None) -> int | None:
        """User id for a live token, None for anything else."""

        if not token:
            return None
        entry = self._sessions.get(token)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            self._sessions.pop(token, None)
            return None
        return entry.user_id

    def destroy(self, token: str | None) -> None:
        """Forget a token. Unknown tokens are ignored."""

        if token and self._sessions.pop(token, None) is not None:
            logger.debug("Session destroyed")

    def sweep(self) -> int:
        """Drop expired entries and return how many were removed."""

        now = self._clock()
        expired = [token for token, entry in self._sessions.items() if entry.expires_at <= now]
        for token in expired:
            del self._sessions[token]
        if expired:
            logger.info("Swept %d expired session(s)", len(expired))
        return len(expired)

    async def run_sweeper(self, interval: float = SESSION_SWEEP_SECONDS) -> None:
        """Sweep forever at ``interval`` seconds; cancel the task to stop."""

        while True:
            await asyncio.sleep(interval)
            self.sweep()


def encode_session_cookie(token: str, expires_at: datetime, secret_key: str) -> str:
    """Wrap a session token in a signed value suitable for a cookie."""

    return jwt.encode(
        {"sid": token, "exp": int((expires_at - datetime(1970, 1, 1)).total_seconds())},
        secret_key,
        algorithm=COOKIE_ALGORITHM,
    )


def decode_session_cookie(value: str | None, secret_key: str) -> str | None:
    """Return the session token inside a cookie, or None if it was tampered with or expired."""

    if not value:
        return None
    try:
        payload = jwt.decode(value, secret_key, algorithms=[COOKIE_ALGORITHM])
    except jwt.PyJWTError:
        return None
    token = payload.get("sid")
    return token if isinstance(token, str) else None

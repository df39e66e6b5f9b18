"""Credential store: user registration, lookup and password verification."""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from passlib.context import CryptContext

from .errors import DuplicateIdentity
from .models.base import utcnow
from .schemas import UserRecord
from .storage import Storage

logger = logging.getLogger(__name__)

DEFAULT_HASH_ROUNDS = 29000


def build_password_context(rounds: int = DEFAULT_HASH_ROUNDS) -> CryptContext:
    """PBKDF2-SHA256 rather than bcrypt, which avoids bcrypt backend issues."""

    return CryptContext(
        schemes=["pbkdf2_sha256"],
        deprecated="auto",
        pbkdf2_sha256__rounds=rounds,
    )


class CredentialStore:
    """Owns password hashing; the only component that ever sees a hash."""

    def __init__(
        self,
        storage: Storage,
        password_context: CryptContext | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._storage = storage
        self._passwords = password_context or build_password_context()
        self._clock = clock

    def hash_password(self, password: str) -> str:
        """Hash a password for storage."""
        return self._passwords.hash(password)

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Check a plain password against the stored hash."""
        return self._passwords.verify(password, password_hash)

    async def create_user(
        self,
        username: str,
        email: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> UserRecord:
        """Register a user, refusing a taken username or email."""

        if await self._storage.get_user_by_username(username) is not None:
            raise DuplicateIdentity("Username already exists")
        if await self._storage.get_user_by_email(email) is not None:
            raise DuplicateIdentity("Email already exists")

        user = await self._storage.insert_user(
            username=username,
            email=email,
            password_hash=self.hash_password(password),
            first_name=first_name or None,
            last_name=last_name or None,
            now=self._clock(),
        )
        logger.info("Registered user id=%s username=%r", user.id, user.username)
        return user

    async def find_by_username(self, username: str) -> UserRecord | None:
        return await self._storage.get_user_by_username(username)

    async def find_by_email(self, email: str) -> UserRecord | None:
        return await self._storage.get_user_by_email(email)

    async def find_by_id(self, user_id: int) -> UserRecord | None:
        return await self._storage.get_user(user_id)

    async def verify_credentials(self, username: str, password: str) -> UserRecord | None:
        """
        Return the user when the password matches, otherwise None.

        An unknown username still pays for one hash verification, so the
        response time does not reveal whether the account exists.
        """
        user = await self._storage.get_user_by_username(username)
        if user is None:
            self._passwords.dummy_verify()
            logger.info("Rejected login for username=%r", username)
            return None

        if not self.verify_password(password, user.password_hash):
            logger.info("Rejected login for username=%r", username)
            return None
        return user

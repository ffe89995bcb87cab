from __future__ import annotations

import hmac
import sqlite3
from dataclasses import dataclass
from typing import Optional

from passlib.context import CryptContext

import db.crud as crud
from core.errors import AuthError, BackendError
from utils import config
from utils.logger import get_logger

_logger = get_logger(__name__)

_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class Identity:
    id: str
    email: str
    username: str


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    return _pwd_context.verify(password, hashed)


def verify_admin_password(password: str) -> bool:
    """Capability check guarding catalog management."""
    return hmac.compare_digest(
        (password or "").encode("utf-8"), config.ADMIN_PASSWORD.encode("utf-8")
    )


class AuthService:
    """
    Email/password accounts on the local database.

    Failures raise AuthError with a message meant for the login form.
    """

    def __init__(self) -> None:
        self.current: Optional[Identity] = None

    async def sign_up(self, email: str, username: str, password: str) -> Identity:
        email, username = email.strip(), username.strip()
        if "@" not in email:
            raise AuthError("Invalid email address")
        if not username or "@" in username:
            raise AuthError("Username cannot be empty or contain '@'")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        try:
            if await crud.username_or_email_taken(email, username):
                raise AuthError("Email or username already registered")
            uid = await crud.create_user(email, username, hash_password(password))
        except sqlite3.Error as e:
            _logger.exception("Error signing up")
            raise BackendError("sign up failed") from e
        _logger.info(f"Registered user {username}")
        return Identity(uid, email, username)

    async def sign_in(self, email: str, password: str) -> Identity:
        try:
            user = await crud.get_user_by_email(email.strip())
        except sqlite3.Error as e:
            _logger.exception("Error signing in")
            raise BackendError("sign in failed") from e
        if not user or not verify_password(password, user["pwd_hash"]):
            raise AuthError("Invalid login credentials")
        self.current = Identity(user["id"], user["email"], user["username"])
        return self.current

    async def sign_in_with_username(self, identifier: str, password: str) -> Identity:
        """Resolve a username (or email) to the account email, then sign in."""
        try:
            email = await crud.lookup_email(identifier.strip())
        except sqlite3.Error:
            _logger.exception("Error looking up username")
            email = None
        if not email:
            raise AuthError("Username not found")
        return await self.sign_in(email, password)

    async def sign_in_any(self, identifier: str, password: str) -> Identity:
        """Login form entry point: anything with an '@' is an email."""
        if "@" in identifier:
            return await self.sign_in(identifier, password)
        return await self.sign_in_with_username(identifier, password)

    async def sign_out(self) -> None:
        if self.current:
            _logger.info(f"User {self.current.username} signed out")
        self.current = None

    async def reset_password(self, email: str) -> None:
        """Record a reset request. Unknown addresses are not reported."""
        try:
            token = await crud.create_password_reset(email.strip())
        except sqlite3.Error as e:
            _logger.exception("Error requesting password reset")
            raise BackendError("password reset failed") from e
        if token:
            _logger.info(f"Password reset requested for {email}")

"""
auth.py — Email / password identities for the curriculum map
============================================================
AuthService issues an Identity on sign up / sign in and keeps the signed-in
identity for the lifetime of the service object (one per session).

Passwords are stored as salted PBKDF2-SHA256 hashes in the form
``pbkdf2_sha256$<iterations>$<salt hex>$<hash hex>``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
import secrets
from typing import Optional

from curriculum_map.database import UserStore
from curriculum_map.errors import AuthError, ValidationError
from curriculum_map.models import Identity

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_ITERATIONS = 200_000


def hash_password(password: str, salt: Optional[bytes] = None) -> str:
    salt = salt or secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _ITERATIONS)
    return f"pbkdf2_sha256${_ITERATIONS}${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        algo, iterations, salt_hex, hash_hex = stored.split("$")
        salt, rounds = bytes.fromhex(salt_hex), int(iterations)
    except ValueError:
        return False
    if algo != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(digest.hex(), hash_hex)


def _identity_from_row(row: dict) -> Identity:
    return Identity(
        uid          = row["uid"],
        email        = row["email"],
        display_name = row.get("display_name"),
        country      = row.get("country"),
    )


class AuthService:
    """Sign up / sign in / sign out against the users table."""

    def __init__(self, users: UserStore, min_password_length: int = 6):
        self.users = users
        self.min_password_length = min_password_length
        self._current: Optional[Identity] = None

    def sign_up(
        self,
        email: str,
        password: str,
        confirm_password: Optional[str] = None,
        display_name: Optional[str] = None,
        country: Optional[str] = None,
    ) -> Identity:
        email = (email or "").strip().lower()
        if not _EMAIL_RE.match(email):
            raise ValidationError("invalid_signup", f"'{email}' is not a valid email address.",
                                  field="email")
        if len(password or "") < self.min_password_length:
            raise ValidationError(
                "invalid_signup",
                f"Password must be at least {self.min_password_length} characters.",
                field="password",
            )
        if confirm_password is not None and confirm_password != password:
            raise ValidationError("invalid_signup", "Passwords do not match.",
                                  field="confirm_password")
        if self.users.get_user_by_email(email) is not None:
            raise AuthError("account_exists", f"An account for '{email}' already exists.",
                            field="email")

        country = (country or "").strip().upper() or None
        display_name = (display_name or "").strip() or None
        uid = self.users.create_user(email, hash_password(password), display_name, country)
        self._current = Identity(uid=uid, email=email, display_name=display_name, country=country)
        logger.info("Created account %s", uid)
        return self._current

    def sign_in(self, email: str, password: str) -> Identity:
        row = self.users.get_user_by_email((email or "").strip().lower())
        if row is None or not verify_password(password or "", row["password_hash"]):
            raise AuthError("invalid_credentials", "Email or password is incorrect.")
        self._current = _identity_from_row(row)
        return self._current

    def sign_out(self) -> None:
        self._current = None

    def current_identity(self) -> Optional[Identity]:
        return self._current

    def require_identity(self) -> Identity:
        if self._current is None:
            raise AuthError("not_signed_in", "Sign in to continue.")
        return self._current

    def get_identity(self, uid: str) -> Optional[Identity]:
        row = self.users.get_user(uid)
        return _identity_from_row(row) if row is not None else None

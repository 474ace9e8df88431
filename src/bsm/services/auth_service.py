from __future__ import annotations

import hashlib
import logging
import re
import secrets
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from bsm.domain.errors import AuthorizationError, ValidationError
from bsm.domain.models import Session, User

log = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class LoginPolicy:
    min_password_length: int = 8
    max_failed_attempts: int = 5
    lockout_seconds: int = 60
    session_ttl_seconds: int = 3600


def _iso(dt: datetime) -> str:
    return dt.replace(microsecond=0).isoformat(sep=" ")


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _validate_password_strength(secret: str, *, min_len: int) -> None:
    if len(secret) < min_len:
        raise ValidationError(f"Password must have at least {min_len} characters.")
    if not re.search(r"[A-Za-z]", secret):
        raise ValidationError("Password must include at least one letter.")
    if not re.search(r"\d", secret):
        raise ValidationError("Password must include at least one number.")


class AuthService:
    def __init__(self, repo, policy: LoginPolicy | None = None):
        self.repo = repo
        self.policy = policy or LoginPolicy()

    def register(self, email: str, password: str, confirm_password: str) -> User:
        email_clean = (email or "").strip().lower()
        if not _EMAIL_RE.match(email_clean):
            raise ValidationError("Please enter a valid email address.")
        _validate_password_strength(password or "", min_len=self.policy.min_password_length)
        if password != confirm_password:
            raise ValidationError("Password confirmation does not match.")

        try:
            uid = self.repo.create_user(email_clean, password)
        except sqlite3.IntegrityError as exc:
            raise ValidationError(f"An account for '{email_clean}' already exists.") from exc
        log.info("user_registered user_id=%s", uid)
        return User(id=uid, email=email_clean)

    def login(self, email: str, password: str) -> Session:
        email_clean = (email or "").strip().lower()
        if not email_clean or not password:
            raise AuthorizationError("Email and password are required.")

        state = self.repo.get_user_security_state(email_clean)
        if state:
            _attempts, locked_until = state
            if locked_until:
                until = datetime.fromisoformat(locked_until)
                if datetime.now() < until:
                    remaining = int((until - datetime.now()).total_seconds()) + 1
                    raise AuthorizationError(f"Account is temporarily locked. Retry in {remaining}s.")

        user = self.repo.authenticate_user(email_clean, password)
        if not user:
            locked_until_iso = _iso(datetime.now() + timedelta(seconds=self.policy.lockout_seconds))
            attempts, locked_until = self.repo.record_login_failure(
                email_clean,
                self.policy.max_failed_attempts,
                locked_until_iso,
            )
            log.warning("login_failed email=%s attempts=%s", email_clean, attempts)
            if locked_until is not None:
                raise AuthorizationError("Too many failed attempts. Account is temporarily locked.")
            raise AuthorizationError("Invalid email or password.")

        self.repo.clear_login_guard(user.id)

        token = secrets.token_urlsafe(32)
        now = datetime.now()
        purged = self.repo.purge_expired_sessions(_iso(now))
        if purged:
            log.info("sessions_purged count=%s", purged)
        expires_at = _iso(now + timedelta(seconds=self.policy.session_ttl_seconds))
        self.repo.create_session(hash_token(token), user.id, _iso(now), expires_at)
        log.info("login_ok user_id=%s", user.id)
        return Session(user=user, token=token, expires_at=expires_at)

    def authenticate(self, token: Optional[str]) -> Optional[User]:
        if not token:
            return None
        return self.repo.get_session_user(hash_token(token), _iso(datetime.now()))

    def logout(self, token: Optional[str]) -> None:
        if token:
            self.repo.delete_session(hash_token(token))

    def change_password(self, actor: User, current_password: str, new_password: str, confirm_password: str) -> None:
        if not current_password:
            raise ValidationError("Current password is required.")
        _validate_password_strength(new_password or "", min_len=self.policy.min_password_length)
        if new_password != confirm_password:
            raise ValidationError("Password confirmation does not match.")
        if new_password == current_password:
            raise ValidationError("New password must be different from the current password.")

        changed = self.repo.change_user_password(actor.id, current_password, new_password)
        if not changed:
            raise AuthorizationError("Current password is incorrect.")

    def purge_expired_sessions(self) -> int:
        return self.repo.purge_expired_sessions(_iso(datetime.now()))

import logging
import os
import re
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional

import bcrypt

from .constants import (
    DEFAULT_DISABILITY_TYPE,
    DEFAULT_SEVERITY,
    DISABILITY_TYPES,
    FONT_MODES,
    MAX_PASSWORD_BYTES,
    MIN_PASSWORD_LENGTH,
    TEXT_SIZES,
    VERIFICATION_CODE_TTL_HOURS,
)
from .models import UserRecord, utc_now
from .storage import Store


logger = logging.getLogger("uvicorn.error")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DEFAULT_BCRYPT_ROUNDS = 12


class AccountError(ValueError):
    status_code = 400


class AccountNotFoundError(AccountError):
    status_code = 404


class AccountConflictError(AccountError):
    status_code = 409


class InvalidCredentialsError(AccountError):
    status_code = 401


class EmailNotVerifiedError(AccountError):
    status_code = 403


def _bcrypt_rounds() -> int:
    raw = os.getenv("BCRYPT_ROUNDS", "").strip()
    if not raw:
        return DEFAULT_BCRYPT_ROUNDS
    try:
        return max(4, min(int(raw), 31))
    except ValueError:
        return DEFAULT_BCRYPT_ROUNDS


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def generate_verification_code() -> str:
    pinned = os.getenv("VOICEBRIDGE_DEV_VERIFICATION_CODE", "").strip()
    if pinned:
        return pinned
    return f"{secrets.randbelow(1_000_000):06d}"


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email or ""))


def signup(
    store: Store,
    *,
    email: Optional[str],
    password: Optional[str],
    name: Optional[str],
    disability_type: Optional[str] = None,
    severity: Optional[int] = None,
) -> UserRecord:
    if not email or not password or not name:
        raise AccountError("Email, password, and name are required")
    if not is_valid_email(email):
        raise AccountError("Invalid email format")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AccountError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise AccountError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

    normalized_email = email.lower()
    if store.get_user_by_email(normalized_email) is not None:
        raise AccountConflictError("An account with this email already exists")

    password_hash = hash_password(password)
    code = generate_verification_code()
    try:
        user = store.create_user(
            email=normalized_email,
            password_hash=password_hash,
            name=name,
            disability_type=disability_type or DEFAULT_DISABILITY_TYPE,
            disability_severity=severity or DEFAULT_SEVERITY,
            verification_code=code,
            verification_code_expires_at=utc_now() + timedelta(hours=VERIFICATION_CODE_TTL_HOURS),
            is_email_verified=False,
        )
    except ValueError as exc:
        # Lost a race with a concurrent signup for the same address.
        raise AccountConflictError("An account with this email already exists") from exc

    # No mail transport is configured; the code is surfaced in the server log.
    logger.info("user_id=%s signup_created email=%s verification_code=%s", user.id, user.email, code)
    return user


def verify_email(store: Store, *, email: Optional[str], code: Optional[str]) -> UserRecord:
    if not email or not code:
        raise AccountError("Email and verification code are required")

    user = store.get_user_by_email(email.lower())
    if user is None:
        raise AccountNotFoundError("User not found")
    if user.is_email_verified:
        raise AccountError("Email is already verified")
    if user.verification_code != code:
        raise AccountError("Invalid verification code")
    if user.verification_code_expires_at and utc_now() > user.verification_code_expires_at:
        raise AccountError("Verification code has expired")

    updated = store.update_user(
        user.id,
        is_email_verified=True,
        verification_code=None,
        verification_code_expires_at=None,
    )
    logger.info("user_id=%s email_verified", user.id)
    return updated


def login(store: Store, *, email: Optional[str], password: Optional[str]) -> UserRecord:
    if not email or not password:
        raise AccountError("Email and password are required")

    user = store.get_user_by_email(email.lower())
    if user is None or not verify_password(password, user.password_hash):
        raise InvalidCredentialsError("Invalid email or password")
    if not user.is_email_verified:
        raise EmailNotVerifiedError("Please verify your email before logging in")
    return user


def _require_user_id(user_id: Optional[str]) -> str:
    if not user_id:
        raise AccountError("User ID is required")
    return user_id


def _apply_update(store: Store, user_id: str, updates: Dict[str, Any]) -> UserRecord:
    if updates:
        updated = store.update_user(user_id, **updates)
    else:
        updated = store.get_user(user_id)
    if updated is None:
        raise AccountNotFoundError("User not found")
    return updated


def update_profile(
    store: Store,
    user_id: Optional[str],
    *,
    name: Optional[str] = None,
    email: Optional[str] = None,
) -> UserRecord:
    user_id = _require_user_id(user_id)
    if not name and not email:
        raise AccountError("At least one field (name or email) must be provided")

    updates: Dict[str, Any] = {}
    if name:
        updates["name"] = name
    if email:
        if not is_valid_email(email):
            raise AccountError("Invalid email format")
        existing = store.get_user_by_email(email.lower())
        if existing is not None and existing.id != user_id:
            raise AccountConflictError("Email is already in use")
        updates["email"] = email.lower()

    return _apply_update(store, user_id, updates)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def update_disability_profile(store: Store, user_id: Optional[str], changes: Dict[str, Any]) -> UserRecord:
    """Apply the keys present in ``changes`` (type, severity, trigger_words, description)."""
    user_id = _require_user_id(user_id)
    updates: Dict[str, Any] = {}

    if "type" in changes:
        if changes["type"] not in DISABILITY_TYPES:
            raise AccountError("Invalid disability type")
        updates["disability_type"] = changes["type"]

    if "severity" in changes:
        severity = changes["severity"]
        if not _is_number(severity) or severity < 1 or severity > 10:
            raise AccountError("Severity must be a number between 1 and 10")
        updates["disability_severity"] = int(severity)

    if "trigger_words" in changes:
        trigger_words = changes["trigger_words"]
        if not isinstance(trigger_words, list):
            raise AccountError("Trigger words must be an array")
        updates["trigger_words"] = [str(word) for word in trigger_words]

    if "description" in changes:
        updates["disability_description"] = changes["description"]

    return _apply_update(store, user_id, updates)


def update_settings(store: Store, user_id: Optional[str], changes: Dict[str, Any]) -> UserRecord:
    user_id = _require_user_id(user_id)
    updates: Dict[str, Any] = {}

    if changes.get("voice_id") is not None:
        updates["voice_id"] = changes["voice_id"]

    if "speed" in changes:
        speed = changes["speed"]
        if not _is_number(speed) or speed < 0.5 or speed > 1.5:
            raise AccountError("Speed must be a number between 0.5 and 1.5")
        updates["speed"] = float(speed)

    if "font_mode" in changes:
        if changes["font_mode"] not in FONT_MODES:
            raise AccountError("Invalid font mode")
        updates["font_mode"] = changes["font_mode"]

    if "text_size" in changes:
        if changes["text_size"] not in TEXT_SIZES:
            raise AccountError("Invalid text size")
        updates["text_size"] = changes["text_size"]

    for field_name, label in (("high_contrast", "High contrast"), ("reduced_motion", "Reduced motion")):
        if field_name in changes:
            if not isinstance(changes[field_name], bool):
                raise AccountError(f"{label} must be a boolean")
            updates[field_name] = changes[field_name]

    return _apply_update(store, user_id, updates)

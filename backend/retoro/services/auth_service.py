# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Accounts are optional. Users can register with email + password, with
email only (magic link), or through Google. This module owns user records,
password hashing and the emailed single-use tokens.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Emails are normalized to lower case before lookup and storage
- Magic link / verification tokens expire after 24 hours and are single-use
- Session tokens managed separately (see session_service.py)
"""

import re
import secrets
from datetime import timedelta

import bcrypt

from ..extensions import db
from ..models import User, MagicLinkToken
from retoro.time_utils import utcnow


MIN_PASSWORD_LENGTH = 8
TOKEN_LIFETIME = timedelta(hours=24)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class AuthError(Exception):
    """Raised for authentication failures that map to 4xx responses."""
    pass


class PasswordValidationError(AuthError):
    """Raised when password doesn't meet strength requirements."""
    pass


class DuplicateUserError(AuthError):
    """Raised when registering an email that already has an account."""
    pass


class InvalidTokenError(AuthError):
    """Raised for unknown, used or expired magic link tokens."""
    pass


def normalize_email(email: str | None) -> str:
    if email is not None and not isinstance(email, str):
        raise AuthError("Invalid email address")
    return (email or "").strip().lower()


def validate_email(email: str) -> str:
    email = normalize_email(email)
    if not email:
        raise AuthError("Email is required")
    if not _EMAIL_RE.match(email):
        raise AuthError("Invalid email address")
    return email


def validate_password_strength(password: str) -> None:
    """
    Raises PasswordValidationError if the password is too short.
    """
    if not isinstance(password, str):
        raise PasswordValidationError("Password must be a string")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Verify password against bcrypt hash.

    Returns False for accounts without a password and for malformed hashes.
    """
    if not password_hash or not isinstance(password, str):
        return False

    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def get_user_by_email(email: str | None) -> User | None:
    email = normalize_email(email)
    if not email:
        return None
    return db.session.query(User).filter_by(email=email).first()


def create_user(
    email: str,
    password: str | None = None,
    name: str | None = None,
    email_verified: bool = False,
) -> User:
    """
    Create a new account.

    password is optional (magic link and Google accounts have none).

    Raises:
        AuthError: invalid email
        PasswordValidationError: password too short
        DuplicateUserError: email already registered
    """
    email = validate_email(email)

    if get_user_by_email(email):
        raise DuplicateUserError("User with this email already exists")

    password_hash = hash_password(password) if password else None

    user = User(
        email=email,
        name=name.strip() or None if isinstance(name, str) else None,
        password_hash=password_hash,
        email_verified=email_verified,
    )

    db.session.add(user)
    db.session.commit()
    return user


def get_or_create_user(email: str, name: str | None = None, email_verified: bool = False) -> tuple[User, bool]:
    """
    Returns (user, created). Existing users are marked verified when
    email_verified is True (e.g. Google confirmed the address).
    """
    user = get_user_by_email(email)
    if user:
        if email_verified and not user.email_verified:
            user.email_verified = True
            db.session.commit()
        return user, False
    return create_user(email, name=name, email_verified=email_verified), True


def authenticate(email: str, password: str) -> User:
    """
    Authenticate with email and password.

    Raises AuthError with a generic message for unknown email or wrong
    password, and a specific one for accounts that have no password.
    """
    user = get_user_by_email(email)
    if not user:
        raise AuthError("Invalid email or password")

    if not user.password_hash:
        raise AuthError("Please log in with Google or Magic Link")

    if not verify_password(password, user.password_hash):
        raise AuthError("Invalid email or password")

    return user


def update_preferred_currency(user: User, currency: str) -> User:
    user.preferred_currency = currency
    db.session.commit()
    return user


# =============================================================================
# MAGIC LINK / VERIFICATION TOKENS
# =============================================================================

def generate_link_token() -> str:
    return secrets.token_urlsafe(32)


def create_link_token(
    user_id: str,
    purpose: str = MagicLinkToken.PURPOSE_MAGIC_LINK,
    anonymous_user_id: str | None = None,
) -> MagicLinkToken:
    now = utcnow()
    record = MagicLinkToken(
        user_id=user_id,
        token=generate_link_token(),
        purpose=purpose,
        anonymous_user_id=anonymous_user_id,
        created_at=now,
        expires_at=now + TOKEN_LIFETIME,
    )
    db.session.add(record)
    db.session.commit()
    return record


def consume_link_token(token: str | None, purpose: str | None = None) -> MagicLinkToken:
    """
    Mark a token used and verify the owner's email.

    When purpose is given the token must have been issued for it.
    Raises InvalidTokenError if the token is unknown, already used or expired.
    """
    if not token:
        raise InvalidTokenError("Token is required")

    record = db.session.query(MagicLinkToken).filter_by(token=token).first()
    now = utcnow()

    if not record or record.used_at is not None or record.expires_at < now:
        raise InvalidTokenError("Invalid or expired token")

    if purpose and record.purpose != purpose:
        raise InvalidTokenError("Invalid or expired token")

    record.used_at = now
    record.user.email_verified = True
    db.session.commit()
    return record

# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

WHY: Secure session management with a fixed lifetime and explicit logout.
Tokens are cryptographically secure, hashed in database, and time-limited.

LIFECYCLE: absent -> active -> expired | revoked
- active: created at login/verification, 30 days, last_used_at refreshed on use
- expired: expires_at in the past; reported as EXPIRED, never resurrected
- revoked: row deleted at logout; revoking twice is not an error

Lookups return a SessionLookup with an explicit status instead of None so
callers have to handle the "not active" path and fall back to the
anonymous identity.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Tracks client IP and user agent for security monitoring
"""

import enum
import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta
from ..extensions import db
from ..models import SessionToken, User
from retoro.time_utils import utcnow


# Configuration constants
SESSION_DURATION = timedelta(days=30)


class SessionStatus(str, enum.Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ACTIVE = "active"


@dataclass(frozen=True)
class SessionLookup:
    """
    Result of looking up a session token.

    session and user are only set when status is ACTIVE.
    """
    status: SessionStatus
    session: SessionToken | None = None
    user: User | None = None

    @property
    def is_active(self) -> bool:
        return self.status is SessionStatus.ACTIVE


NOT_FOUND = SessionLookup(SessionStatus.NOT_FOUND)
EXPIRED = SessionLookup(SessionStatus.EXPIRED)


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)  # 32 bytes = 64 hex characters


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: str,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.

    Raises ValueError if the user does not exist.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_DURATION,
        user_agent=user_agent[:512] if user_agent else None,
        ip_address=ip_address[:45] if ip_address else None,
    )

    user.last_login_at = now
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def lookup_session(token: str | None) -> SessionLookup:
    """
    Resolve a plaintext session token.

    NOT_FOUND: no token, unknown token, or the user row is gone
    EXPIRED: the session exists but expires_at has passed
    ACTIVE: valid; last_used_at is refreshed
    """
    if not token:
        return NOT_FOUND

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token)
    ).first()

    if not session:
        return NOT_FOUND

    now = utcnow()
    if session.expires_at < now:
        return EXPIRED

    user = session.user
    if not user:
        return NOT_FOUND

    session.last_used_at = now
    db.session.commit()

    return SessionLookup(SessionStatus.ACTIVE, session=session, user=user)


def revoke_session(token: str | None) -> bool:
    """
    Delete a session (logout).

    Returns True if a row was deleted, False if there was nothing to delete.
    Never raises for unknown or already-deleted tokens.
    """
    if not token:
        return False

    deleted = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token)
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted > 0


def cleanup_expired_sessions() -> int:
    """
    Delete sessions whose expires_at has passed.

    Returns count of sessions deleted.
    Run this periodically (flask maintenance cleanup-sessions).
    """
    deleted = db.session.query(SessionToken).filter(
        SessionToken.expires_at < utcnow()
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted

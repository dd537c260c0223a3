# Overview: Service-layer operations for identity; resolves the acting owner and migrates anonymous data.

"""
Identity Resolution & Anonymous Data Migration

WHY: Visitors can start tracking purchases before they create an account.
Their items are owned by an anonymous token kept in a cookie. When they
register or log in, those items are moved to their real account.

RESOLUTION ORDER (first match wins):
1. Active session whose user exists -> AuthenticatedOwner(user.id)
2. Caller-supplied user_id (automation actors) -> AnonymousOwner(value)
3. Anonymous cookie -> AnonymousOwner(cookie)
4. Nothing -> mint a new anonymous token (caller sets the cookie)

OWNERSHIP: OwnerRef is a tagged union persisted as (owner_type, user_id) on
return_items. Nothing in the codebase decides who owns an item by looking
at the shape of the id string.

MIGRATION:
- One bulk UPDATE per anonymous id, returns affected row count
- Idempotent: an id with no rows (or already migrated) affects 0 rows
- migrate_on_authentication never raises; auth must succeed even if the
  migration fails
"""

from __future__ import annotations

import enum
import logging
import secrets
import string
from dataclasses import dataclass
from typing import Union

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import ReturnItem, User
from . import session_service
from .concurrency import run_with_retry
from .session_service import SessionLookup
from retoro.time_utils import utcnow


logger = logging.getLogger(__name__)

ANONYMOUS_ID_PREFIX = "user_"
_BASE36 = string.digits + string.ascii_lowercase


# =============================================================================
# OWNER REFERENCES
# =============================================================================

@dataclass(frozen=True)
class AuthenticatedOwner:
    user_id: str
    owner_type = ReturnItem.OWNER_USER

    @property
    def key(self) -> str:
        return self.user_id


@dataclass(frozen=True)
class AnonymousOwner:
    token: str
    owner_type = ReturnItem.OWNER_ANONYMOUS

    @property
    def key(self) -> str:
        return self.token


OwnerRef = Union[AuthenticatedOwner, AnonymousOwner]


def owner_of(item: ReturnItem) -> OwnerRef:
    """Rebuild the OwnerRef stored on an item."""
    if item.owner_type == ReturnItem.OWNER_USER:
        return AuthenticatedOwner(item.user_id)
    return AnonymousOwner(item.user_id)


def owns(owner: OwnerRef, item: ReturnItem) -> bool:
    return owner_of(item) == owner


def owner_filter(owner: OwnerRef):
    """SQLAlchemy criteria selecting the rows owned by owner."""
    return db.and_(
        ReturnItem.owner_type == owner.owner_type,
        ReturnItem.user_id == owner.key,
    )


# =============================================================================
# RESOLUTION
# =============================================================================

class IdentitySource(str, enum.Enum):
    SESSION = "session"
    SUPPLIED = "supplied"
    COOKIE = "cookie"
    MINTED = "minted"


@dataclass(frozen=True)
class ResolvedIdentity:
    """
    The acting identity for one request.

    user is only set for SESSION. session_lookup is kept so callers can tell
    an expired session apart from no session at all.
    """
    owner: OwnerRef
    source: IdentitySource
    user: User | None = None
    session_lookup: SessionLookup = session_service.NOT_FOUND

    @property
    def user_id(self) -> str:
        return self.owner.key

    @property
    def is_authenticated(self) -> bool:
        return isinstance(self.owner, AuthenticatedOwner)

    @property
    def minted(self) -> bool:
        return self.source is IdentitySource.MINTED

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "authenticated": self.is_authenticated,
            "source": self.source.value,
            "user": self.user.to_dict() if self.user else None,
        }


def mint_anonymous_id() -> str:
    """
    New anonymous token: user_<epoch millis>_<12 random base36 chars>.
    """
    millis = int(utcnow().timestamp() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(12))
    return f"{ANONYMOUS_ID_PREFIX}{millis}_{suffix}"


def _clean(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def resolve_identity(
    session_token: str | None,
    supplied_user_id: str | None = None,
    anonymous_cookie: str | None = None,
) -> ResolvedIdentity:
    """
    Determine who is acting for this request.

    A valid session always wins, even when the caller also supplies a
    different user_id. Minting does not touch the database; the caller is
    responsible for setting the anonymous cookie when minted is True.
    """
    lookup = session_service.lookup_session(session_token)
    if lookup.is_active:
        return ResolvedIdentity(
            owner=AuthenticatedOwner(lookup.user.id),
            source=IdentitySource.SESSION,
            user=lookup.user,
            session_lookup=lookup,
        )

    supplied = _clean(supplied_user_id)
    if supplied:
        return ResolvedIdentity(
            owner=AnonymousOwner(supplied),
            source=IdentitySource.SUPPLIED,
            session_lookup=lookup,
        )

    cookie = _clean(anonymous_cookie)
    if cookie:
        return ResolvedIdentity(
            owner=AnonymousOwner(cookie),
            source=IdentitySource.COOKIE,
            session_lookup=lookup,
        )

    return ResolvedIdentity(
        owner=AnonymousOwner(mint_anonymous_id()),
        source=IdentitySource.MINTED,
        session_lookup=lookup,
    )


# =============================================================================
# MIGRATION
# =============================================================================

def migrate_anonymous_data(anonymous_id: str, new_user_id: str) -> int:
    """
    Reassign every item owned by anonymous_id to new_user_id.

    Single UPDATE statement, committed atomically. Returns the number of
    rows moved; 0 when the anonymous id owns nothing (including a repeat
    call for an id that was already migrated).

    Raises ValueError if new_user_id is not a registered user.
    Storage errors propagate (after retries on transient lock errors).
    """
    anonymous_id = _clean(anonymous_id)
    if not anonymous_id:
        return 0

    if not db.session.get(User, new_user_id):
        raise ValueError("User not found")

    def _op():
        count = db.session.query(ReturnItem).filter(
            owner_filter(AnonymousOwner(anonymous_id))
        ).update(
            {
                ReturnItem.owner_type: ReturnItem.OWNER_USER,
                ReturnItem.user_id: new_user_id,
            },
            synchronize_session=False,
        )
        db.session.commit()
        return count

    return run_with_retry(_op)


def migrate_on_authentication(user_id: str, *anonymous_ids: str | None) -> int:
    """
    Migrate anonymous data as part of a login / registration / verification.

    Accepts every anonymous id the request knows about (body value, cookie,
    legacy cookie); duplicates and blanks are skipped. Failures are logged
    and swallowed so the authentication itself still completes.

    Returns the total number of items moved.
    """
    candidates = []
    for value in anonymous_ids:
        value = _clean(value)
        if value and value not in candidates:
            candidates.append(value)

    if not candidates:
        logger.info("No anonymous data to migrate for user %s", user_id)
        return 0

    total = 0
    for anonymous_id in candidates:
        try:
            moved = migrate_anonymous_data(anonymous_id, user_id)
        except (SQLAlchemyError, ValueError):
            db.session.rollback()
            logger.exception(
                "Failed to migrate anonymous data from %s to user %s", anonymous_id, user_id
            )
            continue
        logger.info("Migrated %d items from anonymous session %s to user %s", moved, anonymous_id, user_id)
        total += moved

    return total

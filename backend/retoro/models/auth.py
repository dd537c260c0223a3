from __future__ import annotations

import uuid

from ..extensions import db
from retoro.time_utils import to_utc_z


def _new_uuid() -> str:
    return str(uuid.uuid4())


class User(db.Model):
    """
    Registered accounts.

    WHY: Anonymous visitors can track purchases without an account. A User row
    only exists once they register, log in with a magic link, or sign in
    with Google. Ids are UUID strings so they can be stored in the same
    owner column as anonymous tokens (the owner_type column tells them apart).
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_new_uuid)

    email = db.Column(db.String(255), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=True)

    # Bcrypt hashed password; NULL for Google / magic-link only accounts
    password_hash = db.Column(db.String(255), nullable=True)

    email_verified = db.Column(db.Boolean, nullable=False, default=False)
    preferred_currency = db.Column(db.String(3), nullable=False, default="USD")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "email_verified": self.email_verified,
            "preferred_currency": self.preferred_currency,
            "has_password": self.password_hash is not None,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Login sessions.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - 30-day absolute timeout
    - Logout deletes the row
    """
    __tablename__ = "sessions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    # Client information (for security monitoring)
    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length

    user = db.relationship("User", backref=db.backref("sessions", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
        }


class MagicLinkToken(db.Model):
    """
    Single-use emailed tokens.

    Used both for passwordless login links and for email verification after
    registration. anonymous_user_id remembers which anonymous visitor asked
    for the link so their items can be migrated when the link is opened.
    """
    __tablename__ = "magic_link_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    PURPOSE_MAGIC_LINK = "magic_link"
    PURPOSE_EMAIL_VERIFICATION = "email_verification"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token = db.Column(db.String(64), nullable=False, unique=True, index=True)
    purpose = db.Column(db.String(32), nullable=False, default=PURPOSE_MAGIC_LINK)
    anonymous_user_id = db.Column(db.String(255), nullable=True)

    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("magic_link_tokens", lazy=True, cascade="all, delete-orphan"))

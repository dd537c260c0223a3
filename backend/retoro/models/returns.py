from __future__ import annotations

import uuid

from ..extensions import db
from retoro.time_utils import to_utc_z


class RetailerPolicy(db.Model):
    """
    A retailer's return policy.

    WHY: Deadlines are derived from the retailer's return window, so the
    policy is the single source of truth for every item bought there.

    return_window_days == 0 means the retailer has no practical deadline
    (e.g. Nordstrom). The id is a slug derived from the name ("h-m", "zara").
    """
    __tablename__ = "retailer_policies"

    id = db.Column(db.String(100), primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    return_window_days = db.Column(db.Integer, nullable=False)
    policy_description = db.Column(db.Text, nullable=True)
    website_url = db.Column(db.String(500), nullable=True)
    has_free_returns = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<RetailerPolicy id={self.id!r} window={self.return_window_days}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "return_window_days": self.return_window_days,
            "policy_description": self.policy_description,
            "website_url": self.website_url,
            "has_free_returns": self.has_free_returns,
            "created_at": to_utc_z(self.created_at),
        }


class ReturnItem(db.Model):
    """
    A purchase being tracked against its return deadline.

    OWNERSHIP: (owner_type, user_id) together identify the owner.
    - owner_type "user": user_id is a users.id
    - owner_type "anonymous": user_id is an anonymous visitor token
    There is deliberately no foreign key on user_id; anonymous rows are
    reassigned to a real user by identity_service.migrate_anonymous_data.

    INVARIANTS:
    - return_deadline == calculate_deadline(purchase_date, retailer) at write time
    - returned_date is set iff is_returned
    """
    __tablename__ = "return_items"
    __table_args__ = (
        db.Index("ix_return_items_owner", "owner_type", "user_id"),
        db.Index("ix_return_items_owner_deadline", "user_id", "return_deadline"),
        db.CheckConstraint(
            "(is_returned AND returned_date IS NOT NULL) OR (NOT is_returned AND returned_date IS NULL)",
            name="ck_return_items_returned_date",
        ),
    )

    OWNER_USER = "user"
    OWNER_ANONYMOUS = "anonymous"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    retailer_id = db.Column(db.String(100), db.ForeignKey("retailer_policies.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=True)
    original_currency = db.Column(db.String(3), nullable=False, default="USD")
    price_usd = db.Column(db.Numeric(10, 2), nullable=True)
    currency_symbol = db.Column(db.String(8), nullable=False, default="$")

    purchase_date = db.Column(db.DateTime, nullable=False)
    return_deadline = db.Column(db.DateTime, nullable=False, index=True)

    is_returned = db.Column(db.Boolean, nullable=False, default=False, index=True)
    returned_date = db.Column(db.DateTime, nullable=True)

    owner_type = db.Column(db.String(16), nullable=False, default=OWNER_ANONYMOUS)
    user_id = db.Column(db.String(255), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )

    retailer = db.relationship("RetailerPolicy", backref=db.backref("return_items", lazy=True))

    def __repr__(self) -> str:
        return f"<ReturnItem id={self.id} retailer={self.retailer_id!r} returned={self.is_returned}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "retailer_id": self.retailer_id,
            "name": self.name,
            "price": float(self.price) if self.price is not None else None,
            "original_currency": self.original_currency,
            "price_usd": float(self.price_usd) if self.price_usd is not None else None,
            "currency_symbol": self.currency_symbol,
            "purchase_date": to_utc_z(self.purchase_date),
            "return_deadline": to_utc_z(self.return_deadline),
            "is_returned": self.is_returned,
            "returned_date": to_utc_z(self.returned_date) if self.returned_date else None,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

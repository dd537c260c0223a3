# Overview: Service-layer operations for retailer policies; encapsulates business logic and database work.

"""
Retailer Policy Service

WHY: Return items reference a retailer; the retailer's return window drives
every deadline. Policies are created by admins or automation and changed
only through update_policy.
"""

import re

from sqlalchemy import func

from ..extensions import db
from ..models import RetailerPolicy
from ..validation import (
    ConflictError,
    ValidationError,
    RETAILER_CREATE_POLICY,
    RETAILER_UPDATE_POLICY,
    enforce_rules_retailer,
    validate_payload,
)


class RetailerError(Exception):
    """Raised for retailer policy operation errors."""
    pass


class RetailerNotFoundError(RetailerError):
    pass


DEFAULT_RETAILERS = [
    ("zara", "Zara", 30, "30 days from delivery date", "https://www.zara.com/us/en/help/returns", False),
    ("nordstrom", "Nordstrom", 0, "No deadline - free returns", "https://www.nordstrom.com/browse/customer-service/return-policy", True),
    ("asos", "ASOS", 28, "28 days from delivery", "https://www.asos.com/customer-care/returns/", True),
    ("macys", "Macy's", 90, "90 days from purchase", "https://www.macys.com/service/returns/index", False),
    ("target", "Target", 90, "90 days for most items", "https://www.target.com/help/returns-exchanges", False),
    ("amazon", "Amazon", 30, "30 days from delivery", "https://www.amazon.com/gp/help/customer/display.html", True),
    ("h-m", "H&M", 30, "30 days from purchase", "https://www2.hm.com/en_us/customer-service/returns.html", False),
    ("gap", "Gap", 30, "30 days from purchase", "https://www.gap.com/customer-service/returns", True),
    ("old-navy", "Old Navy", 30, "30 days from purchase", "https://oldnavy.gap.com/customer-service/returns", True),
    ("banana-republic", "Banana Republic", 30, "30 days from purchase", "https://bananarepublic.gap.com/customer-service/returns", True),
]


def slugify(name: str) -> str:
    """'Banana Republic' -> 'banana-republic', 'H&M' -> 'h-m'."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def list_retailers() -> list[RetailerPolicy]:
    return db.session.query(RetailerPolicy).order_by(RetailerPolicy.name).all()


def get_retailer(retailer_id: str) -> RetailerPolicy | None:
    if not retailer_id:
        return None
    return db.session.get(RetailerPolicy, retailer_id)


def require_retailer(retailer_id: str) -> RetailerPolicy:
    retailer = get_retailer(retailer_id)
    if not retailer:
        raise RetailerNotFoundError("Retailer not found")
    return retailer


def find_by_name(name: str) -> RetailerPolicy | None:
    """Case-insensitive exact name match."""
    if not name or not name.strip():
        return None
    return db.session.query(RetailerPolicy).filter(
        func.lower(RetailerPolicy.name) == name.strip().lower()
    ).first()


def create_retailer(payload: dict) -> RetailerPolicy:
    """
    Create a retailer from a JSON payload.

    The id is derived from the name. Raises ValidationError for bad input
    and ConflictError (with .retailer_id) when the slug or name exists.
    """
    patch = validate_payload(
        model=RetailerPolicy, payload=payload, policy=RETAILER_CREATE_POLICY, partial=False
    )
    enforce_rules_retailer(patch)

    retailer_id = slugify(patch["name"])
    if not retailer_id:
        raise ValidationError("name must contain letters or digits")

    existing = get_retailer(retailer_id) or find_by_name(patch["name"])
    if existing:
        err = ConflictError("Retailer already exists")
        err.retailer_id = existing.id
        raise err

    retailer = RetailerPolicy(id=retailer_id, **patch)
    if retailer.has_free_returns is None:
        retailer.has_free_returns = False

    db.session.add(retailer)
    db.session.commit()
    return retailer


def update_policy(retailer_id: str, payload: dict) -> RetailerPolicy:
    """
    Explicit policy update (window, free returns, description, url).

    Existing items keep the deadline computed when they were written;
    `flask maintenance recompute-deadlines` re-derives them on demand.
    """
    if not isinstance(payload, dict) or not any(
        k in payload for k in RETAILER_UPDATE_POLICY.writable_fields
    ):
        raise ValidationError("At least one field must be provided for update")

    retailer = require_retailer(retailer_id)

    patch = validate_payload(
        model=RetailerPolicy, payload=payload, policy=RETAILER_UPDATE_POLICY, partial=True
    )
    enforce_rules_retailer(patch)

    for key, value in patch.items():
        setattr(retailer, key, value)

    db.session.commit()
    return retailer


def seed_default_retailers() -> int:
    """Insert the built-in retailers that are missing. Returns count added."""
    added = 0
    for retailer_id, name, window, description, url, free in DEFAULT_RETAILERS:
        if get_retailer(retailer_id):
            continue
        db.session.add(RetailerPolicy(
            id=retailer_id,
            name=name,
            return_window_days=window,
            policy_description=description,
            website_url=url,
            has_free_returns=free,
        ))
        added += 1
    db.session.commit()
    return added

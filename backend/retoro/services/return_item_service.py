# Overview: Service-layer operations for return items; encapsulates business logic and database work.

"""
Return Item Service

WHY: A return item is one purchase being tracked against its retailer's
return window. This module is the only writer of return_items.

DESIGN PRINCIPLES:
- return_deadline is always derived from purchase_date + retailer policy on write
- returned_date is set iff is_returned
- Price is stored in the original currency plus a USD copy; a failed rate
  lookup degrades to 1:1 rather than failing the write
- Not-found is decided before ownership, and ownership is re-checked on
  every mutation (authorization at write)
- Ownership errors never reveal who owns the item

LIFECYCLE:
active (inside window) -> returned (user sent it back)
                       -> kept (window passed without a return)
"""

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import ReturnItem
from ..validation import (
    ValidationError,
    RETURN_ITEM_POLICY,
    enforce_rules_return_item,
    validate_payload,
)
from . import deadline_service, retailer_service
from .currency_service import currency_symbol, get_exchange_rates
from .identity_service import OwnerRef, owner_filter, owns
from retoro.time_utils import utcnow


class ReturnItemError(Exception):
    """Raised for return item operation errors."""
    pass


class ItemNotFoundError(ReturnItemError):
    pass


class ItemAccessDenied(ReturnItemError):
    """Acting identity does not own the item. Message is always generic."""

    def __init__(self):
        super().__init__("Unauthorized")


def _normalize_payload(payload) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    data = dict(payload)
    # "currency" is accepted as an alias
    if "currency" in data:
        currency = data.pop("currency")
        data.setdefault("original_currency", currency)
    # null currency means the default
    if data.get("original_currency", "") is None:
        data.pop("original_currency")
    return data


def _apply_pricing(item: ReturnItem) -> None:
    currency = (item.original_currency or "USD").upper()
    item.original_currency = currency
    item.currency_symbol = currency_symbol(currency)
    if item.price is None:
        item.price_usd = None
    else:
        item.price_usd = get_exchange_rates().convert(item.price, currency, "USD")


def _apply_deadline(item: ReturnItem) -> None:
    retailer = retailer_service.get_retailer(item.retailer_id)
    if not retailer:
        raise retailer_service.RetailerNotFoundError("Retailer not found")
    item.retailer = retailer
    item.return_deadline = deadline_service.calculate_deadline(item.purchase_date, retailer)


def _validated(payload) -> dict:
    patch = validate_payload(
        model=ReturnItem,
        payload=_normalize_payload(payload),
        policy=RETURN_ITEM_POLICY,
        partial=False,
    )
    enforce_rules_return_item(patch)
    return patch


# =============================================================================
# READS
# =============================================================================

def get_item(item_id: str) -> ReturnItem | None:
    if not item_id:
        return None
    return db.session.get(ReturnItem, item_id)


def get_owned_item(item_id: str, owner: OwnerRef) -> ReturnItem:
    """
    Raises ItemNotFoundError, then ItemAccessDenied, in that order.
    """
    item = get_item(item_id)
    if not item:
        raise ItemNotFoundError("Item not found")
    if not owns(owner, item):
        raise ItemAccessDenied()
    return item


def list_items(owner: OwnerRef, status: str | None = None, now: datetime | None = None) -> list[ReturnItem]:
    """
    Items owned by owner, soonest deadline first.

    status: None / "all", or one of active | returned | kept
    """
    if status in (None, "", "all"):
        status = None
    elif status not in deadline_service.ITEM_STATUSES:
        raise ValidationError(
            f"status must be one of: all, {', '.join(deadline_service.ITEM_STATUSES)}"
        )

    if now is None:
        now = utcnow()

    query = db.session.query(ReturnItem).filter(owner_filter(owner))

    if status == deadline_service.STATUS_RETURNED:
        query = query.filter(ReturnItem.is_returned.is_(True))
    elif status == deadline_service.STATUS_KEPT:
        query = query.filter(ReturnItem.is_returned.is_(False), ReturnItem.return_deadline <= now)
    elif status == deadline_service.STATUS_ACTIVE:
        query = query.filter(ReturnItem.is_returned.is_(False), ReturnItem.return_deadline > now)

    return query.order_by(ReturnItem.return_deadline.asc(), ReturnItem.created_at.asc()).all()


def serialize_item(item: ReturnItem, now: datetime | None = None) -> dict:
    data = item.to_dict()
    data["status"] = deadline_service.item_status(item, now=now)
    data["deadline"] = deadline_service.describe_deadline(item.return_deadline, now=now).to_dict()
    data["retailer"] = item.retailer.to_dict() if item.retailer else None
    return data


def get_stats(owner: OwnerRef, now: datetime | None = None) -> dict:
    """
    Dashboard / profile numbers. Values prefer the USD price, falling back
    to the original price when no USD price was stored.
    """
    if now is None:
        now = utcnow()

    counts = {status: 0 for status in deadline_service.ITEM_STATUSES}
    total_value = 0.0
    returned_value = 0.0

    for item in list_items(owner, now=now):
        status = deadline_service.item_status(item, now=now)
        counts[status] += 1
        value = item.price_usd if item.price_usd is not None else item.price
        value = float(value) if value is not None else 0.0
        total_value += value
        if status == deadline_service.STATUS_RETURNED:
            returned_value += value

    return {
        "total_items": sum(counts.values()),
        "active_items": counts[deadline_service.STATUS_ACTIVE],
        "returned_items": counts[deadline_service.STATUS_RETURNED],
        "kept_items": counts[deadline_service.STATUS_KEPT],
        "total_value_usd": round(total_value, 2),
        "returned_value_usd": round(returned_value, 2),
    }


# =============================================================================
# WRITES
# =============================================================================

def add_item(owner: OwnerRef, payload: dict) -> ReturnItem:
    """
    Log a new purchase.

    Required: retailer_id, purchase_date. Optional: name, price,
    original_currency (alias: currency, default USD).

    Raises:
        ValidationError: bad input (nothing is written)
        RetailerNotFoundError: unknown retailer_id
    """
    patch = _validated(payload)

    item = ReturnItem(
        retailer_id=patch["retailer_id"],
        name=patch.get("name"),
        price=patch.get("price"),
        original_currency=patch.get("original_currency") or "USD",
        purchase_date=patch["purchase_date"],
        is_returned=False,
        returned_date=None,
        owner_type=owner.owner_type,
        user_id=owner.key,
    )
    _apply_deadline(item)
    _apply_pricing(item)

    db.session.add(item)
    db.session.commit()
    return item


def update_item(item_id: str, owner: OwnerRef, payload: dict) -> ReturnItem:
    """
    Replace the purchase details and re-derive the deadline.

    Same fields as add_item; name and price are cleared when omitted,
    original_currency is kept when omitted.
    """
    item = get_owned_item(item_id, owner)
    patch = _validated(payload)

    # Validate the retailer before touching the row
    if not retailer_service.get_retailer(patch["retailer_id"]):
        raise retailer_service.RetailerNotFoundError("Retailer not found")

    item.retailer_id = patch["retailer_id"]
    item.purchase_date = patch["purchase_date"]
    item.name = patch.get("name")
    item.price = patch.get("price")
    if patch.get("original_currency"):
        item.original_currency = patch["original_currency"]

    _apply_deadline(item)
    _apply_pricing(item)

    db.session.commit()
    return item


def set_returned(item_id: str, owner: OwnerRef, is_returned, now: datetime | None = None) -> ReturnItem:
    """
    Mark an item returned (True) or kept / not returned (False).
    """
    if not isinstance(is_returned, bool):
        raise ValidationError("is_returned must be a boolean")

    item = get_owned_item(item_id, owner)

    item.is_returned = is_returned
    item.returned_date = (now or utcnow()) if is_returned else None

    db.session.commit()
    return item


def delete_item(item_id: str, owner: OwnerRef) -> None:
    item = get_owned_item(item_id, owner)
    db.session.delete(item)
    db.session.commit()


def recompute_deadlines(retailer_id: str | None = None) -> int:
    """
    Re-derive return_deadline for every item (optionally one retailer).

    Used after a retailer policy change. Returns count of rows changed.
    """
    query = db.session.query(ReturnItem)
    if retailer_id:
        query = query.filter(ReturnItem.retailer_id == retailer_id)

    changed = 0
    for item in query.all():
        deadline = deadline_service.calculate_deadline(item.purchase_date, item.retailer)
        if item.return_deadline != deadline:
            item.return_deadline = deadline
            changed += 1

    db.session.commit()
    return changed

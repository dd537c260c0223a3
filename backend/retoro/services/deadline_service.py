# Overview: Service-layer operations for return deadlines; pure date math and urgency tiers.

"""
Return Deadline Engine

WHY: Every screen that shows an item shows how long is left to return it.
The numbers, tiers and strings produced here are what users see, so they
must stay exactly stable.

DESIGN:
- calculate_deadline: purchase date + retailer window (window 0 = 10 years)
- get_days_remaining: ceil of the remaining time in whole days (negative once passed)
- classify_urgency: Overdue / Urgent / Due soon / Active
- format_days_remaining: human readable string

Nothing here touches the database. "now" can be passed in for tests; it
defaults to the wall clock in UTC.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from retoro.time_utils import as_datetime, utcnow


# Window of 0 days means "no deadline"; we store a far-future date instead
NO_DEADLINE_YEARS = 10

URGENT_MAX_DAYS = 2
DUE_SOON_MAX_DAYS = 7

SECONDS_PER_DAY = 24 * 60 * 60


class Severity(str, enum.Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    NORMAL = "normal"


class UrgencyTier(enum.Enum):
    """Urgency tiers with their label, severity and UI color class."""
    OVERDUE = ("Overdue", Severity.CRITICAL, "text-red-500")
    URGENT = ("Urgent", Severity.CRITICAL, "text-red-500")
    DUE_SOON = ("Due soon", Severity.WARNING, "text-orange-500")
    ACTIVE = ("Active", Severity.NORMAL, "text-green-500")

    def __init__(self, label: str, severity: Severity, color_class: str):
        self.label = label
        self.severity = severity
        self.color_class = color_class


@dataclass(frozen=True)
class DeadlineStatus:
    days_remaining: int
    urgency: UrgencyTier
    label: str

    def to_dict(self) -> dict:
        return {
            "days_remaining": self.days_remaining,
            "urgency": self.urgency.label,
            "severity": self.urgency.severity.value,
            "color_class": self.urgency.color_class,
            "label": self.label,
        }


def _add_years(value: date | datetime, years: int) -> date | datetime:
    try:
        return value.replace(year=value.year + years)
    except ValueError:
        # Feb 29 in a non-leap target year rolls over to Mar 1
        return value.replace(year=value.year + years, month=3, day=1)


def calculate_deadline(purchase_date: date | datetime, policy) -> date | datetime:
    """
    Calculate the return deadline for a purchase.

    policy is anything with a return_window_days attribute (normally a
    RetailerPolicy). Returns the same type that was passed in.
    """
    window = policy.return_window_days
    if window == 0:
        return _add_years(purchase_date, NO_DEADLINE_YEARS)
    return purchase_date + timedelta(days=window)


def get_days_remaining(deadline: date | datetime, now: datetime | None = None) -> int:
    """
    Whole days left until the deadline, rounded up.

    Negative once the deadline has passed. Not idempotent across calls
    because it reads the clock.
    """
    if now is None:
        now = utcnow()
    delta = as_datetime(deadline) - as_datetime(now)
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def classify_urgency(days_remaining: int) -> UrgencyTier:
    if days_remaining < 0:
        return UrgencyTier.OVERDUE
    if days_remaining <= URGENT_MAX_DAYS:
        return UrgencyTier.URGENT
    if days_remaining <= DUE_SOON_MAX_DAYS:
        return UrgencyTier.DUE_SOON
    return UrgencyTier.ACTIVE


def format_days_remaining(days_remaining: int) -> str:
    if days_remaining < 0:
        overdue = abs(days_remaining)
        return f"Overdue by {overdue} {'day' if overdue == 1 else 'days'}"
    if days_remaining == 0:
        return "Due today"
    if days_remaining == 1:
        return "1 day left"
    return f"{days_remaining} days left"


def describe_deadline(deadline: date | datetime, now: datetime | None = None) -> DeadlineStatus:
    days = get_days_remaining(deadline, now=now)
    return DeadlineStatus(
        days_remaining=days,
        urgency=classify_urgency(days),
        label=format_days_remaining(days),
    )


# =============================================================================
# ITEM STATUS
# =============================================================================

STATUS_ACTIVE = "active"
STATUS_RETURNED = "returned"
STATUS_KEPT = "kept"

ITEM_STATUSES = (STATUS_ACTIVE, STATUS_RETURNED, STATUS_KEPT)


def item_status(item, now: datetime | None = None) -> str:
    """
    returned: the user sent it back
    kept: not returned and the deadline has passed
    active: still inside the return window
    """
    if item.is_returned:
        return STATUS_RETURNED
    if now is None:
        now = utcnow()
    if as_datetime(item.return_deadline) <= as_datetime(now):
        return STATUS_KEPT
    return STATUS_ACTIVE

"""
marketplace/features/lifecycle/service.py

Plan lifecycle: assignment, expiry edits and expiry facts.

Plan state is derived from dates, never stored:

    active_no_expiry --assign paid--> active_with_expiry --time--> expiring
        --time--> expired --assign any plan--> active_with_expiry | active_no_expiry

There is no terminal state; a seller can always be re-assigned, including
back to free. All transitions return a new SellerSubscriptionState so a caller
never observes a half-applied assignment.
"""

from datetime import datetime, timezone
import logging
import math
from typing import Any, Optional

from marketplace.core.errors import InvalidDateRangeError, ValidationError
from marketplace.models.entitlement import PlanState
from marketplace.models.subscription import SellerSubscriptionState


logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def normalize_now(now: Any) -> datetime:
    """Read naive datetimes as UTC; the engine never reads a clock itself."""
    if now is None:
        raise ValueError("now is required")
    if getattr(now, "tzinfo", None) is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def _normalize_optional(value: Optional[datetime]) -> Optional[datetime]:
    return normalize_now(value) if value is not None else None


def is_expired(subscription: SellerSubscriptionState, now: datetime) -> bool:
    expiry = _normalize_optional(subscription.plan_expiry_date)
    return expiry is not None and expiry < normalize_now(now)


def days_until_expiry(subscription: SellerSubscriptionState, now: datetime) -> Optional[int]:
    """Whole days left (rounded up); None without an expiry date or once expired."""
    expiry = _normalize_optional(subscription.plan_expiry_date)
    now = normalize_now(now)
    if expiry is None or expiry < now:
        return None
    return math.ceil((expiry - now).total_seconds() / SECONDS_PER_DAY)


def plan_state(
    subscription: SellerSubscriptionState,
    now: datetime,
    *,
    warning_days: int = 7,
) -> PlanState:
    if not subscription.plan_id:
        return PlanState.NO_PLAN
    if subscription.plan_expiry_date is None:
        return PlanState.ACTIVE_NO_EXPIRY
    if is_expired(subscription, now):
        return PlanState.EXPIRED
    days_left = days_until_expiry(subscription, now)
    if days_left is not None and days_left <= warning_days:
        return PlanState.EXPIRING
    return PlanState.ACTIVE_WITH_EXPIRY


def assign_plan(
    subscription: SellerSubscriptionState,
    plan_id: str,
    activated_date: datetime,
    expiry_date: Optional[datetime] = None,
    *,
    now: datetime,
    reset_usage: bool = False,
) -> SellerSubscriptionState:
    """
    Assign a plan with explicit activation and (optional) expiry dates.

    Args:
        subscription: Current state
        plan_id: Plan to assign (existence is checked by the caller)
        activated_date: Must not be later than `now`
        expiry_date: Must be on or after `activated_date`; None = no expiry
        now: Assignment instant
        reset_usage: Start a new cycle (clear the stored credit counter and
            the certification counter). Default keeps counters.

    Raises:
        ValidationError: plan_id is empty
        InvalidDateRangeError: activation in the future, or expiry before
            activation
    """
    if not plan_id:
        raise ValidationError("Plan id is required", field_errors={"plan_id": "Plan id is required"})

    now = normalize_now(now)
    activated = normalize_now(activated_date)
    expiry = _normalize_optional(expiry_date)

    if activated > now:
        logger.warning(
            "[lifecycle] assign rejected: activation in the future",
            extra={"plan_id": plan_id, "activated_date": activated.isoformat()},
        )
        raise InvalidDateRangeError("Activation date cannot be in the future")

    if expiry is not None and expiry < activated:
        logger.warning(
            "[lifecycle] assign rejected: expiry before activation",
            extra={
                "plan_id": plan_id,
                "activated_date": activated.isoformat(),
                "expiry_date": expiry.isoformat(),
            },
        )
        raise InvalidDateRangeError("Expiry date must be on or after the activation date")

    changes = {
        "plan_id": plan_id,
        "plan_activated_date": activated,
        "plan_expiry_date": expiry,
    }
    if reset_usage:
        changes["stored_featured_credits"] = None
        changes["used_certifications"] = 0

    return subscription.model_copy(update=changes)


def edit_expiry(
    subscription: SellerSubscriptionState,
    new_expiry_date: Optional[datetime],
) -> SellerSubscriptionState:
    """
    Set or clear the expiry date, leaving plan id and activation untouched.

    Clearing the expiry of a paid plan is allowed here; whether it should be
    is a business decision for the caller.
    """
    expiry = _normalize_optional(new_expiry_date)
    activated = _normalize_optional(subscription.plan_activated_date)
    if expiry is not None and activated is not None and expiry < activated:
        logger.warning(
            "[lifecycle] expiry edit rejected: before activation",
            extra={"plan_id": subscription.plan_id, "expiry_date": expiry.isoformat()},
        )
        raise InvalidDateRangeError("Expiry date must be on or after the activation date")
    return subscription.model_copy(update={"plan_expiry_date": expiry})


def record_certification(subscription: SellerSubscriptionState, count: int = 1) -> SellerSubscriptionState:
    """Count consumed certification requests; the counter never decreases."""
    if count < 0:
        raise ValidationError(
            "Certification count cannot be negative",
            field_errors={"count": "Certification count cannot be negative"},
        )
    return subscription.model_copy(
        update={"used_certifications": subscription.used_certifications + count}
    )

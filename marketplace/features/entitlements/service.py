"""
marketplace/features/entitlements/service.py

Entitlement calculator.

Pure, deterministic computation of what a seller has used and has left.
No clock reads, no storage, no side effects: callers pass `now` in and must
re-run the computation on every read, since expiry depends on wall-clock time.

Featured credits are tracked by two signals that can drift apart:
- the seller's stored counter, decremented when a credit is spent
- the listings currently flagged as featured
The remaining value is the smaller of the two, so a seller is never
over-credited; the used value is the larger of the two, so consumption is
never hidden.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence

from marketplace.core.config import settings
from marketplace.features.lifecycle.service import (
    days_until_expiry,
    is_expired,
    normalize_now,
    plan_state,
)
from marketplace.models.entitlement import EntitlementReport
from marketplace.models.listing import ListingSnapshot
from marketplace.models.plan import UNLIMITED, ListingLimit, PlanDefinition
from marketplace.models.subscription import SellerSubscriptionState


@dataclass(frozen=True)
class FeaturedCredits:
    used: int
    remaining: int
    total: int
    overage: int


@dataclass(frozen=True)
class CertificationCredits:
    used: int
    remaining: int
    total: int


@dataclass(frozen=True)
class ListingQuota:
    active: int
    limit: ListingLimit
    remaining: Optional[int]
    limit_reached: bool
    usage_percent: float


def count_active_listings(listings: Iterable[ListingSnapshot]) -> int:
    return sum(1 for listing in listings if listing.status == "published")


def count_featured_listings(listings: Iterable[ListingSnapshot]) -> int:
    # A sold or unpublished listing still holds its featured slot
    return sum(1 for listing in listings if listing.is_featured)


def stored_remaining_credits(plan: PlanDefinition, subscription: SellerSubscriptionState) -> int:
    """Persisted credit counter, or the plan allowance when none is stored."""
    plan_credits = max(plan.featured_credits or 0, 0)
    if subscription.stored_featured_credits is None:
        return plan_credits
    return max(subscription.stored_featured_credits, 0)


def compute_featured_credits(
    plan: PlanDefinition,
    subscription: SellerSubscriptionState,
    listings: Sequence[ListingSnapshot],
) -> FeaturedCredits:
    plan_credits = max(plan.featured_credits or 0, 0)
    featured_count = count_featured_listings(listings)

    stored = stored_remaining_credits(plan, subscription)
    implied_by_usage = max(plan_credits - featured_count, 0)
    remaining = min(stored, implied_by_usage)

    used = max(plan_credits - remaining, featured_count)
    overage = max(featured_count - plan_credits, 0)
    if plan_credits > 0:
        # Slots held beyond the allowance are reported as overage instead
        used = min(used, plan_credits)

    return FeaturedCredits(used=used, remaining=remaining, total=plan_credits, overage=overage)


def compute_certifications(
    plan: PlanDefinition,
    subscription: SellerSubscriptionState,
) -> CertificationCredits:
    total = max(plan.free_certifications or 0, 0)
    used = subscription.used_certifications
    return CertificationCredits(used=used, remaining=max(total - used, 0), total=total)


def compute_listing_quota(plan: PlanDefinition, listings: Sequence[ListingSnapshot]) -> ListingQuota:
    active = count_active_listings(listings)
    if plan.listing_limit == UNLIMITED:
        return ListingQuota(active=active, limit=UNLIMITED, remaining=None, limit_reached=False, usage_percent=0.0)

    limit = max(int(plan.listing_limit), 0)
    if limit == 0:
        usage = 100.0
    else:
        usage = min(active / limit * 100.0, 100.0)
    return ListingQuota(
        active=active,
        limit=limit,
        remaining=max(limit - active, 0),
        limit_reached=active >= limit,
        usage_percent=round(usage, 2),
    )


def compute_entitlements(
    plan: PlanDefinition,
    subscription: SellerSubscriptionState,
    listings: Sequence[ListingSnapshot],
    now: datetime,
    *,
    seller_id: Optional[str] = None,
    warning_days: Optional[int] = None,
) -> EntitlementReport:
    """
    Compute the entitlement report for one seller.

    Args:
        plan: The seller's current plan definition
        subscription: The seller's persisted subscription state
        listings: Snapshots of the seller's listings
        now: Evaluation instant (naive values are read as UTC)
        seller_id: Echoed into the report
        warning_days: Window for `expiring_soon`; defaults to settings

    Returns:
        EntitlementReport with every quantity clamped at zero
    """
    now = normalize_now(now)
    window = settings.EXPIRY_WARNING_DAYS if warning_days is None else warning_days
    listings = list(listings)

    quota = compute_listing_quota(plan, listings)
    featured = compute_featured_credits(plan, subscription, listings)
    certifications = compute_certifications(plan, subscription)

    expired = is_expired(subscription, now)
    days_left = days_until_expiry(subscription, now)

    return EntitlementReport(
        seller_id=seller_id,
        plan_id=plan.id,
        plan_name=plan.name,
        plan_state=plan_state(subscription, now, warning_days=window),
        active_listing_count=quota.active,
        listing_limit=quota.limit,
        listings_remaining=quota.remaining,
        listing_limit_reached=quota.limit_reached,
        listing_usage_percent=quota.usage_percent,
        featured_used=featured.used,
        featured_remaining=featured.remaining,
        featured_total=featured.total,
        featured_overage=featured.overage,
        certifications_used=certifications.used,
        certifications_remaining=certifications.remaining,
        certifications_total=certifications.total,
        is_expired=expired,
        days_until_expiry=days_left,
        expiring_soon=days_left is not None and days_left <= window,
        # Only new listings are gated; existing ones stay editable while expired
        listing_creation_allowed=not expired,
        evaluated_at=now,
    )


def spend_featured_credit(
    plan: PlanDefinition,
    subscription: SellerSubscriptionState,
    listings: Sequence[ListingSnapshot],
) -> SellerSubscriptionState:
    """
    Record one featured credit as spent.

    The stored counter is re-based on the reconciled remaining value before it
    is decremented, and never goes below zero. Whether the seller may feature
    a listing at all is the host's decision, made from the report.
    """
    remaining = compute_featured_credits(plan, subscription, listings).remaining
    return subscription.model_copy(
        update={"stored_featured_credits": max(remaining - 1, 0)}
    )

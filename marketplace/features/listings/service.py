"""
marketplace/features/listings/service.py

Listing expiry rules tied to the seller's plan.

A listing normally lives until its own `listing_expires_at`. While a premium
seller's plan is still running, their listings follow the plan expiry instead
and do not lapse on their own.
"""

import math
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from marketplace.core.config import expiry_notice_days
from marketplace.features.lifecycle.service import SECONDS_PER_DAY, normalize_now
from marketplace.models.listing import ListingSnapshot
from marketplace.models.subscription import SellerSubscriptionState

# Plans whose active subscription keeps listings alive past their own expiry
PLAN_CARRIES_LISTINGS = frozenset({"premium"})


def _plan_keeps_listing_alive(subscription: Optional[SellerSubscriptionState], now: datetime) -> bool:
    if subscription is None or subscription.plan_id not in PLAN_CARRIES_LISTINGS:
        return False
    if subscription.plan_expiry_date is None:
        return False
    return normalize_now(subscription.plan_expiry_date) > now


def _ceil_days(later: datetime, now: datetime) -> int:
    return math.ceil((later - now).total_seconds() / SECONDS_PER_DAY)


def is_listing_expired(
    listing: ListingSnapshot,
    subscription: Optional[SellerSubscriptionState],
    now: datetime,
) -> bool:
    if listing.listing_expires_at is None:
        return False
    now = normalize_now(now)
    if _plan_keeps_listing_alive(subscription, now):
        return False
    return normalize_now(listing.listing_expires_at) < now


def listing_days_until_expiry(
    listing: ListingSnapshot,
    subscription: Optional[SellerSubscriptionState],
    now: datetime,
) -> Optional[int]:
    """Days until the listing lapses; negative once past, None without a date."""
    now = normalize_now(now)
    if _plan_keeps_listing_alive(subscription, now):
        return _ceil_days(normalize_now(subscription.plan_expiry_date), now)
    if listing.listing_expires_at is None:
        return None
    return _ceil_days(normalize_now(listing.listing_expires_at), now)


def active_listings(
    listings: Iterable[ListingSnapshot],
    subscription: Optional[SellerSubscriptionState],
    now: datetime,
) -> List[ListingSnapshot]:
    return [
        listing for listing in listings
        if listing.status == "published" and not is_listing_expired(listing, subscription, now)
    ]


def expiring_listings(
    listings: Iterable[ListingSnapshot],
    subscription: Optional[SellerSubscriptionState],
    now: datetime,
    threshold_days: int = 7,
) -> List[ListingSnapshot]:
    result = []
    for listing in listings:
        days = listing_days_until_expiry(listing, subscription, now)
        if days is not None and 0 < days <= threshold_days:
            result.append(listing)
    return result


def should_notify_expiry(
    listing: ListingSnapshot,
    subscription: Optional[SellerSubscriptionState],
    now: datetime,
    notice_days: Optional[Sequence[int]] = None,
) -> bool:
    days = listing_days_until_expiry(listing, subscription, now)
    if days is None:
        return False
    return days in (notice_days if notice_days is not None else expiry_notice_days())

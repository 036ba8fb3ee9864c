"""
marketplace/models/entitlement.py

Entitlement report: what a seller is allowed and has consumed right now.

The report is derived on every read and never persisted, so it can never go
stale independently of its inputs.

Quantities:
- listing_limit (int | "unlimited"): active listings allowed by the plan
- featured_* (int): promotion credits, all clamped at zero
- certifications_* (int): free inspection requests for the current cycle
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict

from marketplace.models.plan import ListingLimit


class PlanState(str, Enum):
    """Plan lifecycle state, derived from dates (never stored)."""
    NO_PLAN = "no_plan"
    ACTIVE_NO_EXPIRY = "active_no_expiry"
    ACTIVE_WITH_EXPIRY = "active_with_expiry"
    EXPIRING = "expiring"
    EXPIRED = "expired"


class EntitlementReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    seller_id: Optional[str] = None
    plan_id: str
    plan_name: str
    plan_state: PlanState

    active_listing_count: int
    listing_limit: ListingLimit
    listings_remaining: Optional[int]  # None when unlimited
    listing_limit_reached: bool
    listing_usage_percent: float

    featured_used: int
    featured_remaining: int
    featured_total: int
    featured_overage: int = 0

    certifications_used: int
    certifications_remaining: int
    certifications_total: int

    is_expired: bool
    days_until_expiry: Optional[int]
    expiring_soon: bool
    listing_creation_allowed: bool

    evaluated_at: datetime

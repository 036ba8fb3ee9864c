"""
marketplace/models/subscription.py

Per-seller subscription state.

Links a seller to their current plan and carries the counters the entitlement
calculator reconciles against listing state.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class SellerSubscriptionState(BaseModel):
    """
    SellerSubscriptionState represents a seller's current plan assignment.

    Constraint: Each seller has exactly one current plan.
    - plan_expiry_date absent means the plan does not expire (typical for free)
    - stored_featured_credits absent means "derive entirely from the plan"
    - used_certifications only grows within a cycle
    """
    model_config = ConfigDict(frozen=True)

    plan_id: str = "free"
    plan_activated_date: Optional[datetime] = None
    plan_expiry_date: Optional[datetime] = None
    stored_featured_credits: Optional[int] = None
    used_certifications: int = Field(default=0, ge=0)


class Seller(BaseModel):
    """A seller account as far as the engine is concerned."""
    model_config = ConfigDict(frozen=True)

    seller_id: str
    subscription: SellerSubscriptionState = Field(default_factory=SellerSubscriptionState)

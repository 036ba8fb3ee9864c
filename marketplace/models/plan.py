"""
marketplace/models/plan.py

Subscription plan definitions.

Plans are capability tiers for sellers: how many listings may be active, how
many featured credits and free certifications are granted per cycle, and the
price shown on the pricing page. Three built-in plans always exist; sellers may
also be offered custom plans created by an administrator.
"""

from typing import List, Literal, Union
from pydantic import BaseModel, ConfigDict, Field

BUILTIN_PLAN_IDS = ("free", "pro", "premium")
UNLIMITED = "unlimited"

ListingLimit = Union[int, Literal["unlimited"]]


def is_builtin_plan_id(plan_id: str) -> bool:
    return plan_id in BUILTIN_PLAN_IDS


class PlanDraft(BaseModel):
    """
    Plan fields as submitted by an administrator (no id).

    Range rules (non-negative price, listing limit >= 1, ...) are checked by the
    catalog so every offending field is reported together.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    price: int = 0
    listing_limit: ListingLimit = 1
    featured_credits: int = 0
    free_certifications: int = 0
    features: List[str] = Field(default_factory=list)
    is_most_popular: bool = False


class PlanDefinition(PlanDraft):
    """
    PlanDefinition represents one tier in the catalog.

    Examples:
    - free (built-in, default for every seller)
    - pro
    - premium
    - custom_3f9c2a1b0d4e (created by an administrator)
    """
    id: str

    @property
    def is_custom(self) -> bool:
        return not is_builtin_plan_id(self.id)

    @property
    def has_unlimited_listings(self) -> bool:
        return self.listing_limit == UNLIMITED

    def to_draft(self) -> PlanDraft:
        return PlanDraft(**self.model_dump(exclude={"id"}))

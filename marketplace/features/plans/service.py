"""
marketplace/features/plans/service.py

Plan catalog service.

Handles:
- Built-in plan defaults (free, pro, premium)
- Custom plan creation within the catalog cap
- Plan edits, built-in resets and custom plan deletion
- Field validation (all problems collected, not fail-fast)
"""

from collections import OrderedDict
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from marketplace.core.config import settings
from marketplace.core.errors import (
    CannotDeleteBuiltinError,
    CatalogFullError,
    PlanNotFoundError,
    ValidationError,
)
from marketplace.models.plan import (
    BUILTIN_PLAN_IDS,
    UNLIMITED,
    PlanDefinition,
    PlanDraft,
    is_builtin_plan_id,
)


logger = logging.getLogger(__name__)


# Default plan configurations
DEFAULT_PLANS = {
    "free": {
        "name": "Free",
        "price": 0,
        "listing_limit": 1,
        "featured_credits": 0,
        "free_certifications": 0,
        "is_most_popular": False,
        "features": [
            "1 Active Listing",
            "Basic Seller Profile",
            "Standard Support",
        ],
    },
    "pro": {
        "name": "Pro",
        "price": 1999,
        "listing_limit": 10,
        "featured_credits": 2,
        "free_certifications": 1,
        "is_most_popular": True,
        "features": [
            "10 Active Listings",
            "2 Featured Credits/month",
            "1 Free Certified Inspection/month",
            "Enhanced Seller Profile",
            "Performance Analytics",
            "Priority Support",
        ],
    },
    "premium": {
        "name": "Premium",
        "price": 4999,
        "listing_limit": UNLIMITED,
        "featured_credits": 5,
        "free_certifications": 3,
        "is_most_popular": False,
        "features": [
            "Unlimited Active Listings",
            "5 Featured Credits/month",
            "3 Free Certified Inspections/month",
            "AI Listing Assistant",
            "Advanced Analytics",
            "Dedicated Support",
        ],
    },
}

BUILTIN_PLANS: Dict[str, PlanDefinition] = {
    plan_id: PlanDefinition(id=plan_id, **config) for plan_id, config in DEFAULT_PLANS.items()
}


PlanInput = Union[PlanDraft, Mapping[str, Any]]


def generate_plan_id() -> str:
    return f"custom_{uuid4().hex[:12]}"


def _normalize_features(features: Iterable[str]) -> List[str]:
    seen = []
    for label in features:
        label = label.strip()
        if label and label not in seen:
            seen.append(label)
    return seen


def validate_plan_fields(draft: PlanDraft, *, creating: bool) -> Dict[str, str]:
    """
    Check plan field ranges.

    Args:
        draft: Parsed plan fields
        creating: New plans need a listing limit of at least 1; edits may
            freeze a plan at 0 new listings

    Returns:
        Dict mapping field name to message; empty when the draft is valid
    """
    errors: Dict[str, str] = {}

    if not draft.name or not draft.name.strip():
        errors["name"] = "Plan name is required"

    if draft.price < 0:
        errors["price"] = "Price cannot be negative"

    if draft.listing_limit != UNLIMITED:
        if creating and draft.listing_limit < 1:
            errors["listing_limit"] = "Listing limit must be at least 1"
        elif draft.listing_limit < 0:
            errors["listing_limit"] = "Listing limit cannot be negative"

    if draft.featured_credits < 0:
        errors["featured_credits"] = "Featured credits cannot be negative"

    if draft.free_certifications < 0:
        errors["free_certifications"] = "Free certifications cannot be negative"

    return errors


def parse_plan_draft(payload: PlanInput, *, creating: bool) -> PlanDraft:
    """
    Coerce an admin payload into a valid PlanDraft.

    Type errors from parsing and range errors from validate_plan_fields are
    merged, so every offending field is reported in one ValidationError.
    """
    type_errors: Dict[str, str] = {}
    if isinstance(payload, PlanDraft):
        draft = payload
    else:
        raw = dict(payload)
        try:
            draft = PlanDraft.model_validate(raw)
        except PydanticValidationError as exc:
            for err in exc.errors():
                if err["type"] == "missing":
                    # Left to the range rules, which name the field properly
                    continue
                field = str(err["loc"][0]) if err.get("loc") else "payload"
                # First message per field wins; unions report one entry per branch
                type_errors.setdefault(field, err["msg"])
            parsed = {k: v for k, v in raw.items() if k not in type_errors}
            parsed.setdefault("name", "")
            draft = PlanDraft.model_validate(parsed)

    errors = {**validate_plan_fields(draft, creating=creating), **type_errors}
    if errors:
        raise ValidationError("Invalid plan", field_errors=errors)
    return draft


class PlanCatalog:
    """
    In-memory plan catalog: the three built-ins plus custom plans, capped at
    ``max_plans`` entries.

    Mutations build the next mapping first and swap it in only after every
    check passed, so a failed call leaves the catalog untouched.
    """

    def __init__(
        self,
        plans: Optional[Iterable[PlanDefinition]] = None,
        *,
        max_plans: Optional[int] = None,
        id_factory: Callable[[], str] = generate_plan_id,
    ):
        self._max_plans = max_plans if max_plans is not None else settings.MAX_PLANS
        self._id_factory = id_factory
        self._plans: "OrderedDict[str, PlanDefinition]" = OrderedDict(
            (plan_id, BUILTIN_PLANS[plan_id]) for plan_id in BUILTIN_PLAN_IDS
        )
        for plan in plans or ():
            self._load(plan)

    @classmethod
    def from_plans(cls, plans: Iterable[PlanDefinition], **kwargs) -> "PlanCatalog":
        """Rebuild a catalog from host-persisted definitions.

        Persisted built-ins replace the defaults (an edited built-in); custom
        plans are appended in the given order.
        """
        return cls(plans, **kwargs)

    def _load(self, plan: PlanDefinition) -> None:
        if plan.is_custom:
            if plan.id in self._plans:
                raise ValidationError(
                    f"Duplicate plan id {plan.id}",
                    field_errors={"id": "Plan id already exists"},
                )
            if len(self._plans) >= self._max_plans:
                raise CatalogFullError(f"Catalog already holds {self._max_plans} plans")
        self._plans[plan.id] = plan

    # Reads -------------------------------------------------------------
    @property
    def max_plans(self) -> int:
        return self._max_plans

    def list_plans(self) -> List[PlanDefinition]:
        return list(self._plans.values())

    def snapshot(self) -> List[dict]:
        """Plan list as JSON-ready dicts for the host to persist."""
        return [plan.model_dump(mode="json") for plan in self._plans.values()]

    def plan_count(self) -> int:
        return len(self._plans)

    def has_plan(self, plan_id: str) -> bool:
        return plan_id in self._plans

    def get_plan(self, plan_id: str) -> PlanDefinition:
        plan = self._plans.get(plan_id)
        if plan is None:
            raise PlanNotFoundError(plan_id)
        return plan

    def get_builtin_definition(self, plan_id: str) -> PlanDefinition:
        """Original, unedited definition of a built-in plan."""
        if not is_builtin_plan_id(plan_id):
            raise PlanNotFoundError(plan_id, f"Plan {plan_id} is not a built-in plan")
        return BUILTIN_PLANS[plan_id]

    def is_plan_modified(self, plan_id: str) -> bool:
        """True if a built-in plan no longer matches its original definition."""
        current = self.get_plan(plan_id)
        if current.is_custom:
            return False
        return current != BUILTIN_PLANS[plan_id]

    def can_create_plan(self) -> bool:
        return len(self._plans) < self._max_plans

    # Mutations ---------------------------------------------------------
    def create_plan(self, payload: PlanInput) -> PlanDefinition:
        """
        Create a custom plan.

        Raises:
            CatalogFullError: The catalog already holds max_plans entries
            ValidationError: One or more fields are invalid
        """
        if not self.can_create_plan():
            logger.warning(
                "[plans] create rejected: catalog full",
                extra={"plan_count": len(self._plans), "max_plans": self._max_plans},
            )
            raise CatalogFullError(
                f"Catalog already holds {self._max_plans} plans; delete a custom plan first"
            )

        try:
            draft = parse_plan_draft(payload, creating=True)
        except ValidationError as exc:
            logger.warning("[plans] create rejected: invalid fields", extra={"fields": sorted(exc.field_errors)})
            raise

        plan_id = self._id_factory()
        while plan_id in self._plans or is_builtin_plan_id(plan_id):
            plan_id = self._id_factory()

        plan = PlanDefinition(
            id=plan_id,
            **draft.model_dump(exclude={"features", "name"}),
            name=draft.name.strip(),
            features=_normalize_features(draft.features),
        )
        plans = OrderedDict(self._plans)
        plans[plan_id] = plan
        self._plans = plans

        logger.info("[plans] created", extra={"plan_id": plan_id, "plan_count": len(plans)})
        return plan

    def update_plan(self, plan_id: str, payload: PlanInput) -> PlanDefinition:
        """
        Replace the fields of an existing plan (built-in or custom).

        A mapping payload is treated as a partial update merged over the
        current definition. The id never changes.
        """
        current = self.get_plan(plan_id)

        if not isinstance(payload, PlanDraft):
            merged = current.model_dump(exclude={"id"})
            merged.update({k: v for k, v in dict(payload).items() if k != "id"})
            payload = merged

        try:
            draft = parse_plan_draft(payload, creating=False)
        except ValidationError as exc:
            logger.warning(
                "[plans] update rejected: invalid fields",
                extra={"plan_id": plan_id, "fields": sorted(exc.field_errors)},
            )
            raise

        plan = PlanDefinition(
            id=plan_id,
            **draft.model_dump(exclude={"features", "name"}),
            name=draft.name.strip(),
            features=_normalize_features(draft.features),
        )
        plans = OrderedDict(self._plans)
        plans[plan_id] = plan
        self._plans = plans

        logger.info("[plans] updated", extra={"plan_id": plan_id})
        return plan

    def reset_plan(self, plan_id: str) -> PlanDefinition:
        """Restore a built-in plan to its original definition."""
        original = self.get_builtin_definition(plan_id)
        plans = OrderedDict(self._plans)
        plans[plan_id] = original
        self._plans = plans
        logger.info("[plans] reset to default", extra={"plan_id": plan_id})
        return original

    def delete_plan(self, plan_id: str) -> PlanDefinition:
        """
        Delete a custom plan.

        Sellers still holding the plan are not checked; see
        ReconciliationService.sellers_on_plan.

        Raises:
            CannotDeleteBuiltinError: plan_id is free, pro or premium
            PlanNotFoundError: No such plan
        """
        if is_builtin_plan_id(plan_id):
            logger.warning("[plans] delete rejected: built-in", extra={"plan_id": plan_id})
            raise CannotDeleteBuiltinError(plan_id)

        removed = self.get_plan(plan_id)
        plans = OrderedDict(self._plans)
        del plans[plan_id]
        self._plans = plans

        logger.info("[plans] deleted", extra={"plan_id": plan_id, "plan_count": len(plans)})
        return removed

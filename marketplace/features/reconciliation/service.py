"""
marketplace/features/reconciliation/service.py

Reconciliation service: the entry point a host application calls.

Handles:
- Entitlement reports (catalog + lifecycle + calculator merged into one read)
- Plan administration (create / update / delete / reset), validated first
- Plan assignment and expiry edits for a seller
- Audit entries for every successful administrator action

Nothing here persists anything. The host passes the current state in, stores
what comes back, and serializes mutations per catalog and per seller.
"""

from datetime import datetime
from enum import Enum
import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from marketplace.core.config import settings
from marketplace.core.errors import (
    PlanNotFoundError,
    SellerNotFoundError,
    ValidationError,
)
from marketplace.core.logging import log_event
from marketplace.features.audit.service import AuditTrail
from marketplace.features.entitlements.service import compute_entitlements
from marketplace.features.lifecycle.service import (
    assign_plan,
    edit_expiry,
    normalize_now,
)
from marketplace.features.plans.service import PlanCatalog
from marketplace.models.entitlement import EntitlementReport
from marketplace.models.listing import ListingSnapshot
from marketplace.models.plan import PlanDefinition
from marketplace.models.subscription import Seller


logger = logging.getLogger(__name__)


class PlanAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    RESET = "reset"


def _plan_id_from(payload: Mapping[str, Any]) -> str:
    plan_id = payload.get("id") or payload.get("plan_id")
    if not plan_id:
        raise ValidationError("Plan id is required", field_errors={"id": "Plan id is required"})
    return str(plan_id)


def _describe_dates(activated: Optional[datetime], expiry: Optional[datetime]) -> str:
    activated_part = activated.date().isoformat() if activated else "unset"
    expiry_part = expiry.date().isoformat() if expiry else "none"
    return f"activated {activated_part}, expires {expiry_part}"


class ReconciliationService:
    """Orchestrates catalog, lifecycle and calculator for one plan catalog."""

    def __init__(
        self,
        catalog: Optional[PlanCatalog] = None,
        *,
        audit: Optional[AuditTrail] = None,
        fallback_to_free: Optional[bool] = None,
    ):
        self.catalog = catalog if catalog is not None else PlanCatalog()
        self.audit = audit if audit is not None else AuditTrail()
        self._fallback_to_free = (
            settings.FALLBACK_TO_FREE_PLAN if fallback_to_free is None else fallback_to_free
        )

    # Read path ---------------------------------------------------------
    def resolve_plan(self, seller: Seller) -> PlanDefinition:
        plan_id = seller.subscription.plan_id
        try:
            return self.catalog.get_plan(plan_id)
        except PlanNotFoundError:
            if not self._fallback_to_free:
                logger.warning(
                    "[reconcile] seller references unknown plan",
                    extra={"seller_id": seller.seller_id, "plan_id": plan_id},
                )
                raise
            logger.warning(
                "[reconcile] unknown plan, falling back to free",
                extra={"seller_id": seller.seller_id, "plan_id": plan_id},
            )
            return self.catalog.get_plan("free")

    def get_entitlement_report(
        self,
        seller: Optional[Seller],
        listings: Sequence[ListingSnapshot],
        *,
        now: datetime,
    ) -> EntitlementReport:
        """
        Compute the seller's entitlement report.

        Raises:
            SellerNotFoundError: seller is None
            PlanNotFoundError: The seller's plan is not in the catalog (unless
                FALLBACK_TO_FREE_PLAN is on)
        """
        if seller is None:
            raise SellerNotFoundError("Seller not found")
        plan = self.resolve_plan(seller)
        report = compute_entitlements(
            plan,
            seller.subscription,
            listings,
            now,
            seller_id=seller.seller_id,
        )
        log_event(
            "info",
            "[reconcile] entitlements computed",
            seller_id=seller.seller_id,
            plan_id=plan.id,
            event_type="entitlements.report",
            extra={"plan_state": report.plan_state.value, "is_expired": report.is_expired},
        )
        return report

    def sellers_on_plan(self, sellers: Iterable[Seller], plan_id: str) -> List[Seller]:
        """Sellers currently holding plan_id (deleting a plan does not check this)."""
        return [seller for seller in sellers if seller.subscription.plan_id == plan_id]

    # Plan administration -------------------------------------------------
    def admin_mutate_plan(
        self,
        action: Any,
        payload: Mapping[str, Any],
        *,
        now: datetime,
        actor: str = "System",
    ) -> PlanDefinition:
        """
        Apply one plan administration action.

        Args:
            action: PlanAction or its string value
            payload: Plan fields; update/delete/reset also need "id"
            now: Instant recorded in the audit entry
            actor: Administrator performing the action

        Returns:
            The created, updated, reset or deleted plan

        Raises:
            ValidationError, CatalogFullError, CannotDeleteBuiltinError,
            PlanNotFoundError. The catalog is untouched on failure.
        """
        try:
            action = PlanAction(action)
        except ValueError:
            raise ValidationError(
                f"Unknown plan action {action!r}",
                field_errors={"action": f"Must be one of: {', '.join(a.value for a in PlanAction)}"},
            ) from None
        now = normalize_now(now)
        payload = dict(payload or {})

        if action is PlanAction.CREATE:
            payload.pop("id", None)
            plan = self.catalog.create_plan(payload)
            details = f"Created plan {plan.name}"
        elif action is PlanAction.UPDATE:
            plan_id = _plan_id_from(payload)
            changes = {k: v for k, v in payload.items() if k not in ("id", "plan_id")}
            plan = self.catalog.update_plan(plan_id, changes)
            details = f"Updated plan {plan.name}: {', '.join(sorted(changes)) or 'no changes'}"
        elif action is PlanAction.DELETE:
            plan = self.catalog.delete_plan(_plan_id_from(payload))
            details = f"Deleted plan {plan.name}"
        else:
            plan = self.catalog.reset_plan(_plan_id_from(payload))
            details = f"Reset plan {plan.name} to defaults"

        self.audit.record(
            actor=actor,
            action=f"plan.{action.value}",
            target=plan.id,
            details=details,
            timestamp=now,
            metadata={"plan_count": self.catalog.plan_count()},
        )
        return plan

    # Seller subscriptions ----------------------------------------------
    def admin_assign_plan(
        self,
        seller: Optional[Seller],
        plan_id: str,
        activated_date: datetime,
        expiry_date: Optional[datetime] = None,
        *,
        now: datetime,
        actor: str = "System",
        reset_usage: bool = False,
    ) -> Seller:
        """
        Assign a catalog plan to a seller.

        Raises:
            SellerNotFoundError: seller is None
            PlanNotFoundError: plan_id is not in the catalog
            InvalidDateRangeError: See lifecycle.assign_plan
        """
        if seller is None:
            raise SellerNotFoundError("Seller not found")
        plan = self.catalog.get_plan(plan_id)

        previous = seller.subscription
        subscription = assign_plan(
            previous,
            plan.id,
            activated_date,
            expiry_date,
            now=now,
            reset_usage=reset_usage,
        )
        updated = seller.model_copy(update={"subscription": subscription})

        logger.info(
            "[reconcile] plan assigned",
            extra={"seller_id": seller.seller_id, "plan_id": plan.id, "previous_plan_id": previous.plan_id},
        )
        self.audit.record(
            actor=actor,
            action="seller.assign_plan",
            target=seller.seller_id,
            details=(
                f"Changed plan from {previous.plan_id} to {plan.id} "
                f"({_describe_dates(subscription.plan_activated_date, subscription.plan_expiry_date)})"
            ),
            timestamp=normalize_now(now),
            metadata={"previous_plan_id": previous.plan_id, "plan_id": plan.id, "reset_usage": reset_usage},
        )
        return updated

    def admin_edit_expiry(
        self,
        seller: Optional[Seller],
        expiry_date: Optional[datetime],
        *,
        now: datetime,
        actor: str = "System",
    ) -> Seller:
        """Set or clear a seller's plan expiry (plan id and activation untouched)."""
        if seller is None:
            raise SellerNotFoundError("Seller not found")

        subscription = edit_expiry(seller.subscription, expiry_date)
        updated = seller.model_copy(update={"subscription": subscription})

        if subscription.plan_expiry_date is None:
            details = "Expiry date removed"
            if seller.subscription.plan_id != "free":
                # Allowed, but grants a paid plan indefinitely
                logger.warning(
                    "[reconcile] expiry cleared on paid plan",
                    extra={"seller_id": seller.seller_id, "plan_id": seller.subscription.plan_id},
                )
        else:
            details = f"Expiry date set to {subscription.plan_expiry_date.date().isoformat()}"

        self.audit.record(
            actor=actor,
            action="seller.edit_expiry",
            target=seller.seller_id,
            details=details,
            timestamp=normalize_now(now),
            metadata={"plan_id": subscription.plan_id},
        )
        return updated

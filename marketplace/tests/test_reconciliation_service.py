"""
Tests for the reconciliation service (reports, plan administration, seller
plan assignment and the audit trail it feeds).
"""
from datetime import timedelta

import pytest

from marketplace.core.errors import (
    CannotDeleteBuiltinError,
    CatalogFullError,
    InvalidDateRangeError,
    PlanNotFoundError,
    SellerNotFoundError,
    ValidationError,
)
from marketplace.features.reconciliation.service import PlanAction, ReconciliationService
from marketplace.models.entitlement import PlanState


class TestEntitlementReport:
    def test_report_for_pro_seller(self, service, make_seller, make_listings, now):
        seller = make_seller(plan_id="pro", plan_expiry_date=now + timedelta(days=30))
        report = service.get_entitlement_report(seller, make_listings(published=4, featured=1), now=now)

        assert report.seller_id == "seller@test.com"
        assert report.plan_id == "pro"
        assert report.plan_name == "Pro"
        assert report.active_listing_count == 4
        assert report.listings_remaining == 6
        assert report.featured_used == 1
        assert report.featured_remaining == 1
        assert report.plan_state == PlanState.ACTIVE_WITH_EXPIRY

    def test_report_reflects_edited_plan(self, service, make_seller, now):
        service.catalog.update_plan("pro", {"featured_credits": 5})
        report = service.get_entitlement_report(make_seller(plan_id="pro"), [], now=now)
        assert report.featured_total == 5
        assert report.featured_remaining == 5

    def test_missing_seller(self, service, now):
        with pytest.raises(SellerNotFoundError):
            service.get_entitlement_report(None, [], now=now)

    def test_unknown_plan_raises(self, service, make_seller, now):
        with pytest.raises(PlanNotFoundError):
            service.get_entitlement_report(make_seller(plan_id="custom_gone"), [], now=now)

    def test_unknown_plan_falls_back_to_free_when_enabled(self, catalog, make_seller, now):
        service = ReconciliationService(catalog, fallback_to_free=True)
        report = service.get_entitlement_report(make_seller(plan_id="custom_gone"), [], now=now)
        assert report.plan_id == "free"
        assert report.listing_limit == 1


class TestPlanAdministration:
    def test_create_records_audit_entry(self, service, audit, custom_plan_payload, now):
        plan = service.admin_mutate_plan("create", custom_plan_payload, now=now, actor="admin@test.com")

        assert service.catalog.has_plan(plan.id)
        [entry] = audit.entries()
        assert entry.action == "plan.create"
        assert entry.target == plan.id
        assert entry.actor == "admin@test.com"
        assert entry.timestamp == now
        assert entry.metadata["plan_count"] == "4"

    def test_create_ignores_supplied_id(self, service, custom_plan_payload, now):
        custom_plan_payload["id"] = "pro"
        plan = service.admin_mutate_plan(PlanAction.CREATE, custom_plan_payload, now=now)
        assert plan.id == "custom_test1"
        assert service.catalog.get_plan("pro").name == "Pro"

    def test_update(self, service, audit, now):
        plan = service.admin_mutate_plan("update", {"id": "pro", "price": 2499}, now=now)
        assert plan.price == 2499
        assert audit.entries()[0].details == "Updated plan Pro: price"

    def test_update_requires_id(self, service, audit, now):
        with pytest.raises(ValidationError) as exc_info:
            service.admin_mutate_plan("update", {"price": 2499}, now=now)
        assert "id" in exc_info.value.field_errors
        assert len(audit) == 0

    def test_reset(self, service, now):
        service.admin_mutate_plan("update", {"id": "free", "listing_limit": 3}, now=now)
        plan = service.admin_mutate_plan("reset", {"id": "free"}, now=now)
        assert plan.listing_limit == 1
        assert service.catalog.is_plan_modified("free") is False

    def test_catalog_full_until_custom_plan_deleted(self, service, audit, custom_plan_payload, now):
        first = service.admin_mutate_plan("create", custom_plan_payload, now=now)
        assert service.catalog.plan_count() == 4

        with pytest.raises(CatalogFullError):
            service.admin_mutate_plan("create", custom_plan_payload, now=now)

        service.admin_mutate_plan("delete", {"id": first.id}, now=now)
        assert service.catalog.plan_count() == 3
        assert service.catalog.can_create_plan() is True
        assert [entry.action for entry in audit.entries()] == ["plan.delete", "plan.create"]

    def test_delete_builtin_is_rejected_without_audit(self, service, audit, now):
        with pytest.raises(CannotDeleteBuiltinError):
            service.admin_mutate_plan("delete", {"plan_id": "premium"}, now=now)
        assert service.catalog.has_plan("premium")
        assert len(audit) == 0

    def test_invalid_payload_leaves_catalog_untouched(self, service, audit, now):
        with pytest.raises(ValidationError):
            service.admin_mutate_plan("create", {"name": "", "price": -1}, now=now)
        assert service.catalog.plan_count() == 3
        assert len(audit) == 0

    def test_unknown_action(self, service, now):
        with pytest.raises(ValidationError) as exc_info:
            service.admin_mutate_plan("archive", {"id": "pro"}, now=now)
        assert "action" in exc_info.value.field_errors


class TestSellerAssignment:
    def test_assign_premium(self, service, audit, make_seller, now):
        seller = make_seller()
        updated = service.admin_assign_plan(
            seller, "premium", now, now + timedelta(days=30), now=now, actor="admin@test.com"
        )

        assert updated.subscription.plan_id == "premium"
        assert seller.subscription.plan_id == "free"
        [entry] = audit.entries(action="seller.assign_plan")
        assert entry.target == "seller@test.com"
        assert entry.details == "Changed plan from free to premium (activated 2025-06-15, expires 2025-07-15)"

    def test_expiry_before_activation_leaves_seller_unchanged(self, service, audit, make_seller, now):
        seller = make_seller()
        with pytest.raises(InvalidDateRangeError):
            service.admin_assign_plan(seller, "premium", now, now - timedelta(days=1), now=now)
        assert seller.subscription.plan_id == "free"
        assert len(audit) == 0

    def test_assign_unknown_plan(self, service, make_seller, now):
        with pytest.raises(PlanNotFoundError):
            service.admin_assign_plan(make_seller(), "gold", now, None, now=now)

    def test_assign_missing_seller(self, service, now):
        with pytest.raises(SellerNotFoundError):
            service.admin_assign_plan(None, "pro", now, None, now=now)

    def test_assign_custom_plan(self, service, make_seller, custom_plan_payload, now):
        plan = service.admin_mutate_plan("create", custom_plan_payload, now=now)
        updated = service.admin_assign_plan(make_seller(), plan.id, now, None, now=now)

        report = service.get_entitlement_report(updated, [], now=now)
        assert report.listing_limit == 25
        assert report.certifications_total == 2

    def test_edit_expiry(self, service, audit, make_seller, paid_subscription, now):
        seller = make_seller(**paid_subscription.model_dump())
        updated = service.admin_edit_expiry(seller, now + timedelta(days=60), now=now)

        assert updated.subscription.plan_expiry_date == now + timedelta(days=60)
        assert audit.entries()[0].details == "Expiry date set to 2025-08-14"

    def test_clear_expiry_on_paid_plan_logs_warning(self, service, audit, make_seller, paid_subscription, now, caplog):
        seller = make_seller(**paid_subscription.model_dump())
        with caplog.at_level("WARNING", logger="marketplace"):
            updated = service.admin_edit_expiry(seller, None, now=now)

        assert updated.subscription.plan_expiry_date is None
        assert audit.entries()[0].details == "Expiry date removed"
        assert any("expiry cleared on paid plan" in r.getMessage() for r in caplog.records)


def test_sellers_on_plan(service, make_seller):
    sellers = [
        make_seller("a@test.com", plan_id="pro"),
        make_seller("b@test.com"),
        make_seller("c@test.com", plan_id="pro"),
    ]
    holders = service.sellers_on_plan(sellers, "pro")
    assert [seller.seller_id for seller in holders] == ["a@test.com", "c@test.com"]


def test_empty_audit_trail_passed_in_is_used(catalog, audit):
    service = ReconciliationService(catalog, audit=audit)
    assert service.audit is audit

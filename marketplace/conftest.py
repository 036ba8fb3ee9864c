# marketplace/conftest.py
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to PYTHONPATH
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from marketplace.features.audit.service import AuditTrail
from marketplace.features.plans.service import PlanCatalog
from marketplace.features.reconciliation.service import ReconciliationService
from marketplace.models.listing import ListingSnapshot
from marketplace.models.subscription import Seller, SellerSubscriptionState


@pytest.fixture
def now():
    """Fixed evaluation instant; the engine never reads the clock itself."""
    return datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def catalog():
    counter = iter(range(1, 1000))
    return PlanCatalog(id_factory=lambda: f"custom_test{next(counter)}")


@pytest.fixture
def audit():
    return AuditTrail(enabled=True, max_entries=0)


@pytest.fixture
def service(catalog, audit):
    return ReconciliationService(catalog, audit=audit, fallback_to_free=False)


@pytest.fixture
def custom_plan_payload():
    return {
        "name": "Dealer Plus",
        "price": 2999,
        "listing_limit": 25,
        "featured_credits": 3,
        "free_certifications": 2,
        "features": ["25 Active Listings", "3 Featured Credits/month"],
        "is_most_popular": False,
    }


@pytest.fixture
def make_seller():
    def _make(seller_id="seller@test.com", **subscription_fields):
        return Seller(
            seller_id=seller_id,
            subscription=SellerSubscriptionState(**subscription_fields),
        )
    return _make


@pytest.fixture
def make_listings():
    def _make(published=0, featured=0, sold_featured=0, unpublished=0):
        listings = []
        listings += [ListingSnapshot(status="published", is_featured=True) for _ in range(featured)]
        listings += [ListingSnapshot(status="published") for _ in range(max(published - featured, 0))]
        listings += [ListingSnapshot(status="sold", is_featured=True) for _ in range(sold_featured)]
        listings += [ListingSnapshot(status="unpublished") for _ in range(unpublished)]
        return listings
    return _make


@pytest.fixture
def paid_subscription(now):
    """Premium seller activated 10 days ago, 20 days left."""
    return SellerSubscriptionState(
        plan_id="premium",
        plan_activated_date=now - timedelta(days=10),
        plan_expiry_date=now + timedelta(days=20),
    )

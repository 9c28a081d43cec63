# =============================================================================
# Achatons - Pytest Fixtures Configuration
# =============================================================================

import pytest
from datetime import datetime, timedelta, timezone

from app import create_app
from app.extensions import db
from app.models.offer import Offer, OfferStatus
from app.models.participation import Participation, ParticipationStatus
from app.models.pricing import PricingModel
from app.services.offer_service import OfferService


# Tiers used across the suite: 10 / 20 / 50 units, 9000 / 8000 / 7000 FCFA
TIERS = [
    {'min_participants': 10, 'price': 9000, 'label': 'Bronze'},
    {'min_participants': 20, 'price': 8000, 'label': 'Silver'},
    {'min_participants': 50, 'price': 7000, 'label': 'Gold'},
]


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture(scope='function')
def app():
    """Create and configure test application with SQLite in-memory database."""
    # Create app with 'testing' config (uses SQLite in-memory)
    application = create_app('testing')

    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Test client for HTTP requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    """CLI test runner."""
    return app.test_cli_runner()


# =============================================================================
# Database Session Fixture
# =============================================================================

@pytest.fixture(scope='function')
def session(app):
    """Database session for tests."""
    yield db.session


# =============================================================================
# Offer Fixtures
# =============================================================================

@pytest.fixture
def tiered_offer(app):
    """Fresh tiered offer: base 10000 FCFA, tiers at 10 / 20 / 50 units."""
    return OfferService.create_offer(
        name="Bidon d'huile 20 L",
        base_price=10000,
        deadline=utcnow() + timedelta(days=10),
        pricing_model=PricingModel.TIERED,
        tiers=TIERS,
        supplier='Huilerie de Thiès',
        unit_of_measure='bidons',
    )


@pytest.fixture
def fixed_offer(app):
    """Fresh fixed-price offer: base 18000 FCFA, group price 15500 FCFA."""
    return OfferService.create_offer(
        name='Sac de riz 25 kg',
        base_price=18000,
        group_price=15500,
        target_participants=20,
        deadline=utcnow() + timedelta(days=10),
    )


@pytest.fixture
def expired_offer(app):
    """Tiered offer whose deadline has passed."""
    offer = Offer(
        name='Offre expirée',
        base_price=5000,
        deadline=utcnow() - timedelta(days=1),
        pricing_model=PricingModel.TIERED,
        pricing_tiers=[
            {'tier_number': 1, 'min_participants': 5, 'price': 4500, 'label': 'Bronze'},
        ],
        status=OfferStatus.ACTIVE,
        total_quantity=0,
    )
    db.session.add(offer)
    db.session.commit()
    return offer


# =============================================================================
# Participation Helpers
# =============================================================================

@pytest.fixture
def make_participation(app):
    """Insert a participation row directly, bypassing the aggregate update."""
    def _make(offer, quantity=1, status=ParticipationStatus.VALIDATED, user_id=None,
              name='Awa Diop', phone='+221770000000'):
        participation = Participation(
            offer_id=offer.id,
            user_id=user_id,
            customer_name=name,
            customer_phone=phone,
            quantity=quantity,
            status=status,
        )
        db.session.add(participation)
        db.session.commit()
        return participation
    return _make

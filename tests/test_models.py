# =============================================================================
# Achatons - Model Tests
# =============================================================================

from datetime import datetime, timedelta, timezone

from app.extensions import db
from app.models.notification import Notification
from app.models.offer import Offer, OfferStatus
from app.models.participation import Participation, ParticipationStatus
from app.models.pricing import PricingModel


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TestOfferModel:
    """Tests for the Offer model."""

    def test_defaults(self, app):
        """A bare offer starts at tier 0, priced at base."""
        offer = Offer(name='Savon', base_price=1500, deadline=utcnow() + timedelta(days=3))
        db.session.add(offer)
        db.session.commit()

        assert offer.status == OfferStatus.ACTIVE
        assert offer.pricing_model == PricingModel.FIXED
        assert offer.unit_of_measure == 'pièces'
        assert offer.current_participants == 0
        assert offer.current_tier == 0
        assert offer.current_price == 1500
        assert offer.pricing_tiers == []
        assert offer.tier_history == []
        assert offer.created_at is not None

    def test_tiers_sorted_by_number(self, app):
        """Stored tiers come back ordered by tier number."""
        offer = Offer(
            name='Huile', base_price=10000, deadline=utcnow(),
            pricing_model=PricingModel.TIERED,
            pricing_tiers=[
                {'tier_number': 2, 'min_participants': 20, 'price': 8000},
                {'tier_number': 1, 'min_participants': 10, 'price': 9000},
            ],
        )
        assert [t.tier_number for t in offer.tiers] == [1, 2]
        assert offer.final_tier.price == 8000

    def test_tiered_without_tiers_behaves_fixed(self, app):
        """A tiered offer with an empty ladder has no tiered pricing."""
        offer = Offer(name='Huile', base_price=10000, deadline=utcnow(),
                      pricing_model=PricingModel.TIERED, pricing_tiers=[])
        assert offer.has_tiered_pricing is False
        assert offer.final_tier is None

    def test_is_open(self, tiered_offer, expired_offer):
        """Open means active and before the deadline."""
        assert tiered_offer.is_open is True
        assert expired_offer.is_open is False

        tiered_offer.status = OfferStatus.INACTIVE
        assert tiered_offer.is_open is False

    def test_milestones(self, tiered_offer):
        tiered_offer.tier_history = [{
            'tier_number': 1, 'reached_at': '2026-03-01T12:00:00+00:00',
            'participants_count': 4, 'price_at_unlock': 9000,
        }]
        db.session.commit()

        milestone = tiered_offer.milestones[0]
        assert milestone.tier_number == 1
        assert milestone.price_at_unlock == 9000

    def test_delete_cascades_participations(self, tiered_offer, make_participation):
        """Removing an offer removes its participations."""
        make_participation(tiered_offer, quantity=2)
        db.session.delete(tiered_offer)
        db.session.commit()
        assert Participation.query.count() == 0


class TestParticipationModel:
    """Tests for the Participation model."""

    def test_transitions(self, tiered_offer, make_participation):
        """pending -> validated/cancelled, validated -> cancelled, cancelled is terminal."""
        pending = make_participation(tiered_offer, status=ParticipationStatus.PENDING)
        validated = make_participation(tiered_offer, status=ParticipationStatus.VALIDATED)
        cancelled = make_participation(tiered_offer, status=ParticipationStatus.CANCELLED)

        assert pending.can_transition_to(ParticipationStatus.VALIDATED)
        assert pending.can_transition_to(ParticipationStatus.CANCELLED)
        assert validated.can_transition_to(ParticipationStatus.CANCELLED)
        assert not validated.can_transition_to(ParticipationStatus.PENDING)
        assert not cancelled.can_transition_to(ParticipationStatus.VALIDATED)

    def test_offer_relationship(self, tiered_offer, make_participation):
        participation = make_participation(tiered_offer, quantity=3)
        assert participation.offer.id == tiered_offer.id
        assert tiered_offer.participations.count() == 1


class TestNotificationModel:
    """Tests for the Notification model."""

    def test_mark_as_read(self, app):
        notification = Notification(user_id='user-a', title='Bonjour')
        db.session.add(notification)
        db.session.commit()
        assert Notification.get_unread_count('user-a') == 1

        notification.mark_as_read()

        assert notification.is_read is True
        assert notification.read_at is not None
        assert Notification.get_unread_count('user-a') == 0

    def test_for_user(self, app):
        """Only the account's notifications, newest first, optionally unread only."""
        for index in range(3):
            db.session.add(Notification(user_id='user-a', title=f'Note {index}'))
        db.session.add(Notification(user_id='user-b', title='Autre'))
        db.session.commit()

        notifications = Notification.for_user('user-a').all()
        assert [n.title for n in notifications] == ['Note 2', 'Note 1', 'Note 0']

        notifications[0].mark_as_read()
        assert Notification.for_user('user-a', unread_only=True).count() == 2

# =============================================================================
# Achatons - Participation Workflow Tests
# =============================================================================

import pytest

from app.extensions import db
from app.models.notification import Notification, NotificationCategory, NotificationType
from app.models.offer import Offer, OfferStatus
from app.models.participation import Participation, ParticipationStatus
from app.services.exceptions import (
    InvalidStatusTransition, OfferNotFound, ParticipationNotFound,
)
from app.services.participation_service import OfferClosed, ParticipationService


def reload(offer_id):
    db.session.expire_all()
    return db.session.get(Offer, offer_id)


def submit(offer, quantity=1, user_id=None, name='Awa Diop'):
    return ParticipationService.submit_participation(
        offer.id,
        customer_name=name,
        customer_phone='+221770000000',
        quantity=quantity,
        user_id=user_id,
    )


# =============================================================================
# Submission
# =============================================================================

class TestSubmitParticipation:
    """Tests for ParticipationService.submit_participation()."""

    def test_creates_pending_participation(self, tiered_offer):
        """The participation is stored as pending with the order details."""
        participation, result = ParticipationService.submit_participation(
            tiered_offer.id,
            customer_name='Moussa Ndiaye',
            customer_phone='+221771234567',
            quantity=3,
            customer_email='moussa@example.com',
            customer_address='Dakar, Plateau',
        )

        assert participation.id is not None
        assert participation.status == ParticipationStatus.PENDING
        assert participation.quantity == 3
        assert participation.customer_email == 'moussa@example.com'
        assert result.tier_unlocked is False

    def test_updates_offer_in_same_transaction(self, tiered_offer):
        """The offer aggregates move with the new participation."""
        _, result = submit(tiered_offer, quantity=10)

        assert result.tier_unlocked is True
        assert result.new_price == 9000
        offer = reload(tiered_offer.id)
        assert offer.current_participants == 1
        assert offer.total_quantity == 10
        assert offer.current_tier == 1
        assert Participation.query.filter_by(offer_id=tiered_offer.id).count() == 1

    def test_empty_email_stored_as_null(self, tiered_offer):
        """A blank email is not kept."""
        participation, _ = ParticipationService.submit_participation(
            tiered_offer.id, 'Awa', '+221770000000', customer_email='',
        )
        assert participation.customer_email is None

    def test_unknown_offer(self, app):
        """A missing offer raises and nothing is stored."""
        with pytest.raises(OfferNotFound):
            ParticipationService.submit_participation(777, 'Awa', '+221770000000')
        assert Participation.query.count() == 0

    def test_expired_offer_rejected(self, expired_offer):
        """Past the deadline no participation is accepted."""
        with pytest.raises(OfferClosed):
            submit(expired_offer, quantity=2)

        assert Participation.query.count() == 0
        assert reload(expired_offer.id).total_quantity == 0

    def test_inactive_offer_rejected(self, tiered_offer):
        """Inactive offers are closed to participations."""
        tiered_offer.status = OfferStatus.INACTIVE
        db.session.commit()

        with pytest.raises(OfferClosed):
            submit(tiered_offer)

    def test_invalid_quantity(self, tiered_offer):
        """Quantities must be positive integers."""
        with pytest.raises(ValueError):
            submit(tiered_offer, quantity=0)
        assert Participation.query.count() == 0


# =============================================================================
# Review (validate / cancel)
# =============================================================================

class TestReviewParticipation:
    """Tests for validate_participation() and cancel_participation()."""

    def test_validate_recomputes_from_ledger(self, tiered_offer):
        """Validation sets the timestamp and rebuilds the totals."""
        participation, _ = submit(tiered_offer, quantity=12)

        participation, result = ParticipationService.validate_participation(participation.id)

        assert participation.status == ParticipationStatus.VALIDATED
        assert participation.validated_at is not None
        assert result.new_tier_number == 1
        offer = reload(tiered_offer.id)
        assert offer.total_quantity == 12
        assert offer.total_revenue == 12 * 9000

    def test_pending_drop_out_on_recompute(self, tiered_offer):
        """Still-pending orders are not part of the recomputed totals."""
        first, _ = submit(tiered_offer, quantity=10)
        submit(tiered_offer, quantity=5)
        assert reload(tiered_offer.id).total_quantity == 15

        ParticipationService.validate_participation(first.id)

        offer = reload(tiered_offer.id)
        assert offer.current_participants == 1
        assert offer.total_quantity == 10

    def test_cancel_drops_tier(self, tiered_offer):
        """Cancelling the big order takes the offer back to base price."""
        first, _ = submit(tiered_offer, quantity=10)
        second, _ = submit(tiered_offer, quantity=5)
        ParticipationService.validate_participation(first.id)
        ParticipationService.validate_participation(second.id)

        participation, result = ParticipationService.cancel_participation(first.id)

        assert participation.status == ParticipationStatus.CANCELLED
        assert participation.cancelled_at is not None
        assert result.new_tier_number == 0
        offer = reload(tiered_offer.id)
        assert offer.total_quantity == 5
        assert offer.current_tier == 0
        assert offer.current_price == 10000
        assert offer.total_revenue == 50000

    def test_cancel_pending(self, tiered_offer):
        """Pending participations can be cancelled directly."""
        participation, _ = submit(tiered_offer, quantity=2)
        participation, _ = ParticipationService.cancel_participation(participation.id)
        assert participation.status == ParticipationStatus.CANCELLED

    def test_cancelled_is_terminal(self, tiered_offer):
        """A cancelled participation cannot be validated again."""
        participation, _ = submit(tiered_offer, quantity=2)
        ParticipationService.cancel_participation(participation.id)

        with pytest.raises(InvalidStatusTransition):
            ParticipationService.validate_participation(participation.id)

    def test_validate_twice_rejected(self, tiered_offer):
        """Validated is not a valid target from validated."""
        participation, _ = submit(tiered_offer, quantity=2)
        ParticipationService.validate_participation(participation.id)

        with pytest.raises(InvalidStatusTransition):
            ParticipationService.validate_participation(participation.id)

    def test_unknown_participation(self, app):
        """A missing participation raises ParticipationNotFound."""
        with pytest.raises(ParticipationNotFound):
            ParticipationService.validate_participation(31337)


# =============================================================================
# Notifications
# =============================================================================

class TestNotifications:
    """Notifications created by the participation workflow."""

    def test_tier_unlock_notifies_registered_participants(self, tiered_offer):
        """Every signed-in participant hears about a new tier once."""
        submit(tiered_offer, quantity=4, user_id='user-a')
        submit(tiered_offer, quantity=1, user_id='user-a')
        submit(tiered_offer, quantity=2)
        submit(tiered_offer, quantity=3, user_id='user-b')

        notifications = Notification.query.filter_by(category=NotificationCategory.TIER).all()
        assert sorted(n.user_id for n in notifications) == ['user-a', 'user-b']
        for notification in notifications:
            assert notification.type == NotificationType.SUCCESS
            assert notification.offer_id == tiered_offer.id
            assert notification.link == f'/offers/{tiered_offer.id}'
            assert '9\u202f000 FCFA' in notification.message

    def test_no_notification_without_unlock(self, tiered_offer):
        """Orders that stay on the same tier notify nobody."""
        submit(tiered_offer, quantity=2, user_id='user-a')
        assert Notification.query.count() == 0

    def test_review_notifies_customer(self, tiered_offer):
        """The customer is told when their order is validated."""
        participation, _ = submit(tiered_offer, quantity=2, user_id='user-a')
        ParticipationService.validate_participation(participation.id)

        notification = Notification.query.filter_by(
            category=NotificationCategory.PARTICIPATION
        ).one()
        assert notification.user_id == 'user-a'
        assert notification.title == 'Participation validée'

    def test_cancel_notifies_customer(self, tiered_offer):
        """The customer is told when their order is cancelled."""
        participation, _ = submit(tiered_offer, quantity=2, user_id='user-a')
        ParticipationService.cancel_participation(participation.id)

        notification = Notification.query.filter_by(
            category=NotificationCategory.PARTICIPATION
        ).one()
        assert notification.title == 'Participation annulée'
        assert notification.type == NotificationType.WARNING

    def test_anonymous_review_notifies_nobody(self, tiered_offer):
        """Guests without an account get no in-app notification."""
        participation, _ = submit(tiered_offer, quantity=2)
        ParticipationService.validate_participation(participation.id)
        assert Notification.query.count() == 0


# =============================================================================
# Statistics
# =============================================================================

class TestOfferStats:
    """Tests for ParticipationService.get_offer_stats()."""

    def test_tiered_stats(self, tiered_offer):
        """Tiered offers report tier, target quantity and milestones."""
        submit(tiered_offer, quantity=12)

        stats = ParticipationService.get_offer_stats(tiered_offer.id)

        assert stats['current_participants'] == 1
        assert stats['total_quantity'] == 12
        assert stats['target_quantity'] == 50
        assert stats['current_tier'] == 1
        assert stats['current_price'] == 9000
        assert stats['revenue'] == 12 * 9000
        assert len(stats['tier_history']) == 1

    def test_fixed_stats(self, fixed_offer):
        """Fixed offers report revenue as participants times group price."""
        submit(fixed_offer, quantity=3)
        submit(fixed_offer, quantity=1)

        stats = ParticipationService.get_offer_stats(fixed_offer.id)

        assert stats['current_participants'] == 2
        assert stats['total_quantity'] == 4
        assert stats['target_participants'] == 20
        assert stats['current_price'] == 15500
        assert stats['revenue'] == 2 * 15500

    def test_unknown_offer(self, app):
        with pytest.raises(OfferNotFound):
            ParticipationService.get_offer_stats(5150)

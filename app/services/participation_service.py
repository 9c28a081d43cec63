"""
Participation workflow: submission, admin review and offer statistics.

Every operation writes the participation and the offer aggregates in the
same transaction, so a participation is never recorded without its
aggregate update (or the other way round).
"""
from datetime import datetime, timezone
from typing import Optional, Tuple

from flask import current_app

from app.extensions import db
from app.models.offer import Offer
from app.models.participation import Participation, ParticipationStatus
from app.services.exceptions import (
    InvalidStatusTransition, OfferNotFound, ParticipationNotFound, PricingError,
)
from app.services.offer_updates import (
    OfferUpdateResult, apply_participation, load_offer_for_update,
    recompute_offer_from_ledger, run_in_transaction,
)
from app.services.pricing import resolve_tier
from app.utils.notifications import notify_participation_status, notify_tier_unlocked


class OfferClosed(PricingError):
    """Raised when a participation targets an inactive or expired offer."""

    def __init__(self, offer_id):
        self.offer_id = offer_id
        super().__init__(f"L'offre {offer_id} n'accepte plus de participations")


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ParticipationService:
    """Service for submitting and reviewing participations."""

    @staticmethod
    def submit_participation(
        offer_id: int,
        customer_name: str,
        customer_phone: str,
        quantity: int = 1,
        customer_email: Optional[str] = None,
        customer_address: Optional[str] = None,
        user_id: Optional[str] = None,
        session=None,
    ) -> Tuple[Participation, OfferUpdateResult]:
        """Record a pending participation and apply it to the offer.

        Args:
            offer_id: Offer joined
            customer_name: Name given in the order form
            customer_phone: Phone number (WhatsApp) given in the order form
            quantity: Units ordered
            customer_email: Optional email
            customer_address: Optional delivery address
            user_id: Account id when the customer is signed in

        Returns:
            Tuple of (participation, offer update result)

        Raises:
            OfferNotFound: if the offer does not exist
            OfferClosed: if the offer is inactive or past its deadline
            ValueError: if quantity is not a positive integer
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValueError(f'Quantité invalide : {quantity!r}')

        def work(s):
            offer = load_offer_for_update(s, offer_id)
            if not offer.is_open:
                raise OfferClosed(offer_id)

            participation = Participation(
                offer_id=offer_id,
                user_id=user_id,
                customer_name=customer_name,
                customer_phone=customer_phone,
                customer_email=customer_email or None,
                customer_address=customer_address,
                quantity=quantity,
                status=ParticipationStatus.PENDING,
            )
            s.add(participation)

            result = apply_participation(offer_id, quantity, session=s, commit=False)
            if result.tier_unlocked:
                s.flush()
                notify_tier_unlocked(offer, result.new_tier_number, result.new_price, session=s)
            return participation, result

        participation, result = run_in_transaction(work, session=session, label=offer_id)
        current_app.logger.info(
            'Participation %s submitted on offer %s (quantity=%d, tier_unlocked=%s)',
            participation.id, offer_id, quantity, result.tier_unlocked,
        )
        return participation, result

    @staticmethod
    def validate_participation(participation_id: int, session=None):
        """Validate a pending participation and recompute the offer from its ledger.

        Returns:
            Tuple of (participation, offer update result)
        """
        return ParticipationService._change_status(
            participation_id, ParticipationStatus.VALIDATED, session=session
        )

    @staticmethod
    def cancel_participation(participation_id: int, session=None):
        """Cancel a participation and recompute the offer from its ledger.

        Returns:
            Tuple of (participation, offer update result)
        """
        return ParticipationService._change_status(
            participation_id, ParticipationStatus.CANCELLED, session=session
        )

    @staticmethod
    def _change_status(participation_id, new_status, session=None):
        def work(s):
            participation = s.get(
                Participation, participation_id, with_for_update=True, populate_existing=True
            )
            if participation is None:
                raise ParticipationNotFound(participation_id)
            if not participation.can_transition_to(new_status):
                raise InvalidStatusTransition(participation.status, new_status)

            participation.status = new_status
            if new_status == ParticipationStatus.VALIDATED:
                participation.validated_at = _utcnow()
            else:
                participation.cancelled_at = _utcnow()
            s.flush()

            result = recompute_offer_from_ledger(participation.offer_id, session=s, commit=False)
            notify_participation_status(participation, session=s)
            if result.tier_unlocked:
                notify_tier_unlocked(
                    participation.offer, result.new_tier_number, result.new_price, session=s
                )
            return participation, result

        participation, result = run_in_transaction(work, session=session, label=participation_id)
        current_app.logger.info(
            'Participation %s %s (offer %s, tier=%d)',
            participation_id, new_status.value, participation.offer_id, result.new_tier_number,
        )
        return participation, result

    @staticmethod
    def get_offer_stats(offer_id: int) -> dict:
        """Summary figures for an offer's analytics card.

        Raises:
            OfferNotFound: if the offer does not exist
        """
        offer = db.session.get(Offer, offer_id)
        if offer is None:
            raise OfferNotFound(offer_id)

        participants = offer.current_participants or 0
        total_quantity = offer.total_quantity or 0

        if not offer.has_tiered_pricing:
            price = offer.group_price or offer.base_price
            return {
                'current_participants': participants,
                'total_quantity': total_quantity,
                'target_participants': offer.target_participants or 0,
                'current_price': price,
                'revenue': participants * (offer.group_price or 0),
            }

        tiers = offer.tiers
        resolution = resolve_tier(total_quantity, tiers, offer.base_price)
        return {
            'current_participants': participants,
            'total_quantity': total_quantity,
            'target_quantity': tiers[-1].min_participants,
            'current_tier': resolution.current_tier,
            'current_price': resolution.current_price,
            'revenue': offer.total_revenue or 0,
            'tier_history': list(offer.tier_history or []),
        }

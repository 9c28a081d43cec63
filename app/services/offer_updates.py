"""
Offer aggregate updates for tiered group pricing.

Two ways to move an offer's derived fields:

* apply_participation(): fast path, run when a participation is submitted.
  Adds one participant and its quantity to the running totals.
* recompute_offer_from_ledger(): recompute path, run when a participation
  is validated or cancelled. Rebuilds every aggregate from the validated
  participations only; this is the only way aggregates ever go down.

Each runs as a single database transaction that locks the offer row
(SELECT ... FOR UPDATE), so concurrent submissions on the same offer
serialize instead of losing updates.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import OperationalError

from app.extensions import db
from app.models.offer import Offer
from app.models.participation import Participation, ParticipationStatus
from app.models.pricing import TierMilestone
from app.services.exceptions import OfferNotFound, TransientConflict
from app.services.pricing import resolve_tier


@dataclass(frozen=True)
class OfferUpdateResult:
    """What changed on the offer, so callers can trigger follow-up effects."""
    tier_unlocked: bool
    new_tier_number: int
    new_price: Optional[float]


def _utcnow():
    return datetime.now(timezone.utc)


def run_in_transaction(work, session=None, label=None):
    """
    Run ``work(session)`` and commit it as one transaction.

    Lock timeouts and serialization failures (OperationalError) roll back
    and replay ``work`` up to OFFER_TX_MAX_RETRIES times. Any other error
    rolls back and propagates unchanged.

    Args:
        work: Callable taking the session; its return value is returned
        session: SQLAlchemy session (defaults to db.session)
        label: Identifier used in log lines and TransientConflict

    Raises:
        TransientConflict: if every attempt hit a conflicting write
    """
    session = session or db.session
    max_retries = current_app.config.get('OFFER_TX_MAX_RETRIES', 3)
    attempt = 0
    while True:
        attempt += 1
        try:
            result = work(session)
            session.commit()
            return result
        except OperationalError as exc:
            session.rollback()
            if attempt > max_retries:
                current_app.logger.error(
                    'Offer transaction %s abandoned after %d attempts', label, attempt
                )
                raise TransientConflict(label, attempt) from exc
            current_app.logger.warning(
                'Offer transaction %s conflicted (attempt %d/%d), retrying',
                label, attempt, max_retries + 1,
            )
        except Exception:
            session.rollback()
            raise


def load_offer_for_update(session, offer_id):
    """Lock and (re)load the offer row inside the current transaction."""
    offer = session.get(Offer, offer_id, with_for_update=True, populate_existing=True)
    if offer is None:
        current_app.logger.warning('Offer %s not found', offer_id)
        raise OfferNotFound(offer_id)
    return offer


def _milestone(tier_number, participants_count, price):
    return TierMilestone(
        tier_number=tier_number,
        reached_at=_utcnow().isoformat(),
        participants_count=participants_count,
        price_at_unlock=price,
    )


def apply_resolution(offer, resolution, participants_count):
    """Write tier/price fields; append a milestone if a higher tier was reached."""
    previous_tier = offer.current_tier or 0
    tier_unlocked = resolution.current_tier > previous_tier

    offer.current_tier = resolution.current_tier
    offer.current_price = resolution.current_price
    offer.next_tier_quantity = resolution.next_tier_quantity

    if tier_unlocked:
        milestone = _milestone(resolution.current_tier, participants_count, resolution.current_price)
        # Reassign so the JSON column is flagged dirty
        offer.tier_history = list(offer.tier_history or []) + [milestone.to_dict()]
        current_app.logger.info(
            'Offer %s unlocked tier %d at %s (participants=%d)',
            offer.id, resolution.current_tier, resolution.current_price, participants_count,
        )
    return tier_unlocked


def _apply_participation(session, offer_id, quantity):
    offer = load_offer_for_update(session, offer_id)

    participants = (offer.current_participants or 0) + 1
    total_quantity = (offer.total_quantity or 0) + quantity

    offer.current_participants = participants
    offer.total_quantity = total_quantity
    offer.updated_at = _utcnow().replace(tzinfo=None)

    if not offer.has_tiered_pricing:
        return OfferUpdateResult(False, offer.current_tier or 0, offer.current_price)

    resolution = resolve_tier(total_quantity, offer.tiers, offer.base_price)
    tier_unlocked = apply_resolution(offer, resolution, participants)

    # The whole incoming quantity is priced at the post-update price
    offer.total_revenue = (offer.total_revenue or 0) + resolution.current_price * quantity

    return OfferUpdateResult(tier_unlocked, resolution.current_tier, resolution.current_price)


def apply_participation(offer_id, quantity=1, session=None, commit=True) -> OfferUpdateResult:
    """
    Add one participation event of ``quantity`` units to the offer aggregates.

    The participant counter always moves by exactly 1; ``total_quantity``
    moves by ``quantity``. Fixed-price offers only get those two counters.

    Args:
        offer_id: Offer to update
        quantity: Units ordered (positive integer)
        session: SQLAlchemy session (defaults to db.session)
        commit: False when the caller owns the surrounding transaction

    Raises:
        OfferNotFound: if the offer does not exist
        ValueError: if quantity is not a positive integer
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValueError(f'Quantité invalide : {quantity!r}')

    if not commit:
        return _apply_participation(session or db.session, offer_id, quantity)
    return run_in_transaction(
        lambda s: _apply_participation(s, offer_id, quantity),
        session=session,
        label=offer_id,
    )


def _recompute_offer(session, offer_id):
    offer = load_offer_for_update(session, offer_id)

    total_participants, total_quantity = session.query(
        func.count(Participation.id),
        func.coalesce(func.sum(Participation.quantity), 0),
    ).filter(
        Participation.offer_id == offer_id,
        Participation.status == ParticipationStatus.VALIDATED,
    ).one()
    total_participants = int(total_participants)
    total_quantity = int(total_quantity)

    offer.current_participants = total_participants
    offer.total_quantity = total_quantity
    offer.updated_at = _utcnow().replace(tzinfo=None)

    if not offer.has_tiered_pricing:
        return OfferUpdateResult(False, offer.current_tier or 0, offer.current_price)

    resolution = resolve_tier(total_quantity, offer.tiers, offer.base_price)
    tier_unlocked = apply_resolution(offer, resolution, total_participants)

    # Every validated unit is re-priced at the current price
    offer.total_revenue = resolution.current_price * total_quantity

    current_app.logger.info(
        'Offer %s recomputed: participants=%d quantity=%d tier=%d price=%s',
        offer_id, total_participants, total_quantity,
        resolution.current_tier, resolution.current_price,
    )
    return OfferUpdateResult(tier_unlocked, resolution.current_tier, resolution.current_price)


def recompute_offer_from_ledger(offer_id, session=None, commit=True) -> OfferUpdateResult:
    """
    Rebuild the offer aggregates from its validated participations.

    Idempotent, and depends only on the set of validated participations.
    Pending and cancelled participations are not counted.

    Args:
        offer_id: Offer to recompute
        session: SQLAlchemy session (defaults to db.session)
        commit: False when the caller owns the surrounding transaction

    Raises:
        OfferNotFound: if the offer does not exist
    """
    if not commit:
        return _recompute_offer(session or db.session, offer_id)
    return run_in_transaction(
        lambda s: _recompute_offer(s, offer_id),
        session=session,
        label=offer_id,
    )

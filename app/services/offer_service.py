"""
Offer authoring: creating offers and editing their pricing.

Tier rules are enforced here, before anything is persisted; the runtime
pricing paths assume stored tiers are valid.
"""
from datetime import datetime, timezone

from flask import current_app

from app.extensions import db
from app.models.offer import Offer, OfferStatus
from app.models.pricing import PricingModel
from app.services.offer_updates import (
    apply_resolution, load_offer_for_update, run_in_transaction,
)
from app.services.exceptions import InvalidTierConfiguration
from app.services.pricing import build_tiers, resolve_tier, suggest_next_tier


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _naive_utc(value):
    """Store datetimes as naive UTC, like every other timestamp column."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _max_tiers():
    return current_app.config.get('MAX_PRICING_TIERS', 5)


class OfferService:
    """Service for creating offers and editing their pricing."""

    @staticmethod
    def create_offer(
        name,
        base_price,
        deadline,
        pricing_model=PricingModel.FIXED,
        tiers=None,
        group_price=None,
        target_participants=0,
        **listing,
    ) -> Offer:
        """Create an offer with zeroed aggregates.

        Args:
            name: Listing title
            base_price: Retail price (FCFA)
            deadline: End of the collective purchase
            pricing_model: PricingModel.FIXED or PricingModel.TIERED
            tiers: Raw tier dicts (tiered pricing only)
            group_price: Group price (fixed pricing only)
            target_participants: Display goal (fixed pricing only)
            **listing: Other listing columns (description, supplier, ...)

        Raises:
            InvalidTierConfiguration: if tiered and the tiers break a rule,
                or tiers are supplied for a fixed offer
        """
        pricing_model = PricingModel(pricing_model)
        deadline = _naive_utc(deadline)
        if 'start_date' in listing:
            listing['start_date'] = _naive_utc(listing['start_date'])
        stored_tiers = []
        if pricing_model == PricingModel.TIERED:
            stored_tiers = [t.to_dict() for t in build_tiers(tiers, base_price, _max_tiers())]
        elif tiers:
            raise InvalidTierConfiguration(['Les paliers exigent le modèle tiered'])

        offer = Offer(
            name=name,
            base_price=base_price,
            deadline=deadline,
            pricing_model=pricing_model,
            pricing_tiers=stored_tiers,
            group_price=group_price,
            target_participants=target_participants or 0,
            status=listing.pop('status', OfferStatus.ACTIVE),
            current_participants=0,
            total_quantity=0,
            current_tier=0,
            current_price=base_price,
            total_revenue=0,
            tier_history=[],
            **listing,
        )
        if pricing_model == PricingModel.TIERED:
            offer.next_tier_quantity = resolve_tier(0, offer.tiers, base_price).next_tier_quantity

        db.session.add(offer)
        db.session.commit()
        current_app.logger.info('Offer %s created (%s)', offer.id, pricing_model.value)
        return offer

    @staticmethod
    def update_pricing(offer_id, tiers=None, base_price=None, pricing_model=None, session=None) -> Offer:
        """Replace an offer's pricing and re-resolve its tier on the current quantity.

        Counters and revenue are left alone; only tier, price and next
        threshold follow the new configuration.

        Raises:
            OfferNotFound: if the offer does not exist
            InvalidTierConfiguration: if the new tiers break a rule or the
                offer stays fixed while tiers are supplied
        """
        def work(s):
            offer = load_offer_for_update(s, offer_id)
            if base_price is not None:
                offer.base_price = base_price
            if pricing_model is not None:
                offer.pricing_model = PricingModel(pricing_model)
            if tiers and offer.pricing_model == PricingModel.FIXED:
                raise InvalidTierConfiguration(['Les paliers exigent le modèle tiered'])

            if offer.pricing_model == PricingModel.TIERED:
                raw = tiers if tiers is not None else offer.pricing_tiers
                offer.pricing_tiers = [
                    t.to_dict() for t in build_tiers(raw, offer.base_price, _max_tiers())
                ]
                resolution = resolve_tier(offer.total_quantity or 0, offer.tiers, offer.base_price)
                apply_resolution(offer, resolution, offer.current_participants or 0)
            else:
                offer.pricing_tiers = []
                offer.current_tier = 0
                offer.current_price = offer.base_price
                offer.next_tier_quantity = None

            offer.updated_at = _utcnow()
            return offer

        offer = run_in_transaction(work, session=session, label=offer_id)
        current_app.logger.info('Offer %s pricing updated', offer_id)
        return offer

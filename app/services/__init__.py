"""
Services package for the Achatons group-buying service.
Contains business logic separated from routes.
"""

from app.services.participation_service import ParticipationService, OfferClosed
from app.services.offer_updates import (
    OfferUpdateResult, apply_participation, recompute_offer_from_ledger,
)
from app.services.pricing import resolve_tier, validate_tiers, build_tiers

__all__ = [
    'ParticipationService',
    'OfferClosed',
    'OfferUpdateResult',
    'apply_participation',
    'recompute_offer_from_ledger',
    'resolve_tier',
    'validate_tiers',
    'build_tiers',
]

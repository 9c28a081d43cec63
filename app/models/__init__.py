"""
SQLAlchemy models for the Achatons group-buying service.
All models are imported here for easy access.
"""
from app.models.pricing import (
    PricingModel, PricingTier, TierMilestone,
    discount_percentage, default_tier_label,
)
from app.models.offer import Offer, OfferStatus
from app.models.participation import (
    Participation, ParticipationStatus, PARTICIPATION_STATUS_TRANSITIONS,
)
from app.models.notification import Notification, NotificationType, NotificationCategory

__all__ = [
    # Pricing values
    'PricingModel',
    'PricingTier',
    'TierMilestone',
    'discount_percentage',
    'default_tier_label',
    # Offers
    'Offer',
    'OfferStatus',
    # Participations
    'Participation',
    'ParticipationStatus',
    'PARTICIPATION_STATUS_TRANSITIONS',
    # Notifications
    'Notification',
    'NotificationType',
    'NotificationCategory',
]

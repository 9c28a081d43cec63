"""
Value types for tiered group pricing.

Tiers and milestones live as ordered JSON lists on the Offer row; these
immutable records are what the pricing engine works with.
"""
import enum
from dataclasses import dataclass
from typing import Optional


class PricingModel(str, enum.Enum):
    """How an offer is priced."""
    FIXED = 'fixed'
    TIERED = 'tiered'


def discount_percentage(price, base_price):
    """Discount of ``price`` relative to ``base_price``, in percent (0 if no base)."""
    if not base_price or base_price <= 0:
        return 0
    return (base_price - price) / base_price * 100


def default_tier_label(tier_number):
    return f'Palier {tier_number}'


@dataclass(frozen=True)
class PricingTier:
    """One price break: unit price once ``min_participants`` units are ordered.

    ``min_participants`` counts cumulative ordered units, not people.
    """
    tier_number: int
    min_participants: int
    price: float
    label: Optional[str] = None
    discount_percentage: float = 0

    @property
    def display_label(self):
        return self.label or default_tier_label(self.tier_number)

    @classmethod
    def from_dict(cls, data):
        tier_number = int(data['tier_number'])
        return cls(
            tier_number=tier_number,
            min_participants=int(data['min_participants']),
            price=float(data['price']),
            label=data.get('label') or default_tier_label(tier_number),
            discount_percentage=float(data.get('discount_percentage') or 0),
        )

    def to_dict(self):
        return {
            'tier_number': self.tier_number,
            'min_participants': self.min_participants,
            'price': self.price,
            'label': self.display_label,
            'discount_percentage': self.discount_percentage,
        }


@dataclass(frozen=True)
class TierMilestone:
    """Append-only record of the moment a tier was first unlocked."""
    tier_number: int
    reached_at: str  # ISO-8601, UTC
    participants_count: int
    price_at_unlock: float

    @classmethod
    def from_dict(cls, data):
        return cls(
            tier_number=int(data['tier_number']),
            reached_at=data['reached_at'],
            participants_count=int(data['participants_count']),
            price_at_unlock=float(data['price_at_unlock']),
        )

    def to_dict(self):
        return {
            'tier_number': self.tier_number,
            'reached_at': self.reached_at,
            'participants_count': self.participants_count,
            'price_at_unlock': self.price_at_unlock,
        }

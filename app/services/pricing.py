"""
Tier resolution and tier authoring rules for group pricing.

Both the incremental update path and the ledger recompute path resolve
tiers through resolve_tier(), so they can never disagree on tier math for
the same total quantity.
"""
import re
from dataclasses import dataclass
from typing import List, Optional

from app.models.pricing import PricingTier, default_tier_label, discount_percentage
from app.services.exceptions import InvalidTierConfiguration

MAX_TIERS = 5

TIER_LABELS = ['Bronze', 'Silver', 'Gold', 'Platinum', 'Diamond']

DEFAULT_LABEL_RE = re.compile(r'Palier \d+')


@dataclass(frozen=True)
class TierResolution:
    """Active tier and price for a given cumulative quantity."""
    current_tier: int
    current_price: float
    next_tier: Optional[PricingTier]
    quantity_to_next_tier: Optional[int]

    @property
    def next_tier_quantity(self):
        return self.next_tier.min_participants if self.next_tier else None


@dataclass(frozen=True)
class PriceSummary:
    """Tier resolution plus the savings figures shown next to the price."""
    resolution: TierResolution
    savings_from_base: float
    max_possible_savings: float
    discount_percentage: float


def _as_tiers(tiers):
    return [t if isinstance(t, PricingTier) else PricingTier.from_dict(t) for t in (tiers or [])]


def resolve_tier(total_quantity, tiers, base_price) -> TierResolution:
    """
    Resolve the active tier for a cumulative ordered quantity.

    Thresholds are inclusive. When several reached tiers share a threshold the
    highest tier number wins. Never raises for a non-negative quantity.

    Args:
        total_quantity: Cumulative units ordered on the offer
        tiers: PricingTier objects or their stored dict form
        base_price: Price paid while no tier is reached

    Returns:
        TierResolution
    """
    tiers = _as_tiers(tiers)
    if not tiers:
        return TierResolution(0, base_price, None, None)

    reached = [t.tier_number for t in tiers if total_quantity >= t.min_participants]
    current_tier = max(reached) if reached else 0

    current_price = base_price
    if current_tier > 0:
        tier = next((t for t in tiers if t.tier_number == current_tier), None)
        if tier is not None:
            current_price = tier.price

    next_tier = next((t for t in tiers if t.tier_number == current_tier + 1), None)
    quantity_to_next = (
        max(0, next_tier.min_participants - total_quantity) if next_tier else None
    )
    return TierResolution(current_tier, current_price, next_tier, quantity_to_next)


def price_summary(total_quantity, tiers, base_price) -> PriceSummary:
    """Resolution plus savings against the base price."""
    tiers = _as_tiers(tiers)
    resolution = resolve_tier(total_quantity, tiers, base_price)
    savings = base_price - resolution.current_price
    max_savings = base_price - tiers[-1].price if tiers else 0
    percent = (savings / base_price) * 100 if savings and base_price else 0
    return PriceSummary(resolution, savings, max_savings, percent)


def validate_tiers(tiers, base_price, max_tiers=MAX_TIERS) -> List[str]:
    """
    Check tier authoring rules.

    Args:
        tiers: Tiers in the order the seller entered them
        base_price: Retail price of the offer
        max_tiers: Editor ceiling on the number of tiers

    Returns:
        List of error messages (empty when valid)
    """
    tiers = _as_tiers(tiers)
    errors = []

    if not tiers:
        errors.append('Ajoutez au moins un palier')
        return errors

    if len(tiers) > max_tiers:
        errors.append(f'Maximum {max_tiers} paliers')

    for index, tier in enumerate(tiers):
        position = index + 1
        if tier.min_participants <= 0:
            errors.append(
                f'Palier {position}: Le nombre minimum de participants doit être supérieur à 0'
            )

        if tier.price <= 0:
            errors.append(f'Palier {position}: Le prix doit être supérieur à 0')
        elif tier.price >= base_price:
            errors.append(f'Palier {position}: Le prix doit être inférieur au prix de base')

        if index > 0:
            previous = tiers[index - 1]
            if tier.min_participants <= previous.min_participants:
                errors.append(
                    f'Palier {position}: Le nombre de participants doit être supérieur au palier précédent'
                )
            if tier.price >= previous.price:
                errors.append(f'Palier {position}: Le prix doit être inférieur au palier précédent')

    return errors


def build_tiers(raw_tiers, base_price, max_tiers=MAX_TIERS) -> List[PricingTier]:
    """
    Normalize seller input into persisted tiers.

    Tiers are renumbered 1..N in input order, default labels follow the
    renumbering, and discounts are re-derived from ``base_price``.

    Raises:
        InvalidTierConfiguration: if any authoring rule is broken
    """
    tiers = []
    for position, raw in enumerate(raw_tiers or [], start=1):
        label = raw.get('label')
        if not label or DEFAULT_LABEL_RE.fullmatch(label):
            label = default_tier_label(position)
        tiers.append(PricingTier(
            tier_number=position,
            min_participants=int(raw.get('min_participants') or 0),
            price=float(raw.get('price') or 0),
            label=label,
            discount_percentage=discount_percentage(float(raw.get('price') or 0), base_price),
        ))

    errors = validate_tiers(tiers, base_price, max_tiers=max_tiers)
    if errors:
        raise InvalidTierConfiguration(errors)
    return tiers


def suggest_next_tier(tiers, base_price) -> PricingTier:
    """Starting values the tier editor proposes when a seller adds a tier."""
    tiers = _as_tiers(tiers)
    tier_number = len(tiers) + 1
    if tiers:
        last = tiers[-1]
        min_participants = last.min_participants + 10
        price = max(last.price - 100, base_price * 0.7)
    else:
        min_participants = 10
        price = base_price * 0.9
    return PricingTier(
        tier_number=tier_number,
        min_participants=min_participants,
        price=price,
        label=default_tier_label(tier_number),
        discount_percentage=discount_percentage(price, base_price),
    )

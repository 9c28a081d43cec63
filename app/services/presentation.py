"""
Display values derived from an offer's pricing state: formatted prices,
tier progress bar segments and the "nudge" message under the price.

Pure functions; nothing here reads or writes the database.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from app.models.pricing import PricingTier

# fr-FR digit grouping uses a narrow no-break space
_GROUP_SEPARATOR = '\u202f'


def format_fcfa(amount) -> str:
    """Format an amount in FCFA, e.g. 10000 -> '10 000 FCFA'."""
    amount = float(amount or 0)
    whole = f'{abs(amount):,.2f}'.rstrip('0').rstrip('.')
    whole = whole.replace(',', _GROUP_SEPARATOR).replace('.', ',')
    sign = '-' if amount < 0 else ''
    return f'{sign}{whole} FCFA'


def days_left(deadline, now=None) -> int:
    """Whole days until the deadline, rounded up; never negative."""
    if deadline is None:
        return 0
    now = now or datetime.now(timezone.utc)
    if deadline.tzinfo is None:
        deadline = deadline.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    seconds = (deadline - now).total_seconds()
    return max(0, math.ceil(seconds / 86400))


# ── Progress bar ────────────────────────────────────────────

@dataclass(frozen=True)
class TierSegment:
    """One tier's slice of the progress bar, in percent of the final threshold."""
    tier_number: int
    label: str
    min_participants: int
    price: float
    status: str  # completed | in-progress | locked
    start: float
    width: float
    fill: float


@dataclass(frozen=True)
class TierProgress:
    segments: List[TierSegment]
    target_quantity: int
    cursor: Optional[float]  # None when empty or already at/after the final threshold


def _tier_status(tier, current_quantity, current_tier):
    if current_quantity >= tier.min_participants:
        return 'completed'
    if tier.tier_number == current_tier + 1:
        return 'in-progress'
    return 'locked'


def tier_progress(tiers, current_quantity, current_tier) -> Optional[TierProgress]:
    """
    Split [0, final threshold] into one segment per tier and fill them.

    Returns None when the offer has no tiers.
    """
    tiers = sorted(
        (t if isinstance(t, PricingTier) else PricingTier.from_dict(t) for t in (tiers or [])),
        key=lambda t: t.tier_number,
    )
    if not tiers:
        return None

    max_quantity = tiers[-1].min_participants
    segments = []
    for index, tier in enumerate(tiers):
        status = _tier_status(tier, current_quantity, current_tier)
        previous = 0 if index == 0 else tiers[index - 1].min_participants
        size = tier.min_participants - previous

        if status == 'completed':
            fill = 100.0
        elif status == 'in-progress' and size > 0:
            fill = max(0.0, (current_quantity - previous) / size * 100)
        else:
            fill = 0.0

        segments.append(TierSegment(
            tier_number=tier.tier_number,
            label=tier.display_label,
            min_participants=tier.min_participants,
            price=tier.price,
            status=status,
            start=previous / max_quantity * 100,
            width=size / max_quantity * 100,
            fill=fill,
        ))

    cursor = None
    if 0 < current_quantity < max_quantity:
        cursor = current_quantity / max_quantity * 100

    return TierProgress(segments=segments, target_quantity=max_quantity, cursor=cursor)


# ── Nudge message ───────────────────────────────────────────

class NudgeKind:
    """Message classes, each with its own colour and icon in the storefront."""
    SUCCESS = 'success'          # final tier reached
    URGENT = 'urgent'            # deadline in two days or less
    CELEBRATION = 'celebration'  # one unit to go
    MOTIVATING = 'motivating'


@dataclass(frozen=True)
class Nudge:
    kind: str
    message: str


def nudge_message(current_quantity, current_tier, next_tier, current_price,
                  deadline, now=None) -> Nudge:
    """Pick the encouragement shown under an offer's price."""
    if next_tier is None:
        return Nudge(
            NudgeKind.SUCCESS,
            f'Objectif final atteint ! Prix final : {format_fcfa(current_price)}',
        )

    remaining = next_tier.min_participants - current_quantity
    remaining_days = days_left(deadline, now=now)

    if remaining_days <= 2:
        if remaining_days == 0:
            message = (
                f'Dernier jour ! Encore {remaining} unités pour débloquer '
                f'{format_fcfa(next_tier.price)}'
            )
        else:
            plural = 's' if remaining_days > 1 else ''
            message = (
                f'Plus que {remaining_days} jour{plural} ! '
                f'Commandez plus pour payer moins cher'
            )
        return Nudge(NudgeKind.URGENT, message)

    if remaining == 1:
        return Nudge(
            NudgeKind.CELEBRATION,
            f"Plus qu'1 unité pour débloquer {format_fcfa(next_tier.price)} !",
        )

    if remaining <= 5:
        savings = current_price - next_tier.price
        return Nudge(
            NudgeKind.MOTIVATING,
            f'Encore {remaining} unités et tout le monde économise {format_fcfa(savings)} !',
        )

    return Nudge(
        NudgeKind.MOTIVATING,
        f'Plus que {remaining} unités pour débloquer {format_fcfa(next_tier.price)} !',
    )

"""
Offer model: a group-buy listing with fixed or tiered pricing.

The aggregate columns (current_participants, total_quantity, current_tier,
current_price, next_tier_quantity, total_revenue, tier_history) are owned by
app.services.offer_updates and are never edited directly.
"""
from datetime import datetime, timezone
import enum

from app.extensions import db
from app.models.pricing import PricingModel, PricingTier, TierMilestone


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class OfferStatus(str, enum.Enum):
    """Offer visibility on the storefront."""
    ACTIVE = 'active'
    INACTIVE = 'inactive'


class Offer(db.Model):
    """A sellable group-buy listing."""

    __tablename__ = 'offers'

    id = db.Column(db.Integer, primary_key=True)

    # Listing
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    image_url = db.Column(db.String(500))
    supplier = db.Column(db.String(200))
    category_id = db.Column(db.String(64), index=True)
    seller_id = db.Column(db.String(64), index=True)
    unit_of_measure = db.Column(db.String(50), default='pièces')
    status = db.Column(
        db.Enum(OfferStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=OfferStatus.ACTIVE,
        index=True,
    )
    start_date = db.Column(db.DateTime)
    deadline = db.Column(db.DateTime, nullable=False)

    # Seller-set pricing (amounts in FCFA)
    pricing_model = db.Column(
        db.Enum(PricingModel, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=PricingModel.FIXED,
    )
    base_price = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False)
    group_price = db.Column(db.Numeric(12, 2, asdecimal=False))  # fixed pricing only
    target_participants = db.Column(db.Integer, default=0)  # display goal, fixed pricing
    pricing_tiers = db.Column(db.JSON, nullable=False, default=list)

    # Aggregates owned by the pricing engine
    current_participants = db.Column(db.Integer, nullable=False, default=0)
    total_quantity = db.Column(db.Integer, nullable=True)  # NULL = pre-quantity legacy row
    current_tier = db.Column(db.Integer, nullable=False, default=0)
    current_price = db.Column(db.Numeric(12, 2, asdecimal=False))
    next_tier_quantity = db.Column(db.Integer, nullable=True)
    total_revenue = db.Column(db.Numeric(14, 2, asdecimal=False), nullable=False, default=0)
    tier_history = db.Column(db.JSON, nullable=False, default=list)

    # Timestamps
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, onupdate=_utcnow, nullable=True)

    # Relationships
    participations = db.relationship(
        'Participation',
        back_populates='offer',
        lazy='dynamic',
        cascade='all, delete-orphan',
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if 'total_quantity' not in kwargs:
            self.total_quantity = 0
        # Fresh offers start at tier 0, priced at base
        if self.current_price is None and self.base_price is not None:
            self.current_price = self.base_price

    def __repr__(self):
        return f'<Offer {self.id} {self.name!r} ({self.pricing_model.value if self.pricing_model else "?"})>'

    @property
    def tiers(self):
        """Pricing tiers as value objects, ordered by tier number."""
        return sorted(
            (PricingTier.from_dict(t) for t in (self.pricing_tiers or [])),
            key=lambda t: t.tier_number,
        )

    @property
    def milestones(self):
        return [TierMilestone.from_dict(m) for m in (self.tier_history or [])]

    @property
    def has_tiered_pricing(self):
        """True when the offer is tiered and actually has tiers configured."""
        return self.pricing_model == PricingModel.TIERED and bool(self.pricing_tiers)

    @property
    def final_tier(self):
        tiers = self.tiers
        return tiers[-1] if tiers else None

    @property
    def is_open(self):
        """Still accepting participations."""
        if self.status != OfferStatus.ACTIVE:
            return False
        return self.deadline is None or self.deadline > _utcnow()

"""
Participation model: one customer's order against an Offer.
"""
from datetime import datetime, timezone
import enum

from app.extensions import db


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ParticipationStatus(str, enum.Enum):
    """Participation review status."""
    PENDING = 'pending'
    VALIDATED = 'validated'
    CANCELLED = 'cancelled'


# Valid status transitions (admin review workflow)
PARTICIPATION_STATUS_TRANSITIONS = {
    ParticipationStatus.PENDING: [ParticipationStatus.VALIDATED, ParticipationStatus.CANCELLED],
    ParticipationStatus.VALIDATED: [ParticipationStatus.CANCELLED],
    ParticipationStatus.CANCELLED: [],  # Terminal
}


class Participation(db.Model):
    """A customer's order on a group-buy offer."""

    __tablename__ = 'participations'

    id = db.Column(db.Integer, primary_key=True)

    offer_id = db.Column(
        db.Integer,
        db.ForeignKey('offers.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )

    # Customer (user_id is set only for signed-in customers)
    user_id = db.Column(db.String(64), index=True)
    customer_name = db.Column(db.String(120), nullable=False)
    customer_phone = db.Column(db.String(30), nullable=False)
    customer_email = db.Column(db.String(120))
    customer_address = db.Column(db.String(255))

    quantity = db.Column(db.Integer, nullable=False, default=1)

    status = db.Column(
        db.Enum(ParticipationStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=ParticipationStatus.PENDING,
        index=True,
    )

    # Timestamps
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)
    validated_at = db.Column(db.DateTime)
    cancelled_at = db.Column(db.DateTime)

    # Relationships
    offer = db.relationship('Offer', back_populates='participations')

    def __repr__(self):
        return f'<Participation {self.id} offer={self.offer_id} x{self.quantity} {self.status.value}>'

    def can_transition_to(self, new_status):
        """Check the review state machine."""
        return new_status in PARTICIPATION_STATUS_TRANSITIONS.get(self.status, [])

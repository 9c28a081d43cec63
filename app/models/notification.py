"""
In-app notifications sent to customers about the offers they joined.
"""
from datetime import datetime, timezone

from app.extensions import db


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class NotificationType:
    """Niveau d'une notification (couleur de l'alerte côté client)."""
    INFO = 'info'
    SUCCESS = 'success'
    WARNING = 'warning'
    ERROR = 'error'


class NotificationCategory:
    """Sujet d'une notification."""
    OFFER = 'offer'
    TIER = 'tier'                    # nouveau palier débloqué
    PARTICIPATION = 'participation'  # commande validée ou annulée
    SYSTEM = 'system'


class Notification(db.Model):
    """
    Notification in-app d'un compte client.

    Seuls les clients connectés (user_id renseigné sur leur participation)
    en reçoivent; les commandes anonymes passent par WhatsApp.
    """
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    offer_id = db.Column(db.Integer, db.ForeignKey('offers.id', ondelete='CASCADE'), index=True)

    type = db.Column(db.String(20), default=NotificationType.INFO)
    category = db.Column(db.String(50), default=NotificationCategory.SYSTEM)

    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text)
    link = db.Column(db.String(500))  # storefront path, e.g. /offers/12

    is_read = db.Column(db.Boolean, default=False)

    created_at = db.Column(db.DateTime, default=_utcnow)
    read_at = db.Column(db.DateTime)

    offer = db.relationship('Offer')

    def __repr__(self):
        return f'<Notification {self.id} {self.category} -> {self.user_id}>'

    def mark_as_read(self):
        """Marquer comme lue (sans effet si déjà lue)."""
        if not self.is_read:
            self.is_read = True
            self.read_at = _utcnow()
            db.session.commit()

    @classmethod
    def for_user(cls, user_id, unread_only=False):
        """Notifications d'un compte, les plus récentes d'abord."""
        query = cls.query.filter_by(user_id=user_id)
        if unread_only:
            query = query.filter_by(is_read=False)
        return query.order_by(cls.created_at.desc(), cls.id.desc())

    @classmethod
    def get_unread_count(cls, user_id):
        return cls.query.filter_by(user_id=user_id, is_read=False).count()

"""
Notifications in-app déclenchées par le moteur de prix.

Ces fonctions ajoutent les notifications à la session de l'appelant sans
commit : elles font partie de la même transaction que la mise à jour de
l'offre, et disparaissent avec elle en cas de rollback.
"""
from app.extensions import db
from app.models.notification import Notification, NotificationType, NotificationCategory
from app.models.participation import Participation, ParticipationStatus
from app.services.presentation import format_fcfa


def _offer_link(offer_id):
    return f'/offers/{offer_id}'


def queue_notifications(user_ids, session=None, **fields):
    """
    Ajouter une notification identique pour chaque compte de ``user_ids``.

    Args:
        user_ids: Identifiants des comptes destinataires
        session: Session SQLAlchemy (db.session par défaut)
        **fields: Colonnes de la notification (title, message, type, ...)

    Returns:
        Liste des notifications ajoutées
    """
    session = session or db.session
    notifications = [Notification(user_id=user_id, **fields) for user_id in user_ids]
    session.add_all(notifications)
    return notifications


def notify_tier_unlocked(offer, tier_number, new_price, session=None):
    """
    Prévenir les participants inscrits qu'un nouveau palier est atteint.

    Les participations annulées et anonymes (sans user_id) sont ignorées;
    chaque compte n'est notifié qu'une fois.
    """
    session = session or db.session
    rows = session.query(Participation.user_id).filter(
        Participation.offer_id == offer.id,
        Participation.user_id.isnot(None),
        Participation.status != ParticipationStatus.CANCELLED,
    ).distinct().order_by(Participation.user_id).all()

    return queue_notifications(
        [user_id for (user_id,) in rows],
        session=session,
        offer_id=offer.id,
        title='🎉 Nouveau palier débloqué !',
        message=(
            f'Palier {tier_number} atteint sur « {offer.name} ». '
            f'Le prix vient de baisser à {format_fcfa(new_price)} pour tout le monde !'
        ),
        type=NotificationType.SUCCESS,
        category=NotificationCategory.TIER,
        link=_offer_link(offer.id),
    )


def notify_participation_status(participation, session=None):
    """Informer le client du résultat de la revue de sa commande."""
    if not participation.user_id:
        return None

    validated = participation.status == ParticipationStatus.VALIDATED
    verb = 'validée' if validated else 'annulée'
    notifications = queue_notifications(
        [participation.user_id],
        session=session,
        offer_id=participation.offer_id,
        title=f'Participation {verb}',
        message=f'Votre commande de {participation.quantity} unité(s) a été {verb}.',
        type=NotificationType.SUCCESS if validated else NotificationType.WARNING,
        category=NotificationCategory.PARTICIPATION,
        link=_offer_link(participation.offer_id),
    )
    return notifications[0]

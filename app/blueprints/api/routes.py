"""
API v1 Routes: offers, pricing, participations, notifications.
"""
from flask import current_app, request, jsonify
from sqlalchemy import desc

from app.blueprints.api import api_bp
from app.blueprints.api.helpers import (
    api_error, api_success, error_body, load_json, paginate_query,
)
from app.blueprints.api.schemas import (
    OfferSchema, OfferMinimalSchema, OfferCreateSchema, PricingUpdateSchema,
    ParticipationSchema, ParticipationCreateSchema, OfferUpdateResultSchema,
    NotificationSchema, PARTICIPATION_STATUSES,
)
from app.extensions import db, limiter, cache
from app.models.offer import Offer, OfferStatus
from app.models.participation import Participation, ParticipationStatus
from app.models.pricing import PricingModel
from app.models.notification import Notification
from app.services.offer_service import OfferService
from app.services.offer_updates import recompute_offer_from_ledger
from app.services.participation_service import ParticipationService
from app.services.pricing import TIER_LABELS, suggest_next_tier


def _offer_or_404(offer_id):
    offer = db.session.get(Offer, offer_id)
    if offer is None:
        return None, api_error('not_found', 'Offer not found.', 404)
    return offer, None


def _result_payload(participation, result):
    return {
        'participation': ParticipationSchema().dump(participation),
        'offer_update': OfferUpdateResultSchema().dump(result),
    }


# ── Offers ──────────────────────────────────────────────────

def _invalid_filter(message):
    # Plain dict so the cached view stays picklable
    return error_body('invalid_filter', message), 422


@api_bp.route('/offers', methods=['GET'])
@cache.cached(query_string=True)
def api_list_offers():
    """List offers, most urgent deadline first.

    Query params:
        status (str): active (default) | inactive | all
        pricing_model (str): fixed | tiered
        category_id (str): Filter by category
        page, per_page: Pagination
    """
    query = Offer.query

    status = request.args.get('status', OfferStatus.ACTIVE.value)
    if status != 'all':
        try:
            query = query.filter(Offer.status == OfferStatus(status))
        except ValueError:
            return _invalid_filter(f'Invalid status: {status}')

    pricing_model = request.args.get('pricing_model')
    if pricing_model:
        try:
            query = query.filter(Offer.pricing_model == PricingModel(pricing_model))
        except ValueError:
            return _invalid_filter(f'Invalid pricing_model: {pricing_model}')

    category_id = request.args.get('category_id')
    if category_id:
        query = query.filter(Offer.category_id == category_id)

    query = query.order_by(Offer.deadline, Offer.id)

    return paginate_query(query, OfferMinimalSchema()), 200


@api_bp.route('/offers', methods=['POST'])
def api_create_offer():
    """Create an offer (tiers are validated before anything is stored)."""
    data, error = load_json(OfferCreateSchema())
    if error:
        return error

    # Omitted and null fields keep the model defaults
    data = {key: value for key, value in data.items() if value is not None}
    offer = OfferService.create_offer(**data)
    cache.clear()
    return api_success(OfferSchema().dump(offer), 201)


@api_bp.route('/offers/<int:offer_id>', methods=['GET'])
def api_get_offer(offer_id):
    """Get a single offer with its pricing state, progress bar and nudge."""
    offer, error = _offer_or_404(offer_id)
    if error:
        return error
    return api_success(OfferSchema().dump(offer))


@api_bp.route('/offers/<int:offer_id>/stats', methods=['GET'])
def api_offer_stats(offer_id):
    """Analytics card figures for an offer."""
    return api_success(ParticipationService.get_offer_stats(offer_id))


@api_bp.route('/offers/<int:offer_id>/pricing', methods=['PUT'])
def api_update_pricing(offer_id):
    """Replace an offer's base price, pricing model and/or tiers."""
    data, error = load_json(PricingUpdateSchema())
    if error:
        return error

    offer = OfferService.update_pricing(
        offer_id,
        tiers=data.get('tiers'),
        base_price=data.get('base_price'),
        pricing_model=data.get('pricing_model'),
    )
    cache.clear()
    return api_success(OfferSchema().dump(offer))


@api_bp.route('/offers/<int:offer_id>/pricing/suggestion', methods=['GET'])
def api_pricing_suggestion(offer_id):
    """Starting values for the tier the seller is about to add."""
    offer, error = _offer_or_404(offer_id)
    if error:
        return error

    max_tiers = current_app.config.get('MAX_PRICING_TIERS', 5)
    if len(offer.tiers) >= max_tiers:
        return api_error('invalid_tiers', f'Maximum {max_tiers} paliers', 422)

    tier = suggest_next_tier(offer.tiers, offer.base_price)
    return api_success({
        'tier': tier.to_dict(),
        'label_suggestions': TIER_LABELS[:max_tiers],
    })


@api_bp.route('/offers/<int:offer_id>/recompute', methods=['POST'])
def api_recompute_offer(offer_id):
    """Rebuild an offer's aggregates from its validated participations."""
    result = recompute_offer_from_ledger(offer_id)
    cache.clear()
    return api_success({
        'offer': OfferSchema().dump(db.session.get(Offer, offer_id)),
        'offer_update': OfferUpdateResultSchema().dump(result),
    })


# ── Participations ──────────────────────────────────────────

@api_bp.route('/offers/<int:offer_id>/participations', methods=['GET'])
def api_list_participations(offer_id):
    """List participations on an offer (back-office).

    Query params:
        status (str): pending | validated | cancelled
        page, per_page: Pagination
    """
    offer, error = _offer_or_404(offer_id)
    if error:
        return error

    query = Participation.query.filter(Participation.offer_id == offer.id)

    status = request.args.get('status')
    if status:
        if status not in PARTICIPATION_STATUSES:
            return api_error('invalid_filter', f'Invalid status: {status}', 422)
        query = query.filter(Participation.status == ParticipationStatus(status))

    query = query.order_by(desc(Participation.created_at), desc(Participation.id))
    return jsonify(paginate_query(query, ParticipationSchema())), 200


@api_bp.route('/offers/<int:offer_id>/participations', methods=['POST'])
@limiter.limit('10 per minute')
def api_submit_participation(offer_id):
    """Join a collective purchase."""
    data, error = load_json(ParticipationCreateSchema())
    if error:
        return error

    participation, result = ParticipationService.submit_participation(
        offer_id,
        customer_name=data['name'],
        customer_phone=data['phone'],
        quantity=data['quantity'],
        customer_email=data.get('email'),
        customer_address=data.get('address'),
        user_id=data.get('user_id'),
    )
    cache.clear()
    return api_success(_result_payload(participation, result), 201)


@api_bp.route('/participations/<int:participation_id>/validate', methods=['POST'])
def api_validate_participation(participation_id):
    """Validate a participation (admin review)."""
    participation, result = ParticipationService.validate_participation(participation_id)
    cache.clear()
    return api_success(_result_payload(participation, result))


@api_bp.route('/participations/<int:participation_id>/cancel', methods=['POST'])
def api_cancel_participation(participation_id):
    """Cancel a participation (admin review)."""
    participation, result = ParticipationService.cancel_participation(participation_id)
    cache.clear()
    return api_success(_result_payload(participation, result))


# ── Notifications ───────────────────────────────────────────

@api_bp.route('/notifications', methods=['GET'])
def api_list_notifications():
    """List notifications for a customer account.

    Query params:
        user_id (str): Account id (required)
        unread (bool): Only unread notifications
    """
    user_id = request.args.get('user_id')
    if not user_id:
        return api_error('missing_parameter', 'user_id is required.', 422)

    unread_only = request.args.get('unread', '').lower() in ('1', 'true')
    query = Notification.for_user(user_id, unread_only=unread_only)

    payload = paginate_query(query, NotificationSchema())
    payload['meta']['unread_count'] = Notification.get_unread_count(user_id)
    return jsonify(payload), 200


@api_bp.route('/notifications/<int:notif_id>/read', methods=['POST'])
def api_mark_notification_read(notif_id):
    """Mark a single notification as read."""
    notification = db.session.get(Notification, notif_id)
    if notification is None:
        return api_error('not_found', 'Notification not found.', 404)
    notification.mark_as_read()
    current_app.logger.debug('Notification %s marked as read', notif_id)
    return api_success(NotificationSchema().dump(notification))

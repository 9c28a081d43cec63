"""
Achatons application factory.

Builds the Flask app for the group-buying API: extensions, the /api/v1
blueprint, JSON error responses, CLI maintenance commands and logging.
"""
import os
import json
import logging
import time
import uuid
from datetime import datetime, timedelta, timezone

import click
from flask import Flask, jsonify, request, g

from app.config import config
from app.extensions import init_extensions, db


def _init_sentry(app):
    """Send unhandled errors to Sentry when SENTRY_DSN is configured."""
    dsn = app.config.get('SENTRY_DSN')
    if not dsn:
        return

    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
    except ImportError:
        app.logger.warning('SENTRY_DSN set but sentry-sdk is not installed (pip install achatons[sentry]).')
        return

    sentry_sdk.init(
        dsn=dsn,
        integrations=[FlaskIntegration(), SqlalchemyIntegration()],
        traces_sample_rate=float(os.environ.get('SENTRY_TRACES_RATE', '0.1')),
        environment=os.environ.get('FLASK_ENV', 'production'),
        # Participations carry customer names and phone numbers
        send_default_pii=False,
    )
    app.logger.info('Sentry enabled.')


def create_app(config_name=None):
    """
    Build a configured Achatons application.

    Args:
        config_name: Key of app.config.config (development, testing, production);
            defaults to FLASK_ENV

    Returns:
        Flask application
    """
    config_name = config_name or os.environ.get('FLASK_ENV', 'development')
    config_class = config[config_name]

    app = Flask(__name__)
    app.config.from_object(config_class)

    # Production refuses to start without its secrets
    if hasattr(config_class, 'init_app'):
        config_class.init_app(app)
    if config_name == 'production':
        _init_sentry(app)

    init_extensions(app)

    # Models must be imported before create_all() and Alembic autogenerate
    from app import models  # noqa: F401

    register_blueprints(app)
    register_error_handlers(app)
    register_cli_commands(app)
    configure_logging(app)
    register_security_headers(app)

    if config_name == 'development':
        with app.app_context():
            db.create_all()

    return app


def register_blueprints(app):
    from app.blueprints.api import api_bp

    app.register_blueprint(api_bp, url_prefix='/api/v1')


def register_error_handlers(app):
    """Map pricing errors and HTTP errors to the API's JSON error envelope."""
    from app.services.exceptions import (
        OfferNotFound, ParticipationNotFound, InvalidTierConfiguration,
        InvalidStatusTransition, TransientConflict,
    )
    from app.services.participation_service import OfferClosed
    from app.blueprints.api.helpers import api_error, error_body

    @app.errorhandler(OfferNotFound)
    def offer_not_found(error):
        return api_error('not_found', str(error), 404)

    @app.errorhandler(ParticipationNotFound)
    def participation_not_found(error):
        return api_error('not_found', str(error), 404)

    @app.errorhandler(OfferClosed)
    def offer_closed(error):
        return api_error('offer_closed', str(error), 409)

    @app.errorhandler(InvalidStatusTransition)
    def invalid_transition(error):
        return api_error('invalid_transition', str(error), 409)

    @app.errorhandler(InvalidTierConfiguration)
    def invalid_tiers(error):
        return api_error('invalid_tiers', 'Configuration des paliers invalide.', 422, error.errors)

    @app.errorhandler(TransientConflict)
    def transient_conflict(error):
        app.logger.warning('Transient conflict surfaced to client: %s', error)
        return api_error('conflict', 'Offre très sollicitée, veuillez réessayer.', 503)

    @app.errorhandler(404)
    def not_found(error):
        return api_error('not_found', 'Resource not found.', 404)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return api_error('method_not_allowed', 'Method not allowed.', 405)

    @app.errorhandler(429)
    def ratelimit_error(error):
        return api_error('rate_limit_exceeded', 'Trop de requêtes, réessayez dans une minute.', 429)

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        request_id = g.get('request_id', '-')
        app.logger.error('Unhandled %s (request_id=%s)', type(error).__name__, request_id, exc_info=True)
        body = error_body('internal_error', 'Internal server error.')
        body['error']['request_id'] = request_id
        return jsonify(body), 500


def _migrate_legacy_offer(offer):
    """Split the legacy counter into participants and quantity.

    Before quantities were tracked, tiered offers stored ordered units in
    current_participants. Values above 10 are taken as the quantity of a
    single participant; smaller ones as N participants of 1 unit each.

    Returns:
        Tuple of (participants, quantity, ambiguous)
    """
    from app.models.pricing import PricingModel

    old_value = offer.current_participants or 0
    if offer.pricing_model == PricingModel.TIERED:
        if old_value > 10:
            return 1, old_value, False
        return old_value, old_value, True
    return old_value, old_value, False


def register_cli_commands(app):
    """Register custom CLI commands."""

    @app.cli.command('recompute-offers')
    @click.option('--offer-id', type=int, default=None, help='Only recompute this offer')
    def recompute_offers(offer_id):
        """Rebuild offer aggregates from validated participations."""
        from app.models.offer import Offer
        from app.services.offer_updates import recompute_offer_from_ledger

        if offer_id is not None:
            offer_ids = [offer_id]
        else:
            offer_ids = [row[0] for row in db.session.query(Offer.id).order_by(Offer.id).all()]

        if not offer_ids:
            print("Aucune offre à recalculer.")
            return

        stats = {'recomputed': 0, 'unlocked': 0, 'errors': 0}
        for oid in offer_ids:
            try:
                result = recompute_offer_from_ledger(oid)
            except Exception as e:
                stats['errors'] += 1
                print(f"  [ERROR] Offre {oid}: {e}")
                continue
            stats['recomputed'] += 1
            if result.tier_unlocked:
                stats['unlocked'] += 1
            print(f"  [OK] Offre {oid}: palier {result.new_tier_number}, prix {result.new_price}")

        print(f"Terminé: {stats['recomputed']} recalculée(s), "
              f"{stats['unlocked']} palier(s) débloqué(s), {stats['errors']} erreur(s)")

    @app.cli.command('migrate-legacy-offers')
    @click.option('--dry-run', is_flag=True, help='Preview without writing')
    def migrate_legacy_offers(dry_run):
        """Backfill total_quantity on offers created before quantities were tracked."""
        from app.models.offer import Offer

        if dry_run:
            print("[DRY RUN] Aucune modification ne sera enregistrée")

        migrated = 0
        skipped = 0
        for offer in Offer.query.order_by(Offer.id).all():
            if offer.total_quantity is not None:
                print(f"  [SKIP] Offre {offer.id} déjà migrée")
                skipped += 1
                continue

            participants, quantity, ambiguous = _migrate_legacy_offer(offer)
            if ambiguous:
                print(f"  [WARN] Offre {offer.id}: valeur ambiguë ({quantity}), "
                      f"supposant {participants} participants avec 1 unité chacun")
            else:
                print(f"  [OK] Offre {offer.id}: {participants} participant(s), {quantity} unité(s)")

            if not dry_run:
                offer.current_participants = participants
                offer.total_quantity = quantity
                offer.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
            migrated += 1

        if not dry_run:
            db.session.commit()

        print(f"Migration terminée: {migrated} offre(s) migrée(s), {skipped} déjà à jour")

    @app.cli.command('seed-demo')
    def seed_demo():
        """Create one fixed and one tiered demo offer."""
        from app.models.pricing import PricingModel
        from app.services.offer_service import OfferService

        deadline = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(days=14)
        fixed = OfferService.create_offer(
            name='Sac de riz parfumé 25 kg',
            base_price=18000,
            group_price=15500,
            target_participants=20,
            deadline=deadline,
            supplier='Coopérative de la Vallée',
            unit_of_measure='sacs',
        )
        tiered = OfferService.create_offer(
            name="Bidon d'huile 20 L",
            base_price=10000,
            deadline=deadline,
            pricing_model=PricingModel.TIERED,
            tiers=[
                {'min_participants': 10, 'price': 9000, 'label': 'Bronze'},
                {'min_participants': 20, 'price': 8000, 'label': 'Silver'},
                {'min_participants': 50, 'price': 7000, 'label': 'Gold'},
            ],
            supplier='Huilerie de Thiès',
            unit_of_measure='bidons',
        )
        print(f"Offres créées: {fixed.id} (prix fixe), {tiered.id} (paliers)")


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for the log aggregator in production."""

    # Passed through from ``extra=`` when present on the record
    EXTRA_FIELDS = ('offer_id', 'participation_id', 'duration_ms')

    def format(self, record):
        entry = {
            'ts': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'msg': record.getMessage(),
            'where': f'{record.module}:{record.lineno}',
        }
        try:
            entry['request_id'] = g.get('request_id', '-')
        except RuntimeError:
            pass  # no app context (CLI, startup)
        for field in self.EXTRA_FIELDS:
            if hasattr(record, field):
                entry[field] = getattr(record, field)
        if record.exc_info and record.exc_info[0]:
            entry['exc'] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def configure_logging(app):
    """Request ids and access lines on every request; JSON output outside debug."""
    if app.testing:
        return

    @app.before_request
    def start_request():
        g.request_id = request.headers.get('X-Request-ID') or uuid.uuid4().hex[:8]
        g.request_started = time.perf_counter()

    @app.after_request
    def log_request(response):
        duration_ms = round((time.perf_counter() - g.get('request_started', time.perf_counter())) * 1000, 1)
        response.headers['X-Request-ID'] = g.get('request_id', '-')
        app.logger.info(
            '%s %s -> %s', request.method, request.path, response.status_code,
            extra={'duration_ms': duration_ms},
        )
        return response

    if app.debug:
        app.logger.setLevel(logging.DEBUG)
        app.logger.info('Achatons API started (debug)')
        return

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    handler.setLevel(logging.INFO)
    # Replace Flask's default handler so lines are not emitted twice
    app.logger.handlers = [handler]
    app.logger.setLevel(logging.INFO)
    app.logger.info('Achatons API started')


SECURITY_HEADERS = {
    'X-Content-Type-Options': 'nosniff',
    'X-Frame-Options': 'DENY',
    'Referrer-Policy': 'strict-origin-when-cross-origin',
    # JSON only: nothing to load, nothing to frame
    'Content-Security-Policy': "default-src 'none'; frame-ancestors 'none'",
}


def register_security_headers(app):
    """Add security headers to every API response."""

    @app.after_request
    def add_security_headers(response):
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        if not app.debug:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

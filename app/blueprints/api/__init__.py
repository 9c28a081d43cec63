"""
API v1 Blueprint: JSON endpoints for the storefront and the back-office.
"""
from flask import Blueprint
from flask_cors import CORS

api_bp = Blueprint('api', __name__)


@api_bp.record_once
def _init_cors(state):
    """Open the API to the storefront origins listed in APP_CORS_ORIGINS."""
    origins = [
        origin.strip()
        for origin in state.app.config.get('APP_CORS_ORIGINS', '').split(',')
        if origin.strip()
    ]
    prefix = state.url_prefix or ''
    CORS(state.app, resources={rf'{prefix}/*': {
        'origins': origins,
        'methods': ['GET', 'POST', 'PUT', 'OPTIONS'],
        'allow_headers': ['Content-Type', 'X-Request-ID'],
        'expose_headers': ['X-RateLimit-Limit', 'X-RateLimit-Remaining', 'X-RateLimit-Reset'],
        'max_age': 600,
    }})


from app.blueprints.api import routes  # noqa: E402, F401

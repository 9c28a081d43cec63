"""
API helpers: request body loading, pagination envelope, response builders.
"""
from flask import current_app, jsonify, request
from marshmallow import ValidationError


def load_json(schema):
    """Validate the JSON body against ``schema``.

    Returns:
        Tuple of (data, error_response); exactly one of them is None.
    """
    try:
        return schema.load(request.get_json(silent=True) or {}), None
    except ValidationError as err:
        return None, api_error('validation_error', 'Invalid request body.', 422, err.messages)


def _page_link(page, per_page):
    return f'{request.base_url}?page={page}&per_page={per_page}'


def paginate_query(query, schema, max_per_page=100):
    """Paginate a SQLAlchemy query into a ``{data, meta, links}`` envelope.

    Query params:
        page (int): 1-indexed page number
        per_page (int): Page size, ITEMS_PER_PAGE by default, capped at max_per_page
    """
    default_per_page = current_app.config.get('ITEMS_PER_PAGE', 20)
    page = max(1, request.args.get('page', 1, type=int))
    per_page = min(max(1, request.args.get('per_page', default_per_page, type=int)), max_per_page)

    pagination = query.paginate(page=page, per_page=per_page, error_out=False)
    last_page = pagination.pages or 1

    links = {
        'self': _page_link(page, per_page),
        'first': _page_link(1, per_page),
        'last': _page_link(last_page, per_page),
    }
    if pagination.has_prev:
        links['prev'] = _page_link(page - 1, per_page)
    if pagination.has_next:
        links['next'] = _page_link(page + 1, per_page)

    return {
        'data': schema.dump(pagination.items, many=True),
        'meta': {
            'total': pagination.total,
            'page': page,
            'per_page': per_page,
            'total_pages': last_page,
        },
        'links': links,
    }


def error_body(code, message, details=None):
    body = {'error': {'code': code, 'message': message}}
    if details:
        body['error']['details'] = details
    return body


def api_error(code, message, status=400, details=None):
    """JSON error response in the API's error envelope."""
    return jsonify(error_body(code, message, details)), status


def api_success(data, status=200):
    """JSON success response wrapping ``data``."""
    return jsonify({'data': data}), status

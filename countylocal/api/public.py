# countylocal/api/public.py
# Public discovery routes and the health check. No authentication.

from flask import Blueprint, request, jsonify, g, abort, current_app
from sqlalchemy import text
from countylocal import db
from countylocal.county_scope import county_context_required
from countylocal.utils import _handle_service_result
from countylocal.services.counties import (
    list_active_counties, RESERVED_PATH_PREFIXES, is_valid_county_slug
)
from countylocal.services.deals import list_public_deals, get_public_deal
from countylocal.services.businesses import list_public_businesses, get_public_business

bp = Blueprint('public', __name__)

# Registered without a prefix: /<county_slug>/...
county_bp = Blueprint('county_pages', __name__)


@bp.route('/health', methods=['GET'])
def health_route():
    """Reports service status and database connectivity."""
    try:
        db.session.execute(text('SELECT 1'))
        database = 'connected'
        status_code = 200
    except Exception as e:
        current_app.logger.error(f"Health check database error: {str(e)}")
        database = 'disconnected'
        status_code = 503

    return jsonify({
        "status": "healthy" if status_code == 200 else "unhealthy",
        "database": database,
    }), status_code


@bp.route('/public/counties', methods=['GET'])
def public_counties_route():
    return _handle_service_result(list_active_counties())


@bp.route('/public/deals', methods=['GET'])
@county_context_required
def public_deals_route():
    """Active deals in the county named by the county_context cookie or X-County-* headers."""
    result = list_public_deals(g.county, category=request.args.get('category'))
    return _handle_service_result(result)


@bp.route('/public/deals/<deal_id>', methods=['GET'])
def public_deal_route(deal_id):
    return _handle_service_result(get_public_deal(deal_id))


# --- County-prefixed pages ---

@county_bp.before_request
def reject_reserved_prefixes():
    slug = (request.view_args or {}).get('county_slug', '')
    if slug in RESERVED_PATH_PREFIXES or not is_valid_county_slug(slug):
        abort(404)


@county_bp.route('/<county_slug>/deals', methods=['GET'])
@county_context_required
def county_deals_route(county_slug):
    result = list_public_deals(g.county, category=request.args.get('category'))
    return _handle_service_result(result)


@county_bp.route('/<county_slug>/businesses', methods=['GET'])
@county_context_required
def county_businesses_route(county_slug):
    result = list_public_businesses(g.county, category=request.args.get('category'))
    return _handle_service_result(result)


@county_bp.route('/<county_slug>/businesses/<business_slug>', methods=['GET'])
@county_context_required
def county_business_route(county_slug, business_slug):
    return _handle_service_result(get_public_business(g.county, business_slug))

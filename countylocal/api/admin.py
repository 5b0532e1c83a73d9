# countylocal/api/admin.py
# (This file holds all county-scoped admin console routes.)

from flask import Blueprint, request, jsonify, g
from countylocal.jwt_auth import require_jwt, admin_required
from countylocal.county_scope import admin_county_required
from countylocal.models import Role
from countylocal.utils import _handle_service_result, get_json_body
from countylocal.services.identity import list_identities, set_identity_status, bind_vendor
from countylocal.services.businesses import (
    create_business, update_business, set_business_status, delete_business,
    assign_founder, remove_founder, list_founders
)
from countylocal.services.deals import activate_deal, expire_deal, list_county_deals
from countylocal.services.vouchers import list_county_vouchers, get_voucher_details
from countylocal.services.counties import list_cities, create_city
from countylocal.services.audit import list_admin_actions
from countylocal.services.analytics import platform_overview

bp = Blueprint('admin', __name__)


# --- Identities ---

@bp.route('/admin/identities', methods=['GET'])
@require_jwt
@admin_required
def list_identities_route():
    result = list_identities(role=request.args.get('role'))
    return _handle_service_result(result)


@bp.route('/admin/identities/<user_id>/status', methods=['POST'])
@require_jwt
@admin_required
def set_identity_status_route(user_id):
    """Suspends or reactivates an identity."""
    data = get_json_body() or {}
    new_status = data.get('status')

    if not new_status:
        return jsonify({"success": False, "error": "Status missing in request body."}), 400

    result = set_identity_status(g.current_user, user_id, new_status)
    return _handle_service_result(result)


@bp.route('/admin/identities/bind-vendor', methods=['POST'])
@require_jwt
@admin_required
def bind_vendor_route():
    """Permanently binds a VENDOR identity to a business."""
    data = get_json_body() or {}
    result = bind_vendor(g.current_user, data.get('user_id'), data.get('business_id'))
    return _handle_service_result(result)


# --- County context ---

@bp.route('/admin/county-context', methods=['GET'])
@require_jwt
@admin_required
@admin_county_required
def county_context_route():
    return jsonify({
        "success": True,
        "active_county": g.county.to_dict(),
        "accessible_counties": [county.to_dict() for county in g.accessible_counties],
        "is_global": g.current_user.role == Role.SUPER_ADMIN,
    }), 200


@bp.route('/admin/cities', methods=['GET'])
@require_jwt
@admin_required
@admin_county_required
def list_cities_route():
    return _handle_service_result(list_cities(g.county))


@bp.route('/admin/cities', methods=['POST'])
@require_jwt
@admin_required
@admin_county_required
def create_city_route():
    result = create_city(g.current_user, g.county, get_json_body() or {})
    return _handle_service_result(result)


# --- Businesses ---

@bp.route('/admin/businesses', methods=['POST'])
@require_jwt
@admin_required
@admin_county_required
def create_business_route():
    result = create_business(g.current_user, g.county, get_json_body() or {})
    return _handle_service_result(result)


@bp.route('/admin/businesses/<business_id>', methods=['PATCH'])
@require_jwt
@admin_required
@admin_county_required
def update_business_route(business_id):
    result = update_business(g.current_user, business_id, get_json_body() or {}, county=g.county)
    return _handle_service_result(result)


@bp.route('/admin/businesses/<business_id>', methods=['DELETE'])
@require_jwt
@admin_required
def delete_business_route(business_id):
    return _handle_service_result(delete_business(business_id))


@bp.route('/admin/businesses/<business_id>/status', methods=['POST'])
@require_jwt
@admin_required
@admin_county_required
def set_business_status_route(business_id):
    data = get_json_body() or {}
    new_status = data.get('status')

    if not new_status:
        return jsonify({"success": False, "error": "Status missing in request body."}), 400

    result = set_business_status(g.current_user, business_id, new_status, county=g.county)
    return _handle_service_result(result)


# --- Founders ---

@bp.route('/admin/founders', methods=['GET'])
@require_jwt
@admin_required
@admin_county_required
def list_founders_route():
    return _handle_service_result(list_founders(g.county))


@bp.route('/admin/founders/assign', methods=['POST'])
@require_jwt
@admin_required
@admin_county_required
def assign_founder_route():
    data = get_json_body() or {}
    result = assign_founder(g.current_user, data.get('business_id'), g.county,
                            expires_at=data.get('expires_at'))
    return _handle_service_result(result)


@bp.route('/admin/founders/remove', methods=['POST'])
@require_jwt
@admin_required
@admin_county_required
def remove_founder_route():
    data = get_json_body() or {}
    result = remove_founder(g.current_user, data.get('business_id'), g.county,
                            reason=data.get('reason'))
    return _handle_service_result(result)


# --- Deals ---


@bp.route('/admin/deals', methods=['GET'])
@require_jwt
@admin_required
@admin_county_required
def list_deals_route():
    result = list_county_deals(g.county, status=request.args.get('status'))
    return _handle_service_result(result)


@bp.route('/admin/deals/<deal_id>/activate', methods=['POST'])
@require_jwt
@admin_required
@admin_county_required
def activate_deal_route(deal_id):
    result = activate_deal(g.current_user, deal_id, county=g.county)
    return _handle_service_result(result)


@bp.route('/admin/deals/<deal_id>/expire', methods=['POST'])
@require_jwt
@admin_required
@admin_county_required
def expire_deal_route(deal_id):
    result = expire_deal(g.current_user, deal_id, county=g.county)
    return _handle_service_result(result)


# --- Vouchers ---

@bp.route('/admin/vouchers', methods=['GET'])
@require_jwt
@admin_required
@admin_county_required
def list_vouchers_route():
    result = list_county_vouchers(g.county, status=request.args.get('status'))
    return _handle_service_result(result)


@bp.route('/admin/vouchers/<voucher_id>/details', methods=['GET'])
@require_jwt
@admin_required
@admin_county_required
def voucher_details_route(voucher_id):
    result = get_voucher_details(voucher_id, county=g.county)
    return _handle_service_result(result)


# --- Audit & Analytics ---

@bp.route('/admin/audit', methods=['GET'])
@require_jwt
@admin_required
@admin_county_required
def admin_audit_route():
    """
    Lists admin actions in the active county.

    SUPER_ADMIN may pass scope=global to list every county.
    """
    county = g.county
    if request.args.get('scope') == 'global' and g.current_user.role == Role.SUPER_ADMIN:
        county = None

    result = list_admin_actions(
        g.current_user,
        county=county,
        action_type=request.args.get('action_type'),
        target_entity_type=request.args.get('target_entity_type'),
        limit=request.args.get('limit', 50),
        offset=request.args.get('offset', 0),
    )
    return _handle_service_result(result)


@bp.route('/admin/analytics/overview', methods=['GET'])
@require_jwt
@admin_required
@admin_county_required
def analytics_overview_route():
    result = platform_overview(g.county, request.args.get('timeframe', '30d'))
    return _handle_service_result(result)

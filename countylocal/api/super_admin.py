# countylocal/api/super_admin.py
# County management and admin provisioning. SUPER_ADMIN only.

from flask import Blueprint, jsonify, g
from countylocal.jwt_auth import require_jwt, super_admin_required
from countylocal.utils import _handle_service_result, get_json_body
from countylocal.services.counties import (
    create_county, update_county, advance_launch_status, list_county_admins,
    grant_admin_access, revoke_admin_access, get_accessible_counties
)
from countylocal.services.identity import create_admin_identity

bp = Blueprint('super_admin', __name__)


@bp.route('/super-admin/counties', methods=['GET'])
@require_jwt
@super_admin_required
def list_counties_route():
    counties = get_accessible_counties(g.current_user)
    return jsonify({"success": True, "counties": [county.to_dict() for county in counties]}), 200


@bp.route('/super-admin/counties', methods=['POST'])
@require_jwt
@super_admin_required
def create_county_route():
    result = create_county(g.current_user, get_json_body() or {})
    return _handle_service_result(result)


@bp.route('/super-admin/counties/<county_id>', methods=['PATCH'])
@require_jwt
@super_admin_required
def update_county_route(county_id):
    result = update_county(g.current_user, county_id, get_json_body() or {})
    return _handle_service_result(result)


@bp.route('/super-admin/counties/<county_id>/launch', methods=['POST'])
@require_jwt
@super_admin_required
def advance_launch_route(county_id):
    data = get_json_body() or {}
    target = data.get('launch_status')

    if not target:
        return jsonify({"success": False, "error": "launch_status missing in request body."}), 400

    result = advance_launch_status(g.current_user, county_id, target)
    return _handle_service_result(result)


@bp.route('/super-admin/counties/<county_id>/admins', methods=['GET'])
@require_jwt
@super_admin_required
def list_county_admins_route(county_id):
    return _handle_service_result(list_county_admins(county_id))


@bp.route('/super-admin/counties/<county_id>/admins', methods=['POST'])
@require_jwt
@super_admin_required
def grant_admin_access_route(county_id):
    data = get_json_body() or {}
    if not data.get('admin_id'):
        return jsonify({"success": False, "error": "admin_id missing in request body."}), 400

    result = grant_admin_access(g.current_user, county_id, data['admin_id'])
    return _handle_service_result(result)


@bp.route('/super-admin/counties/<county_id>/admins/<admin_id>', methods=['DELETE'])
@require_jwt
@super_admin_required
def revoke_admin_access_route(county_id, admin_id):
    result = revoke_admin_access(g.current_user, county_id, admin_id)
    return _handle_service_result(result)


@bp.route('/super-admin/admin-identities', methods=['POST'])
@require_jwt
@super_admin_required
def create_admin_identity_route():
    result = create_admin_identity(g.current_user, get_json_body() or {})
    return _handle_service_result(result)

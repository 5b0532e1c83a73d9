# countylocal/api/identity.py
# Registration, login and the current identity's profile.

from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from countylocal.utils import _handle_service_result, get_json_body
from countylocal.services.identity import register_identity, login_identity

bp = Blueprint('identity', __name__)


@bp.route('/identity/register', methods=['POST'])
def register_route():
    """Registers a USER or VENDOR identity and returns a token."""
    data = get_json_body()
    if data is None:
        return jsonify({"success": False, "error": "Invalid JSON body"}), 400

    result = register_identity(data)
    return _handle_service_result(result)


@bp.route('/auth/login', methods=['POST'])
def login_route():
    data = get_json_body()
    if data is None:
        return jsonify({"success": False, "error": "Invalid JSON body"}), 400

    result = login_identity(data)
    return _handle_service_result(result)


# --- Identity Profile Endpoint ---
@bp.route('/identity/me', methods=['GET'])
@login_required
def me_route():
    """
    Returns the identity behind the Bearer token.

    Authentication is resolved by the Flask-Login request loader, so a
    suspended identity is answered with 403 by the unauthorized handler.

    Response:
        200: Identity profile (with business_id for bound vendors)
        401: Invalid or missing token
        403: Suspended identity
    """
    return jsonify({
        "is_authenticated": True,
        "identity": current_user.to_dict(),
    }), 200

# countylocal/api/vouchers.py
# Validations, voucher issuance and the buyer's voucher wallet.

from flask import Blueprint, jsonify, g
from countylocal.jwt_auth import require_jwt, role_required
from countylocal.models import Role
from countylocal.rate_limit import rate_limited
from countylocal.utils import _handle_service_result, get_json_body
from countylocal.services.vouchers import (
    create_validation, issue_voucher, list_user_vouchers, get_user_voucher
)

bp = Blueprint('vouchers', __name__)


def _vendor_or_admin(identity):
    return identity.role == Role.VENDOR or identity.role in Role.ADMINS


@bp.route('/validations', methods=['POST'])
@require_jwt
def create_validation_route():
    if not _vendor_or_admin(g.current_user):
        return jsonify({"message": "Access denied: VENDOR role required"}), 403

    data = get_json_body() or {}
    result = create_validation(g.current_user, data.get('deal_id'), data.get('external_ref'))
    return _handle_service_result(result)


@bp.route('/vouchers/issue', methods=['POST'])
@rate_limited('issue')
@require_jwt
def issue_voucher_route():
    """
    Issues the voucher for an external validation reference.

    Response:
        201: Voucher issued
        200: Voucher already issued for this reference
        404: Unknown reference
        409: Deal not active, or allowance exhausted
        429: Rate limited
    """
    if not _vendor_or_admin(g.current_user):
        return jsonify({"message": "Access denied: VENDOR role required"}), 403

    data = get_json_body()
    if data is None:
        return jsonify({"success": False, "error": "Invalid JSON body"}), 400

    result = issue_voucher(g.current_user, data.get('external_ref'))
    return _handle_service_result(result)


@bp.route('/user/vouchers', methods=['GET'])
@require_jwt
@role_required(Role.USER)
def user_vouchers_route():
    return _handle_service_result(list_user_vouchers(g.current_user))


@bp.route('/user/vouchers/<voucher_id>', methods=['GET'])
@require_jwt
@role_required(Role.USER)
def user_voucher_route(voucher_id):
    return _handle_service_result(get_user_voucher(g.current_user, voucher_id))

# countylocal/api/redemption.py

from flask import Blueprint, g
from countylocal.jwt_auth import require_jwt, role_required
from countylocal.models import Role
from countylocal.utils import _handle_service_result, get_json_body
from countylocal.services.redemption import redeem_voucher, get_redemption, list_user_redemptions

bp = Blueprint('redemption', __name__)


@bp.route('/redemption/redeem', methods=['POST'])
@require_jwt
def redeem_route():
    """Redeems a voucher (by voucher_id or qr_token) for the vendor's business."""
    data = get_json_body() or {}
    result = redeem_voucher(g.current_user, voucher_id=data.get('voucher_id'),
                            qr_token=data.get('qr_token'))
    return _handle_service_result(result)


@bp.route('/redemption/<voucher_id>', methods=['GET'])
@require_jwt
def get_redemption_route(voucher_id):
    return _handle_service_result(get_redemption(g.current_user, voucher_id))


@bp.route('/user/redemptions', methods=['GET'])
@require_jwt
@role_required(Role.USER)
def user_redemptions_route():
    return _handle_service_result(list_user_redemptions(g.current_user))

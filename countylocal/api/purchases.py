# countylocal/api/purchases.py

from flask import Blueprint, jsonify, g
from countylocal.jwt_auth import require_jwt, role_required
from countylocal.models import Role
from countylocal.utils import _handle_service_result, get_json_body
from countylocal.services.purchases import (
    initiate_purchase, confirm_purchase, get_purchase, list_user_purchases
)

bp = Blueprint('purchases', __name__)


@bp.route('/purchase/initiate', methods=['POST'])
@require_jwt
def initiate_purchase_route():
    data = get_json_body()
    if data is None or not data.get('deal_id'):
        return jsonify({"success": False, "error": "deal_id is required"}), 400

    result = initiate_purchase(g.current_user, data['deal_id'])
    return _handle_service_result(result)


@bp.route('/purchase/confirm', methods=['POST'])
@require_jwt
def confirm_purchase_route():
    data = get_json_body()
    if data is None:
        return jsonify({"success": False, "error": "Invalid JSON body"}), 400

    result = confirm_purchase(g.current_user, data)
    return _handle_service_result(result)


@bp.route('/purchase/<purchase_id>', methods=['GET'])
@require_jwt
def get_purchase_route(purchase_id):
    return _handle_service_result(get_purchase(g.current_user, purchase_id))


@bp.route('/user/purchases', methods=['GET'])
@require_jwt
@role_required(Role.USER)
def user_purchases_route():
    return _handle_service_result(list_user_purchases(g.current_user))

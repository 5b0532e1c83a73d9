# countylocal/api/deals.py
# Deal authoring routes for vendors (own business) and admins.

from flask import Blueprint, g
from countylocal.jwt_auth import require_jwt
from countylocal.utils import _handle_service_result, get_json_body
from countylocal.services.deals import create_deal, update_deal, delete_deal

bp = Blueprint('deals', __name__)


@bp.route('/deals', methods=['POST'])
@require_jwt
def create_deal_route():
    """Creates an INACTIVE deal. Vendors create for their bound business."""
    result = create_deal(g.current_user, get_json_body() or {})
    return _handle_service_result(result)


@bp.route('/deals/<deal_id>', methods=['PATCH'])
@require_jwt
def update_deal_route(deal_id):
    result = update_deal(g.current_user, deal_id, get_json_body() or {})
    return _handle_service_result(result)


@bp.route('/deals/<deal_id>', methods=['DELETE'])
@require_jwt
def delete_deal_route(deal_id):
    return _handle_service_result(delete_deal(deal_id))

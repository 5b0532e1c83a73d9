# countylocal/api/vendor.py
# Vendor dashboard routes, scanner sessions and the payment provider callback.

from flask import Blueprint, request, jsonify, g, current_app
from countylocal import db
from countylocal.jwt_auth import require_jwt, vendor_ownership_required
from countylocal.county_scope import vendor_county_required
from countylocal.models import Business
from countylocal.rate_limit import rate_limited
from countylocal.utils import _handle_service_result, get_json_body
from countylocal.services.businesses import (
    get_business, update_business, activate_subscription, cancel_subscription, subscription_status
)
from countylocal.services.identity import claim_business
from countylocal.services.deals import list_vendor_deals
from countylocal.services.vouchers import list_vendor_vouchers, list_vendor_validations
from countylocal.services.payment_callback import (
    configure_callback, process_payment_callback, missing_fields
)
from countylocal.services.vendor_sessions import (
    create_vendor_session, list_vendor_sessions, revoke_session, revoke_all_sessions
)
from countylocal.services.redemption import redeem_with_session, list_vendor_redemptions, FailureReason
from countylocal.services.analytics import vendor_overview, vendor_deal_analytics, vendor_revenue

bp = Blueprint('vendor', __name__)


def _vendor_business():
    return db.session.get(Business, g.vendor_business_id)


# --- Business & Subscription ---

@bp.route('/vendor/business', methods=['GET'])
@require_jwt
@vendor_ownership_required
@vendor_county_required
def vendor_business_route():
    return _handle_service_result(get_business(g.vendor_business_id))


@bp.route('/vendor/business', methods=['PATCH'])
@require_jwt
@vendor_ownership_required
@vendor_county_required
def update_vendor_business_route():
    result = update_business(g.current_user, g.vendor_business_id, get_json_body() or {})
    return _handle_service_result(result)


@bp.route('/vendor/business/claim', methods=['POST'])
@require_jwt
def claim_business_route():
    """Binds the calling VENDOR to an unowned business. Permanent, like admin binding."""
    data = get_json_body() or {}
    return _handle_service_result(claim_business(g.current_user, data.get('business_id')))


@bp.route('/vendor/subscription', methods=['GET'])

@require_jwt
@vendor_ownership_required
def subscription_status_route():
    return _handle_service_result(subscription_status(_vendor_business()))


@bp.route('/vendor/subscription/activate', methods=['POST'])
@require_jwt
@vendor_ownership_required
def activate_subscription_route():
    data = get_json_body() or {}
    result = activate_subscription(_vendor_business(), data.get('plan'))
    return _handle_service_result(result)


@bp.route('/vendor/subscription/cancel', methods=['POST'])
@require_jwt
@vendor_ownership_required
def cancel_subscription_route():
    return _handle_service_result(cancel_subscription(_vendor_business()))


# --- Deals, Vouchers, Redemptions ---

@bp.route('/vendor/deals', methods=['GET'])
@require_jwt
@vendor_ownership_required
@vendor_county_required
def vendor_deals_route():
    result = list_vendor_deals(g.vendor_business_id, status=request.args.get('status'))
    return _handle_service_result(result)


@bp.route('/vendor/deals/<deal_id>/payment-callback', methods=['POST'])
@require_jwt
@vendor_ownership_required
def configure_callback_route(deal_id):
    """Creates or rotates the deal's callback secret. The secret is shown once."""
    data = get_json_body() or {}
    result = configure_callback(g.current_user, deal_id, data.get('callback_url'))
    return _handle_service_result(result)


@bp.route('/vendor/vouchers', methods=['GET'])
@require_jwt
@vendor_ownership_required
@vendor_county_required
def vendor_vouchers_route():
    result = list_vendor_vouchers(g.vendor_business_id, status=request.args.get('status'))
    return _handle_service_result(result)


@bp.route('/vendor/validations', methods=['GET'])
@require_jwt
@vendor_ownership_required
def vendor_validations_route():
    return _handle_service_result(list_vendor_validations(g.vendor_business_id))


@bp.route('/vendor/redemptions', methods=['GET'])
@require_jwt
@vendor_ownership_required
def vendor_redemptions_route():
    return _handle_service_result(list_vendor_redemptions(g.vendor_business_id))


# --- Analytics ---

@bp.route('/vendor/analytics/overview', methods=['GET'])
@require_jwt
@vendor_ownership_required
@vendor_county_required
def vendor_analytics_overview_route():
    result = vendor_overview(g.vendor_business_id, request.args.get('timeframe', '30d'))
    return _handle_service_result(result)


@bp.route('/vendor/analytics/deals/<deal_id>', methods=['GET'])
@require_jwt
@vendor_ownership_required
def vendor_deal_analytics_route(deal_id):
    result = vendor_deal_analytics(g.vendor_business_id, deal_id, request.args.get('timeframe', 'all'))
    return _handle_service_result(result)


@bp.route('/vendor/analytics/revenue', methods=['GET'])
@require_jwt
@vendor_ownership_required
def vendor_revenue_route():
    result = vendor_revenue(g.vendor_business_id, request.args.get('timeframe', '30d'))
    return _handle_service_result(result)


# --- Scanner Sessions ---

@bp.route('/vendor/sessions', methods=['POST'])
@require_jwt
def create_session_route():
    data = get_json_body() or {}
    result = create_vendor_session(
        g.current_user,
        business_ids=data.get('business_ids'),
        location_ids=data.get('location_ids'),
    )
    return _handle_service_result(result)


@bp.route('/vendor/sessions', methods=['GET'])
@require_jwt
@vendor_ownership_required
def list_sessions_route():
    return _handle_service_result(list_vendor_sessions(g.current_user))


@bp.route('/vendor/sessions/<session_id>', methods=['DELETE'])
@require_jwt
@vendor_ownership_required
def revoke_session_route(session_id):
    return _handle_service_result(revoke_session(g.current_user, session_id))


@bp.route('/vendor/sessions/revoke-all', methods=['POST'])
@require_jwt
@vendor_ownership_required
def revoke_all_sessions_route():
    return _handle_service_result(revoke_all_sessions(g.current_user))


@bp.route('/vendor/redeem', methods=['POST'])
@rate_limited('default')
def session_redeem_route():
    """
    Scanner redemption. Authenticated by the vendor session token in the body.

    Response:
        200: Redeemed
        400: Missing fields or redemption refused (see failure_reason)
        401: Invalid or expired session
    """
    data = get_json_body()
    if data is None:
        return jsonify({"success": False, "error": "Invalid JSON in request body"}), 400

    session_token = data.get('session_token')
    voucher_id = data.get('voucher_id')
    qr_token = data.get('qr_token')

    if not session_token or not (voucher_id or qr_token):
        return jsonify({
            "success": False,
            "error": "Missing required fields",
            "required": ["session_token", "voucher_id or qr_token"],
        }), 400

    metadata = {
        'ip_address': request.headers.get('X-Forwarded-For') or request.headers.get('X-Real-IP') or 'unknown',
        'user_agent': request.headers.get('User-Agent') or 'unknown',
    }

    result = redeem_with_session(session_token, voucher_id=voucher_id, qr_token=qr_token,
                                 location_id=data.get('location_id'), metadata=metadata)

    if result['success']:
        return jsonify(result), 200

    status_code = 401 if result['failure_reason'] == FailureReason.INVALID_SESSION else 400
    result['error_code'] = status_code
    return jsonify(result), status_code


# --- Payment Provider Callback ---

@bp.route('/vendor/payment-callback', methods=['POST'])
@rate_limited('default')
def payment_callback_route():
    """
    Receives a signed payment notification and issues the voucher.

    The signature is read from the X-Signature header, or from the
    'signature' field of the body.
    """
    payload = get_json_body()
    if payload is None:
        return jsonify({"success": False, "error": "Invalid JSON body"}), 400

    signature = request.headers.get('X-Signature') or payload.pop('signature', None)

    required = missing_fields(payload)
    if not signature:
        required.append('signature')
    if required:
        return jsonify({"success": False, "error": "Missing required fields", "required": required}), 400

    try:
        result = process_payment_callback(payload, signature)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Payment callback processing failed: {str(e)}")
        return jsonify({"success": False, "error": "Internal server error"}), 500

    return _handle_service_result(result, default_error_status=400)

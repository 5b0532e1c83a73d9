# countylocal/services/payment_callback.py
"""
External payment callbacks.

A payment provider calls back once a customer has paid for a deal. The
callback is signed with the deal's shared secret (HMAC-SHA256 over a
canonical JSON rendering of the payment fields). A verified, valid callback
issues exactly one voucher per external transaction id; retries of an
already-processed transaction return the voucher issued the first time.
"""

import hmac
import hashlib
import json
import re
import secrets
import time
from flask import current_app
from sqlalchemy.exc import IntegrityError
from countylocal import db
from countylocal.models import (
    Deal, DealStatus, DealPaymentCallback, PaymentCallback, Voucher,
    VoucherValidation, Business, BusinessStatus, Role
)
from countylocal.services.audit import (
    add_voucher_audit, log_voucher_audit, VoucherAction, ACTOR_SYSTEM
)
from countylocal.services.businesses import has_active_subscription
from countylocal.services.email_service import send_voucher_email
from countylocal.services.vouchers import build_voucher
from countylocal.utils.general import utcnow

# Fields covered by the signature, in payload (camelCase) naming
SIGNED_FIELDS = (
    'dealId', 'externalTransactionId', 'amountPaid', 'currency',
    'paymentStatus', 'customerReference', 'callbackTimestamp',
)

# Signed only when the sender includes them
OPTIONAL_SIGNED_FIELDS = ('customerEmail',)

SIGNATURE_PATTERN = re.compile(r'[0-9a-fA-F]{64}')

REQUIRED_FIELDS = (
    'dealId', 'externalTransactionId', 'amountPaid', 'currency',
    'paymentStatus', 'callbackTimestamp',
)

SUCCESSFUL_PAYMENT_STATUSES = frozenset(['completed', 'paid', 'authorized', 'succeeded', 'success'])
SUPPORTED_CURRENCY = 'USD'
AMOUNT_TOLERANCE = 0.01


class CallbackVerificationError(Exception):
    """Signature, timestamp or configuration problem; the callback is not trusted."""
    def __init__(self, message, status_code=400):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


# --- CONFIGURATION ---

def configure_callback(identity, deal_id, callback_url=None):
    """
    Creates or rotates a deal's callback secret.

    The secret is returned only here; it is never serialized afterwards.
    """
    deal = db.session.get(Deal, deal_id)
    if deal is None:
        return ({"success": False, "error": "Deal not found"}, 404)

    if identity.role == Role.VENDOR:
        owned = identity.vendor_ownership
        if owned is None or owned.business_id != deal.business_id:
            return ({"success": False, "error": "Deal not found"}, 404)

    secret = secrets.token_hex(32)
    config = deal.payment_callback
    created = config is None
    if created:
        config = DealPaymentCallback(deal_id=deal.id, callback_secret=secret)
        db.session.add(config)
    else:
        config.callback_secret = secret
        config.callback_failure_count = 0

    config.callback_url = callback_url
    config.is_active = True
    db.session.commit()

    current_app.logger.info(f"Payment callback {'configured' if created else 'rotated'} for deal {deal.id}")
    return ({"success": True, "config": config.to_dict(), "callback_secret": secret},
            201 if created else 200)


# --- SIGNATURE ---

def _canonical_value(value):
    # 25.0 must sign as 25, matching JSON number rendering on the sender side
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def canonical_payload(payload):
    """Compact, key-sorted JSON of the signed fields."""
    signed = {field: _canonical_value(payload.get(field)) for field in SIGNED_FIELDS}
    for field in OPTIONAL_SIGNED_FIELDS:
        if payload.get(field) is not None:
            signed[field] = _canonical_value(payload[field])
    return json.dumps(signed, sort_keys=True, separators=(',', ':'), ensure_ascii=False)


def compute_signature(payload, secret):
    return hmac.new(secret.encode('utf-8'), canonical_payload(payload).encode('utf-8'),
                    hashlib.sha256).hexdigest()


def verify_signature(payload, signature, now=None):
    """
    Verifies timestamp freshness and the HMAC signature.

    Returns:
        DealPaymentCallback: the active callback config for the deal

    Raises:
        CallbackVerificationError: when the callback must not be trusted
    """
    now = int(now if now is not None else time.time())
    max_age = current_app.config['PAYMENT_CALLBACK_MAX_AGE_SECONDS']

    try:
        timestamp = int(payload.get('callbackTimestamp'))
    except (TypeError, ValueError):
        raise CallbackVerificationError("callbackTimestamp must be a unix timestamp in seconds")

    age = now - timestamp
    if age < 0 or age > max_age:
        raise CallbackVerificationError(
            f"Callback timestamp outside acceptable window (age: {age}s, max: {max_age}s)"
        )

    config = DealPaymentCallback.query.filter_by(deal_id=payload.get('dealId')).first()
    if config is None or not config.is_active:
        raise CallbackVerificationError("Payment callback not configured for this deal")

    expected = compute_signature(payload, config.callback_secret)
    if not isinstance(signature, str) or not SIGNATURE_PATTERN.fullmatch(signature):
        raise CallbackVerificationError("Invalid signature")
    if not hmac.compare_digest(expected.encode('ascii'), signature.lower().encode('ascii')):
        raise CallbackVerificationError("Invalid signature")

    return config


# --- PROCESSING ---

def missing_fields(payload):
    return [field for field in REQUIRED_FIELDS
            if payload.get(field) is None or payload.get(field) == '']


def _record_callback(payload, signature, config, error_message, is_signature_valid):
    """Stores a rejected callback for later inspection. Never raises."""
    deal_id = payload.get('dealId')
    if not deal_id or db.session.get(Deal, deal_id) is None:
        return
    try:
        db.session.add(PaymentCallback(
            deal_id=deal_id,
            config_id=config.id if config else None,
            external_transaction_id=str(payload.get('externalTransactionId') or ''),
            amount_paid=_as_float(payload.get('amountPaid')),
            currency=payload.get('currency'),
            payment_status=payload.get('paymentStatus'),
            customer_reference=payload.get('customerReference'),
            signature=str(signature or '')[:128],
            callback_timestamp=_as_int(payload.get('callbackTimestamp')),
            payload=payload,
            is_signature_valid=is_signature_valid,
            error_message=error_message[:500],
            processed_at=utcnow(),
        ))
        if config is not None and is_signature_valid:
            config.callback_failure_count = (config.callback_failure_count or 0) + 1
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to record rejected payment callback: {str(e)}")


def _as_float(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _validate_deal_for_payment(deal_id):
    deal = db.session.get(Deal, deal_id)
    if deal is None:
        return None, "Deal not found"
    if deal.deal_status != DealStatus.ACTIVE:
        return None, "Deal is not active"

    business = db.session.get(Business, deal.business_id)
    if business is None or business.business_status != BusinessStatus.ACTIVE:
        return None, "Business is not active"
    if not has_active_subscription(business):
        return None, "Business subscription is not active"

    return deal, None


def _validate_payment(deal, payload):
    amount = _as_float(payload.get('amountPaid'))
    if amount is None:
        return "amountPaid must be a number"
    if abs(amount - deal.deal_price) > AMOUNT_TOLERANCE:
        return f"Amount mismatch: expected {deal.deal_price:.2f}, received {amount:.2f}"

    currency = str(payload.get('currency') or '').upper()
    if currency != SUPPORTED_CURRENCY:
        return f"Unsupported currency: {payload.get('currency')}"

    status = str(payload.get('paymentStatus') or '').lower()
    if status not in SUCCESSFUL_PAYMENT_STATUSES:
        return f"Payment status '{payload.get('paymentStatus')}' is not a successful payment"

    return None


def _find_processed_callback(external_transaction_id):
    return (PaymentCallback.query
            .filter(PaymentCallback.external_transaction_id == external_transaction_id,
                    PaymentCallback.issued_voucher_id.isnot(None))
            .first())


def _idempotent_response(processed):
    log_voucher_audit(processed.issued_voucher_id, VoucherAction.CALLBACK_IDEMPOTENT_RETRY,
                      ACTOR_SYSTEM, metadata={'external_transaction_id': processed.external_transaction_id})
    voucher = db.session.get(Voucher, processed.issued_voucher_id)
    return {
        "success": True,
        "idempotent": True,
        "message": "Voucher already issued for this transaction",
        "voucher_id": processed.issued_voucher_id,
        "qr_token": voucher.qr_token if voucher else None,
    }


def process_payment_callback(payload, signature, now=None):
    """
    Verifies a payment callback and issues its voucher.

    Returns:
        dict on success, or (dict, status_code) on failure
    """
    try:
        config = verify_signature(payload, signature, now=now)
    except CallbackVerificationError as e:
        current_app.logger.warning(
            f"Payment callback rejected for deal {payload.get('dealId')}: {e.message}"
        )
        _record_callback(payload, signature, None, e.message, is_signature_valid=False)
        return ({"success": False, "error": e.message}, e.status_code)

    external_transaction_id = str(payload['externalTransactionId'])

    processed = _find_processed_callback(external_transaction_id)
    if processed is not None:
        return _idempotent_response(processed)

    deal, error = _validate_deal_for_payment(payload['dealId'])
    if error is None:
        error = _validate_payment(deal, payload)
    if error is not None:
        current_app.logger.warning(f"Payment callback {external_transaction_id} rejected: {error}")
        _record_callback(payload, signature, config, error, is_signature_valid=True)
        return ({"success": False, "error": error}, 400)

    # --- Atomic issue: validation, voucher, callback record and audit commit together ---
    now_dt = utcnow()
    customer_email = payload.get('customerEmail')
    try:
        validation = VoucherValidation(deal_id=deal.id, external_ref=external_transaction_id)
        db.session.add(validation)
        db.session.flush()

        voucher = build_voucher(deal, qr_token=secrets.token_hex(16), validation_id=validation.id,
                                issued_at=now_dt)
        voucher.customer_email = customer_email
        db.session.add(voucher)
        db.session.flush()

        db.session.add(PaymentCallback(
            deal_id=deal.id,
            config_id=config.id,
            external_transaction_id=external_transaction_id,
            amount_paid=float(payload['amountPaid']),
            currency=str(payload['currency']).upper(),
            payment_status=payload['paymentStatus'],
            customer_reference=payload.get('customerReference'),
            signature=signature,
            callback_timestamp=int(payload['callbackTimestamp']),
            payload=payload,
            is_signature_valid=True,
            issued_voucher_id=voucher.id,
            processed_at=now_dt,
        ))
        add_voucher_audit(voucher.id, VoucherAction.ISSUED, ACTOR_SYSTEM, None,
                          {'source': 'payment_callback',
                           'external_transaction_id': external_transaction_id,
                           'amount_paid': float(payload['amountPaid'])},
                          county_id=deal.county_id)

        config.last_callback_at = now_dt
        config.callback_failure_count = 0
        db.session.commit()
    except IntegrityError:
        # A concurrent delivery of the same transaction committed first
        db.session.rollback()
        processed = _find_processed_callback(external_transaction_id)
        if processed is not None:
            return _idempotent_response(processed)
        return ({"success": False, "error": "Transaction reference already used"}, 409)

    current_app.logger.info(
        f"Voucher {voucher.id} issued for deal {deal.id} via payment callback {external_transaction_id}"
    )

    email_sent = send_voucher_email(voucher, deal, customer_email) if customer_email else False

    return {
        "success": True,
        "idempotent": False,
        "voucher_id": voucher.id,
        "qr_token": voucher.qr_token,
        "expires_at": voucher.expires_at.isoformat(),
        "email_sent": email_sent,
    }

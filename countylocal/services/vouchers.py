# countylocal/services/vouchers.py
# Voucher issuance against external validations, token generation and voucher listings.

import hashlib
import secrets
import time
import uuid
from datetime import timedelta
from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from countylocal import db
from countylocal.models import (
    Voucher, VoucherStatus, VoucherValidation, Deal, DealStatus, Business, Role
)
from countylocal.services.audit import (
    add_voucher_audit, log_voucher_audit, get_voucher_audit_trail, VoucherAction,
    ACTOR_SYSTEM, ACTOR_VENDOR, ACTOR_ADMIN
)
from countylocal.services.businesses import has_active_subscription, count_vouchers_issued_this_month
from countylocal.services.counties import check_entity_county
from countylocal.utils.general import utcnow

MAX_EXTERNAL_REF_LENGTH = 500
_BASE36 = '0123456789abcdefghijklmnopqrstuvwxyz'


def _to_base36(number):
    if number == 0:
        return '0'
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return ''.join(reversed(digits))


def generate_qr_token():
    """VCH-{base36 ms timestamp}-{32 hex chars}, uppercased."""
    timestamp = _to_base36(int(time.time() * 1000))
    digest = hashlib.sha256(f"{uuid.uuid4()}{secrets.token_hex(16)}".encode()).hexdigest()[:32]
    return f"VCH-{timestamp}-{digest}".upper()


def calculate_expiration(issued_at, expiration_days=None):
    days = expiration_days or current_app.config['VOUCHER_DEFAULT_EXPIRATION_DAYS']
    return issued_at + timedelta(days=days)


def build_voucher(deal, qr_token=None, validation_id=None, issued_at=None):
    """An unsaved ISSUED voucher for deal."""
    issued_at = issued_at or utcnow()
    return Voucher(
        deal_id=deal.id,
        business_id=deal.business_id,
        county_id=deal.county_id,
        validation_id=validation_id,
        qr_token=qr_token or generate_qr_token(),
        status=VoucherStatus.ISSUED,
        issued_at=issued_at,
        expires_at=calculate_expiration(issued_at, deal.expiration_days),
    )


def _actor_type(identity):
    return ACTOR_ADMIN if identity.role in Role.ADMINS else ACTOR_VENDOR


def _validate_external_ref(external_ref):
    if not isinstance(external_ref, str) or not external_ref.strip():
        return "external_ref is required"
    if len(external_ref) > MAX_EXTERNAL_REF_LENGTH:
        return f"external_ref must be at most {MAX_EXTERNAL_REF_LENGTH} characters"
    return None


# --- VALIDATIONS ---

def create_validation(identity, deal_id, external_ref):
    error = _validate_external_ref(external_ref)
    if error:
        return ({"success": False, "error": error}, 400)

    deal = db.session.get(Deal, deal_id) if deal_id else None
    if deal is None:
        return ({"success": False, "error": "Deal not found"}, 404)

    if identity.role == Role.VENDOR:
        owned = identity.vendor_ownership
        if owned is None or owned.business_id != deal.business_id:
            return ({"success": False, "error": "You do not own this deal"}, 403)

    if VoucherValidation.query.filter_by(external_ref=external_ref).first():
        return ({"success": False, "error": "Validation already exists for this reference"}, 409)

    validation = VoucherValidation(deal_id=deal.id, external_ref=external_ref)
    try:
        db.session.add(validation)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return ({"success": False, "error": "Validation already exists for this reference"}, 409)

    return ({"success": True, "validation": validation.to_dict()}, 201)


def list_vendor_validations(business_id):
    validations = (VoucherValidation.query
                   .join(Deal, Deal.id == VoucherValidation.deal_id)
                   .filter(Deal.business_id == business_id)
                   .order_by(VoucherValidation.created_at.desc())
                   .all())
    return {"success": True, "validations": [v.to_dict() for v in validations]}


# --- ISSUANCE ---

def issue_voucher(identity, external_ref):
    """
    Issues the single voucher a validation entitles.

    Idempotent: a validation that already has a voucher returns it with 200.
    """
    error = _validate_external_ref(external_ref)
    if error:
        return ({"success": False, "error": error}, 400)

    validation = VoucherValidation.query.filter_by(external_ref=external_ref).first()
    if validation is None:
        return ({"success": False, "error": "Validation not found"}, 404)

    if validation.voucher is not None:
        return ({"success": True, "message": "Voucher already issued",
                 "voucher": validation.voucher.to_dict()}, 200)

    deal = db.session.get(Deal, validation.deal_id)
    if deal is None:
        return ({"success": False, "error": "Deal not found"}, 404)

    if identity.role == Role.VENDOR:
        owned = identity.vendor_ownership
        if owned is None or owned.business_id != deal.business_id:
            return ({"success": False, "error": "You do not own this deal"}, 403)

    if deal.deal_status != DealStatus.ACTIVE:
        return ({"success": False, "error": "Deal is not active"}, 409)

    business = db.session.get(Business, deal.business_id)
    if business is None or not has_active_subscription(business):
        return ({"success": False, "error": "Business does not have an active subscription"}, 403)

    allowance = business.monthly_voucher_allowance
    if allowance is not None and count_vouchers_issued_this_month(business.id) >= allowance:
        return ({"success": False, "error": "Monthly voucher allowance exhausted"}, 409)

    if deal.voucher_quantity_limit is not None:
        issued = (db.session.query(func.count(Voucher.id))
                  .filter(Voucher.deal_id == deal.id).scalar()) or 0
        if issued >= deal.voucher_quantity_limit:
            return ({"success": False, "error": "Deal voucher quantity limit reached"}, 409)

    voucher = build_voucher(deal, validation_id=validation.id)

    try:
        db.session.add(voucher)
        db.session.flush()
        add_voucher_audit(voucher.id, VoucherAction.ISSUED, _actor_type(identity), identity.id,
                          {'external_ref': external_ref}, county_id=deal.county_id)
        db.session.commit()
    except IntegrityError:
        # Concurrent issue for the same validation won the race
        db.session.rollback()
        existing = Voucher.query.filter_by(validation_id=validation.id).first()
        if existing is not None:
            return ({"success": True, "message": "Voucher already issued",
                     "voucher": existing.to_dict()}, 200)
        return ({"success": False, "error": "Failed to issue voucher"}, 500)

    current_app.logger.info(f"Voucher {voucher.id} issued for deal {deal.id}")
    return ({"success": True, "voucher": voucher.to_dict()}, 201)


# --- LISTINGS ---

def list_vendor_vouchers(business_id, status=None):
    query = Voucher.query.filter_by(business_id=business_id)
    if status:
        query = query.filter_by(status=status)
    vouchers = query.order_by(Voucher.issued_at.desc()).all()
    return {"success": True, "vouchers": [voucher.to_dict() for voucher in vouchers]}


def list_user_vouchers(user):
    vouchers = (Voucher.query.filter_by(account_id=user.id)
                .order_by(Voucher.issued_at.desc()).all())
    return {
        "success": True,
        "vouchers": [{**voucher.to_dict(), "deal_title": voucher.deal.title} for voucher in vouchers],
    }


def get_user_voucher(user, voucher_id):
    voucher = db.session.get(Voucher, voucher_id)
    if voucher is None or voucher.account_id != user.id:
        return ({"success": False, "error": "Voucher not found"}, 404)

    if voucher.is_expired():
        log_voucher_audit(voucher.id, VoucherAction.EXPIRED_VIEWED, ACTOR_SYSTEM, user.id,
                          county_id=voucher.county_id)

    return {"success": True, "voucher": voucher.to_dict(), "deal": voucher.deal.to_dict()}


def list_county_vouchers(county, status=None):
    query = Voucher.query.filter_by(county_id=county.id)
    if status:
        query = query.filter_by(status=status)
    vouchers = query.order_by(Voucher.issued_at.desc()).all()
    return {"success": True, "vouchers": [voucher.to_dict() for voucher in vouchers]}


def get_voucher_details(voucher_id, county=None):
    """Admin view: the voucher, its deal and business, and the full audit trail."""
    voucher = db.session.get(Voucher, voucher_id)
    if voucher is None:
        return ({"success": False, "error": "Voucher not found"}, 404)
    error = check_entity_county(voucher.county_id, county)
    if error:
        return error

    return {
        "success": True,
        "voucher": voucher.to_dict(),
        "deal": voucher.deal.to_dict(),
        "business": voucher.business.to_dict(),
        "audit_trail": get_voucher_audit_trail(voucher.id),
    }

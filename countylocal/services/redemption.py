# countylocal/services/redemption.py
"""
Voucher redemption.

Two entry points share the same state change:

- redeem_with_session: scanner devices holding a vendor session token.
  Failures are reported with a machine-readable failure_reason.
- redeem_voucher: an authenticated VENDOR identity redeeming for its
  bound business; failures map to HTTP statuses.
"""

from flask import current_app
from sqlalchemy.exc import IntegrityError
from countylocal import db
from countylocal.models import (
    Voucher, VoucherStatus, VendorRedemption, Redemption, Deal, Role, Purchase
)
from countylocal.services.audit import (
    add_voucher_audit, log_voucher_audit, VoucherAction, ACTOR_VENDOR
)
from countylocal.services.vendor_sessions import validate_vendor_session
from countylocal.utils.general import utcnow

REDEEMABLE_STATUSES = (VoucherStatus.ISSUED, VoucherStatus.ASSIGNED)


class FailureReason:
    INVALID_SESSION = 'INVALID_SESSION'
    VOUCHER_INVALID = 'VOUCHER_INVALID'
    BUSINESS_MISMATCH = 'BUSINESS_MISMATCH'
    ALREADY_REDEEMED = 'ALREADY_REDEEMED'
    EXPIRED = 'EXPIRED'
    LOCATION_UNAUTHORIZED = 'LOCATION_UNAUTHORIZED'


FAILURE_MESSAGES = {
    FailureReason.INVALID_SESSION: "Vendor session is invalid or expired",
    FailureReason.VOUCHER_INVALID: "Voucher not found",
    FailureReason.BUSINESS_MISMATCH: "Voucher does not belong to this business",
    FailureReason.ALREADY_REDEEMED: "Voucher already redeemed",
    FailureReason.EXPIRED: "Voucher has expired",
    FailureReason.LOCATION_UNAUTHORIZED: "Location is not authorized for this session",
}


def _find_voucher(voucher_id=None, qr_token=None):
    """Loads the voucher row locked for the rest of the transaction."""
    query = Voucher.query.with_for_update()
    if voucher_id:
        return query.filter_by(id=voucher_id).first()
    if qr_token:
        return query.filter_by(qr_token=qr_token).first()
    return None


def _mark_redeemed(voucher, business_id, actor_id, context):
    """
    Stages the REDEEMED transition, deal activity and audit entry.

    The status flip is a conditional UPDATE on a redeemable status, so of two
    concurrent redemptions only one matches a row.

    Returns:
        datetime: the redemption time, or None when the voucher was no longer redeemable
    """
    now = utcnow()
    claimed = (Voucher.query
               .filter(Voucher.id == voucher.id, Voucher.status.in_(REDEEMABLE_STATUSES))
               .update({
                   Voucher.status: VoucherStatus.REDEEMED,
                   Voucher.redeemed_at: now,
                   Voucher.redeemed_by_business_id: business_id,
                   Voucher.redeemed_context: context,
               }, synchronize_session=False))
    if claimed != 1:
        return None

    deal = db.session.get(Deal, voucher.deal_id)
    if deal is not None:
        deal.last_active_at = now

    add_voucher_audit(voucher.id, VoucherAction.REDEEMED, ACTOR_VENDOR, actor_id,
                      context, county_id=voucher.county_id)
    return now


# --- SESSION-BASED (SCANNER) ---

def _session_failure(reason, voucher=None, session=None, location_id=None):
    if voucher is not None:
        log_voucher_audit(voucher.id, VoucherAction.REDEMPTION_FAILED, ACTOR_VENDOR,
                          session.vendor_user_id if session else None,
                          {'failure_reason': reason, 'location_id': location_id},
                          county_id=voucher.county_id)
        if session is not None:
            try:
                db.session.add(VendorRedemption(
                    voucher_id=voucher.id,
                    session_id=session.id,
                    business_id=voucher.business_id,
                    location_id=location_id,
                    status='FAILED',
                    failure_reason=reason,
                ))
                db.session.commit()
            except Exception as e:
                db.session.rollback()
                current_app.logger.error(f"Failed to record failed redemption: {str(e)}")

    return {
        "success": False,
        "error": FAILURE_MESSAGES[reason],
        "failure_reason": reason,
    }


def redeem_with_session(session_token, voucher_id=None, qr_token=None, location_id=None, metadata=None):
    """
    Redeems a voucher from a scanner session.

    Checks run in a fixed order: session, voucher, business, status,
    expiry, location.

    Returns:
        dict: {"success": True, ...} or {"success": False, "failure_reason": ...}
    """
    session = validate_vendor_session(session_token)
    if session is None:
        return _session_failure(FailureReason.INVALID_SESSION)

    voucher = _find_voucher(voucher_id, qr_token)
    if voucher is None:
        return _session_failure(FailureReason.VOUCHER_INVALID)

    if voucher.business_id not in (session.business_ids or []):
        return _session_failure(FailureReason.BUSINESS_MISMATCH, voucher, session, location_id)

    if voucher.status == VoucherStatus.REDEEMED:
        return _session_failure(FailureReason.ALREADY_REDEEMED, voucher, session, location_id)
    if voucher.status not in REDEEMABLE_STATUSES:
        return _session_failure(FailureReason.VOUCHER_INVALID, voucher, session, location_id)

    if voucher.is_expired():
        return _session_failure(FailureReason.EXPIRED, voucher, session, location_id)

    if session.location_ids and location_id not in session.location_ids:
        return _session_failure(FailureReason.LOCATION_UNAUTHORIZED, voucher, session, location_id)

    context = {
        'channel': 'vendor_session',
        'session_id': session.id,
        'location_id': location_id,
        **(metadata or {}),
    }
    try:
        redeemed_at = _mark_redeemed(voucher, voucher.business_id, session.vendor_user_id, context)
        if redeemed_at is None:
            db.session.rollback()
            return _session_failure(FailureReason.ALREADY_REDEEMED, voucher, session, location_id)

        record = VendorRedemption(
            voucher_id=voucher.id,
            session_id=session.id,
            business_id=voucher.business_id,
            location_id=location_id,
            status='SUCCESS',
            redeemed_at=redeemed_at,
        )
        db.session.add(record)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return _session_failure(FailureReason.ALREADY_REDEEMED, voucher, session, location_id)

    current_app.logger.info(f"Voucher {voucher.id} redeemed via session {session.id}")
    return {
        "success": True,
        "voucher": voucher.to_dict(),
        "redemption": record.to_dict(),
    }


# --- IDENTITY-BASED ---

def redeem_voucher(identity, voucher_id=None, qr_token=None):
    if identity.role != Role.VENDOR:
        return ({"success": False, "error": "Only vendors can redeem vouchers"}, 403)
    if identity.vendor_ownership is None:
        return ({"success": False, "error": "Vendor ownership binding required"}, 403)
    if not voucher_id and not qr_token:
        return ({"success": False, "error": "voucher_id or qr_token is required"}, 400)

    business_id = identity.vendor_ownership.business_id
    voucher = _find_voucher(voucher_id, qr_token)
    if voucher is None:
        return ({"success": False, "error": "Voucher not found"}, 404)

    if voucher.business_id != business_id:
        return ({"success": False, "error": "Voucher does not belong to your business"}, 403)
    if voucher.status == VoucherStatus.REDEEMED:
        return ({"success": False, "error": "Voucher already redeemed"}, 409)
    if voucher.is_expired():
        return ({"success": False, "error": "Voucher has expired"}, 410)
    if voucher.status not in REDEEMABLE_STATUSES:
        return ({"success": False, "error": "Voucher is not redeemable"}, 409)

    deal = db.session.get(Deal, voucher.deal_id)
    context = {'channel': 'vendor_identity', 'vendor_user_id': identity.id}

    try:
        redeemed_at = _mark_redeemed(voucher, business_id, identity.id, context)
        if redeemed_at is None:
            db.session.rollback()
            return ({"success": False, "error": "Voucher already redeemed"}, 409)

        redemption = Redemption(
            voucher_id=voucher.id,
            deal_id=voucher.deal_id,
            business_id=business_id,
            vendor_user_id=identity.id,
            original_value=deal.original_value if deal else None,
            deal_price=deal.deal_price if deal else None,
            redeemed_at=redeemed_at,
        )
        db.session.add(redemption)
        db.session.commit()
    except IntegrityError:
        # Unique voucher_id on redemption: someone else redeemed it first
        db.session.rollback()
        return ({"success": False, "error": "Voucher already redeemed"}, 409)

    current_app.logger.info(f"Voucher {voucher.id} redeemed by vendor {identity.id}")
    return {"success": True, "redemption": redemption.to_dict(), "voucher": voucher.to_dict()}


# --- VISIBILITY ---

def can_view_redemption(identity, voucher):
    if identity.role in Role.ADMINS:
        return True
    if identity.role == Role.VENDOR:
        owned = identity.vendor_ownership
        return owned is not None and owned.business_id == voucher.business_id
    return voucher.account_id == identity.id


def get_redemption(identity, voucher_id):
    voucher = db.session.get(Voucher, voucher_id)
    # Unauthorized callers get the same 404 as a missing voucher
    if voucher is None or not can_view_redemption(identity, voucher):
        return ({"success": False, "error": "Redemption not found"}, 404)

    redemption = Redemption.query.filter_by(voucher_id=voucher.id).first()
    return {
        "success": True,
        "voucher": voucher.to_dict(),
        "redemption": redemption.to_dict() if redemption else None,
        "is_redeemed": voucher.status == VoucherStatus.REDEEMED,
    }


def list_vendor_redemptions(business_id):
    vouchers = (Voucher.query
                .filter_by(business_id=business_id, status=VoucherStatus.REDEEMED)
                .order_by(Voucher.redeemed_at.desc()).all())
    return {"success": True, "redemptions": [voucher.to_dict() for voucher in vouchers]}


def list_user_redemptions(user):
    vouchers = (Voucher.query
                .join(Purchase, Purchase.voucher_id == Voucher.id)
                .filter(Purchase.user_id == user.id, Voucher.status == VoucherStatus.REDEEMED)
                .order_by(Voucher.redeemed_at.desc()).all())
    return {"success": True, "redemptions": [voucher.to_dict() for voucher in vouchers]}

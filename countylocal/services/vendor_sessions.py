# countylocal/services/vendor_sessions.py
# Scanner-device sessions for vendors.

import secrets
from datetime import timedelta
from flask import current_app
from countylocal import db
from countylocal.models import VendorSession, Business, Role
from countylocal.services.businesses import has_active_subscription
from countylocal.utils.general import utcnow


def _is_id_list(value):
    return value is None or (isinstance(value, list) and all(isinstance(item, str) for item in value))


def create_vendor_session(identity, business_ids=None, location_ids=None, duration_hours=None):
    """
    Opens a scanner session for a vendor.

    Every requested business must be owned by the vendor and carry an
    active subscription. Defaults to the vendor's bound business.
    """
    if identity.role != Role.VENDOR:
        return ({"success": False, "error": f"Access denied: {Role.VENDOR} role required"}, 403)

    for field, value in (('business_ids', business_ids), ('location_ids', location_ids)):
        if not _is_id_list(value):
            return ({"success": False, "error": f"{field} must be a list of id strings"}, 400)

    if not business_ids:
        if identity.vendor_ownership is None:
            return ({"success": False, "error": "Vendor ownership binding required"}, 403)
        business_ids = [identity.vendor_ownership.business_id]

    for business_id in business_ids:
        business = db.session.get(Business, business_id)
        if business is None or business.owner_user_id != identity.id:
            return ({"success": False, "error": f"You do not own business {business_id}"}, 403)
        if not has_active_subscription(business):
            return ({"success": False,
                     "error": f"Business {business_id} does not have an active subscription"}, 403)

    now = utcnow()
    hours = duration_hours or current_app.config['VENDOR_SESSION_HOURS']
    session = VendorSession(
        vendor_user_id=identity.id,
        session_token=secrets.token_hex(32),
        business_ids=list(business_ids),
        location_ids=list(location_ids or []),
        is_active=True,
        expires_at=now + timedelta(hours=hours),
        last_activity_at=now,
    )
    db.session.add(session)
    db.session.commit()

    current_app.logger.info(f"Vendor session {session.id} opened for {identity.id}")
    return ({"success": True, "session": session.to_dict(), "session_token": session.session_token}, 201)


def validate_vendor_session(session_token, touch=True):
    """
    Returns the active session for a token, or None.

    Expired sessions are deactivated on sight.
    """
    if not session_token:
        return None

    session = VendorSession.query.filter_by(session_token=session_token).first()
    if session is None or not session.is_active:
        return None

    now = utcnow()
    if session.expires_at <= now:
        session.is_active = False
        db.session.commit()
        return None

    if touch:
        session.last_activity_at = now
        db.session.commit()
    return session


def revoke_session(identity, session_id):
    session = db.session.get(VendorSession, session_id)
    if session is None or session.vendor_user_id != identity.id:
        return ({"success": False, "error": "Session not found"}, 404)

    session.is_active = False
    db.session.commit()
    return {"success": True}


def revoke_all_sessions(identity):
    count = (VendorSession.query
             .filter_by(vendor_user_id=identity.id, is_active=True)
             .update({VendorSession.is_active: False}, synchronize_session=False))
    db.session.commit()
    return {"success": True, "revoked": count}


def cleanup_expired_sessions():
    """Deactivates every expired session. Returns the number deactivated."""
    count = (VendorSession.query
             .filter(VendorSession.is_active.is_(True), VendorSession.expires_at <= utcnow())
             .update({VendorSession.is_active: False}, synchronize_session=False))
    db.session.commit()
    if count:
        current_app.logger.info(f"Deactivated {count} expired vendor sessions")
    return count


def list_vendor_sessions(identity):
    sessions = (VendorSession.query
                .filter_by(vendor_user_id=identity.id, is_active=True)
                .order_by(VendorSession.created_at.desc()).all())
    return {"success": True, "sessions": [session.to_dict() for session in sessions]}

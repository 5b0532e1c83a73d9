# countylocal/services/identity.py
# Registration, login and identity management (roles, vendor binding, suspension).

import re
from flask import current_app
from sqlalchemy.exc import IntegrityError
from countylocal import db
from countylocal.models import (
    UserIdentity, VendorOwnership, Business, Role, IdentityStatus
)
from countylocal.jwt_auth import create_identity_token
from countylocal.services.audit import log_admin_action
from countylocal.utils.general import non_string_fields, invalid_type_result

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
MIN_PASSWORD_LENGTH = 8
CREDENTIAL_FIELDS = ('email', 'password')


def _normalize_email(email):
    return (email or '').strip().lower()


def _validate_credentials(email, password):
    if not email or not EMAIL_PATTERN.match(email):
        return "A valid email is required"
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    return None


def _session_payload(identity):
    return {
        "success": True,
        "identity": identity.to_dict(),
        "token": create_identity_token(identity),
    }


def register_identity(data):
    """
    Self-service registration for USER and VENDOR identities.

    Role is fixed at registration and never changes afterwards.
    """
    invalid = non_string_fields(data, CREDENTIAL_FIELDS + ('role',))
    if invalid:
        return invalid_type_result(invalid)

    email = _normalize_email(data.get('email'))
    password = data.get('password')
    role = (data.get('role') or '').strip().upper()

    if role not in Role.SELF_REGISTER:
        return ({"success": False, "error": "Role must be USER or VENDOR"}, 400)

    error = _validate_credentials(email, password)
    if error:
        return ({"success": False, "error": error}, 400)

    if UserIdentity.query.filter_by(email=email).first():
        return ({"success": False, "error": "Email is already registered"}, 409)

    identity = UserIdentity(email=email, role=role, status=IdentityStatus.ACTIVE)
    identity.set_password(password)

    try:
        db.session.add(identity)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return ({"success": False, "error": "Email is already registered"}, 409)

    current_app.logger.info(f"Registered {role} identity {identity.id}")
    return (_session_payload(identity), 201)


def login_identity(data):
    invalid = non_string_fields(data, CREDENTIAL_FIELDS)
    if invalid:
        return invalid_type_result(invalid)

    email = _normalize_email(data.get('email'))
    password = data.get('password') or ''

    identity = UserIdentity.query.filter_by(email=email).first()
    if identity is None or not identity.check_password(password):
        return ({"success": False, "error": "Invalid email or password"}, 401)

    if identity.status == IdentityStatus.SUSPENDED:
        return ({"success": False, "error": "Identity is suspended"}, 403)

    return _session_payload(identity)


def create_admin_identity(super_admin, data):
    invalid = non_string_fields(data, CREDENTIAL_FIELDS)
    if invalid:
        return invalid_type_result(invalid)

    email = _normalize_email(data.get('email'))
    password = data.get('password')

    error = _validate_credentials(email, password)
    if error:
        return ({"success": False, "error": error}, 400)

    if UserIdentity.query.filter_by(email=email).first():
        return ({"success": False, "error": "Email is already registered"}, 409)

    identity = UserIdentity(email=email, role=Role.ADMIN, status=IdentityStatus.ACTIVE)
    identity.set_password(password)
    db.session.add(identity)
    db.session.commit()

    log_admin_action(super_admin.id, 'ADMIN_CREATED', 'UserIdentity', identity.id, {'email': email})
    return ({"success": True, "identity": identity.to_dict()}, 201)


def bind_vendor(admin, user_id, business_id):
    """
    Permanently binds a VENDOR identity to a business.

    One business per vendor and one vendor per business.
    """
    if not user_id or not business_id:
        return ({"success": False, "error": "Missing required fields",
                 "required": ["user_id", "business_id"]}, 400)

    identity = db.session.get(UserIdentity, user_id)
    if identity is None:
        return ({"success": False, "error": "Identity not found"}, 404)

    if identity.role == Role.USER:
        return ({"success": False, "error": "USER identities cannot be bound to a business"}, 403)
    if identity.role in Role.ADMINS:
        return ({"success": False, "error": "ADMIN identities cannot be bound to a business"}, 403)

    ownership, business, error = _bind_ownership(identity, business_id)
    if error:
        return error

    log_admin_action(admin.id, 'VENDOR_BOUND', 'Business', business.id,
                     {'vendor_user_id': identity.id}, county_id=business.county_id)
    return ({"success": True, "ownership": ownership.to_dict(), "bound_by": admin.id}, 201)


def claim_business(identity, business_id):
    """Vendor self-service binding to an unowned business. Same exclusivity as bind_vendor."""
    if identity.role != Role.VENDOR:
        return ({"success": False, "error": f"Access denied: {Role.VENDOR} role required"}, 403)
    if not business_id or not isinstance(business_id, str):
        return ({"success": False, "error": "Missing required fields", "required": ["business_id"]}, 400)

    ownership, business, error = _bind_ownership(identity, business_id)
    if error:
        return error

    current_app.logger.info(f"Vendor {identity.id} claimed business {business.id}")
    return ({"success": True, "ownership": ownership.to_dict(), "business": business.to_dict()}, 201)


def _bind_ownership(identity, business_id):
    """
    Creates the permanent VendorOwnership row.

    Returns:
        tuple: (ownership, business, None) or (None, None, error result)
    """
    if identity.vendor_ownership is not None:
        return None, None, ({"success": False, "error": "Vendor is already bound to a business"}, 409)

    business = db.session.get(Business, business_id)
    if business is None:
        return None, None, ({"success": False, "error": "Business not found"}, 404)

    taken = ({"success": False, "error": "Business is already bound to another vendor"}, 409)
    if VendorOwnership.query.filter_by(business_id=business_id).first() or business.owner_user_id:
        return None, None, taken

    ownership = VendorOwnership(user_id=identity.id, business_id=business.id)
    business.owner_user_id = identity.id

    try:
        db.session.add(ownership)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return None, None, taken
    return ownership, business, None


def list_identities(role=None):
    query = UserIdentity.query
    if role:
        if role not in Role.ALL:
            return ({"success": False, "error": "Invalid role filter"}, 400)
        query = query.filter_by(role=role)
    identities = query.order_by(UserIdentity.created_at.desc()).all()
    return {"success": True, "identities": [identity.to_dict() for identity in identities]}


def set_identity_status(admin, user_id, new_status):
    if new_status not in (IdentityStatus.ACTIVE, IdentityStatus.SUSPENDED):
        return ({"success": False, "error": "Status must be ACTIVE or SUSPENDED"}, 400)

    identity = db.session.get(UserIdentity, user_id)
    if identity is None:
        return ({"success": False, "error": "Identity not found"}, 404)

    if identity.id == admin.id:
        return ({"success": False, "error": "You cannot change your own status"}, 400)
    if identity.role == Role.SUPER_ADMIN:
        return ({"success": False, "error": "SUPER_ADMIN identities cannot be modified"}, 403)

    previous = identity.status
    identity.status = new_status
    db.session.commit()

    log_admin_action(admin.id, 'IDENTITY_STATUS_CHANGED', 'UserIdentity', identity.id,
                     {'from': previous, 'to': new_status})
    return {"success": True, "identity": identity.to_dict()}

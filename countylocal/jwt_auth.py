"""
JWT Authentication and Role Guards

This module issues and verifies the HS256 identity tokens, loads the
UserIdentity behind a Bearer token for Flask-Login, and provides the
role decorators used by the API blueprints.
"""

import jwt
from datetime import timedelta
from functools import wraps
from flask import request, jsonify, g, current_app
from countylocal import db
from countylocal.models import UserIdentity, IdentityStatus, Role
from countylocal.utils.general import utcnow


class JWTAuthError(Exception):
    """Custom exception for JWT authentication errors"""
    def __init__(self, message, status_code=401):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


def create_identity_token(identity):
    """
    Signs a token for the given identity.

    Claims:
        sub: identity id
        email: identity email
        role: identity role
    """
    now = utcnow()
    payload = {
        'sub': identity.id,
        'email': identity.email,
        'role': identity.role,
        'iat': now,
        'exp': now + timedelta(hours=current_app.config['JWT_EXPIRATION_HOURS']),
    }
    return jwt.encode(payload, _jwt_secret(), algorithm='HS256')


def _jwt_secret():
    secret = current_app.config.get('JWT_SECRET')
    if not secret:
        raise JWTAuthError("JWT_SECRET not configured", 500)
    return secret


def extract_token_from_header():
    """
    Extracts the JWT token from the Authorization header.

    Expected format: "Authorization: Bearer <token>"

    Raises:
        JWTAuthError: If Authorization header is missing or malformed
    """
    auth_header = request.headers.get('Authorization')

    if not auth_header:
        raise JWTAuthError("Missing Authorization header", 401)

    parts = auth_header.split()

    if len(parts) != 2 or parts[0].lower() != 'bearer':
        raise JWTAuthError("Invalid Authorization header format. Expected 'Bearer <token>'", 401)

    return parts[1]


def verify_identity_token(token):
    """
    Verifies an identity token and validates its claims.

    Returns:
        dict: Decoded payload with 'sub', 'email' and 'role'

    Raises:
        JWTAuthError: If the token is invalid, expired, or missing claims
    """
    try:
        payload = jwt.decode(token, _jwt_secret(), algorithms=['HS256'])
    except jwt.ExpiredSignatureError:
        raise JWTAuthError("Token has expired", 401)
    except jwt.InvalidTokenError as e:
        raise JWTAuthError(f"Invalid token: {str(e)}", 401)

    if not payload.get('sub'):
        raise JWTAuthError("Token missing 'sub' claim", 401)
    if not payload.get('email'):
        raise JWTAuthError("Token missing 'email' claim", 401)
    if payload.get('role') not in Role.ALL:
        raise JWTAuthError("Token has an invalid role", 401)

    return payload


def authenticate_request():
    """
    Resolves the identity behind the request's Bearer token.

    The role is always read from the database row, never trusted from the token.

    Raises:
        JWTAuthError: 401 for token problems or unknown identities, 403 when suspended
    """
    token = extract_token_from_header()
    payload = verify_identity_token(token)

    identity = db.session.get(UserIdentity, payload['sub'])
    if identity is None:
        raise JWTAuthError("Identity not found", 401)

    if identity.status == IdentityStatus.SUSPENDED:
        raise JWTAuthError("Identity is suspended", 403)

    return identity


def load_identity_from_request(req):
    """Flask-Login request loader. Records the rejection reason for the unauthorized handler."""
    try:
        return authenticate_request()
    except JWTAuthError as e:
        g.auth_error = (e.message, e.status_code)
        return None


def require_jwt(f):
    """
    Decorator to protect routes with identity authentication.

    Injects the authenticated UserIdentity into g.current_user.

    Error Responses:
        401: Missing, invalid, or expired token, or unknown identity
        403: Suspended identity
        500: Server misconfiguration
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            identity = authenticate_request()
        except JWTAuthError as e:
            return jsonify({"message": e.message}), e.status_code

        g.current_user = identity
        g.is_authenticated = True
        return f(*args, **kwargs)

    return decorated_function


def role_required(role):
    """
    Decorator factory requiring an exact role match.

    Must be used AFTER @require_jwt decorator.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, 'current_user', None)

            if not user:
                return jsonify({"message": "Authentication required."}), 401

            if user.role != role:
                return jsonify({"message": f"Access denied: {role} role required"}), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def admin_required(f):
    """
    Decorator to require ADMIN or SUPER_ADMIN role for route access.

    Must be used AFTER @require_jwt decorator.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = getattr(g, 'current_user', None)

        if not user:
            return jsonify({"message": "Authentication required."}), 401

        if user.role not in Role.ADMINS:
            return jsonify({"message": "Access denied: ADMIN role required"}), 403

        return f(*args, **kwargs)

    return decorated_function


def super_admin_required(f):
    """Decorator to require SUPER_ADMIN. Must be used AFTER @require_jwt decorator."""
    return role_required(Role.SUPER_ADMIN)(f)


def vendor_ownership_required(f):
    """
    Decorator to require a VENDOR bound to a business.

    Injects g.vendor_business_id. Must be used AFTER @require_jwt decorator.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = getattr(g, 'current_user', None)

        if not user:
            return jsonify({"message": "Authentication required."}), 401

        if user.role != Role.VENDOR:
            return jsonify({"message": f"Access denied: {Role.VENDOR} role required"}), 403

        if user.vendor_ownership is None:
            return jsonify({"message": "Vendor ownership binding required"}), 403

        g.vendor_business_id = user.vendor_ownership.business_id
        return f(*args, **kwargs)

    return decorated_function

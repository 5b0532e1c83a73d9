"""
County Scoping Decorators

Wraps the county guards in countylocal.services.counties for use on routes.
The resolved county is injected into g.county.
"""

from functools import wraps
from flask import request, jsonify, g
from countylocal import db
from countylocal.models import Business
from countylocal.services.counties import (
    CountyError, require_county_context, require_admin_county_access, resolve_vendor_county
)


def county_context_required(f):
    """
    Resolves the active county from the URL prefix, cookie or headers.

    Error Responses:
        400: No county given
        403: County inactive
        404: County unknown
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            g.county = require_county_context(request.path, request.cookies, request.headers)
        except CountyError as e:
            return jsonify({"success": False, "error": e.message, "error_code": e.status_code}), e.status_code
        return f(*args, **kwargs)

    return decorated_function


def admin_county_required(f):
    """
    Resolves the admin's active county and injects g.county and g.accessible_counties.

    Must be used AFTER @require_jwt. Responds 400 when the admin has no county at all.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            county, accessible = require_admin_county_access(
                g.current_user, request.path, request.cookies, request.headers
            )
        except CountyError as e:
            return jsonify({"success": False, "error": e.message, "error_code": e.status_code}), e.status_code

        if county is None:
            return jsonify({"success": False, "error": "County context is required", "error_code": 400}), 400

        g.county = county
        g.accessible_counties = accessible
        return f(*args, **kwargs)

    return decorated_function


def vendor_county_required(f):
    """
    Checks that a county named by the request is the vendor business's county.

    Must be used AFTER @vendor_ownership_required. Requests naming no county
    get the business's own county in g.county.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        business = db.session.get(Business, g.vendor_business_id)
        try:
            g.county = resolve_vendor_county(business, request.path, request.cookies, request.headers)
        except CountyError as e:
            return jsonify({"success": False, "error": e.message, "error_code": e.status_code}), e.status_code
        return f(*args, **kwargs)

    return decorated_function

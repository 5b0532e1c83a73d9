# countylocal/services/counties.py
# County resolution, county-scoped access checks and super-admin county management.

import re
from flask import current_app
from sqlalchemy.exc import IntegrityError
from countylocal import db
from countylocal.models import (
    County, City, AdminCountyAccess, UserIdentity, Role, LaunchStatus
)
from countylocal.services.audit import log_admin_action
from countylocal.utils.general import utcnow, slugify, non_string_fields, invalid_type_result

COUNTY_COOKIE = 'county_context'
COUNTY_ID_HEADER = 'X-County-Id'
COUNTY_SLUG_HEADER = 'X-County-Slug'

# First path segments that are application routes, never county slugs
RESERVED_PATH_PREFIXES = frozenset([
    'api', 'admin', 'vendor', 'login', 'register', 'scanner', '_next', 'static',
    'favicon.ico', 'debug', 'businesses', 'verify-email', 'super-admin',
])

SLUG_PATTERN = re.compile(r'^[a-z0-9]+(-[a-z0-9]+)*$')

US_STATES = frozenset([
    'AL', 'AK', 'AZ', 'AR', 'CA', 'CO', 'CT', 'DE', 'FL', 'GA', 'HI', 'ID', 'IL',
    'IN', 'IA', 'KS', 'KY', 'LA', 'ME', 'MD', 'MA', 'MI', 'MN', 'MS', 'MO', 'MT',
    'NE', 'NV', 'NH', 'NJ', 'NM', 'NY', 'NC', 'ND', 'OH', 'OK', 'OR', 'PA', 'RI',
    'SC', 'SD', 'TN', 'TX', 'UT', 'VT', 'VA', 'WA', 'WV', 'WI', 'WY', 'DC',
])

LAUNCH_TRANSITIONS = {
    LaunchStatus.DRAFT: LaunchStatus.LIVE_SOFT,
    LaunchStatus.LIVE_SOFT: LaunchStatus.LIVE_PUBLIC,
}


class CountyError(Exception):
    """Raised by the county guards; carries the HTTP status to respond with."""
    def __init__(self, message, status_code):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


# --- RESOLUTION ---

def is_valid_county_slug(slug):
    return bool(slug) and bool(SLUG_PATTERN.match(slug))


def extract_county_slug_from_path(path):
    """'/lake-county/deals' -> 'lake-county'; reserved or malformed prefixes -> None"""
    segments = [segment for segment in (path or '').split('/') if segment]
    if not segments:
        return None
    first = segments[0].lower()
    if first in RESERVED_PATH_PREFIXES or not is_valid_county_slug(first):
        return None
    return first


def resolve_county_reference(path, cookies, headers):
    """
    Returns ('slug', value) or ('id', value) for the request's county, or None.

    Order: URL prefix, then the county_context cookie, then the
    X-County-Id / X-County-Slug headers.
    """
    slug = extract_county_slug_from_path(path)
    if slug:
        return ('slug', slug)

    cookie = (cookies.get(COUNTY_COOKIE) or '').strip().lower()
    if cookie:
        return ('slug', cookie)

    county_id = (headers.get(COUNTY_ID_HEADER) or '').strip()
    if county_id:
        return ('id', county_id)

    header_slug = (headers.get(COUNTY_SLUG_HEADER) or '').strip().lower()
    if header_slug:
        return ('slug', header_slug)

    return None


def _lookup_county(reference):
    kind, value = reference
    if kind == 'id':
        return db.session.get(County, value)
    return County.query.filter_by(slug=value).first()


def require_county_context(path, cookies, headers):
    """
    Resolves the active county for a request.

    Raises:
        CountyError: 400 when none is given, 404 when unknown, 403 when inactive
    """
    reference = resolve_county_reference(path, cookies, headers)
    if reference is None:
        raise CountyError("County context is required", 400)

    county = _lookup_county(reference)
    if county is None:
        raise CountyError("County not found", 404)
    if not county.is_active:
        raise CountyError("County is not active", 403)
    return county


def get_accessible_counties(admin):
    """SUPER_ADMIN sees every county; ADMIN sees only granted ones."""
    if admin.role == Role.SUPER_ADMIN:
        return County.query.order_by(County.state, County.name).all()
    return (County.query
            .join(AdminCountyAccess, AdminCountyAccess.county_id == County.id)
            .filter(AdminCountyAccess.admin_id == admin.id)
            .order_by(County.state, County.name)
            .all())


def require_admin_county_access(admin, path, cookies, headers):
    """
    Resolves the admin's active county and the counties they may switch to.

    When the request names no county, the first accessible county is used.

    Returns:
        tuple: (active_county or None, accessible_counties)

    Raises:
        CountyError: 403 for non-admins or ungranted counties, 404 for unknown counties
    """
    if admin.role not in Role.ADMINS:
        raise CountyError("Access denied: ADMIN role required", 403)

    accessible = get_accessible_counties(admin)
    reference = resolve_county_reference(path, cookies, headers)

    if reference is None:
        return (accessible[0] if accessible else None), accessible

    county = _lookup_county(reference)
    if county is None:
        raise CountyError("County not found", 404)

    if admin.role != Role.SUPER_ADMIN and county.id not in {c.id for c in accessible}:
        raise CountyError("Access denied to this county", 403)

    return county, accessible


def require_vendor_county_match(business, county):
    if business.county_id != county.id:
        raise CountyError("Vendor business is in a different county", 403)


def validate_entity_county(entity_county_id, county):
    if entity_county_id != county.id:
        raise CountyError("Entity does not belong to active county", 403)


def check_entity_county(entity_county_id, county):
    """validate_entity_county as a service result: None when allowed or unscoped."""
    if county is None:
        return None
    try:
        validate_entity_county(entity_county_id, county)
    except CountyError as e:
        return ({"success": False, "error": e.message}, e.status_code)
    return None


def resolve_vendor_county(business, path, cookies, headers):
    """
    Returns the county named by a vendor request, or the business's own county.

    Raises:
        CountyError: 404 for unknown counties, 403 when it is not the business's county
    """
    reference = resolve_county_reference(path, cookies, headers)
    if reference is None:
        return db.session.get(County, business.county_id)

    county = _lookup_county(reference)
    if county is None:
        raise CountyError("County not found", 404)
    require_vendor_county_match(business, county)
    return county


# --- PUBLIC LISTING ---

def list_active_counties():
    counties = (County.query.filter_by(is_active=True)
                .order_by(County.state, County.name).all())
    return {"success": True, "counties": [county.to_dict() for county in counties]}


# --- SUPER ADMIN: COUNTY MANAGEMENT ---

def create_county(super_admin, data):
    invalid = non_string_fields(data, ('name', 'state', 'slug'))
    if invalid:
        return invalid_type_result(invalid)

    name = (data.get('name') or '').strip()
    state = (data.get('state') or '').strip().upper()
    slug = (data.get('slug') or slugify(name)).strip().lower()

    if not name:
        return ({"success": False, "error": "name is required"}, 400)
    if state not in US_STATES:
        return ({"success": False, "error": "state must be a valid 2-letter US state code"}, 400)
    if not is_valid_county_slug(slug):
        return ({"success": False, "error": "slug must be lowercase letters, digits and single hyphens"}, 400)
    if County.query.filter_by(slug=slug).first():
        return ({"success": False, "error": "A county with this slug already exists"}, 409)

    county = County(name=name, state=state, slug=slug,
                    is_active=bool(data.get('is_active', True)))
    try:
        db.session.add(county)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return ({"success": False, "error": "A county with this slug already exists"}, 409)

    log_admin_action(super_admin.id, 'COUNTY_CREATED', 'County', county.id,
                     {'slug': slug}, county_id=county.id)
    return ({"success": True, "county": county.to_dict()}, 201)


def update_county(super_admin, county_id, data):
    county = db.session.get(County, county_id)
    if county is None:
        return ({"success": False, "error": "County not found"}, 404)

    invalid = non_string_fields(data, ('name',))
    if invalid:
        return invalid_type_result(invalid)

    changes = {}
    if 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            return ({"success": False, "error": "name cannot be empty"}, 400)
        county.name = changes['name'] = name
    if 'is_active' in data:
        county.is_active = changes['is_active'] = bool(data['is_active'])

    db.session.commit()
    log_admin_action(super_admin.id, 'COUNTY_UPDATED', 'County', county.id, changes, county_id=county.id)
    return {"success": True, "county": county.to_dict()}


def advance_launch_status(super_admin, county_id, target_status):
    """Moves a county one step forward: DRAFT -> LIVE_SOFT -> LIVE_PUBLIC."""
    county = db.session.get(County, county_id)
    if county is None:
        return ({"success": False, "error": "County not found"}, 404)

    expected = LAUNCH_TRANSITIONS.get(county.launch_status)
    if expected is None or target_status != expected:
        return ({"success": False,
                 "error": f"Invalid launch transition: {county.launch_status} -> {target_status}"}, 409)

    if not county.is_active:
        return ({"success": False, "error": "County must be active before launch"}, 409)

    active_cities = City.query.filter_by(county_id=county.id, is_active=True).count()
    if active_cities == 0:
        return ({"success": False, "error": "County needs at least one active city before launch"}, 409)

    previous = county.launch_status
    county.launch_status = target_status
    if target_status == LaunchStatus.LIVE_PUBLIC:
        county.launched_at = utcnow()
    db.session.commit()

    current_app.logger.info(f"County {county.slug} advanced {previous} -> {target_status}")
    log_admin_action(super_admin.id, 'COUNTY_LAUNCH_ADVANCED', 'County', county.id,
                     {'from': previous, 'to': target_status}, county_id=county.id)
    return {"success": True, "county": county.to_dict()}


def list_county_admins(county_id):
    county = db.session.get(County, county_id)
    if county is None:
        return ({"success": False, "error": "County not found"}, 404)

    grants = AdminCountyAccess.query.filter_by(county_id=county_id).all()
    admins = []
    for grant in grants:
        admin = db.session.get(UserIdentity, grant.admin_id)
        admins.append({**grant.to_dict(), 'email': admin.email if admin else None})
    return {"success": True, "county": county.to_dict(), "admins": admins}


def grant_admin_access(super_admin, county_id, admin_id):
    county = db.session.get(County, county_id)
    if county is None:
        return ({"success": False, "error": "County not found"}, 404)

    admin = db.session.get(UserIdentity, admin_id)
    if admin is None:
        return ({"success": False, "error": "Identity not found"}, 404)
    if admin.role != Role.ADMIN:
        return ({"success": False, "error": "County access can only be granted to ADMIN identities"}, 400)

    if AdminCountyAccess.query.filter_by(admin_id=admin_id, county_id=county_id).first():
        return ({"success": False, "error": "Admin already has access to this county"}, 409)

    grant = AdminCountyAccess(admin_id=admin_id, county_id=county_id, granted_by=super_admin.id)
    try:
        db.session.add(grant)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return ({"success": False, "error": "Admin already has access to this county"}, 409)

    log_admin_action(super_admin.id, 'COUNTY_ACCESS_GRANTED', 'UserIdentity', admin_id,
                     {'county_id': county_id}, county_id=county_id)
    return ({"success": True, "access": grant.to_dict()}, 201)


def revoke_admin_access(super_admin, county_id, admin_id):
    grant = AdminCountyAccess.query.filter_by(admin_id=admin_id, county_id=county_id).first()
    if grant is None:
        return ({"success": False, "error": "Access grant not found"}, 404)

    db.session.delete(grant)
    db.session.commit()
    log_admin_action(super_admin.id, 'COUNTY_ACCESS_REVOKED', 'UserIdentity', admin_id,
                     {'county_id': county_id}, county_id=county_id)
    return {"success": True}


# --- CITIES ---

def list_cities(county):
    cities = (City.query.filter_by(county_id=county.id)
              .order_by(City.display_order, City.name).all())
    return {"success": True, "cities": [city.to_dict() for city in cities]}


def create_city(admin, county, data):
    invalid = non_string_fields(data, ('name',))
    if invalid:
        return invalid_type_result(invalid)

    display_order = data.get('display_order') or 0
    if not isinstance(display_order, int) or isinstance(display_order, bool):
        return invalid_type_result(['display_order'], expected='integer')

    name = (data.get('name') or '').strip()
    if not name:
        return ({"success": False, "error": "name is required"}, 400)

    slug = slugify(name)
    if City.query.filter_by(county_id=county.id, slug=slug).first():
        return ({"success": False, "error": "A city with this name already exists in the county"}, 409)

    city = City(county_id=county.id, name=name, slug=slug,
                is_active=bool(data.get('is_active', True)),
                display_order=display_order)
    db.session.add(city)
    db.session.commit()

    log_admin_action(admin.id, 'CITY_CREATED', 'City', city.id, {'name': name}, county_id=county.id)
    return ({"success": True, "city": city.to_dict()}, 201)

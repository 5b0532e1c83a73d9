# countylocal/services/businesses.py
# Business records, status transitions and vendor subscriptions.

from datetime import datetime
from flask import current_app
from sqlalchemy import func
from countylocal import db
from countylocal.models import (
    Business, BusinessStatus, Subscription, SubscriptionStatus, Voucher, Role, City, DealStatus,
    FounderStatus
)
from countylocal.services.audit import log_admin_action
from countylocal.services.counties import check_entity_county
from countylocal.utils.general import (
    utcnow, isoformat, slugify, parse_datetime, non_string_fields, invalid_type_result
)

ALLOWED_STATUS_TRANSITIONS = {
    BusinessStatus.DRAFT: (BusinessStatus.ACTIVE,),
    BusinessStatus.ACTIVE: (BusinessStatus.SUSPENDED,),
    BusinessStatus.SUSPENDED: (BusinessStatus.ACTIVE,),
}

# Fields a vendor may edit on its own listing
VENDOR_EDITABLE_FIELDS = ('description', 'phone', 'website', 'address_line1', 'city', 'postal_code')
ADMIN_EDITABLE_FIELDS = VENDOR_EDITABLE_FIELDS + ('name', 'category', 'state', 'city_id',
                                                  'is_verified', 'is_featured')
TEXT_FIELDS = ('name', 'category', 'description', 'phone', 'website', 'address_line1',
               'city', 'state', 'postal_code')

FOUNDERS_PLAN = 'founders-free'


def is_valid_status_transition(from_status, to_status):
    return to_status in ALLOWED_STATUS_TRANSITIONS.get(from_status, ())


def has_active_subscription(business, now=None):
    return business.subscription is not None and business.subscription.is_current(now)


def is_founder(business, now=None):
    return business.founder_status is not None and business.founder_status.is_current(now)


def _unique_slug(county_id, name):
    base = slugify(name) or 'business'
    slug = base
    suffix = 2
    while Business.query.filter_by(county_id=county_id, slug=slug).first():
        slug = f"{base}-{suffix}"
        suffix += 1
    return slug


def get_business(business_id):
    business = db.session.get(Business, business_id)
    if business is None:
        return ({"success": False, "error": "Business not found"}, 404)
    return {"success": True, "business": business.to_dict()}


def create_business(admin, county, data):
    """Admin-side creation. Vendors gain businesses only through binding."""
    invalid = non_string_fields(data, TEXT_FIELDS)
    if invalid:
        return invalid_type_result(invalid)

    name = (data.get('name') or '').strip()
    category = (data.get('category') or '').strip()

    missing = [field for field, value in (('name', name), ('category', category)) if not value]
    if missing:
        return ({"success": False, "error": "Missing required fields", "required": missing}, 400)

    city_id = data.get('city_id')
    if city_id:
        city = db.session.get(City, city_id)
        if city is None or city.county_id != county.id:
            return ({"success": False, "error": "City does not belong to active county"}, 400)

    business = Business(
        county_id=county.id,
        city_id=city_id,
        name=name,
        slug=_unique_slug(county.id, name),
        category=category,
        description=data.get('description'),
        address_line1=data.get('address_line1'),
        city=data.get('city'),
        state=(data.get('state') or county.state),
        postal_code=data.get('postal_code'),
        phone=data.get('phone'),
        website=data.get('website'),
        business_status=BusinessStatus.DRAFT,
    )

    try:
        db.session.add(business)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create business '{name}': {str(e)}")
        return ({"success": False, "error": "Database error creating business"}, 500)

    log_admin_action(admin.id, 'BUSINESS_CREATED', 'Business', business.id,
                     {'name': name}, county_id=county.id)
    return ({"success": True, "business": business.to_dict()}, 201)


def update_business(identity, business_id, data, county=None):
    business = db.session.get(Business, business_id)
    if business is None:
        return ({"success": False, "error": "Business not found"}, 404)

    if identity.role in Role.ADMINS:
        error = check_entity_county(business.county_id, county)
        if error:
            return error
        editable = ADMIN_EDITABLE_FIELDS
    else:
        if business.owner_user_id != identity.id:
            return ({"success": False, "error": "You do not own this business"}, 403)
        editable = VENDOR_EDITABLE_FIELDS

    changes = {field: data[field] for field in editable if field in data}
    if not changes:
        return ({"success": False, "error": "No editable fields provided",
                 "editable": list(editable)}, 400)

    invalid = non_string_fields(changes, TEXT_FIELDS)
    if invalid:
        return invalid_type_result(invalid)

    if 'name' in changes and not (changes['name'] or '').strip():
        return ({"success": False, "error": "name cannot be empty"}, 400)

    for field, value in changes.items():
        setattr(business, field, value)
    db.session.commit()

    if identity.role in Role.ADMINS:
        log_admin_action(identity.id, 'BUSINESS_UPDATED', 'Business', business.id,
                         {'fields': sorted(changes)}, county_id=business.county_id)
    return {"success": True, "business": business.to_dict()}


def set_business_status(admin, business_id, new_status, county=None):
    business = db.session.get(Business, business_id)
    if business is None:
        return ({"success": False, "error": "Business not found"}, 404)
    error = check_entity_county(business.county_id, county)
    if error:
        return error

    if not is_valid_status_transition(business.business_status, new_status):
        return ({"success": False,
                 "error": f"Invalid status transition: {business.business_status} -> {new_status}"}, 400)

    previous = business.business_status
    business.business_status = new_status
    db.session.commit()

    current_app.logger.info(f"Business {business.id} status {previous} -> {new_status}")
    log_admin_action(admin.id, 'BUSINESS_STATUS_CHANGED', 'Business', business.id,
                     {'from': previous, 'to': new_status}, county_id=business.county_id)
    return {"success": True, "business": business.to_dict()}


def delete_business(business_id):
    # Businesses are suspended, never deleted
    return ({"success": False, "error": "Business deletion is not allowed"}, 405)


# --- SUBSCRIPTIONS ---

def activate_subscription(business, plan):
    plans = current_app.config['SUBSCRIPTION_PLANS']
    if plan not in plans:
        return ({"success": False, "error": "Invalid plan"}, 400)
    if plan == FOUNDERS_PLAN and not is_founder(business):
        return ({"success": False, "error": "The founders-free plan requires founder status"}, 403)

    now = utcnow()
    subscription = business.subscription
    if subscription is None:
        subscription = Subscription(business_id=business.id)
        db.session.add(subscription)

    subscription.status = SubscriptionStatus.ACTIVE
    subscription.plan = plan
    subscription.started_at = now
    subscription.ends_at = None
    business.monthly_voucher_allowance = plans[plan]

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Subscription activation failed for {business.id}: {str(e)}")
        return ({"success": False, "error": "Failed to activate subscription"}, 500)

    current_app.logger.info(f"Subscription '{plan}' activated for business {business.id}")
    return {"success": True, "subscription": subscription.to_dict(),
            "monthly_voucher_allowance": business.monthly_voucher_allowance}


def cancel_subscription(business):
    subscription = business.subscription
    if subscription is None or subscription.status != SubscriptionStatus.ACTIVE:
        return ({"success": False, "error": "No active subscription"}, 400)

    subscription.status = SubscriptionStatus.CANCELED
    subscription.ends_at = utcnow()
    db.session.commit()

    current_app.logger.info(f"Subscription canceled for business {business.id}")
    return {"success": True, "subscription": subscription.to_dict()}


def month_start(now=None):
    now = now or utcnow()
    return datetime(now.year, now.month, 1)


def count_vouchers_issued_this_month(business_id, now=None):
    return (db.session.query(func.count(Voucher.id))
            .filter(Voucher.business_id == business_id,
                    Voucher.issued_at >= month_start(now))
            .scalar()) or 0


def subscription_status(business):
    subscription = business.subscription
    return {
        "success": True,
        "business_id": business.id,
        "subscription": subscription.to_dict() if subscription else None,
        "is_active": has_active_subscription(business),
        "monthly_voucher_allowance": business.monthly_voucher_allowance,
        "vouchers_issued_this_month": count_vouchers_issued_this_month(business.id),
    }


# --- FOUNDERS ---

def assign_founder(admin, business_id, county, expires_at=None):
    """
    Grants founder status, which unlocks the founders-free plan.

    A previously removed grant is reactivated rather than duplicated.
    """
    if not business_id or not isinstance(business_id, str):
        return ({"success": False, "error": "business_id is required"}, 400)

    try:
        expires_at = parse_datetime(expires_at)
    except ValueError:
        return ({"success": False, "error": "Invalid expires_at date format"}, 400)
    if expires_at is not None and expires_at <= utcnow():
        return ({"success": False, "error": "expires_at must be in the future"}, 400)

    business = db.session.get(Business, business_id)
    if business is None:
        return ({"success": False, "error": "Business not found"}, 404)
    error = check_entity_county(business.county_id, county)
    if error:
        return error

    founder = business.founder_status
    if founder is not None and founder.is_active:
        return ({"success": False, "error": "Business already has founder status"}, 409)

    reactivated = founder is not None
    if founder is None:
        founder = FounderStatus(business_id=business.id, county_id=business.county_id)
        db.session.add(founder)
    founder.is_active = True
    founder.granted_at = utcnow()
    founder.granted_by = admin.id
    founder.expires_at = expires_at
    founder.removed_at = None
    founder.removed_by = None
    db.session.commit()

    log_admin_action(admin.id, 'FOUNDER_ASSIGNED', 'FounderStatus', founder.id,
                     {'business_id': business.id, 'business_name': business.name,
                      'expires_at': isoformat(founder.expires_at), 'reactivated': reactivated},
                     county_id=business.county_id)
    return ({"success": True, "founder": founder.to_dict()}, 200 if reactivated else 201)


def remove_founder(admin, business_id, county, reason=None):
    """Deactivates founder status and ends a founders-free subscription."""
    if not business_id or not isinstance(business_id, str):
        return ({"success": False, "error": "business_id is required"}, 400)

    business = db.session.get(Business, business_id)
    if business is None:
        return ({"success": False, "error": "Business not found"}, 404)
    error = check_entity_county(business.county_id, county)
    if error:
        return error

    founder = business.founder_status
    if founder is None:
        return ({"success": False, "error": "Founder status not found for this business"}, 404)
    if not founder.is_active:
        return ({"success": False, "error": "Founder status already removed"}, 409)

    now = utcnow()
    founder.is_active = False
    founder.removed_at = now
    founder.removed_by = admin.id

    subscription = business.subscription
    if (subscription is not None and subscription.plan == FOUNDERS_PLAN
            and subscription.status == SubscriptionStatus.ACTIVE):
        subscription.status = SubscriptionStatus.CANCELED
        subscription.ends_at = now
    db.session.commit()

    log_admin_action(admin.id, 'FOUNDER_REMOVED', 'FounderStatus', founder.id,
                     {'business_id': business.id, 'reason': reason,
                      'duration_days': (now - founder.granted_at).days},
                     county_id=business.county_id)
    return {"success": True, "founder": founder.to_dict()}


def list_founders(county):
    founders = (FounderStatus.query.filter_by(county_id=county.id)
                .order_by(FounderStatus.granted_at.desc()).all())
    return {"success": True, "founders": [
        {**founder.to_dict(), "business_name": founder.business.name} for founder in founders
    ]}


# --- PUBLIC DIRECTORY ---

def list_public_businesses(county, category=None):
    query = Business.query.filter_by(county_id=county.id, business_status=BusinessStatus.ACTIVE)
    if category:
        query = query.filter_by(category=category)
    businesses = query.order_by(Business.is_featured.desc(), Business.name).all()
    return {
        "success": True,
        "county": county.to_dict(),
        "businesses": [business.to_public_dict() for business in businesses],
    }


def get_public_business(county, slug):
    business = Business.query.filter_by(county_id=county.id, slug=slug).first()
    if business is None or business.business_status != BusinessStatus.ACTIVE:
        return ({"success": False, "error": "Business not found"}, 404)

    deals = business.deals.filter_by(deal_status=DealStatus.ACTIVE).all()
    return {
        "success": True,
        "business": business.to_public_dict(),
        "deals": [deal.to_dict() for deal in deals],
    }

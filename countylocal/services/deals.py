# countylocal/services/deals.py
# Deal creation, validation and the INACTIVE -> ACTIVE -> EXPIRED lifecycle.

from datetime import datetime
from flask import current_app
from countylocal import db
from countylocal.models import Deal, DealStatus, Business, BusinessStatus, Role
from countylocal.services.audit import log_admin_action
from countylocal.services.counties import check_entity_county
from countylocal.utils.general import utcnow, parse_datetime

EDITABLE_FIELDS = (
    'title', 'description', 'deal_category', 'original_value', 'deal_price',
    'redemption_window_start', 'redemption_window_end', 'voucher_quantity_limit',
    'expiration_days',
)

REQUIRED_FOR_ACTIVATION = (
    'title', 'description', 'original_value', 'deal_price',
    'redemption_window_start', 'redemption_window_end', 'voucher_quantity_limit',
)

DATETIME_FIELDS = ('redemption_window_start', 'redemption_window_end')

TEXT_FIELDS = ('title', 'description', 'deal_category')


def _is_positive_int(value):
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_deal_input(data):
    """
    Validates deal fields that are present in data.

    Returns:
        tuple: (cleaned dict, list of error strings)
    """
    errors = []
    cleaned = {}

    for field in EDITABLE_FIELDS:
        if field in data:
            cleaned[field] = data[field]

    for field in TEXT_FIELDS:
        if cleaned.get(field) is not None and not isinstance(cleaned[field], str):
            errors.append(f"{field} must be a string")
            cleaned.pop(field)

    if 'title' in cleaned and not (cleaned['title'] or '').strip():
        errors.append("title cannot be empty")

    for field in DATETIME_FIELDS:
        if cleaned.get(field) is not None:
            try:
                cleaned[field] = parse_datetime(cleaned[field])
            except ValueError:
                errors.append(f"{field} must be an ISO 8601 datetime")
                cleaned.pop(field)

    original_value = cleaned.get('original_value')
    deal_price = cleaned.get('deal_price')

    if original_value is not None and (not _is_number(original_value) or original_value <= 0):
        errors.append("original_value must be greater than 0")
    if deal_price is not None and (not _is_number(deal_price) or deal_price <= 0):
        errors.append("deal_price must be greater than 0")
    if (_is_number(original_value) and _is_number(deal_price)
            and original_value > 0 and deal_price > 0 and deal_price >= original_value):
        errors.append("deal_price must be less than original_value")

    start = cleaned.get('redemption_window_start')
    end = cleaned.get('redemption_window_end')
    if isinstance(start, datetime) and isinstance(end, datetime) and end <= start:
        errors.append("redemption_window_end must be after redemption_window_start")

    limit = cleaned.get('voucher_quantity_limit')
    if limit is not None and not _is_positive_int(limit):
        errors.append("voucher_quantity_limit must be a positive integer")

    days = cleaned.get('expiration_days')
    if days is not None and not _is_positive_int(days):
        errors.append("expiration_days must be a positive integer")

    return cleaned, errors


def _merged_for_validation(deal, changes):
    """Current deal values overlaid with changes, so cross-field rules see both."""
    merged = {field: getattr(deal, field) for field in EDITABLE_FIELDS}
    merged.update(changes)
    return merged


def create_deal(identity, data):
    if identity.role == Role.VENDOR:
        if identity.vendor_ownership is None:
            return ({"success": False, "error": "Vendor ownership binding required"}, 403)
        business_id = identity.vendor_ownership.business_id
    elif identity.role in Role.ADMINS:
        business_id = data.get('business_id')
        if not business_id:
            return ({"success": False, "error": "business_id is required"}, 400)
    else:
        return ({"success": False, "error": "Access denied: VENDOR role required"}, 403)

    business = db.session.get(Business, business_id)
    if business is None:
        return ({"success": False, "error": "Business not found"}, 404)

    title = data.get('title')
    if title is None or (isinstance(title, str) and not title.strip()):
        return ({"success": False, "error": "Validation failed", "details": ["title is required"]}, 400)

    cleaned, errors = validate_deal_input(data)
    if errors:
        return ({"success": False, "error": "Validation failed", "details": errors}, 400)

    deal = Deal(
        business_id=business.id,
        county_id=business.county_id,
        created_by_user_id=identity.id,
        deal_status=DealStatus.INACTIVE,
        **cleaned
    )
    db.session.add(deal)
    db.session.commit()

    current_app.logger.info(f"Deal {deal.id} created for business {business.id}")
    return ({"success": True, "deal": deal.to_dict()}, 201)


def _load_deal_for_editor(identity, deal_id):
    deal = db.session.get(Deal, deal_id)
    if deal is None:
        return None, ({"success": False, "error": "Deal not found"}, 404)

    if identity.role == Role.VENDOR:
        owned = identity.vendor_ownership
        if owned is None or owned.business_id != deal.business_id:
            # Other vendors' deals are indistinguishable from missing ones
            return None, ({"success": False, "error": "Deal not found"}, 404)
    elif identity.role not in Role.ADMINS:
        return None, ({"success": False, "error": "Access denied: VENDOR role required"}, 403)

    return deal, None


def update_deal(identity, deal_id, data):
    deal, error = _load_deal_for_editor(identity, deal_id)
    if error:
        return error

    if deal.deal_status != DealStatus.INACTIVE:
        return ({"success": False, "error": "Deal can only be edited while INACTIVE"}, 409)

    cleaned, errors = validate_deal_input(data)
    if not errors:
        _, errors = validate_deal_input(_merged_for_validation(deal, cleaned))
    if errors:
        return ({"success": False, "error": "Validation failed", "details": errors}, 400)

    for field, value in cleaned.items():
        setattr(deal, field, value)
    db.session.commit()
    return {"success": True, "deal": deal.to_dict()}


def activate_deal(admin, deal_id, county=None):
    """
    INACTIVE -> ACTIVE. Admin only; the business must be ACTIVE and the deal complete.
    """
    deal = db.session.get(Deal, deal_id)
    if deal is None:
        return ({"success": False, "error": "Deal not found"}, 404)
    error = check_entity_county(deal.county_id, county)
    if error:
        return error

    if deal.deal_status != DealStatus.INACTIVE:
        return ({"success": False,
                 "error": f"Deal cannot be activated from status {deal.deal_status}"}, 409)

    business = db.session.get(Business, deal.business_id)
    if business is None or business.business_status != BusinessStatus.ACTIVE:
        return ({"success": False, "error": "Business is not active"}, 403)

    missing = [field for field in REQUIRED_FOR_ACTIVATION
               if getattr(deal, field) in (None, '')]
    if missing:
        return ({"success": False, "error": "Deal is missing required fields",
                 "details": {"missing": missing}}, 400)

    deal.deal_status = DealStatus.ACTIVE
    deal.last_active_at = utcnow()
    db.session.commit()

    log_admin_action(admin.id, 'DEAL_ACTIVATED', 'Deal', deal.id, {}, county_id=deal.county_id)
    return {"success": True, "deal": deal.to_dict()}


def expire_deal(admin, deal_id, county=None):
    deal = db.session.get(Deal, deal_id)
    if deal is None:
        return ({"success": False, "error": "Deal not found"}, 404)
    error = check_entity_county(deal.county_id, county)
    if error:
        return error

    if deal.deal_status == DealStatus.EXPIRED:
        return ({"success": False, "error": "Deal is already expired"}, 409)
    if deal.deal_status != DealStatus.ACTIVE:
        return ({"success": False, "error": "Only ACTIVE deals can be expired"}, 409)

    deal.deal_status = DealStatus.EXPIRED
    db.session.commit()

    log_admin_action(admin.id, 'DEAL_EXPIRED', 'Deal', deal.id, {}, county_id=deal.county_id)
    return {"success": True, "deal": deal.to_dict()}


def delete_deal(deal_id):
    return ({"success": False, "error": "Deal deletion is not allowed"}, 405)


def get_public_deal(deal_id):
    deal = db.session.get(Deal, deal_id)
    if deal is None or deal.deal_status != DealStatus.ACTIVE:
        return ({"success": False, "error": "Deal not found"}, 404)

    business = db.session.get(Business, deal.business_id)
    if business is None or business.business_status != BusinessStatus.ACTIVE:
        return ({"success": False, "error": "Deal not found"}, 404)

    return {
        "success": True,
        "deal": deal.to_dict(),
        "business": business.to_public_dict(),
    }


def list_vendor_deals(business_id, status=None):
    query = Deal.query.filter_by(business_id=business_id)
    if status:
        query = query.filter_by(deal_status=status)
    deals = query.order_by(Deal.created_at.desc()).all()
    return {"success": True, "deals": [deal.to_dict() for deal in deals]}


def list_county_deals(county, status=None):
    query = Deal.query.filter_by(county_id=county.id)
    if status:
        query = query.filter_by(deal_status=status)
    deals = query.order_by(Deal.created_at.desc()).all()
    return {"success": True, "county": county.to_dict(), "deals": [deal.to_dict() for deal in deals]}


def list_public_deals(county, category=None):
    query = (Deal.query
             .join(Business, Business.id == Deal.business_id)
             .filter(Deal.county_id == county.id,
                     Deal.deal_status == DealStatus.ACTIVE,
                     Business.business_status == BusinessStatus.ACTIVE))
    if category:
        query = query.filter(Deal.deal_category == category)
    deals = query.order_by(Deal.last_active_at.desc()).all()
    return {
        "success": True,
        "county": county.to_dict(),
        "deals": [{**deal.to_dict(), "business_name": deal.business.name} for deal in deals],
    }

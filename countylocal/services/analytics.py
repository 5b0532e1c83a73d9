# countylocal/services/analytics.py
# Vendor and platform metrics for dashboards

from datetime import timedelta
from flask import current_app
from sqlalchemy import func
from countylocal import db
from countylocal.models import (
    Deal, DealStatus, Voucher, VoucherStatus, Purchase, PurchaseStatus,
    Business, Redemption
)
from countylocal.utils.general import utcnow

TIMEFRAME_DAYS = {
    '7d': 7,
    '30d': 30,
    '90d': 90,
    'all': None,
}


def is_valid_timeframe(timeframe):
    return timeframe in TIMEFRAME_DAYS


def _timeframe_start(timeframe, now):
    days = TIMEFRAME_DAYS[timeframe]
    return now - timedelta(days=days) if days else None


def _invalid_timeframe():
    return ({"success": False, "error": "Invalid timeframe. Use: 7d, 30d, 90d, or all"}, 400)


def _count(query):
    return query.scalar() or 0


def _revenue(purchase_filters, since):
    """
    Sums COMPLETED purchases matching purchase_filters.

    Returns:
        dict: gross, platform_fee, net and purchase count
    """
    query = (db.session.query(func.coalesce(func.sum(Purchase.amount_paid), 0.0), func.count(Purchase.id))
             .join(Deal, Deal.id == Purchase.deal_id)
             .filter(Purchase.status == PurchaseStatus.COMPLETED, *purchase_filters))
    if since is not None:
        query = query.filter(Purchase.created_at >= since)

    gross, purchases = query.one()
    gross = round(float(gross or 0.0), 2)
    fee_rate = current_app.config['PLATFORM_FEE_RATE']
    platform_fee = round(gross * fee_rate, 2)

    return {
        "gross": gross,
        "platform_fee": platform_fee,
        "net": round(gross - platform_fee, 2),
        "purchases": purchases or 0,
    }


def _voucher_metrics(voucher_filter, since, now):
    """
    Voucher funnel for the vouchers matching voucher_filter.

    purchased counts vouchers that reached a buyer (ASSIGNED or later via a purchase).
    """
    def base(*criteria):
        query = db.session.query(func.count(Voucher.id)).filter(voucher_filter, *criteria)
        if since is not None:
            query = query.filter(Voucher.issued_at >= since)
        return query

    issued = _count(base())
    purchased = _count(base().join(Purchase, Purchase.voucher_id == Voucher.id)
                       .filter(Purchase.status == PurchaseStatus.COMPLETED))
    redeemed = _count(base(Voucher.status == VoucherStatus.REDEEMED))
    expired = _count(base(Voucher.status != VoucherStatus.REDEEMED,
                          Voucher.expires_at.isnot(None),
                          Voucher.expires_at < now))
    pending = _count(base(Voucher.status == VoucherStatus.ASSIGNED,
                          (Voucher.expires_at.is_(None)) | (Voucher.expires_at >= now)))

    return {
        "issued": issued,
        "purchased": purchased,
        "redeemed": redeemed,
        "expired": expired,
        "pending": pending,
    }


def _rates(vouchers, revenue):
    purchased = vouchers["purchased"]
    return {
        "redemption_rate": round(vouchers["redeemed"] / purchased * 100, 1) if purchased else 0.0,
        "average_order_value": round(revenue["gross"] / revenue["purchases"], 2) if revenue["purchases"] else 0.0,
    }


def vendor_overview(business_id, timeframe='30d'):
    """
    Returns the dashboard metrics for one vendor business.

    Returns:
        tuple: (dict, status_code) on error, or dict on success
    """
    if not is_valid_timeframe(timeframe):
        return _invalid_timeframe()

    try:
        now = utcnow()
        since = _timeframe_start(timeframe, now)

        total_deals = _count(db.session.query(func.count(Deal.id))
                             .filter(Deal.business_id == business_id))
        active_deals = _count(db.session.query(func.count(Deal.id))
                              .filter(Deal.business_id == business_id,
                                      Deal.deal_status == DealStatus.ACTIVE))

        vouchers = _voucher_metrics(Voucher.business_id == business_id, since, now)
        revenue = _revenue([Deal.business_id == business_id], since)

        return {
            "success": True,
            "timeframe": timeframe,
            "business_id": business_id,
            "deals": {"total": total_deals, "active": active_deals},
            "vouchers": vouchers,
            "revenue": revenue,
            **_rates(vouchers, revenue),
        }
    except Exception as e:
        current_app.logger.error(f"Vendor analytics failed for {business_id}: {str(e)}")
        return ({"success": False, "error": f"Database error: {str(e)}"}, 500)


def vendor_deal_analytics(business_id, deal_id, timeframe='all'):
    if not is_valid_timeframe(timeframe):
        return _invalid_timeframe()

    deal = db.session.get(Deal, deal_id)
    if deal is None or deal.business_id != business_id:
        return ({"success": False, "error": "Deal not found"}, 404)

    now = utcnow()
    since = _timeframe_start(timeframe, now)
    vouchers = _voucher_metrics(Voucher.deal_id == deal.id, since, now)
    revenue = _revenue([Purchase.deal_id == deal.id], since)

    return {
        "success": True,
        "timeframe": timeframe,
        "deal": deal.to_dict(),
        "vouchers": vouchers,
        "revenue": revenue,
        **_rates(vouchers, revenue),
    }


def vendor_revenue(business_id, timeframe='30d'):
    if not is_valid_timeframe(timeframe):
        return _invalid_timeframe()

    since = _timeframe_start(timeframe, utcnow())
    return {
        "success": True,
        "timeframe": timeframe,
        "revenue": _revenue([Deal.business_id == business_id], since),
    }


def platform_overview(county, timeframe='30d'):
    """County-wide metrics for the admin console."""
    if not is_valid_timeframe(timeframe):
        return _invalid_timeframe()

    try:
        now = utcnow()
        since = _timeframe_start(timeframe, now)

        business_rows = (db.session.query(Business.business_status, func.count(Business.id))
                         .filter(Business.county_id == county.id)
                         .group_by(Business.business_status).all())

        voucher_query = (db.session.query(Voucher.status, func.count(Voucher.id))
                         .filter(Voucher.county_id == county.id))
        if since is not None:
            voucher_query = voucher_query.filter(Voucher.issued_at >= since)
        voucher_rows = voucher_query.group_by(Voucher.status).all()

        active_deals = _count(db.session.query(func.count(Deal.id))
                              .filter(Deal.county_id == county.id,
                                      Deal.deal_status == DealStatus.ACTIVE))

        top_query = (db.session.query(Deal.id, Deal.title, func.count(Voucher.id).label('redemptions'))
                     .join(Voucher, Voucher.deal_id == Deal.id)
                     .filter(Deal.county_id == county.id, Voucher.status == VoucherStatus.REDEEMED))
        if since is not None:
            top_query = top_query.filter(Voucher.redeemed_at >= since)
        top_deals = (top_query.group_by(Deal.id, Deal.title)
                     .order_by(func.count(Voucher.id).desc())
                     .limit(5).all())

        identity_redemptions = db.session.query(func.count(Redemption.id)).join(
            Deal, Deal.id == Redemption.deal_id).filter(Deal.county_id == county.id)
        if since is not None:
            identity_redemptions = identity_redemptions.filter(Redemption.redeemed_at >= since)

        return {
            "success": True,
            "timeframe": timeframe,
            "county": county.to_dict(),
            "businesses": {status: count for status, count in business_rows},
            "active_deals": active_deals,
            "vouchers": {status: count for status, count in voucher_rows},
            "vendor_redemptions": _count(identity_redemptions),
            "revenue": _revenue([Deal.county_id == county.id], since),
            "top_deals": [
                {"deal_id": deal_id, "title": title, "redemptions": redemptions}
                for deal_id, title, redemptions in top_deals
            ],
        }
    except Exception as e:
        current_app.logger.error(f"Platform analytics failed for county {county.id}: {str(e)}")
        return ({"success": False, "error": f"Database error: {str(e)}"}, 500)

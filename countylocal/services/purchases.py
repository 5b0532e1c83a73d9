# countylocal/services/purchases.py
# USER purchases: a paid payment intent claims one ISSUED voucher of the deal.

import uuid
from flask import current_app
from sqlalchemy.exc import IntegrityError
from countylocal import db
from countylocal.models import (
    Deal, DealStatus, Voucher, VoucherStatus, Purchase, PurchaseStatus, Role
)
from countylocal.services.audit import add_voucher_audit, VoucherAction, ACTOR_SYSTEM
from countylocal.utils.general import utcnow

AMOUNT_TOLERANCE = 0.01
REQUIRED_CONFIRM_FIELDS = ('deal_id', 'payment_intent_id', 'payment_provider', 'amount_paid')


class PurchaseConflict(Exception):
    """Raised inside the assignment transaction to abort it with a status."""
    def __init__(self, message, status_code=409):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


def _check_purchaser(identity):
    if identity.role != Role.USER:
        return ({"success": False, "error": "Only users can purchase deals"}, 403)
    return None


def _load_purchasable_deal(deal_id):
    deal = db.session.get(Deal, deal_id) if deal_id else None
    if deal is None:
        return None, ({"success": False, "error": "Deal not found"}, 404)
    if deal.deal_status == DealStatus.EXPIRED:
        return None, ({"success": False, "error": "Deal has expired"}, 409)
    if deal.deal_status != DealStatus.ACTIVE:
        return None, ({"success": False, "error": "Deal is not active"}, 409)
    return deal, None


def _available_voucher_query(deal_id):
    return (Voucher.query
            .filter(Voucher.deal_id == deal_id,
                    Voucher.status == VoucherStatus.ISSUED,
                    Voucher.account_id.is_(None))
            .order_by(Voucher.issued_at.asc()))


def initiate_purchase(identity, deal_id):
    error = _check_purchaser(identity)
    if error:
        return error

    deal, error = _load_purchasable_deal(deal_id)
    if error:
        return error

    if _available_voucher_query(deal.id).first() is None:
        return ({"success": False, "error": "No vouchers available for this deal"}, 409)

    return {
        "success": True,
        "payment_intent_id": f"pi_{uuid.uuid4().hex}",
        "amount": deal.deal_price,
        "currency": "USD",
        "deal": {"id": deal.id, "title": deal.title, "deal_price": deal.deal_price},
    }


def _missing_confirm_fields(data):
    missing = [field for field in REQUIRED_CONFIRM_FIELDS if data.get(field) in (None, '')]
    amount = data.get('amount_paid')
    if 'amount_paid' not in missing and (
            not isinstance(amount, (int, float)) or isinstance(amount, bool) or amount <= 0):
        missing.append('amount_paid')
    return missing


def confirm_purchase(identity, data):
    """
    Assigns the oldest ISSUED voucher of the deal to the buyer.

    The voucher row is locked for the duration of the transaction so two
    concurrent confirmations cannot claim the same voucher.
    """
    error = _check_purchaser(identity)
    if error:
        return error

    missing = _missing_confirm_fields(data)
    if missing:
        return ({"success": False, "error": "Missing or invalid required fields", "required": missing}, 400)

    deal, error = _load_purchasable_deal(data['deal_id'])
    if error:
        return error

    amount_paid = float(data['amount_paid'])
    if abs(amount_paid - deal.deal_price) > AMOUNT_TOLERANCE:
        return ({"success": False, "error": "Payment amount does not match deal price"}, 400)

    payment_intent_id = data['payment_intent_id']
    if Purchase.query.filter_by(payment_intent_id=payment_intent_id).first():
        return ({"success": False, "error": "Payment already processed"}, 409)

    try:
        voucher = _available_voucher_query(deal.id).with_for_update().first()
        if voucher is None:
            raise PurchaseConflict("No vouchers available for this deal")

        now = utcnow()
        voucher.status = VoucherStatus.ASSIGNED
        voucher.account_id = identity.id
        voucher.customer_email = identity.email

        purchase = Purchase(
            deal_id=deal.id,
            voucher_id=voucher.id,
            user_id=identity.id,
            amount_paid=amount_paid,
            payment_provider=data['payment_provider'],
            payment_intent_id=payment_intent_id,
            status=PurchaseStatus.COMPLETED,
            created_at=now,
        )
        db.session.add(purchase)
        deal.last_active_at = now
        add_voucher_audit(voucher.id, VoucherAction.ASSIGNED, ACTOR_SYSTEM, identity.id,
                          {'purchase_payment_intent_id': payment_intent_id},
                          county_id=voucher.county_id)
        db.session.commit()
    except PurchaseConflict as e:
        db.session.rollback()
        return ({"success": False, "error": e.message}, e.status_code)
    except IntegrityError:
        db.session.rollback()
        return ({"success": False, "error": "Payment already processed"}, 409)

    current_app.logger.info(f"Purchase {purchase.id} completed: voucher {voucher.id} -> user {identity.id}")
    return ({
        "success": True,
        "purchase": purchase.to_dict(),
        "voucher": voucher.to_dict(),
    }, 201)


def can_view_purchase(identity, purchase):
    return identity.role in Role.ADMINS or purchase.user_id == identity.id


def get_purchase(identity, purchase_id):
    purchase = db.session.get(Purchase, purchase_id)
    if purchase is None or not can_view_purchase(identity, purchase):
        return ({"success": False, "error": "Purchase not found"}, 404)

    return {
        "success": True,
        "purchase": purchase.to_dict(),
        "voucher": purchase.voucher.to_dict(),
        "deal": purchase.deal.to_dict(),
    }


def list_user_purchases(identity):
    purchases = (Purchase.query.filter_by(user_id=identity.id)
                 .order_by(Purchase.created_at.desc()).all())
    return {
        "success": True,
        "purchases": [{**purchase.to_dict(), "deal_title": purchase.deal.title} for purchase in purchases],
    }

"""Shared pytest fixtures: a fresh in-memory app per test plus data factories."""

import itertools
import time
from datetime import timedelta
from types import SimpleNamespace

import pytest

from countylocal import create_app, db
from countylocal.config import TestingConfig
from countylocal.jwt_auth import create_identity_token
from countylocal.models import (
    UserIdentity, VendorOwnership, County, City, AdminCountyAccess, Business, Subscription,
    Deal, Voucher, VoucherValidation, DealPaymentCallback, Role, IdentityStatus, LaunchStatus,
    BusinessStatus, SubscriptionStatus, DealStatus, VoucherStatus
)
from countylocal.rate_limit import limiter
from countylocal.services.payment_callback import compute_signature
from countylocal.services.vouchers import generate_qr_token
from countylocal.utils.general import utcnow

PASSWORD = 'correct-horse-battery'

_sequence = itertools.count(1)


def auth_headers(token):
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
    limiter.clear()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
    limiter.clear()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_identity(app):
    """Creates an identity and returns its id, email, role and Bearer headers."""
    def factory(role=Role.USER, email=None, status=IdentityStatus.ACTIVE, counties=()):
        email = email or f"{role.lower()}{next(_sequence)}@example.com"
        with app.app_context():
            identity = UserIdentity(email=email, role=role, status=status)
            identity.set_password(PASSWORD)
            db.session.add(identity)
            db.session.commit()

            for county_id in counties:
                db.session.add(AdminCountyAccess(admin_id=identity.id, county_id=county_id))
            db.session.commit()

            token = create_identity_token(identity)
            return SimpleNamespace(id=identity.id, email=email, role=role, token=token,
                                   headers=auth_headers(token))
    return factory


@pytest.fixture
def make_county(app):
    def factory(slug=None, state='IL', is_active=True, with_city=True,
                launch_status=LaunchStatus.DRAFT):
        slug = slug or f"test-county-{next(_sequence)}"
        with app.app_context():
            county = County(name=slug.replace('-', ' ').title(), state=state, slug=slug,
                            is_active=is_active, launch_status=launch_status)
            db.session.add(county)
            db.session.flush()
            if with_city:
                db.session.add(City(county_id=county.id, name='Waukegan', slug='waukegan'))
            db.session.commit()
            return SimpleNamespace(id=county.id, slug=slug)
    return factory


@pytest.fixture
def make_business(app):
    """Creates a business, optionally bound to a vendor and subscribed to a plan."""
    def factory(county_id, name=None, status=BusinessStatus.ACTIVE, owner_id=None,
                plan='basic', allowance=50, subscription_status=SubscriptionStatus.ACTIVE):
        name = name or f"Business {next(_sequence)}"
        with app.app_context():
            business = Business(
                county_id=county_id,
                name=name,
                slug=name.lower().replace(' ', '-'),
                category='Restaurants',
                business_status=status,
                monthly_voucher_allowance=allowance,
                owner_user_id=owner_id,
            )
            db.session.add(business)
            db.session.flush()

            if owner_id:
                db.session.add(VendorOwnership(user_id=owner_id, business_id=business.id))
            if plan:
                db.session.add(Subscription(business_id=business.id, status=subscription_status,
                                            plan=plan, started_at=utcnow()))
            db.session.commit()
            return business.id
    return factory


@pytest.fixture
def make_deal(app):
    def factory(business_id, status=DealStatus.ACTIVE, deal_price=25.0, original_value=50.0,
                voucher_quantity_limit=100, expiration_days=None, title=None):
        with app.app_context():
            business = db.session.get(Business, business_id)
            now = utcnow()
            deal = Deal(
                business_id=business.id,
                county_id=business.county_id,
                title=title or f"Half-price dinner {next(_sequence)}",
                description='Two entrees for the price of one',
                deal_category='food',
                original_value=original_value,
                deal_price=deal_price,
                redemption_window_start=now - timedelta(days=1),
                redemption_window_end=now + timedelta(days=60),
                voucher_quantity_limit=voucher_quantity_limit,
                expiration_days=expiration_days,
                deal_status=status,
                last_active_at=now if status == DealStatus.ACTIVE else None,
            )
            db.session.add(deal)
            db.session.commit()
            return deal.id
    return factory


@pytest.fixture
def make_voucher(app):
    def factory(deal_id, status=VoucherStatus.ISSUED, account_id=None, expires_in_days=30,
                issued_at=None):
        with app.app_context():
            deal = db.session.get(Deal, deal_id)
            issued_at = issued_at or utcnow()
            voucher = Voucher(
                deal_id=deal.id,
                business_id=deal.business_id,
                county_id=deal.county_id,
                qr_token=generate_qr_token(),
                status=status,
                issued_at=issued_at,
                expires_at=issued_at + timedelta(days=expires_in_days),
                account_id=account_id,
            )
            db.session.add(voucher)
            db.session.commit()
            return SimpleNamespace(id=voucher.id, qr_token=voucher.qr_token)
    return factory


@pytest.fixture
def make_validation(app):
    def factory(deal_id, external_ref=None):
        external_ref = external_ref or f"order-{next(_sequence)}"
        with app.app_context():
            validation = VoucherValidation(deal_id=deal_id, external_ref=external_ref)
            db.session.add(validation)
            db.session.commit()
            return external_ref
    return factory


@pytest.fixture
def vendor_setup(make_identity, make_county, make_business, make_deal):
    """An active county with a subscribed vendor business and one ACTIVE deal."""
    county = make_county()
    vendor = make_identity(Role.VENDOR)
    business_id = make_business(county.id, owner_id=vendor.id)
    deal_id = make_deal(business_id)
    return SimpleNamespace(county=county, vendor=vendor, business_id=business_id, deal_id=deal_id)


@pytest.fixture
def callback_secret(app, vendor_setup):
    """Configures a payment callback secret for the vendor_setup deal."""
    secret = 'a' * 64
    with app.app_context():
        db.session.add(DealPaymentCallback(deal_id=vendor_setup.deal_id, callback_secret=secret))
        db.session.commit()
    return secret


@pytest.fixture
def signed_payload(vendor_setup, callback_secret):
    """Builds a signed callback payload for the vendor_setup deal."""
    def factory(transaction_id='txn-1001', secret=None, **overrides):
        payload = {
            'dealId': vendor_setup.deal_id,
            'externalTransactionId': transaction_id,
            'amountPaid': 25.0,
            'currency': 'USD',
            'paymentStatus': 'completed',
            'customerReference': 'cust-42',
            'callbackTimestamp': int(time.time()),
        }
        payload.update(overrides)
        return payload, compute_signature(payload, secret or callback_secret)
    return factory

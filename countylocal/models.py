# models.py

import uuid
from . import db
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from .utils.general import utcnow, isoformat
# --------------------------------------------------

# Status vocabularies are stored as plain strings; these classes name them.


class Role:
    USER = 'USER'
    VENDOR = 'VENDOR'
    ADMIN = 'ADMIN'
    SUPER_ADMIN = 'SUPER_ADMIN'

    ALL = (USER, VENDOR, ADMIN, SUPER_ADMIN)
    ADMINS = (ADMIN, SUPER_ADMIN)
    SELF_REGISTER = (USER, VENDOR)


class IdentityStatus:
    ACTIVE = 'ACTIVE'
    SUSPENDED = 'SUSPENDED'


class LaunchStatus:
    DRAFT = 'DRAFT'
    LIVE_SOFT = 'LIVE_SOFT'
    LIVE_PUBLIC = 'LIVE_PUBLIC'


class BusinessStatus:
    DRAFT = 'DRAFT'
    ACTIVE = 'ACTIVE'
    SUSPENDED = 'SUSPENDED'


class SubscriptionStatus:
    ACTIVE = 'ACTIVE'
    INACTIVE = 'INACTIVE'
    EXPIRED = 'EXPIRED'
    CANCELED = 'CANCELED'


class DealStatus:
    INACTIVE = 'INACTIVE'
    ACTIVE = 'ACTIVE'
    EXPIRED = 'EXPIRED'


class VoucherStatus:
    ISSUED = 'ISSUED'
    ASSIGNED = 'ASSIGNED'
    REDEEMED = 'REDEEMED'


class PurchaseStatus:
    PENDING = 'PENDING'
    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'


def _uuid():
    return str(uuid.uuid4())


# --- 1. IDENTITY & OWNERSHIP ---

class UserIdentity(UserMixin, db.Model):
    """
    Platform identity used for authentication and role-based access control.
    Inherits from UserMixin so Flask-Login can hold it as current_user.
    """
    __tablename__ = 'user_identity'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    email = db.Column(db.String(255), index=True, unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    role = db.Column(db.String(16), nullable=False, default=Role.USER)
    status = db.Column(db.String(16), nullable=False, default=IdentityStatus.ACTIVE)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    vendor_ownership = db.relationship('VendorOwnership', backref='user', uselist=False, lazy=True)

    def set_password(self, password):
        """Hashes the password and stores the hash."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Checks a plaintext password against the stored hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_active(self):
        return self.status == IdentityStatus.ACTIVE

    @property
    def is_admin(self):
        return self.role in Role.ADMINS

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'role': self.role,
            'status': self.status,
            'business_id': self.vendor_ownership.business_id if self.vendor_ownership else None,
            'created_at': isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<UserIdentity {self.email} ({self.role})>'


class VendorOwnership(db.Model):
    """Permanent one-to-one binding between a VENDOR identity and a business."""
    __tablename__ = 'vendor_ownership'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('user_identity.id'), unique=True, nullable=False)
    business_id = db.Column(db.String(36), db.ForeignKey('business.id'), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'business_id': self.business_id,
            'created_at': isoformat(self.created_at),
        }


# --- 2. COUNTY SCOPING ---

class County(db.Model):
    __tablename__ = 'county'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(128), nullable=False)
    state = db.Column(db.String(2), nullable=False)
    slug = db.Column(db.String(128), unique=True, index=True, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    launch_status = db.Column(db.String(16), nullable=False, default=LaunchStatus.DRAFT)
    launched_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    cities = db.relationship('City', backref='county', lazy=True, order_by='City.display_order')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'state': self.state,
            'slug': self.slug,
            'is_active': self.is_active,
            'launch_status': self.launch_status,
            'launched_at': isoformat(self.launched_at),
        }


class City(db.Model):
    __tablename__ = 'city'
    __table_args__ = (db.UniqueConstraint('county_id', 'slug', name='uq_city_county_slug'),)

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    county_id = db.Column(db.String(36), db.ForeignKey('county.id'), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    slug = db.Column(db.String(128), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            'id': self.id,
            'county_id': self.county_id,
            'name': self.name,
            'slug': self.slug,
            'is_active': self.is_active,
            'display_order': self.display_order,
        }


class AdminCountyAccess(db.Model):
    """Grants an ADMIN identity access to one county. SUPER_ADMIN needs no grant."""
    __tablename__ = 'admin_county_access'
    __table_args__ = (db.UniqueConstraint('admin_id', 'county_id', name='uq_admin_county'),)

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    admin_id = db.Column(db.String(36), db.ForeignKey('user_identity.id'), nullable=False, index=True)
    county_id = db.Column(db.String(36), db.ForeignKey('county.id'), nullable=False, index=True)
    granted_by = db.Column(db.String(36), db.ForeignKey('user_identity.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    county = db.relationship('County', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'admin_id': self.admin_id,
            'county_id': self.county_id,
            'granted_by': self.granted_by,
            'created_at': isoformat(self.created_at),
        }


# --- 3. BUSINESS & SUBSCRIPTION ---

class Business(db.Model):
    __tablename__ = 'business'
    __table_args__ = (db.UniqueConstraint('county_id', 'slug', name='uq_business_county_slug'),)

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    county_id = db.Column(db.String(36), db.ForeignKey('county.id'), nullable=False, index=True)
    city_id = db.Column(db.String(36), db.ForeignKey('city.id'), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(128))
    address_line1 = db.Column(db.String(255))
    city = db.Column(db.String(128))
    state = db.Column(db.String(2))
    postal_code = db.Column(db.String(16))
    phone = db.Column(db.String(32))
    website = db.Column(db.String(255))
    business_status = db.Column(db.String(16), nullable=False, default=BusinessStatus.DRAFT)
    owner_user_id = db.Column(db.String(36), db.ForeignKey('user_identity.id'), nullable=True, unique=True)
    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    is_featured = db.Column(db.Boolean, nullable=False, default=False)
    monthly_voucher_allowance = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    subscription = db.relationship('Subscription', backref='business', uselist=False, lazy=True)
    deals = db.relationship('Deal', backref='business', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'county_id': self.county_id,
            'city_id': self.city_id,
            'name': self.name,
            'slug': self.slug,
            'description': self.description,
            'category': self.category,
            'address_line1': self.address_line1,
            'city': self.city,
            'state': self.state,
            'postal_code': self.postal_code,
            'phone': self.phone,
            'website': self.website,
            'business_status': self.business_status,
            'owner_user_id': self.owner_user_id,
            'is_verified': self.is_verified,
            'is_featured': self.is_featured,
            'monthly_voucher_allowance': self.monthly_voucher_allowance,
            'created_at': isoformat(self.created_at),
        }

    def to_public_dict(self):
        data = self.to_dict()
        data.pop('owner_user_id')
        data.pop('monthly_voucher_allowance')
        return data


class Subscription(db.Model):
    __tablename__ = 'subscription'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    business_id = db.Column(db.String(36), db.ForeignKey('business.id'), unique=True, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SubscriptionStatus.INACTIVE)
    plan = db.Column(db.String(32), nullable=True)
    started_at = db.Column(db.DateTime, nullable=True)
    ends_at = db.Column(db.DateTime, nullable=True)

    def is_current(self, now=None):
        now = now or utcnow()
        return self.status == SubscriptionStatus.ACTIVE and (self.ends_at is None or self.ends_at > now)

    def to_dict(self):
        return {
            'id': self.id,
            'business_id': self.business_id,
            'status': self.status,
            'plan': self.plan,
            'started_at': isoformat(self.started_at),
            'ends_at': isoformat(self.ends_at),
        }


class FounderStatus(db.Model):
    """Admin-granted founder standing; removal deactivates the row."""
    __tablename__ = 'founder_status'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    business_id = db.Column(db.String(36), db.ForeignKey('business.id'), unique=True, nullable=False)
    county_id = db.Column(db.String(36), db.ForeignKey('county.id'), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    granted_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    granted_by = db.Column(db.String(36), db.ForeignKey('user_identity.id'), nullable=False)
    expires_at = db.Column(db.DateTime, nullable=True)
    removed_at = db.Column(db.DateTime, nullable=True)
    removed_by = db.Column(db.String(36), db.ForeignKey('user_identity.id'), nullable=True)

    business = db.relationship('Business', backref=db.backref('founder_status', uselist=False))

    def is_current(self, now=None):
        now = now or utcnow()
        return self.is_active and (self.expires_at is None or self.expires_at > now)

    def to_dict(self):
        return {
            'id': self.id,
            'business_id': self.business_id,
            'county_id': self.county_id,
            'is_active': self.is_active,
            'granted_at': isoformat(self.granted_at),
            'granted_by': self.granted_by,
            'expires_at': isoformat(self.expires_at),
            'removed_at': isoformat(self.removed_at),
            'removed_by': self.removed_by,
        }


# --- 4. DEALS ---

class Deal(db.Model):
    __tablename__ = 'deal'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    business_id = db.Column(db.String(36), db.ForeignKey('business.id'), nullable=False, index=True)
    county_id = db.Column(db.String(36), db.ForeignKey('county.id'), nullable=False, index=True)
    created_by_user_id = db.Column(db.String(36), db.ForeignKey('user_identity.id'), nullable=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    deal_category = db.Column(db.String(64))
    original_value = db.Column(db.Float)
    deal_price = db.Column(db.Float)
    redemption_window_start = db.Column(db.DateTime)
    redemption_window_end = db.Column(db.DateTime)
    voucher_quantity_limit = db.Column(db.Integer)
    expiration_days = db.Column(db.Integer, nullable=True)
    deal_status = db.Column(db.String(16), nullable=False, default=DealStatus.INACTIVE, index=True)
    last_active_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    payment_callback = db.relationship('DealPaymentCallback', backref='deal', uselist=False, lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'business_id': self.business_id,
            'county_id': self.county_id,
            'created_by_user_id': self.created_by_user_id,
            'title': self.title,
            'description': self.description,
            'deal_category': self.deal_category,
            'original_value': self.original_value,
            'deal_price': self.deal_price,
            'redemption_window_start': isoformat(self.redemption_window_start),
            'redemption_window_end': isoformat(self.redemption_window_end),
            'voucher_quantity_limit': self.voucher_quantity_limit,
            'expiration_days': self.expiration_days,
            'deal_status': self.deal_status,
            'last_active_at': isoformat(self.last_active_at),
            'created_at': isoformat(self.created_at),
        }


# --- 5. PAYMENT CALLBACK ---

class DealPaymentCallback(db.Model):
    """Per-deal shared secret used to sign external payment callbacks."""
    __tablename__ = 'deal_payment_callback'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    deal_id = db.Column(db.String(36), db.ForeignKey('deal.id'), unique=True, nullable=False)
    callback_secret = db.Column(db.String(128), nullable=False)
    callback_url = db.Column(db.String(500), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    last_callback_at = db.Column(db.DateTime, nullable=True)
    callback_failure_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        # The secret is only ever returned by the configure call
        return {
            'id': self.id,
            'deal_id': self.deal_id,
            'callback_url': self.callback_url,
            'is_active': self.is_active,
            'last_callback_at': isoformat(self.last_callback_at),
            'callback_failure_count': self.callback_failure_count,
        }


class PaymentCallback(db.Model):
    """One received payment callback, valid or not."""
    __tablename__ = 'payment_callback'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    deal_id = db.Column(db.String(36), db.ForeignKey('deal.id'), nullable=False, index=True)
    config_id = db.Column(db.String(36), db.ForeignKey('deal_payment_callback.id'), nullable=True)
    external_transaction_id = db.Column(db.String(255), nullable=False, index=True)
    amount_paid = db.Column(db.Float)
    currency = db.Column(db.String(8))
    payment_status = db.Column(db.String(32))
    customer_reference = db.Column(db.String(255))
    signature = db.Column(db.String(128))
    callback_timestamp = db.Column(db.BigInteger)
    payload = db.Column(db.JSON)
    is_signature_valid = db.Column(db.Boolean, nullable=False, default=False)
    issued_voucher_id = db.Column(db.String(36), db.ForeignKey('voucher.id'), nullable=True)
    error_message = db.Column(db.String(500), nullable=True)
    processed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'deal_id': self.deal_id,
            'external_transaction_id': self.external_transaction_id,
            'amount_paid': self.amount_paid,
            'currency': self.currency,
            'payment_status': self.payment_status,
            'is_signature_valid': self.is_signature_valid,
            'issued_voucher_id': self.issued_voucher_id,
            'error_message': self.error_message,
            'processed_at': isoformat(self.processed_at),
        }


# --- 6. VOUCHERS & AUDIT ---

class VoucherValidation(db.Model):
    """External proof of payment that entitles exactly one voucher."""
    __tablename__ = 'voucher_validation'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    deal_id = db.Column(db.String(36), db.ForeignKey('deal.id'), nullable=False, index=True)
    external_ref = db.Column(db.String(500), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    voucher = db.relationship('Voucher', backref='validation', uselist=False, lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'deal_id': self.deal_id,
            'external_ref': self.external_ref,
            'voucher_id': self.voucher.id if self.voucher else None,
            'created_at': isoformat(self.created_at),
        }


class Voucher(db.Model):
    __tablename__ = 'voucher'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    deal_id = db.Column(db.String(36), db.ForeignKey('deal.id'), nullable=False, index=True)
    business_id = db.Column(db.String(36), db.ForeignKey('business.id'), nullable=False, index=True)
    county_id = db.Column(db.String(36), db.ForeignKey('county.id'), nullable=False, index=True)
    validation_id = db.Column(db.String(36), db.ForeignKey('voucher_validation.id'), unique=True, nullable=True)
    qr_token = db.Column(db.String(128), unique=True, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=VoucherStatus.ISSUED, index=True)
    issued_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=True)
    redeemed_at = db.Column(db.DateTime, nullable=True)
    redeemed_by_business_id = db.Column(db.String(36), db.ForeignKey('business.id'), nullable=True)
    redeemed_context = db.Column(db.JSON, nullable=True)
    account_id = db.Column(db.String(36), db.ForeignKey('user_identity.id'), nullable=True, index=True)
    customer_email = db.Column(db.String(255), nullable=True)

    deal = db.relationship('Deal', lazy=True)
    business = db.relationship('Business', foreign_keys=[business_id], lazy=True)

    def is_expired(self, now=None):
        if self.status == VoucherStatus.REDEEMED or self.expires_at is None:
            return False
        return self.expires_at < (now or utcnow())

    def to_dict(self):
        return {
            'id': self.id,
            'deal_id': self.deal_id,
            'business_id': self.business_id,
            'county_id': self.county_id,
            'qr_token': self.qr_token,
            'status': self.status,
            'is_expired': self.is_expired(),
            'issued_at': isoformat(self.issued_at),
            'expires_at': isoformat(self.expires_at),
            'redeemed_at': isoformat(self.redeemed_at),
            'redeemed_by_business_id': self.redeemed_by_business_id,
            'account_id': self.account_id,
        }


class VoucherAuditLog(db.Model):
    """Append-only history of everything that happened to a voucher."""
    __tablename__ = 'voucher_audit_log'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    voucher_id = db.Column(db.String(36), db.ForeignKey('voucher.id'), nullable=False, index=True)
    actor_type = db.Column(db.String(16), nullable=False)
    actor_id = db.Column(db.String(36), nullable=True)
    action = db.Column(db.String(32), nullable=False)
    details = db.Column('metadata', db.JSON, nullable=True)
    county_id = db.Column(db.String(36), db.ForeignKey('county.id'), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'voucher_id': self.voucher_id,
            'actor_type': self.actor_type,
            'actor_id': self.actor_id,
            'action': self.action,
            'metadata': self.details,
            'created_at': isoformat(self.created_at),
        }


# --- 7. VENDOR SESSIONS & REDEMPTION ---

class VendorSession(db.Model):
    """Scanner-device session scoped to a vendor's businesses and locations."""
    __tablename__ = 'vendor_session'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    vendor_user_id = db.Column(db.String(36), db.ForeignKey('user_identity.id'), nullable=False, index=True)
    session_token = db.Column(db.String(128), unique=True, nullable=False)
    business_ids = db.Column(db.JSON, nullable=False, default=list)
    location_ids = db.Column(db.JSON, nullable=False, default=list)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    expires_at = db.Column(db.DateTime, nullable=False)
    last_activity_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'vendor_user_id': self.vendor_user_id,
            'business_ids': self.business_ids,
            'location_ids': self.location_ids,
            'is_active': self.is_active,
            'expires_at': isoformat(self.expires_at),
            'last_activity_at': isoformat(self.last_activity_at),
        }


class VendorRedemption(db.Model):
    __tablename__ = 'vendor_redemption'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    voucher_id = db.Column(db.String(36), db.ForeignKey('voucher.id'), nullable=False, index=True)
    session_id = db.Column(db.String(36), db.ForeignKey('vendor_session.id'), nullable=False)
    business_id = db.Column(db.String(36), db.ForeignKey('business.id'), nullable=True)
    location_id = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(16), nullable=False)
    failure_reason = db.Column(db.String(32), nullable=True)
    redeemed_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'voucher_id': self.voucher_id,
            'session_id': self.session_id,
            'business_id': self.business_id,
            'location_id': self.location_id,
            'status': self.status,
            'failure_reason': self.failure_reason,
            'redeemed_at': isoformat(self.redeemed_at),
        }


class Redemption(db.Model):
    """Identity-based redemption with a price snapshot for analytics."""
    __tablename__ = 'redemption'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    voucher_id = db.Column(db.String(36), db.ForeignKey('voucher.id'), unique=True, nullable=False)
    deal_id = db.Column(db.String(36), db.ForeignKey('deal.id'), nullable=False, index=True)
    business_id = db.Column(db.String(36), db.ForeignKey('business.id'), nullable=False, index=True)
    vendor_user_id = db.Column(db.String(36), db.ForeignKey('user_identity.id'), nullable=False)
    original_value = db.Column(db.Float)
    deal_price = db.Column(db.Float)
    redeemed_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    voucher = db.relationship('Voucher', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'voucher_id': self.voucher_id,
            'deal_id': self.deal_id,
            'business_id': self.business_id,
            'vendor_user_id': self.vendor_user_id,
            'original_value': self.original_value,
            'deal_price': self.deal_price,
            'redeemed_at': isoformat(self.redeemed_at),
        }


# --- 8. PURCHASE ---

class Purchase(db.Model):
    __tablename__ = 'purchase'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    deal_id = db.Column(db.String(36), db.ForeignKey('deal.id'), nullable=False, index=True)
    voucher_id = db.Column(db.String(36), db.ForeignKey('voucher.id'), unique=True, nullable=False)
    user_id = db.Column(db.String(36), db.ForeignKey('user_identity.id'), nullable=False, index=True)
    amount_paid = db.Column(db.Float, nullable=False)
    payment_provider = db.Column(db.String(64), nullable=False)
    payment_intent_id = db.Column(db.String(255), unique=True, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=PurchaseStatus.PENDING)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    voucher = db.relationship('Voucher', lazy=True)
    deal = db.relationship('Deal', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'deal_id': self.deal_id,
            'voucher_id': self.voucher_id,
            'user_id': self.user_id,
            'amount_paid': self.amount_paid,
            'payment_provider': self.payment_provider,
            'payment_intent_id': self.payment_intent_id,
            'status': self.status,
            'created_at': isoformat(self.created_at),
        }


# --- 9. ADMIN AUDIT ---

class AdminActionLog(db.Model):
    __tablename__ = 'admin_action_log'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    admin_user_id = db.Column(db.String(36), db.ForeignKey('user_identity.id'), nullable=False, index=True)
    action_type = db.Column(db.String(64), nullable=False, index=True)
    target_entity_type = db.Column(db.String(64), nullable=False)
    target_entity_id = db.Column(db.String(36), nullable=False)
    details = db.Column('metadata', db.JSON, nullable=True)
    county_id = db.Column(db.String(36), db.ForeignKey('county.id'), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'admin_user_id': self.admin_user_id,
            'action_type': self.action_type,
            'target_entity_type': self.target_entity_type,
            'target_entity_id': self.target_entity_id,
            'metadata': self.details,
            'county_id': self.county_id,
            'created_at': isoformat(self.created_at),
        }

"""Initial schema for counties, businesses, deals, vouchers and redemption

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-01-05 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _id():
    return sa.Column('id', sa.String(length=36), nullable=False)


def upgrade():
    """
    Creates every table in foreign-key order.

    Status columns hold plain strings (ACTIVE, ISSUED, ...); the vocabularies
    live in countylocal/models.py.
    """
    op.create_table(
        'user_identity',
        _id(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=256), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_user_identity_email', 'user_identity', ['email'], unique=True)

    op.create_table(
        'county',
        _id(),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('state', sa.String(length=2), nullable=False),
        sa.Column('slug', sa.String(length=128), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('launch_status', sa.String(length=16), nullable=False),
        sa.Column('launched_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_county_slug', 'county', ['slug'], unique=True)

    op.create_table(
        'city',
        _id(),
        sa.Column('county_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('slug', sa.String(length=128), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('display_order', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['county_id'], ['county.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('county_id', 'slug', name='uq_city_county_slug'),
    )
    op.create_index('ix_city_county_id', 'city', ['county_id'])

    op.create_table(
        'admin_county_access',
        _id(),
        sa.Column('admin_id', sa.String(length=36), nullable=False),
        sa.Column('county_id', sa.String(length=36), nullable=False),
        sa.Column('granted_by', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['admin_id'], ['user_identity.id']),
        sa.ForeignKeyConstraint(['county_id'], ['county.id']),
        sa.ForeignKeyConstraint(['granted_by'], ['user_identity.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('admin_id', 'county_id', name='uq_admin_county'),
    )
    op.create_index('ix_admin_county_access_admin_id', 'admin_county_access', ['admin_id'])
    op.create_index('ix_admin_county_access_county_id', 'admin_county_access', ['county_id'])

    op.create_table(
        'business',
        _id(),
        sa.Column('county_id', sa.String(length=36), nullable=False),
        sa.Column('city_id', sa.String(length=36), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=128), nullable=True),
        sa.Column('address_line1', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=128), nullable=True),
        sa.Column('state', sa.String(length=2), nullable=True),
        sa.Column('postal_code', sa.String(length=16), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('website', sa.String(length=255), nullable=True),
        sa.Column('business_status', sa.String(length=16), nullable=False),
        sa.Column('owner_user_id', sa.String(length=36), nullable=True),
        sa.Column('is_verified', sa.Boolean(), nullable=False),
        sa.Column('is_featured', sa.Boolean(), nullable=False),
        sa.Column('monthly_voucher_allowance', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['county_id'], ['county.id']),
        sa.ForeignKeyConstraint(['city_id'], ['city.id']),
        sa.ForeignKeyConstraint(['owner_user_id'], ['user_identity.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('owner_user_id'),
        sa.UniqueConstraint('county_id', 'slug', name='uq_business_county_slug'),
    )
    op.create_index('ix_business_county_id', 'business', ['county_id'])

    op.create_table(
        'vendor_ownership',
        _id(),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('business_id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['user_identity.id']),
        sa.ForeignKeyConstraint(['business_id'], ['business.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
        sa.UniqueConstraint('business_id'),
    )

    op.create_table(
        'subscription',
        _id(),
        sa.Column('business_id', sa.String(length=36), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('plan', sa.String(length=32), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('ends_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['business_id'], ['business.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('business_id'),
    )

    op.create_table(
        'founder_status',
        _id(),
        sa.Column('business_id', sa.String(length=36), nullable=False),
        sa.Column('county_id', sa.String(length=36), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('granted_at', sa.DateTime(), nullable=False),
        sa.Column('granted_by', sa.String(length=36), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('removed_at', sa.DateTime(), nullable=True),
        sa.Column('removed_by', sa.String(length=36), nullable=True),
        sa.ForeignKeyConstraint(['business_id'], ['business.id']),
        sa.ForeignKeyConstraint(['county_id'], ['county.id']),
        sa.ForeignKeyConstraint(['granted_by'], ['user_identity.id']),
        sa.ForeignKeyConstraint(['removed_by'], ['user_identity.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('business_id'),
    )
    op.create_index('ix_founder_status_county_id', 'founder_status', ['county_id'])

    op.create_table(
        'deal',
        _id(),
        sa.Column('business_id', sa.String(length=36), nullable=False),
        sa.Column('county_id', sa.String(length=36), nullable=False),
        sa.Column('created_by_user_id', sa.String(length=36), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('deal_category', sa.String(length=64), nullable=True),
        sa.Column('original_value', sa.Float(), nullable=True),
        sa.Column('deal_price', sa.Float(), nullable=True),
        sa.Column('redemption_window_start', sa.DateTime(), nullable=True),
        sa.Column('redemption_window_end', sa.DateTime(), nullable=True),
        sa.Column('voucher_quantity_limit', sa.Integer(), nullable=True),
        sa.Column('expiration_days', sa.Integer(), nullable=True),
        sa.Column('deal_status', sa.String(length=16), nullable=False),
        sa.Column('last_active_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['business.id']),
        sa.ForeignKeyConstraint(['county_id'], ['county.id']),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['user_identity.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_deal_business_id', 'deal', ['business_id'])
    op.create_index('ix_deal_county_id', 'deal', ['county_id'])
    op.create_index('ix_deal_deal_status', 'deal', ['deal_status'])

    op.create_table(
        'deal_payment_callback',
        _id(),
        sa.Column('deal_id', sa.String(length=36), nullable=False),
        sa.Column('callback_secret', sa.String(length=128), nullable=False),
        sa.Column('callback_url', sa.String(length=500), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_callback_at', sa.DateTime(), nullable=True),
        sa.Column('callback_failure_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['deal_id'], ['deal.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('deal_id'),
    )

    op.create_table(
        'voucher_validation',
        _id(),
        sa.Column('deal_id', sa.String(length=36), nullable=False),
        sa.Column('external_ref', sa.String(length=500), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['deal_id'], ['deal.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_ref'),
    )
    op.create_index('ix_voucher_validation_deal_id', 'voucher_validation', ['deal_id'])

    op.create_table(
        'voucher',
        _id(),
        sa.Column('deal_id', sa.String(length=36), nullable=False),
        sa.Column('business_id', sa.String(length=36), nullable=False),
        sa.Column('county_id', sa.String(length=36), nullable=False),
        sa.Column('validation_id', sa.String(length=36), nullable=True),
        sa.Column('qr_token', sa.String(length=128), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('issued_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('redeemed_at', sa.DateTime(), nullable=True),
        sa.Column('redeemed_by_business_id', sa.String(length=36), nullable=True),
        sa.Column('redeemed_context', sa.JSON(), nullable=True),
        sa.Column('account_id', sa.String(length=36), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['deal_id'], ['deal.id']),
        sa.ForeignKeyConstraint(['business_id'], ['business.id']),
        sa.ForeignKeyConstraint(['county_id'], ['county.id']),
        sa.ForeignKeyConstraint(['validation_id'], ['voucher_validation.id']),
        sa.ForeignKeyConstraint(['redeemed_by_business_id'], ['business.id']),
        sa.ForeignKeyConstraint(['account_id'], ['user_identity.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('validation_id'),
        sa.UniqueConstraint('qr_token'),
    )
    op.create_index('ix_voucher_deal_id', 'voucher', ['deal_id'])
    op.create_index('ix_voucher_business_id', 'voucher', ['business_id'])
    op.create_index('ix_voucher_county_id', 'voucher', ['county_id'])
    op.create_index('ix_voucher_status', 'voucher', ['status'])
    op.create_index('ix_voucher_account_id', 'voucher', ['account_id'])

    op.create_table(
        'payment_callback',
        _id(),
        sa.Column('deal_id', sa.String(length=36), nullable=False),
        sa.Column('config_id', sa.String(length=36), nullable=True),
        sa.Column('external_transaction_id', sa.String(length=255), nullable=False),
        sa.Column('amount_paid', sa.Float(), nullable=True),
        sa.Column('currency', sa.String(length=8), nullable=True),
        sa.Column('payment_status', sa.String(length=32), nullable=True),
        sa.Column('customer_reference', sa.String(length=255), nullable=True),
        sa.Column('signature', sa.String(length=128), nullable=True),
        sa.Column('callback_timestamp', sa.BigInteger(), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('is_signature_valid', sa.Boolean(), nullable=False),
        sa.Column('issued_voucher_id', sa.String(length=36), nullable=True),
        sa.Column('error_message', sa.String(length=500), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['deal_id'], ['deal.id']),
        sa.ForeignKeyConstraint(['config_id'], ['deal_payment_callback.id']),
        sa.ForeignKeyConstraint(['issued_voucher_id'], ['voucher.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payment_callback_deal_id', 'payment_callback', ['deal_id'])
    op.create_index('ix_payment_callback_external_transaction_id', 'payment_callback',
                    ['external_transaction_id'])

    op.create_table(
        'voucher_audit_log',
        _id(),
        sa.Column('voucher_id', sa.String(length=36), nullable=False),
        sa.Column('actor_type', sa.String(length=16), nullable=False),
        sa.Column('actor_id', sa.String(length=36), nullable=True),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('county_id', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['voucher_id'], ['voucher.id']),
        sa.ForeignKeyConstraint(['county_id'], ['county.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_voucher_audit_log_voucher_id', 'voucher_audit_log', ['voucher_id'])
    op.create_index('ix_voucher_audit_log_county_id', 'voucher_audit_log', ['county_id'])

    op.create_table(
        'vendor_session',
        _id(),
        sa.Column('vendor_user_id', sa.String(length=36), nullable=False),
        sa.Column('session_token', sa.String(length=128), nullable=False),
        sa.Column('business_ids', sa.JSON(), nullable=False),
        sa.Column('location_ids', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('last_activity_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['vendor_user_id'], ['user_identity.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_token'),
    )
    op.create_index('ix_vendor_session_vendor_user_id', 'vendor_session', ['vendor_user_id'])

    op.create_table(
        'vendor_redemption',
        _id(),
        sa.Column('voucher_id', sa.String(length=36), nullable=False),
        sa.Column('session_id', sa.String(length=36), nullable=False),
        sa.Column('business_id', sa.String(length=36), nullable=True),
        sa.Column('location_id', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('failure_reason', sa.String(length=32), nullable=True),
        sa.Column('redeemed_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['voucher_id'], ['voucher.id']),
        sa.ForeignKeyConstraint(['session_id'], ['vendor_session.id']),
        sa.ForeignKeyConstraint(['business_id'], ['business.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_vendor_redemption_voucher_id', 'vendor_redemption', ['voucher_id'])

    op.create_table(
        'redemption',
        _id(),
        sa.Column('voucher_id', sa.String(length=36), nullable=False),
        sa.Column('deal_id', sa.String(length=36), nullable=False),
        sa.Column('business_id', sa.String(length=36), nullable=False),
        sa.Column('vendor_user_id', sa.String(length=36), nullable=False),
        sa.Column('original_value', sa.Float(), nullable=True),
        sa.Column('deal_price', sa.Float(), nullable=True),
        sa.Column('redeemed_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['voucher_id'], ['voucher.id']),
        sa.ForeignKeyConstraint(['deal_id'], ['deal.id']),
        sa.ForeignKeyConstraint(['business_id'], ['business.id']),
        sa.ForeignKeyConstraint(['vendor_user_id'], ['user_identity.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('voucher_id'),
    )
    op.create_index('ix_redemption_deal_id', 'redemption', ['deal_id'])
    op.create_index('ix_redemption_business_id', 'redemption', ['business_id'])

    op.create_table(
        'purchase',
        _id(),
        sa.Column('deal_id', sa.String(length=36), nullable=False),
        sa.Column('voucher_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('amount_paid', sa.Float(), nullable=False),
        sa.Column('payment_provider', sa.String(length=64), nullable=False),
        sa.Column('payment_intent_id', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['deal_id'], ['deal.id']),
        sa.ForeignKeyConstraint(['voucher_id'], ['voucher.id']),
        sa.ForeignKeyConstraint(['user_id'], ['user_identity.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('voucher_id'),
        sa.UniqueConstraint('payment_intent_id'),
    )
    op.create_index('ix_purchase_deal_id', 'purchase', ['deal_id'])
    op.create_index('ix_purchase_user_id', 'purchase', ['user_id'])

    op.create_table(
        'admin_action_log',
        _id(),
        sa.Column('admin_user_id', sa.String(length=36), nullable=False),
        sa.Column('action_type', sa.String(length=64), nullable=False),
        sa.Column('target_entity_type', sa.String(length=64), nullable=False),
        sa.Column('target_entity_id', sa.String(length=36), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('county_id', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['admin_user_id'], ['user_identity.id']),
        sa.ForeignKeyConstraint(['county_id'], ['county.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_admin_action_log_admin_user_id', 'admin_action_log', ['admin_user_id'])
    op.create_index('ix_admin_action_log_action_type', 'admin_action_log', ['action_type'])
    op.create_index('ix_admin_action_log_county_id', 'admin_action_log', ['county_id'])


def downgrade():
    """Drops every table in reverse foreign-key order."""
    for table in (
        'admin_action_log', 'purchase', 'redemption', 'vendor_redemption', 'vendor_session',
        'voucher_audit_log', 'payment_callback', 'voucher', 'voucher_validation',
        'deal_payment_callback', 'deal', 'founder_status', 'subscription', 'vendor_ownership', 'business',
        'admin_county_access', 'city', 'county', 'user_identity',
    ):
        op.drop_table(table)

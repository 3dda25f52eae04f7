"""baseline_migration

Revision ID: 5a1c0e7d9b24
Revises:
Create Date: 2026-10-18 13:40:12.118204

Production-safe migration: only creates tables that don't exist yet, so it can
be stamped onto databases created earlier by init_db().
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '5a1c0e7d9b24'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
    ]


def upgrade() -> None:
    if not table_exists('users'):
        op.create_table('users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('username', sa.String(), nullable=False),
            sa.Column('hashed_password', sa.String(), nullable=False),
            sa.Column('email', sa.String(), nullable=True),
            sa.Column('full_name', sa.String(), nullable=True),
            sa.Column('status', sa.String(), nullable=False, server_default='active'),
            sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('temporary_password', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('first_login_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('subscription_tier', sa.String(), nullable=False, server_default='free'),
            sa.Column('subscription_status', sa.String(), nullable=False, server_default='free'),
            sa.Column('subscription_price', sa.Float(), nullable=True),
            sa.Column('subscription_start_date', sa.Date(), nullable=True),
            sa.Column('subscription_end_date', sa.Date(), nullable=True),
            sa.Column('stripe_subscription_id', sa.String(), nullable=True),
            sa.Column('stripe_secret_key', sa.String(), nullable=True),
            sa.Column('stripe_publishable_key', sa.String(), nullable=True),
            *timestamps(),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
        op.create_index(op.f('ix_users_username'), 'users', ['username'], unique=True)
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
        op.create_index(op.f('ix_users_stripe_subscription_id'), 'users', ['stripe_subscription_id'], unique=False)

    if not table_exists('user_contacts'):
        op.create_table('user_contacts',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('first_name', sa.String(), nullable=False),
            sa.Column('last_name', sa.String(), nullable=True),
            sa.Column('email', sa.String(), nullable=True),
            sa.Column('phone', sa.String(), nullable=True),
            sa.Column('contact_source', sa.String(), nullable=True),
            sa.Column('contact_type', sa.String(), nullable=True),
            sa.Column('business_name', sa.String(), nullable=True),
            sa.Column('street_address', sa.String(), nullable=True),
            sa.Column('city', sa.String(), nullable=True),
            sa.Column('state', sa.String(), nullable=True),
            sa.Column('postal_code', sa.String(), nullable=True),
            sa.Column('website', sa.String(), nullable=True),
            sa.Column('time_zone', sa.String(), nullable=True),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column('stripe_customer_id', sa.String(), nullable=True),
            sa.Column('stripe_default_payment_method', sa.String(), nullable=True),
            sa.Column('last_stripe_sync', sa.DateTime(timezone=True), nullable=True),
            *timestamps(),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_user_contacts_id'), 'user_contacts', ['id'], unique=False)
        op.create_index(op.f('ix_user_contacts_user_id'), 'user_contacts', ['user_id'], unique=False)
        op.create_index(op.f('ix_user_contacts_stripe_customer_id'), 'user_contacts', ['stripe_customer_id'], unique=False)

    if not table_exists('user_cards'):
        op.create_table('user_cards',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('contact_id', sa.Integer(), nullable=False),
            sa.Column('cardholder_name', sa.String(), nullable=False),
            sa.Column('last4', sa.String(length=4), nullable=False),
            sa.Column('expiry_month', sa.String(length=2), nullable=False),
            sa.Column('expiry_year', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['contact_id'], ['user_contacts.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_user_cards_id'), 'user_cards', ['id'], unique=False)
        op.create_index(op.f('ix_user_cards_contact_id'), 'user_cards', ['contact_id'], unique=False)

    if not table_exists('user_watches'):
        op.create_table('user_watches',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('brand', sa.String(), nullable=False),
            sa.Column('model', sa.String(), nullable=False),
            sa.Column('reference_number', sa.String(), nullable=False),
            sa.Column('serial_number', sa.String(), nullable=True),
            sa.Column('watch_set', sa.String(), nullable=True),
            sa.Column('in_date', sa.Date(), nullable=True),
            sa.Column('platform_purchased', sa.String(), nullable=True),
            sa.Column('purchase_price', sa.Float(), nullable=True),
            sa.Column('liquidation_price', sa.Float(), nullable=True),
            sa.Column('accessories', sa.Text(), nullable=True),
            sa.Column('accessories_cost', sa.Float(), nullable=True),
            sa.Column('date_sold', sa.Date(), nullable=True),
            sa.Column('platform_sold', sa.String(), nullable=True),
            sa.Column('price_sold', sa.Float(), nullable=True),
            sa.Column('fees', sa.Float(), nullable=True),
            sa.Column('shipping', sa.Float(), nullable=True),
            sa.Column('taxes', sa.Float(), nullable=True),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column('buyer_contact_id', sa.Integer(), nullable=True),
            sa.Column('seller_contact_id', sa.Integer(), nullable=True),
            *timestamps(),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['buyer_contact_id'], ['user_contacts.id'], ondelete='SET NULL'),
            sa.ForeignKeyConstraint(['seller_contact_id'], ['user_contacts.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_user_watches_id'), 'user_watches', ['id'], unique=False)
        op.create_index(op.f('ix_user_watches_user_id'), 'user_watches', ['user_id'], unique=False)
        op.create_index(op.f('ix_user_watches_reference_number'), 'user_watches', ['reference_number'], unique=False)

    if not table_exists('watch_history'):
        op.create_table('watch_history',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('watch_id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('action', sa.String(), nullable=False),
            sa.Column('field_name', sa.String(), nullable=True),
            sa.Column('old_value', sa.Text(), nullable=True),
            sa.Column('new_value', sa.Text(), nullable=True),
            sa.Column('changed_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.ForeignKeyConstraint(['watch_id'], ['user_watches.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_watch_history_id'), 'watch_history', ['id'], unique=False)
        op.create_index(op.f('ix_watch_history_watch_id'), 'watch_history', ['watch_id'], unique=False)

    if not table_exists('user_leads'):
        op.create_table('user_leads',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('title', sa.String(), nullable=False),
            sa.Column('status', sa.String(), nullable=False, server_default='Monitoring'),
            sa.Column('contact_id', sa.Integer(), nullable=True),
            sa.Column('watch_reference', sa.String(), nullable=True),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column('reminder_date', sa.Date(), nullable=True),
            *timestamps(),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['contact_id'], ['user_contacts.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_user_leads_id'), 'user_leads', ['id'], unique=False)
        op.create_index(op.f('ix_user_leads_user_id'), 'user_leads', ['user_id'], unique=False)

    if not table_exists('invoices'):
        op.create_table('invoices',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('contact_id', sa.Integer(), nullable=True),
            sa.Column('stripe_invoice_id', sa.String(), nullable=True),
            sa.Column('square_invoice_id', sa.String(), nullable=True),
            sa.Column('stripe_customer_id', sa.String(), nullable=True),
            sa.Column('status', sa.String(), nullable=False, server_default='draft'),
            sa.Column('total_amount', sa.Float(), nullable=False, server_default='0'),
            sa.Column('currency', sa.String(), nullable=False, server_default='usd'),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('due_date', sa.Date(), nullable=True),
            sa.Column('collection_method', sa.String(), nullable=False, server_default='charge_automatically'),
            sa.Column('hosted_invoice_url', sa.String(), nullable=True),
            sa.Column('invoice_pdf', sa.String(), nullable=True),
            sa.Column('payment_intent', sa.String(), nullable=True),
            sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('amount_paid', sa.Float(), nullable=True),
            sa.Column('last_payment_error', sa.Text(), nullable=True),
            sa.Column('payment_attempt_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('finalized_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('metadata', sa.JSON(), nullable=True),
            *timestamps(),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['contact_id'], ['user_contacts.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_invoices_id'), 'invoices', ['id'], unique=False)
        op.create_index(op.f('ix_invoices_user_id'), 'invoices', ['user_id'], unique=False)
        op.create_index(op.f('ix_invoices_stripe_invoice_id'), 'invoices', ['stripe_invoice_id'], unique=True)
        op.create_index(op.f('ix_invoices_square_invoice_id'), 'invoices', ['square_invoice_id'], unique=True)
        op.create_index(op.f('ix_invoices_payment_intent'), 'invoices', ['payment_intent'], unique=False)

    if not table_exists('invoice_items'):
        op.create_table('invoice_items',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('invoice_id', sa.Integer(), nullable=False),
            sa.Column('watch_id', sa.Integer(), nullable=True),
            sa.Column('description', sa.String(), nullable=False),
            sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('unit_price', sa.Float(), nullable=False),
            sa.Column('total_amount', sa.Float(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['watch_id'], ['user_watches.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_invoice_items_id'), 'invoice_items', ['id'], unique=False)
        op.create_index(op.f('ix_invoice_items_invoice_id'), 'invoice_items', ['invoice_id'], unique=False)

    if not table_exists('promo_signups'):
        op.create_table('promo_signups',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('full_name', sa.String(), nullable=False),
            sa.Column('email', sa.String(), nullable=False),
            sa.Column('phone', sa.String(), nullable=True),
            sa.Column('business_name', sa.String(), nullable=False),
            sa.Column('referral_source', sa.String(), nullable=True),
            sa.Column('experience_level', sa.String(), nullable=True),
            sa.Column('interests', sa.Text(), nullable=True),
            sa.Column('comments', sa.Text(), nullable=True),
            sa.Column('status', sa.String(), nullable=False, server_default='pending'),
            sa.Column('admin_notes', sa.Text(), nullable=True),
            *timestamps(),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_promo_signups_id'), 'promo_signups', ['id'], unique=False)
        op.create_index(op.f('ix_promo_signups_email'), 'promo_signups', ['email'], unique=True)

    if not table_exists('provisioning_audit_logs'):
        op.create_table('provisioning_audit_logs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('email', sa.String(), nullable=False),
            sa.Column('full_name', sa.String(), nullable=True),
            sa.Column('subscription_tier', sa.String(), nullable=True),
            sa.Column('admin_user', sa.String(), nullable=True),
            sa.Column('step_completed', sa.String(), nullable=False),
            sa.Column('success', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_provisioning_audit_logs_id'), 'provisioning_audit_logs', ['id'], unique=False)
        op.create_index(op.f('ix_provisioning_audit_logs_email'), 'provisioning_audit_logs', ['email'], unique=False)


def downgrade() -> None:
    for table in (
        'provisioning_audit_logs',
        'promo_signups',
        'invoice_items',
        'invoices',
        'user_leads',
        'watch_history',
        'user_watches',
        'user_cards',
        'user_contacts',
        'users',
    ):
        if table_exists(table):
            op.drop_table(table)

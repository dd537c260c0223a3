"""initial schema

Revision ID: r0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

This migration creates the complete Retoro schema from scratch:
- users, sessions, magic_link_tokens: optional accounts
- retailer_policies: return windows per retailer
- return_items: tracked purchases, owned by a user or an anonymous token
  (owner_type + user_id)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'r0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # users
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('email_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('preferred_currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )
    op.create_index('ix_users_email', 'users', ['email'])

    # ============================================================================
    # sessions: hashed session tokens
    # ============================================================================
    op.create_table(
        'sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sessions_user_id', 'sessions', ['user_id'])
    op.create_index('ix_sessions_token_hash', 'sessions', ['token_hash'], unique=True)
    op.create_index('ix_sessions_expires_at', 'sessions', ['expires_at'])

    # ============================================================================
    # magic_link_tokens: single-use emailed tokens
    # ============================================================================
    op.create_table(
        'magic_link_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('purpose', sa.String(length=32), nullable=False, server_default='magic_link'),
        sa.Column('anonymous_user_id', sa.String(length=255), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_magic_link_tokens_user_id', 'magic_link_tokens', ['user_id'])
    op.create_index('ix_magic_link_tokens_token', 'magic_link_tokens', ['token'], unique=True)

    # ============================================================================
    # retailer_policies
    # ============================================================================
    op.create_table(
        'retailer_policies',
        sa.Column('id', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('return_window_days', sa.Integer(), nullable=False),
        sa.Column('policy_description', sa.Text(), nullable=True),
        sa.Column('website_url', sa.String(length=500), nullable=True),
        sa.Column('has_free_returns', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_retailer_policies_name', 'retailer_policies', ['name'])

    # ============================================================================
    # return_items
    # ============================================================================
    op.create_table(
        'return_items',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('retailer_id', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=True),
        sa.Column('original_currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('price_usd', sa.Numeric(10, 2), nullable=True),
        sa.Column('currency_symbol', sa.String(length=8), nullable=False, server_default='$'),
        sa.Column('purchase_date', sa.DateTime(), nullable=False),
        sa.Column('return_deadline', sa.DateTime(), nullable=False),
        sa.Column('is_returned', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('returned_date', sa.DateTime(), nullable=True),
        sa.Column('owner_type', sa.String(length=16), nullable=False, server_default='anonymous'),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['retailer_id'], ['retailer_policies.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            '(is_returned AND returned_date IS NOT NULL) OR (NOT is_returned AND returned_date IS NULL)',
            name='ck_return_items_returned_date'
        ),
    )
    op.create_index('ix_return_items_retailer_id', 'return_items', ['retailer_id'])
    op.create_index('ix_return_items_return_deadline', 'return_items', ['return_deadline'])
    op.create_index('ix_return_items_is_returned', 'return_items', ['is_returned'])
    op.create_index('ix_return_items_user_id', 'return_items', ['user_id'])
    op.create_index('ix_return_items_owner', 'return_items', ['owner_type', 'user_id'])
    op.create_index('ix_return_items_owner_deadline', 'return_items', ['user_id', 'return_deadline'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('return_items')
    op.drop_table('retailer_policies')
    op.drop_table('magic_link_tokens')
    op.drop_table('sessions')
    op.drop_table('users')

"""Initial migration - create all tables

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

Creates all database tables for the Flag Capture Game:
- users: Player accounts with authorization role
- user_sessions: Bearer session tokens issued by the auth provider
- flag_requests: Requests for new flags awaiting an admin decision
- flags: Numbered physical flags and their current holder
- captures: Ownership transfers between players
- counters: Monotonic sequences (flag numbers)

Also creates indexes for common query patterns and the partial unique
index that allows one pending request per user.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── Users Table ───────────────────────────────────────────
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('email', sa.String(320), nullable=False, unique=True),
        sa.Column('role', sa.String(16), nullable=False, server_default='user'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )

    # ── User Sessions Table ───────────────────────────────────
    op.create_table(
        'user_sessions',
        sa.Column('token', sa.String(128), primary_key=True),
        sa.Column('user_id', sa.String(36),
                  sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_user_sessions_user_id', 'user_sessions', ['user_id'])

    # ── Flag Requests Table ───────────────────────────────────
    op.create_table(
        'flag_requests',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('requested_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('processed_by_admin_id', sa.String(36),
                  sa.ForeignKey('users.id'), nullable=True),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')",
                           name='ck_flag_requests_status'),
    )
    op.create_index('ix_flag_requests_user_id', 'flag_requests', ['user_id'])
    op.create_index('ix_flag_requests_requested_at', 'flag_requests', ['requested_at'])
    op.create_index('uq_flag_requests_one_pending_per_user', 'flag_requests', ['user_id'],
                    unique=True,
                    postgresql_where=sa.text("status = 'pending'"),
                    sqlite_where=sa.text("status = 'pending'"))

    # ── Flags Table ───────────────────────────────────────────
    op.create_table(
        'flags',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('flag_number', sa.Integer(), nullable=False, unique=True),
        sa.Column('current_owner_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('original_requester_id', sa.String(36),
                  sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('last_captured_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_flags_current_owner_id', 'flags', ['current_owner_id'])
    op.create_index('ix_flags_original_requester_id', 'flags', ['original_requester_id'])

    # ── Captures Table ────────────────────────────────────────
    op.create_table(
        'captures',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('flag_id', sa.String(36),
                  sa.ForeignKey('flags.id', ondelete='CASCADE'), nullable=False),
        sa.Column('captured_by_user_id', sa.String(36),
                  sa.ForeignKey('users.id'), nullable=False),
        sa.Column('captured_at', sa.DateTime(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('photo_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_captures_flag_id_captured_at', 'captures', ['flag_id', 'captured_at'])
    op.create_index('ix_captures_captured_by_user_id', 'captures', ['captured_by_user_id'])

    # ── Counters Table ────────────────────────────────────────
    op.create_table(
        'counters',
        sa.Column('name', sa.String(64), primary_key=True),
        sa.Column('value', sa.Integer(), nullable=False, server_default='0'),
    )


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table('counters')
    op.drop_index('ix_captures_captured_by_user_id', table_name='captures')
    op.drop_index('ix_captures_flag_id_captured_at', table_name='captures')
    op.drop_table('captures')
    op.drop_index('ix_flags_original_requester_id', table_name='flags')
    op.drop_index('ix_flags_current_owner_id', table_name='flags')
    op.drop_table('flags')
    op.drop_index('uq_flag_requests_one_pending_per_user', table_name='flag_requests')
    op.drop_index('ix_flag_requests_requested_at', table_name='flag_requests')
    op.drop_index('ix_flag_requests_user_id', table_name='flag_requests')
    op.drop_table('flag_requests')
    op.drop_index('ix_user_sessions_user_id', table_name='user_sessions')
    op.drop_table('user_sessions')
    op.drop_table('users')

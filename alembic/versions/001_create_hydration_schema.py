"""create hydration schema

Revision ID: 001_initial
Revises: 
Create Date: 2026-09-14 10:02:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create users table
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'])

    # Create auth_sessions table (tokens Bearer do app mobile)
    op.create_table(
        'auth_sessions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('session_token', sa.String(255), nullable=False, unique=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('expires', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_auth_sessions_session_token', 'auth_sessions', ['session_token'])
    op.create_index('ix_auth_sessions_user_id', 'auth_sessions', ['user_id'])

    # Create user_settings table
    op.create_table(
        'user_settings',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False, unique=True),
        sa.Column('daily_goal', sa.Numeric(10, 2), nullable=False, server_default='64'),
        sa.Column('weekly_goal', sa.Numeric(10, 2), nullable=True),
        sa.Column('hand_size', sa.String(20), nullable=False, server_default='medium'),
        sa.Column('sip_size', sa.String(20), nullable=False, server_default='medium'),
        sa.Column('water_unit', sa.String(10), nullable=False, server_default='oz'),
        sa.Column('timezone', sa.String(64), nullable=False, server_default='America/New_York'),
        sa.Column('last_cleanup_date', sa.Date(), nullable=True),
        sa.Column('image_uploads_today', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('text_descriptions_today', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('manual_adds_today', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_limit_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_user_settings_user_id', 'user_settings', ['user_id'])

    # Create water_entries table
    op.create_table(
        'water_entries',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('ounces', sa.Numeric(10, 2), nullable=False),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('classification', sa.String(50), nullable=False, server_default='reusable-bottle'),
        sa.Column('liquid_type', sa.String(50), nullable=False, server_default='water'),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('servings', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_from_favorite', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.CheckConstraint('ounces > 0', name='ck_water_entries_ounces_positive'),
    )
    op.create_index('ix_water_entries_id', 'water_entries', ['id'])
    op.create_index('ix_water_entries_user_id', 'water_entries', ['user_id'])
    op.create_index('ix_water_entries_user_date', 'water_entries', ['user_id', 'entry_date'])

    # Create daily_water_aggregates table
    op.create_table(
        'daily_water_aggregates',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column('total_ounces', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'entry_date', name='uq_daily_water_aggregates_user_date'),
    )
    op.create_index('ix_daily_water_aggregates_user_id', 'daily_water_aggregates', ['user_id'])

    # Create weekly_summaries table
    op.create_table(
        'weekly_summaries',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('week_start_date', sa.Date(), nullable=False),
        sa.Column('total_ounces', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('days_with_data', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('early_morning_oz', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('morning_oz', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('afternoon_oz', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('evening_oz', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('night_oz', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('liquid_types', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'week_start_date', name='uq_weekly_summaries_user_week'),
    )
    op.create_index('ix_weekly_summaries_user_id', 'weekly_summaries', ['user_id'])


def downgrade() -> None:
    op.drop_table('weekly_summaries')
    op.drop_table('daily_water_aggregates')
    op.drop_table('water_entries')
    op.drop_table('user_settings')
    op.drop_table('auth_sessions')
    op.drop_table('users')

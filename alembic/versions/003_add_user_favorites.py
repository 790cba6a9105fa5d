"""add user favorites

Revision ID: 003_user_favorites
Revises: 002_barcode_jobs
Create Date: 2026-10-19 10:15:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '003_user_favorites'
down_revision: Union[str, None] = '002_barcode_jobs'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'user_favorites',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('ounces', sa.Numeric(10, 2), nullable=False),
        sa.Column('classification', sa.String(50), nullable=False, server_default='reusable-bottle'),
        sa.Column('liquid_type', sa.String(50), nullable=False, server_default='water'),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('servings', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('favorite_order', sa.Integer(), nullable=True),
        sa.Column('source_entry_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_user_favorites_id', 'user_favorites', ['id'])
    op.create_index('ix_user_favorites_user_id', 'user_favorites', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_user_favorites_user_id', table_name='user_favorites')
    op.drop_table('user_favorites')

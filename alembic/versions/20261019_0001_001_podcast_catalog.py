"""Podcast catalog table

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'podcasts',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('external_id', sa.String(128), unique=True, nullable=False),
        sa.Column('title', sa.String(512), nullable=False),
        sa.Column('publisher', sa.String(512), nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('feed_url', sa.String(2048), unique=True, nullable=True),
        sa.Column('website_url', sa.String(2048), nullable=True),
        sa.Column('image_url', sa.String(2048), nullable=True),
        sa.Column('language', sa.String(32), nullable=True),
        sa.Column('source', sa.String(16), nullable=False, server_default='rss'),
        sa.Column('is_subscribed', sa.Boolean, default=True),
        sa.Column('last_polled_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=True),
        sa.Column('updated_at', sa.DateTime, nullable=True),
    )
    op.create_index('ix_podcasts_feed_url', 'podcasts', ['feed_url'])


def downgrade() -> None:
    op.drop_index('ix_podcasts_feed_url', table_name='podcasts')
    op.drop_table('podcasts')

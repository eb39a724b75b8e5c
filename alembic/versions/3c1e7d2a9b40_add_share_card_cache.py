"""add share card cache

Revision ID: 3c1e7d2a9b40
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "3c1e7d2a9b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "share_card_cache",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("entity_type", sa.String(length=20), nullable=False),
        sa.Column("entity_id", sa.String(length=100), nullable=False),
        sa.Column("cache_key", sa.String(length=200), nullable=False),
        sa.Column("storage_path", sa.String(length=1024), nullable=False),
        sa.Column("data_hash", sa.String(length=64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_share_card_cache_cache_key", "share_card_cache", ["cache_key"], unique=True
    )
    op.create_index("ix_share_card_cache_entity_type", "share_card_cache", ["entity_type"])
    op.create_index("ix_share_card_cache_entity_id", "share_card_cache", ["entity_id"])
    op.create_index("ix_share_card_cache_expires_at", "share_card_cache", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_share_card_cache_expires_at", table_name="share_card_cache")
    op.drop_index("ix_share_card_cache_entity_id", table_name="share_card_cache")
    op.drop_index("ix_share_card_cache_entity_type", table_name="share_card_cache")
    op.drop_index("ix_share_card_cache_cache_key", table_name="share_card_cache")
    op.drop_table("share_card_cache")

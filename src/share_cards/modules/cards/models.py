from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from share_cards.core.models import Base, Timestamped, UUIDPrimaryKey


class EntityType(str, enum.Enum):
    PRODUCT = "product"
    FUND = "fund"
    BUSINESS = "business"
    ADMIN_INVITE = "admin"


class ShareCardCacheEntry(UUIDPrimaryKey, Timestamped, Base):
    __tablename__ = "share_card_cache"

    entity_type: Mapped[EntityType] = mapped_column(
        Enum(EntityType, native_enum=False, length=20), index=True
    )
    entity_id: Mapped[str] = mapped_column(String(100), index=True)
    cache_key: Mapped[str] = mapped_column(String(200), unique=True, index=True)
    storage_path: Mapped[str] = mapped_column(String(1024))
    data_hash: Mapped[str] = mapped_column(String(64))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

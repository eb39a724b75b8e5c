"""
Alembic model import hook.

Importing this module ensures all SQLAlchemy models are registered on Base.metadata.
"""

from __future__ import annotations

from share_cards.modules.cards.models import ShareCardCacheEntry  # noqa: F401

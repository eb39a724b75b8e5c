from __future__ import annotations

import math

from share_cards.modules.cards.models import EntityType

BUCKET_STEP = 10
BUCKETED_TYPES = frozenset({EntityType.FUND})


def progress_bucket(current: float, target: float) -> int:
    """
    Quantize funding progress to a multiple of 10 in [0, 100].

    Over-funded campaigns land in 100; a non-positive target is 0.
    """
    if not target > 0:
        return 0
    percentage = float(current) * 100 / float(target)
    if math.isnan(percentage):
        return 0
    if math.isinf(percentage):
        return 100 if percentage > 0 else 0
    bucket = math.floor(percentage / BUCKET_STEP) * BUCKET_STEP
    return max(0, min(100, bucket))


def build_cache_key(entity_type: EntityType, entity_id: str, bucket: int | None = None) -> str:
    entity_type = EntityType(entity_type)
    if entity_type in BUCKETED_TYPES:
        if bucket is None:
            raise ValueError(f"{entity_type.value} cache keys require a progress bucket")
        return f"{entity_type.value}_{entity_id}_progress{bucket}"
    if bucket is not None:
        raise ValueError(f"{entity_type.value} cache keys are not bucketed")
    return f"{entity_type.value}_{entity_id}"


def storage_path_for(entity_type: EntityType, entity_id: str, data_hash: str) -> str:
    """Content-addressed blob path: same (type, id, hash) always maps to the same object."""
    return f"{EntityType(entity_type).value}/{entity_id}_{data_hash}.png"

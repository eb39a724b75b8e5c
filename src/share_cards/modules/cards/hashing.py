from __future__ import annotations

import dataclasses
import hashlib
import json

from share_cards.modules.cards.payloads import CardPayload


def canonical_payload(payload: CardPayload) -> str:
    # Declaration order is the canonical field order; None serializes as null,
    # which never collides with "".
    fields = [[f.name, getattr(payload, f.name)] for f in dataclasses.fields(payload)]
    return json.dumps(
        [type(payload).__name__, fields],
        default=str,
        ensure_ascii=True,
        separators=(",", ":"),
    )


def hash_payload(payload: CardPayload) -> str:
    return hashlib.sha256(canonical_payload(payload).encode("utf-8")).hexdigest()

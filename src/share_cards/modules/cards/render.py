"""
Plain default renderer for share cards.

The cache treats rendering as an opaque ``payload -> PNG bytes`` call; this
renderer only lays out text so the service works without a design template.
"""

from __future__ import annotations

import io
from collections.abc import Callable
from decimal import Decimal

from PIL import Image, ImageDraw, ImageFont

from share_cards.core.fonts import get_font_bytes
from share_cards.core.logging import get_logger, log_exception
from share_cards.modules.cards.payloads import (
    AdminInviteCard,
    BusinessCard,
    CardPayload,
    FundCard,
    ProductCard,
)

logger = get_logger(__name__)

Renderer = Callable[[CardPayload], bytes]

CARD_SIZE = (1200, 630)
BACKGROUND = (255, 248, 240)
PRIMARY = (124, 58, 237)
TEXT = (31, 41, 55)
MUTED = (107, 114, 128)
TRACK = (229, 231, 235)
BRAND = "JOIE DE VIVRE"
SITE = "joiedevivre-africa.com"

OCCASION_LABELS = {
    "birthday": "Anniversaire",
    "wedding": "Mariage",
    "graduation": "Diplôme",
    "baby": "Naissance",
    "retirement": "Retraite",
    "promotion": "Promotion",
}


def _font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    data = get_font_bytes()
    if data:
        try:
            return ImageFont.truetype(io.BytesIO(data), size)
        except OSError:
            log_exception(logger, "font.load.failure", size=size, byte_size=len(data))
    return ImageFont.load_default(size=size)


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _amount(value: Decimal | None) -> str:
    if value is None:
        return ""
    return f"{value:,.0f}".replace(",", " ")


def _rating(average: float, count: int) -> str | None:
    if not count:
        return None
    return f"{average:.1f}/5 ({count} avis)"


def _lines(payload: CardPayload) -> list[tuple[str, int, tuple[int, int, int]]]:
    if isinstance(payload, ProductCard):
        lines = [(_truncate(payload.name, 45), 64, TEXT)]
        rating = _rating(payload.average_rating, payload.rating_count)
        if rating:
            lines.append((rating, 36, MUTED))
        if payload.price is not None:
            lines.append((f"{_amount(payload.price)} {payload.currency}", 56, PRIMARY))
        lines.append((f"par {payload.vendor_name or BRAND}", 32, MUTED))
        return lines

    if isinstance(payload, FundCard):
        occasion = OCCASION_LABELS.get(payload.occasion or "", "Cagnotte")
        lines = [
            (occasion, 32, PRIMARY),
            (_truncate(payload.title, 35), 64, TEXT),
            (f"Pour {payload.beneficiary_name or 'un proche'}", 36, MUTED),
        ]
        if payload.product_name:
            lines.append((_truncate(payload.product_name, 40), 32, MUTED))
        lines.append(
            (
                f"{payload.progress_bucket}% · objectif {_amount(payload.target_amount)}"
                f" {payload.currency}",
                40,
                PRIMARY,
            )
        )
        if payload.contributor_count:
            plural = "s" if payload.contributor_count > 1 else ""
            lines.append((f"{payload.contributor_count} contributeur{plural}", 32, MUTED))
        return lines

    if isinstance(payload, BusinessCard):
        lines = [(_truncate(payload.name, 28), 64, TEXT)]
        if payload.business_type:
            lines.append((payload.business_type, 36, PRIMARY))
        rating = _rating(payload.average_rating, payload.rating_count)
        if rating:
            lines.append((rating, 32, MUTED))
        if payload.products_count:
            plural = "s" if payload.products_count > 1 else ""
            lines.append((f"{payload.products_count} produit{plural}", 32, MUTED))
        if payload.address:
            lines.append((_truncate(payload.address, 50), 28, MUTED))
        return lines

    if isinstance(payload, AdminInviteCard):
        return [
            (BRAND, 40, PRIMARY),
            ("Rejoins-nous !", 72, TEXT),
            (f"Invité par {payload.admin_name or 'un membre'}", 40, MUTED),
        ]

    raise TypeError(f"Unsupported share card payload: {type(payload).__name__}")


def render_card(payload: CardPayload) -> bytes:
    width, height = CARD_SIZE
    image = Image.new("RGB", CARD_SIZE, BACKGROUND)
    draw = ImageDraw.Draw(image)

    y = 80
    for text, size, color in _lines(payload):
        draw.text((80, y), text, font=_font(size), fill=color)
        y += int(size * 1.5)

    if isinstance(payload, FundCard):
        bar_top = height - 170
        draw.rounded_rectangle((80, bar_top, width - 80, bar_top + 28), radius=14, fill=TRACK)
        filled = int((width - 160) * payload.progress_bucket / 100)
        if filled:
            draw.rounded_rectangle((80, bar_top, 80 + filled, bar_top + 28), radius=14, fill=PRIMARY)

    draw.rectangle((0, height - 80, width, height), fill=PRIMARY)
    draw.text((80, height - 60), SITE, font=_font(32), fill=(255, 255, 255))

    out = io.BytesIO()
    image.save(out, format="PNG", optimize=True)
    return out.getvalue()

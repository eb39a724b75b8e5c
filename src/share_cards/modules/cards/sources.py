from __future__ import annotations

import re
import uuid
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from share_cards.modules.cards.errors import InvalidRequest
from share_cards.modules.cards.keys import progress_bucket
from share_cards.modules.cards.models import EntityType
from share_cards.modules.cards.payloads import (
    AdminInviteCard,
    BusinessCard,
    CardPayload,
    FundCard,
    ProductCard,
)
from share_cards.modules.cards.tables import (
    admin_share_codes,
    admin_users,
    business_accounts,
    collective_funds,
    contacts,
    fund_contributions,
    product_ratings,
    products,
    profiles,
)

DEFAULT_CURRENCY = "XOF"
ADMIN_CODE_PREFIX = "ADM-"
_MAX_CODE_LENGTH = 50
# Codes become storage key segments: uppercase letters, digits and dashes only.
_ADMIN_CODE_RE = re.compile(re.escape(ADMIN_CODE_PREFIX) + r"[A-Z0-9-]+")


def normalize_entity_id(entity_type: EntityType, raw: str | None) -> str:
    """Validate a request identifier; raises InvalidRequest."""
    value = (raw or "").strip()
    if entity_type is EntityType.ADMIN_INVITE:
        if len(value) > _MAX_CODE_LENGTH or not _ADMIN_CODE_RE.fullmatch(value):
            raise InvalidRequest("Invalid code")
        return value
    if not value:
        raise InvalidRequest(f"{entity_type.value.capitalize()} ID required")
    try:
        return str(uuid.UUID(value))
    except ValueError as e:
        raise InvalidRequest(f"Invalid {entity_type.value} ID") from e


def load_card_payload(
    session: Session, *, entity_type: EntityType, entity_id: str
) -> CardPayload | None:
    if entity_type is EntityType.PRODUCT:
        return load_product_card(session, product_id=entity_id)
    if entity_type is EntityType.FUND:
        return load_fund_card(session, fund_id=entity_id)
    if entity_type is EntityType.BUSINESS:
        return load_business_card(session, business_id=entity_id)
    return load_admin_invite_card(session, code=entity_id)


def _rating_summary(row) -> tuple[float, int]:
    count = int(row.rating_count or 0)
    if not count:
        return 0.0, 0
    return round(float(row.rating_avg), 1), count


def load_product_card(session: Session, *, product_id: str) -> ProductCard | None:
    product = session.execute(
        select(
            products.c.name,
            products.c.image_url,
            products.c.price,
            products.c.currency,
            business_accounts.c.business_name,
        )
        .select_from(products)
        .outerjoin(business_accounts, business_accounts.c.id == products.c.business_id)
        .where(products.c.id == product_id, products.c.is_active.is_(True))
    ).first()
    if not product:
        return None

    ratings = session.execute(
        select(
            func.count(product_ratings.c.id).label("rating_count"),
            func.avg(product_ratings.c.rating).label("rating_avg"),
        ).where(product_ratings.c.product_id == product_id)
    ).one()
    average_rating, rating_count = _rating_summary(ratings)

    return ProductCard(
        name=product.name,
        image_url=product.image_url,
        price=product.price,
        currency=product.currency or DEFAULT_CURRENCY,
        vendor_name=product.business_name,
        average_rating=average_rating,
        rating_count=rating_count,
    )


def load_fund_card(session: Session, *, fund_id: str) -> FundCard | None:
    fund = session.execute(
        select(
            collective_funds.c.title,
            collective_funds.c.occasion,
            collective_funds.c.current_amount,
            collective_funds.c.target_amount,
            collective_funds.c.currency,
            products.c.name.label("product_name"),
            products.c.image_url.label("product_image_url"),
            contacts.c.name.label("beneficiary_name"),
        )
        .select_from(collective_funds)
        .outerjoin(products, products.c.id == collective_funds.c.business_product_id)
        .outerjoin(contacts, contacts.c.id == collective_funds.c.beneficiary_contact_id)
        .where(collective_funds.c.id == fund_id)
    ).first()
    if not fund:
        return None

    contributor_count = session.scalar(
        select(func.count(fund_contributions.c.id)).where(fund_contributions.c.fund_id == fund_id)
    )
    current = fund.current_amount or Decimal("0")
    target = fund.target_amount or Decimal("0")

    return FundCard(
        title=fund.title,
        occasion=fund.occasion,
        progress_bucket=progress_bucket(current, target),
        target_amount=target,
        currency=fund.currency or DEFAULT_CURRENCY,
        beneficiary_name=fund.beneficiary_name,
        product_name=fund.product_name,
        product_image_url=fund.product_image_url,
        contributor_count=int(contributor_count or 0),
    )


def load_business_card(session: Session, *, business_id: str) -> BusinessCard | None:
    business = session.execute(
        select(
            business_accounts.c.business_name,
            business_accounts.c.business_type,
            business_accounts.c.logo_url,
            business_accounts.c.address,
        ).where(
            business_accounts.c.id == business_id,
            business_accounts.c.is_active.is_(True),
            business_accounts.c.status == "active",
        )
    ).first()
    if not business:
        return None

    products_count = session.scalar(
        select(func.count(products.c.id)).where(
            products.c.business_id == business_id, products.c.is_active.is_(True)
        )
    )
    ratings = session.execute(
        select(
            func.count(product_ratings.c.id).label("rating_count"),
            func.avg(product_ratings.c.rating).label("rating_avg"),
        )
        .select_from(product_ratings)
        .join(products, products.c.id == product_ratings.c.product_id)
        .where(products.c.business_id == business_id, products.c.is_active.is_(True))
    ).one()
    average_rating, rating_count = _rating_summary(ratings)

    return BusinessCard(
        name=business.business_name,
        business_type=business.business_type or None,
        logo_url=business.logo_url or None,
        address=business.address or None,
        products_count=int(products_count or 0),
        average_rating=average_rating,
        rating_count=rating_count,
    )


def load_admin_invite_card(session: Session, *, code: str) -> AdminInviteCard | None:
    share_code = session.execute(
        select(admin_share_codes.c.admin_user_id).where(
            admin_share_codes.c.code == code, admin_share_codes.c.is_active.is_(True)
        )
    ).first()
    if not share_code:
        return None

    # Any missing link in code -> admin -> profile renders the anonymous invite.
    profile = session.execute(
        select(profiles.c.first_name, profiles.c.last_name, profiles.c.avatar_url)
        .select_from(admin_users)
        .join(profiles, profiles.c.user_id == admin_users.c.user_id)
        .where(admin_users.c.id == share_code.admin_user_id)
    ).first()
    if not profile:
        return AdminInviteCard(admin_name=None, avatar_url=None)

    name = " ".join(part for part in (profile.first_name, profile.last_name) if part)
    return AdminInviteCard(
        admin_name=name or None,
        avatar_url=profile.avatar_url or None,
    )

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class ProductCard:
    name: str
    image_url: str | None
    price: Decimal | None
    currency: str
    vendor_name: str | None
    average_rating: float
    rating_count: int


@dataclass(frozen=True)
class FundCard:
    title: str
    occasion: str | None
    progress_bucket: int
    target_amount: Decimal
    currency: str
    beneficiary_name: str | None
    product_name: str | None
    product_image_url: str | None
    contributor_count: int


@dataclass(frozen=True)
class BusinessCard:
    name: str
    business_type: str | None
    logo_url: str | None
    address: str | None
    products_count: int
    average_rating: float
    rating_count: int


@dataclass(frozen=True)
class AdminInviteCard:
    admin_name: str | None
    avatar_url: str | None


CardPayload = ProductCard | FundCard | BusinessCard | AdminInviteCard

"""
Marketplace tables read by the share card loaders.

These tables are owned and migrated by the marketplace application; they live
on their own MetaData so they are never part of this service's migrations.
Only the columns the loaders select are declared.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, Integer, MetaData, Numeric, String, Table, Text

marketplace_metadata = MetaData()

products = Table(
    "products",
    marketplace_metadata,
    Column("id", String(36), primary_key=True),
    Column("business_id", String(36), index=True),
    Column("name", String(255), nullable=False),
    Column("description", Text),
    Column("price", Numeric(14, 2)),
    Column("currency", String(3)),
    Column("image_url", Text),
    Column("is_active", Boolean, nullable=False, default=True),
)

product_ratings = Table(
    "product_ratings",
    marketplace_metadata,
    Column("id", String(36), primary_key=True),
    Column("product_id", String(36), index=True, nullable=False),
    Column("rating", Integer, nullable=False),
)

business_accounts = Table(
    "business_accounts",
    marketplace_metadata,
    Column("id", String(36), primary_key=True),
    Column("business_name", String(255), nullable=False),
    Column("business_type", String(100)),
    Column("description", Text),
    Column("logo_url", Text),
    Column("address", Text),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("status", String(20), nullable=False, default="active"),
)

contacts = Table(
    "contacts",
    marketplace_metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255)),
    Column("avatar_url", Text),
)

collective_funds = Table(
    "collective_funds",
    marketplace_metadata,
    Column("id", String(36), primary_key=True),
    Column("title", String(255), nullable=False),
    Column("description", Text),
    Column("target_amount", Numeric(14, 2)),
    Column("current_amount", Numeric(14, 2)),
    Column("currency", String(3)),
    Column("occasion", String(50)),
    Column("status", String(20)),
    Column("business_product_id", String(36)),
    Column("beneficiary_contact_id", String(36)),
)

fund_contributions = Table(
    "fund_contributions",
    marketplace_metadata,
    Column("id", String(36), primary_key=True),
    Column("fund_id", String(36), index=True, nullable=False),
    Column("amount", Numeric(14, 2)),
)

admin_share_codes = Table(
    "admin_share_codes",
    marketplace_metadata,
    Column("code", String(50), primary_key=True),
    Column("admin_user_id", String(36)),
    Column("is_active", Boolean, nullable=False, default=True),
)

admin_users = Table(
    "admin_users",
    marketplace_metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(36)),
)

profiles = Table(
    "profiles",
    marketplace_metadata,
    Column("user_id", String(36), primary_key=True),
    Column("first_name", String(100)),
    Column("last_name", String(100)),
    Column("avatar_url", Text),
)

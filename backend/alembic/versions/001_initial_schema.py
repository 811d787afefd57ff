"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _created() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())


def _updated() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now())


def _fk(column: str, target: str, ondelete: str | None = None, **kw) -> sa.Column:
    return sa.Column(
        column,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        **kw,
    )


def upgrade() -> None:
    # User profiles
    op.create_table(
        "user_profiles",
        _id(),
        sa.Column("email", sa.String(255), unique=True),
        sa.Column("password_hash", sa.String(128)),
        sa.Column("full_name", sa.String(200)),
        sa.Column("avatar_url", sa.Text()),
        sa.Column("phone", sa.String(30)),
        sa.Column("is_admin", sa.Boolean(), server_default=sa.text("false")),
        sa.Column("is_affiliate", sa.Boolean(), server_default=sa.text("false")),
        sa.Column("affiliate_code", sa.String(50)),
        sa.Column("youtube_access_token", sa.Text()),
        sa.Column("youtube_refresh_token", sa.Text()),
        sa.Column("youtube_token_expiry", sa.DateTime(timezone=True)),
        sa.Column("push_subscription", sa.JSON()),
        _created(),
        _updated(),
    )
    op.create_index("ix_user_profiles_email", "user_profiles", ["email"])

    # Packages
    op.create_table(
        "packages",
        _id(),
        sa.Column("name_ar", sa.String(100), nullable=False),
        sa.Column("name_en", sa.String(100), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), server_default="0"),
        sa.Column("max_places", sa.Integer(), server_default="1"),
        sa.Column("max_product_images", sa.Integer(), server_default="5"),
        sa.Column("max_product_videos", sa.Integer(), server_default="0"),
        sa.Column("max_place_videos", sa.Integer(), server_default="0"),
        sa.Column("priority", sa.Integer(), server_default="0"),
        sa.Column("card_style", sa.String(20)),
        sa.Column("is_featured", sa.Boolean(), server_default=sa.text("false")),
        _created(),
        _updated(),
    )

    # User subscriptions
    op.create_table(
        "user_subscriptions",
        _id(),
        _fk("user_id", "user_profiles.id", "CASCADE"),
        _fk("package_id", "packages.id"),
        sa.Column("status", sa.String(20), server_default="pending"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("amount_paid", sa.Numeric(10, 2), server_default="0"),
        sa.Column("discount_code_used", sa.String(50)),
        sa.Column("affiliate_code_used", sa.String(50)),
        sa.Column("expires_at", sa.DateTime(timezone=True)),
        _created(),
    )

    # Places
    op.create_table(
        "places",
        _id(),
        _fk("user_id", "user_profiles.id", "CASCADE"),
        _fk("subscription_id", "user_subscriptions.id", nullable=True),
        sa.Column("name_ar", sa.String(200), nullable=False),
        sa.Column("name_en", sa.String(200), nullable=False),
        sa.Column("description_ar", sa.Text()),
        sa.Column("description_en", sa.Text()),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("address", sa.Text()),
        sa.Column("phone_1", sa.String(30), nullable=False),
        sa.Column("phone_2", sa.String(30)),
        sa.Column("video_url", sa.Text()),
        sa.Column("logo_url", sa.Text()),
        sa.Column("is_featured", sa.Boolean(), server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("total_views", sa.Integer(), server_default="0"),
        sa.Column("today_views", sa.Integer(), server_default="0"),
        sa.Column("last_view_reset_date", sa.Date(), server_default=sa.func.current_date()),
        _created(),
        _updated(),
    )
    op.create_index("ix_places_user_id", "places", ["user_id"])
    op.create_index("idx_places_listing", "places", ["is_featured", "total_views"])

    op.create_table(
        "place_visits",
        _id(),
        _fk("place_id", "places.id", "CASCADE"),
        sa.Column("visitor_ip", sa.String(64)),
        sa.Column("visit_date", sa.Date(), server_default=sa.func.current_date()),
        _created(),
    )
    op.create_index("ix_place_visits_place_id", "place_visits", ["place_id"])

    # Products and media
    op.create_table(
        "products",
        _id(),
        _fk("place_id", "places.id", "CASCADE"),
        sa.Column("name_ar", sa.String(300), nullable=False),
        sa.Column("name_en", sa.String(300), nullable=False),
        sa.Column("description_ar", sa.Text()),
        sa.Column("description_en", sa.Text()),
        sa.Column("price", sa.Numeric(10, 2)),
        sa.Column("currency", sa.String(10), server_default="EGP"),
        sa.Column("category", sa.String(100)),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        _created(),
        _updated(),
    )
    op.create_index("ix_products_place_id", "products", ["place_id"])

    op.create_table(
        "product_images",
        _id(),
        _fk("product_id", "products.id", "CASCADE"),
        sa.Column("image_url", sa.Text(), nullable=False),
        sa.Column("order_index", sa.Integer(), server_default="0"),
        _created(),
    )

    op.create_table(
        "product_videos",
        _id(),
        _fk("product_id", "products.id", "CASCADE"),
        sa.Column("video_url", sa.Text(), nullable=False),
        sa.Column("order_index", sa.Integer(), server_default="0"),
        _created(),
    )

    op.create_table(
        "product_variants",
        _id(),
        _fk("product_id", "products.id", "CASCADE"),
        sa.Column("variant_type", sa.String(50), nullable=False),
        sa.Column("variant_name_ar", sa.String(100), nullable=False),
        sa.Column("variant_name_en", sa.String(100), nullable=False),
        sa.Column("variant_value", sa.String(100), nullable=False),
        sa.Column("price_adjustment", sa.Numeric(10, 2), server_default="0"),
        sa.Column("stock_quantity", sa.Integer()),
        sa.Column("is_available", sa.Boolean(), server_default=sa.text("true")),
        _created(),
    )

    # Employees
    op.create_table(
        "employee_requests",
        _id(),
        _fk("user_id", "user_profiles.id", "CASCADE"),
        _fk("place_id", "places.id", "CASCADE"),
        sa.Column("phone", sa.String(30), nullable=False),
        sa.Column("status", sa.String(20), server_default="pending"),
        sa.Column("permissions", sa.String(20), server_default="basic"),
        _created(),
        _updated(),
    )
    op.create_index("ix_employee_requests_place_id", "employee_requests", ["place_id"])

    op.create_table(
        "place_employees",
        _id(),
        _fk("user_id", "user_profiles.id", "CASCADE"),
        _fk("place_id", "places.id", "CASCADE"),
        sa.Column("permissions", sa.String(20), server_default="basic"),
        sa.Column("phone", sa.String(30)),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        _created(),
        _updated(),
        sa.UniqueConstraint("user_id", "place_id", name="uq_employee_place"),
    )
    op.create_index("ix_place_employees_place_id", "place_employees", ["place_id"])

    # Messages
    op.create_table(
        "messages",
        _id(),
        _fk("sender_id", "user_profiles.id", "CASCADE"),
        _fk("place_id", "places.id", "CASCADE"),
        _fk("recipient_id", "user_profiles.id", "SET NULL", nullable=True),
        _fk("product_id", "products.id", "SET NULL", nullable=True),
        _fk("reply_to", "messages.id", "SET NULL", nullable=True),
        _fk("employee_id", "place_employees.id", "SET NULL", nullable=True),
        sa.Column("content", sa.Text()),
        sa.Column("image_url", sa.Text()),
        sa.Column("audio_url", sa.Text()),
        sa.Column("is_read", sa.Boolean(), server_default=sa.text("false")),
        _created(),
    )
    op.create_index("ix_messages_sender_id", "messages", ["sender_id"])
    op.create_index("ix_messages_place_id", "messages", ["place_id"])
    op.create_index("ix_messages_recipient_id", "messages", ["recipient_id"])

    # Posts
    op.create_table(
        "posts",
        _id(),
        _fk("place_id", "places.id", "CASCADE"),
        _fk("created_by", "user_profiles.id", "CASCADE"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("image_url", sa.Text()),
        sa.Column("video_url", sa.Text()),
        sa.Column("post_type", sa.String(10), server_default="text"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        _created(),
        _updated(),
    )
    op.create_index("ix_posts_place_id", "posts", ["place_id"])

    # Affiliates and discount codes
    op.create_table(
        "affiliates",
        _id(),
        _fk("user_id", "user_profiles.id", "CASCADE", unique=True),
        sa.Column("code", sa.String(50), unique=True, nullable=False),
        sa.Column("discount_percentage", sa.Numeric(5, 2), server_default="0"),
        sa.Column("commission_percentage", sa.Numeric(5, 2), server_default="0"),
        sa.Column("total_earnings", sa.Numeric(12, 2), server_default="0"),
        sa.Column("paid_earnings", sa.Numeric(12, 2), server_default="0"),
        sa.Column("pending_earnings", sa.Numeric(12, 2), server_default="0"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        _created(),
        _updated(),
    )

    op.create_table(
        "affiliate_transactions",
        _id(),
        _fk("affiliate_id", "affiliates.id", "CASCADE"),
        _fk("subscription_id", "user_subscriptions.id", "SET NULL", nullable=True),
        sa.Column("transaction_type", sa.String(20), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("commission_percentage", sa.Numeric(5, 2)),
        sa.Column("description_ar", sa.Text()),
        sa.Column("description_en", sa.Text()),
        sa.Column("status", sa.String(20), server_default="pending"),
        _created(),
    )
    op.create_index(
        "ix_affiliate_transactions_affiliate_id", "affiliate_transactions", ["affiliate_id"]
    )

    op.create_table(
        "discount_codes",
        _id(),
        sa.Column("code", sa.String(50), unique=True, nullable=False),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("max_uses", sa.Integer()),
        sa.Column("used_count", sa.Integer(), server_default="0"),
        _fk("created_by", "user_profiles.id", "SET NULL", nullable=True),
        sa.Column("description_ar", sa.Text()),
        sa.Column("description_en", sa.Text()),
        _created(),
        _updated(),
        sa.CheckConstraint("discount_percentage >= 0 AND discount_percentage <= 100", name="ck_discount_pct"),
        sa.CheckConstraint("end_date > start_date", name="ck_discount_window"),
    )

    # Notifications
    op.create_table(
        "notifications",
        _id(),
        _fk("user_id", "user_profiles.id", "CASCADE"),
        sa.Column("title_ar", sa.String(300), nullable=False),
        sa.Column("title_en", sa.String(300)),
        sa.Column("message_ar", sa.Text(), nullable=False),
        sa.Column("message_en", sa.Text()),
        sa.Column("type", sa.String(30), server_default="system"),
        sa.Column("link", sa.Text()),
        sa.Column("icon", sa.String(20)),
        sa.Column("priority", sa.String(10), server_default="normal"),
        sa.Column("is_read", sa.Boolean(), server_default=sa.text("false")),
        _created(),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_notifications_user_id", "notifications")
    op.drop_table("notifications")
    op.drop_table("discount_codes")
    op.drop_index("ix_affiliate_transactions_affiliate_id", "affiliate_transactions")
    op.drop_table("affiliate_transactions")
    op.drop_table("affiliates")
    op.drop_index("ix_posts_place_id", "posts")
    op.drop_table("posts")
    op.drop_index("ix_messages_recipient_id", "messages")
    op.drop_index("ix_messages_place_id", "messages")
    op.drop_index("ix_messages_sender_id", "messages")
    op.drop_table("messages")
    op.drop_index("ix_place_employees_place_id", "place_employees")
    op.drop_table("place_employees")
    op.drop_index("ix_employee_requests_place_id", "employee_requests")
    op.drop_table("employee_requests")
    op.drop_table("product_variants")
    op.drop_table("product_videos")
    op.drop_table("product_images")
    op.drop_index("ix_products_place_id", "products")
    op.drop_table("products")
    op.drop_index("ix_place_visits_place_id", "place_visits")
    op.drop_table("place_visits")
    op.drop_index("idx_places_listing", "places")
    op.drop_index("ix_places_user_id", "places")
    op.drop_table("places")
    op.drop_table("user_subscriptions")
    op.drop_table("packages")
    op.drop_index("ix_user_profiles_email", "user_profiles")
    op.drop_table("user_profiles")

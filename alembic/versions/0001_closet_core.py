"""closet core tables

Revision ID: 0001_closet_core
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_closet_core"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "closet_items",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("subtype", sa.String(length=32), nullable=True),
        sa.Column("primary_color", sa.String(length=32), nullable=True),
        sa.Column("season", sa.String(length=32), nullable=False, server_default="unknown"),
        sa.Column("pattern", sa.String(length=32), nullable=False, server_default="unknown"),
        sa.Column("dress_level", sa.String(length=32), nullable=False, server_default="unknown"),
        sa.Column("layer_role", sa.String(length=32), nullable=False, server_default="unknown"),
        sa.Column("favorite", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("original_image_url", sa.Text(), nullable=False),
        sa.Column("cutout_image_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_closet_items_user_id", "closet_items", ["user_id"])
    op.create_index("ix_closet_items_user_created", "closet_items", ["user_id", "created_at"])

    op.create_table(
        "outfits",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("source", sa.String(length=16), nullable=False, server_default="manual"),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("source IN ('manual', 'suggested')", name="ck_outfits_source"),
    )
    op.create_index("ix_outfits_user_id", "outfits", ["user_id"])

    op.create_table(
        "outfit_items",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("outfit_id", sa.String(length=36), sa.ForeignKey("outfits.id", ondelete="CASCADE"), nullable=False),
        sa.Column("item_id", sa.String(length=36), sa.ForeignKey("closet_items.id", ondelete="CASCADE"), nullable=False),
        sa.Column("slot", sa.String(length=16), nullable=False),
    )
    op.create_index("ix_outfit_items_outfit_id", "outfit_items", ["outfit_id"])
    op.create_index("ix_outfit_items_item_id", "outfit_items", ["item_id"])

    op.create_table(
        "suggestion_events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("suggested_item_ids", sa.JSON(), nullable=False),
        sa.Column("action", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("action IN ('saved', 'skipped')", name="ck_suggestion_events_action"),
    )
    op.create_index("ix_suggestion_events_user_id", "suggestion_events", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_suggestion_events_user_id", table_name="suggestion_events")
    op.drop_table("suggestion_events")
    op.drop_index("ix_outfit_items_item_id", table_name="outfit_items")
    op.drop_index("ix_outfit_items_outfit_id", table_name="outfit_items")
    op.drop_table("outfit_items")
    op.drop_index("ix_outfits_user_id", table_name="outfits")
    op.drop_table("outfits")
    op.drop_index("ix_closet_items_user_created", table_name="closet_items")
    op.drop_index("ix_closet_items_user_id", table_name="closet_items")
    op.drop_table("closet_items")

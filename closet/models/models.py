from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Boolean, ForeignKey, DateTime, Text, JSON, Index
import uuid
from datetime import datetime, timezone
from closet.core.db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ClosetItem(Base):
    __tablename__ = "closet_items"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    category: Mapped[str] = mapped_column(String(32))
    subtype: Mapped[str | None] = mapped_column(String(32), nullable=True)
    primary_color: Mapped[str | None] = mapped_column(String(32), nullable=True)
    season: Mapped[str] = mapped_column(String(32), default="unknown")
    pattern: Mapped[str] = mapped_column(String(32), default="unknown")
    dress_level: Mapped[str] = mapped_column(String(32), default="unknown")
    layer_role: Mapped[str] = mapped_column(String(32), default="unknown")
    favorite: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    original_image_url: Mapped[str] = mapped_column(Text)
    cutout_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, onupdate=_now)

    __table_args__ = (Index("ix_closet_items_user_created", "user_id", "created_at"),)


class Outfit(Base):
    __tablename__ = "outfits"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    source: Mapped[str] = mapped_column(String(16), default="manual")
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, onupdate=_now)
    items: Mapped[list["OutfitItem"]] = relationship(
        "OutfitItem",
        back_populates="outfit",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class OutfitItem(Base):
    __tablename__ = "outfit_items"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    outfit_id: Mapped[str] = mapped_column(String(36), ForeignKey("outfits.id", ondelete="CASCADE"), index=True)
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("closet_items.id", ondelete="CASCADE"), index=True)
    slot: Mapped[str] = mapped_column(String(16))
    outfit: Mapped["Outfit"] = relationship("Outfit", back_populates="items")


class SuggestionEvent(Base):
    __tablename__ = "suggestion_events"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    suggested_item_ids: Mapped[list[str]] = mapped_column(JSON, default=list)
    action: Mapped[str] = mapped_column(String(16))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

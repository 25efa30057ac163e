"""Row and object access for one user's closet.

All row operations are scoped by the owning user id. Each mutating call
commits on its own; multi-step flows compose these calls into sagas.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from closet.core.config import settings
from closet.core.vocab import (
    CATEGORIES,
    OUTFIT_SOURCES,
    SLOTS,
    SUGGESTION_ACTIONS,
    validate_tags,
)
from closet.models.models import ClosetItem, Outfit, OutfitItem, SuggestionEvent
from closet.storage.base import ObjectStore
from closet.storage.keys import cutout_key, item_prefix, original_key, user_prefix

logger = logging.getLogger("uvicorn.error")

ITEM_FIELDS = (
    "category",
    "subtype",
    "primary_color",
    "season",
    "pattern",
    "dress_level",
    "layer_role",
    "favorite",
    "notes",
    "original_image_url",
    "cutout_image_url",
)

SlotRow = Tuple[str, str]  # (slot, item_id)


class ClosetGateway:
    def __init__(self, session: AsyncSession, store: ObjectStore):
        self.session = session
        self.store = store
        self.originals_bucket = settings.BUCKET_ORIGINALS
        self.cutouts_bucket = settings.BUCKET_CUTOUTS

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[None]:
        """Commit on exit; a failed write rolls the session back before re-raising."""
        try:
            yield
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    # items

    async def list_items(self, user_id: str, *, exclude_underwear: bool = False) -> List[ClosetItem]:
        stmt = select(ClosetItem).where(ClosetItem.user_id == user_id)
        if exclude_underwear:
            stmt = stmt.where(ClosetItem.category != "underwear")
        stmt = stmt.order_by(ClosetItem.created_at.desc())
        return list((await self.session.execute(stmt)).scalars().all())

    async def get_item(self, user_id: str, item_id: str) -> Optional[ClosetItem]:
        stmt = select(ClosetItem).where(ClosetItem.id == item_id, ClosetItem.user_id == user_id)
        return (await self.session.execute(stmt)).scalars().first()

    async def insert_item(self, user_id: str, fields: Dict[str, Any], item_id: Optional[str] = None) -> ClosetItem:
        data = {k: v for k, v in fields.items() if k in ITEM_FIELDS}
        if "category" not in data:
            raise ValueError("missing_category")
        if not data.get("original_image_url"):
            raise ValueError("missing_original_image_url")
        validate_tags(data)
        data["subtype"] = data.get("subtype") or None
        data["primary_color"] = data.get("primary_color") or None
        item = ClosetItem(user_id=user_id, **data)
        if item_id:
            item.id = item_id
        async with self._write():
            self.session.add(item)
        await self.session.refresh(item)
        logger.info("gateway insert_item user=%s item=%s category=%s", user_id, item.id, item.category)
        return item

    async def update_item(self, user_id: str, item_id: str, fields: Dict[str, Any]) -> Optional[ClosetItem]:
        item = await self.get_item(user_id, item_id)
        if not item:
            return None
        data = {k: v for k, v in fields.items() if k in ITEM_FIELDS}
        if "category" in data and data["category"] != item.category and "subtype" not in data:
            data["subtype"] = None
        validate_tags(data, category=item.category)
        if "subtype" in data:
            data["subtype"] = data["subtype"] or None
        if "primary_color" in data:
            data["primary_color"] = data["primary_color"] or None
        async with self._write():
            for k, v in data.items():
                setattr(item, k, v)
        await self.session.refresh(item)
        return item

    async def set_favorite(self, user_id: str, item_id: str, favorite: bool) -> Optional[ClosetItem]:
        return await self.update_item(user_id, item_id, {"favorite": bool(favorite)})

    async def delete_item_row(self, user_id: str, item_id: str) -> Optional[Dict[str, Any]]:
        """Delete an item and its outfit memberships; returns a snapshot for restore."""
        item = await self.get_item(user_id, item_id)
        if not item:
            return None
        memberships = (
            await self.session.execute(select(OutfitItem).where(OutfitItem.item_id == item_id))
        ).scalars().all()
        snapshot = {
            "item": {c.name: getattr(item, c.name) for c in ClosetItem.__table__.columns},
            "outfit_items": [
                {"id": m.id, "outfit_id": m.outfit_id, "item_id": m.item_id, "slot": m.slot} for m in memberships
            ],
        }
        async with self._write():
            await self.session.execute(delete(OutfitItem).where(OutfitItem.item_id == item_id))
            await self.session.execute(
                delete(ClosetItem).where(ClosetItem.id == item_id, ClosetItem.user_id == user_id)
            )
        logger.info("gateway delete_item user=%s item=%s outfit_rows=%s", user_id, item_id, len(memberships))
        return snapshot

    async def restore_item(self, snapshot: Dict[str, Any]) -> None:
        user_id = snapshot["item"]["user_id"]
        async with self._write():
            self.session.add(ClosetItem(**snapshot["item"]))
            await self.session.flush()
            for row in snapshot["outfit_items"]:
                outfit = await self.get_outfit(user_id, row["outfit_id"])
                if outfit is not None:
                    outfit.items.append(OutfitItem(id=row["id"], item_id=row["item_id"], slot=row["slot"]))
        logger.info("gateway restore_item user=%s item=%s", user_id, snapshot["item"]["id"])

    # outfits

    async def list_outfits(self, user_id: str) -> List[Outfit]:
        stmt = (
            select(Outfit)
            .where(Outfit.user_id == user_id)
            .order_by(Outfit.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def get_outfit(self, user_id: str, outfit_id: str) -> Optional[Outfit]:
        stmt = (
            select(Outfit)
            .where(Outfit.id == outfit_id, Outfit.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return (await self.session.execute(stmt)).scalars().first()

    async def insert_outfit(self, user_id: str, name: Optional[str], source: str = "manual") -> Outfit:
        if source not in OUTFIT_SOURCES:
            raise ValueError("invalid_source")
        outfit = Outfit(user_id=user_id, name=name or None, source=source)
        async with self._write():
            self.session.add(outfit)
        await self.session.refresh(outfit)
        return outfit

    async def insert_outfit_items(self, user_id: str, outfit_id: str, rows: Sequence[SlotRow]) -> None:
        outfit = await self.get_outfit(user_id, outfit_id)
        if not outfit:
            raise ValueError("unknown_outfit")
        await self.check_rows(user_id, rows)
        async with self._write():
            outfit.items.extend(OutfitItem(item_id=item_id, slot=slot) for slot, item_id in rows)

    async def replace_outfit_items(
        self, user_id: str, outfit_id: str, name: Optional[str], rows: Sequence[SlotRow]
    ) -> Optional[Outfit]:
        outfit = await self.get_outfit(user_id, outfit_id)
        if not outfit:
            return None
        await self.check_rows(user_id, rows)
        async with self._write():
            outfit.name = name or None
            # full replace; delete-orphan drops the previous rows
            outfit.items = [OutfitItem(item_id=item_id, slot=slot) for slot, item_id in rows]
        return await self.get_outfit(user_id, outfit_id)

    async def delete_outfit(self, user_id: str, outfit_id: str) -> bool:
        outfit = await self.get_outfit(user_id, outfit_id)
        if not outfit:
            return False
        async with self._write():
            await self.session.delete(outfit)
        return True

    async def check_rows(self, user_id: str, rows: Sequence[SlotRow]) -> None:
        for slot, _ in rows:
            if slot not in SLOTS:
                raise ValueError("invalid_slot")
        ids = {item_id for _, item_id in rows}
        if not ids:
            return
        stmt = select(ClosetItem.id).where(ClosetItem.user_id == user_id, ClosetItem.id.in_(ids))
        owned = set((await self.session.execute(stmt)).scalars().all())
        if owned != ids:
            raise ValueError("unknown_item")

    # suggestion events

    async def log_suggestion(self, user_id: str, item_ids: Iterable[str], action: str) -> SuggestionEvent:
        if action not in SUGGESTION_ACTIONS:
            raise ValueError("invalid_action")
        ev = SuggestionEvent(user_id=user_id, suggested_item_ids=list(item_ids), action=action)
        async with self._write():
            self.session.add(ev)
        return ev

    # account

    async def delete_user_rows(self, user_id: str) -> Dict[str, int]:
        outfit_ids = select(Outfit.id).where(Outfit.user_id == user_id)
        item_ids = select(ClosetItem.id).where(ClosetItem.user_id == user_id)
        counts = {}
        async with self._write():
            await self.session.execute(
                delete(OutfitItem).where(OutfitItem.outfit_id.in_(outfit_ids) | OutfitItem.item_id.in_(item_ids))
            )
            for name, model in (
                ("closet_items", ClosetItem),
                ("outfits", Outfit),
                ("suggestion_events", SuggestionEvent),
            ):
                res = await self.session.execute(delete(model).where(model.user_id == user_id))
                counts[name] = res.rowcount or 0
        logger.info("gateway delete_user_rows user=%s counts=%s", user_id, counts)
        return counts

    async def count_user_rows(self, user_id: str) -> Dict[str, int]:
        counts = {}
        for name, model in (
            ("closet_items", ClosetItem),
            ("outfits", Outfit),
            ("suggestion_events", SuggestionEvent),
        ):
            rows = (await self.session.execute(select(model.id).where(model.user_id == user_id))).all()
            counts[name] = len(rows)
        return counts

    # storage

    async def upload_original(
        self, user_id: str, item_id: str, data: bytes, content_type: str, ext: str = "jpg"
    ) -> Tuple[str, str]:
        key = original_key(user_id, item_id, ext)
        await self.store.upload(self.originals_bucket, key, data, content_type)
        return key, self.store.public_url(self.originals_bucket, key)

    async def upload_cutout(self, user_id: str, item_id: str, data: bytes) -> Tuple[str, str]:
        key = cutout_key(user_id, item_id)
        await self.store.upload(self.cutouts_bucket, key, data, "image/png")
        return key, self.store.public_url(self.cutouts_bucket, key)

    async def remove_item_objects(self, user_id: str, item_id: str) -> None:
        prefix = item_prefix(user_id, item_id)
        for bucket in (self.originals_bucket, self.cutouts_bucket):
            keys = await self.store.list(bucket, prefix)
            if keys:
                await self.store.remove(bucket, keys)

    async def list_user_objects(self, user_id: str) -> Dict[str, List[str]]:
        prefix = user_prefix(user_id)
        return {
            bucket: await self.store.list(bucket, prefix)
            for bucket in (self.originals_bucket, self.cutouts_bucket)
        }

    def partition_by_category(self, items: Iterable[ClosetItem]) -> Dict[str, List[ClosetItem]]:
        out: Dict[str, List[ClosetItem]] = {c: [] for c in CATEGORIES}
        for it in items:
            out.setdefault(it.category, []).append(it)
        return out

"""Closet browsing: one fetch per load, filtering and view state kept locally."""
import logging
from dataclasses import dataclass, field, replace
from typing import Any, List, Optional, Sequence, Tuple

from closet.core.errors import NotFound, SagaFailed
from closet.schemas.items import ItemOut
from closet.services import lifecycle
from closet.services.gateway import ClosetGateway
from closet.workflows.capture import TagDraft
from closet.workflows.state import Notice, StateCell

logger = logging.getLogger("uvicorn.error")

CLOSET_ROUTE = "/app/closet"


@dataclass(frozen=True)
class ClosetFilters:
    category: Optional[str] = None
    color: Optional[str] = None
    season: Optional[str] = None
    dress_level: Optional[str] = None
    pattern: Optional[str] = None
    favorites_only: bool = False
    search: str = ""

    @property
    def active(self) -> bool:
        return self != ClosetFilters()


def matches(item: Any, f: ClosetFilters) -> bool:
    if f.category and item.category != f.category:
        return False
    if f.color and item.primary_color != f.color:
        return False
    if f.season and item.season != f.season:
        return False
    if f.dress_level and item.dress_level != f.dress_level:
        return False
    if f.pattern and item.pattern != f.pattern:
        return False
    if f.favorites_only and not item.favorite:
        return False
    q = f.search.strip().lower()
    if q:
        hay = (item.category or "", item.subtype or "", item.notes or "")
        if not any(q in h.lower() for h in hay):
            return False
    return True


def filter_items(items: Sequence[Any], f: ClosetFilters) -> List[Any]:
    return [it for it in items if matches(it, f)]


def display_state(items: Sequence[Any], visible: Sequence[Any]) -> str:
    if not items:
        return "empty_closet"
    if not visible:
        return "no_matches"
    return "items"


@dataclass(frozen=True)
class BrowserState:
    loaded: bool = False
    items: Tuple[ItemOut, ...] = ()
    filters: ClosetFilters = field(default_factory=ClosetFilters)
    view: str = "grid"  # grid | carousel
    notice: Optional[Notice] = None

    @property
    def visible(self) -> List[ItemOut]:
        return filter_items(self.items, self.filters)

    @property
    def display(self) -> str:
        return display_state(self.items, self.visible)


class ClosetBrowser:
    def __init__(self, gateway: ClosetGateway, user_id: str):
        self.gateway = gateway
        self.user_id = user_id
        self.cell: StateCell[BrowserState] = StateCell(BrowserState())

    @property
    def state(self) -> BrowserState:
        return self.cell.state

    async def load(self) -> BrowserState:
        try:
            rows = await self.gateway.list_items(self.user_id)
        except Exception as exc:
            logger.warning("closet load failed user=%s err=%s", self.user_id, exc)
            return await self.cell.update(
                lambda s: replace(s, notice=Notice("Error loading closet", "Please try again later.", "destructive"))
            )
        items = tuple(ItemOut.model_validate(r) for r in rows)
        return await self.cell.update(lambda s: replace(s, loaded=True, items=items, notice=None))

    async def set_filters(self, **changes) -> BrowserState:
        return await self.cell.update(lambda s: replace(s, filters=replace(s.filters, **changes)))

    async def clear_filters(self) -> BrowserState:
        return await self.cell.update(lambda s: replace(s, filters=ClosetFilters()))

    async def toggle_view(self) -> BrowserState:
        return await self.cell.update(lambda s: replace(s, view="carousel" if s.view == "grid" else "grid"))

    async def toggle_favorite(self, item_id: str) -> BrowserState:
        current = next((it for it in self.state.items if it.id == item_id), None)
        if current is None:
            raise ValueError("unknown_item")
        new_value = not current.favorite
        await self._patch_favorite(item_id, new_value)
        try:
            updated = await self.gateway.set_favorite(self.user_id, item_id, new_value)
        except Exception as exc:
            logger.warning("favorite toggle failed user=%s item=%s err=%s", self.user_id, item_id, exc)
            updated = None
        if updated is None:
            await self._patch_favorite(item_id, current.favorite)
            return await self.cell.update(
                lambda s: replace(s, notice=Notice("Failed to update", variant="destructive"))
            )
        return self.state

    async def _patch_favorite(self, item_id: str, value: bool) -> BrowserState:
        def patch(s: BrowserState) -> BrowserState:
            items = tuple(it.model_copy(update={"favorite": value}) if it.id == item_id else it for it in s.items)
            return replace(s, items=items)

        return await self.cell.update(patch)


@dataclass(frozen=True)
class DetailState:
    phase: str = "loading"  # loading | not_found | editing | saving | deleted
    item: Optional[ItemOut] = None
    draft: TagDraft = field(default_factory=TagDraft)
    notice: Optional[Notice] = None
    redirect: Optional[str] = None


class ItemDetailEditor:
    """Single item view: edit tags, delete, jump to building an outfit around it."""

    def __init__(self, gateway: ClosetGateway, user_id: str):
        self.gateway = gateway
        self.user_id = user_id
        self.cell: StateCell[DetailState] = StateCell(DetailState())

    @property
    def state(self) -> DetailState:
        return self.cell.state

    async def load(self, item_id: str) -> DetailState:
        row = await self.gateway.get_item(self.user_id, item_id)
        if row is None:
            return await self.cell.update(
                lambda s: replace(
                    s,
                    phase="not_found",
                    notice=Notice("Item not found", variant="destructive"),
                    redirect=CLOSET_ROUTE,
                )
            )
        item = ItemOut.model_validate(row)
        draft = TagDraft(
            category=item.category,
            subtype=item.subtype or "",
            primary_color=item.primary_color or "",
            season=item.season,
            pattern=item.pattern,
            dress_level=item.dress_level,
            layer_role=item.layer_role,
            favorite=item.favorite,
            notes=item.notes or "",
        )
        return await self.cell.update(lambda s: replace(s, phase="editing", item=item, draft=draft))

    async def set_field(self, name: str, value: Any) -> DetailState:
        return await self.cell.update(lambda s: replace(s, draft=s.draft.with_field(name, value)))

    async def save(self) -> DetailState:
        st = await self.cell.update(lambda s: replace(s, phase="saving", notice=None))
        try:
            row = await self.gateway.update_item(self.user_id, st.item.id, st.draft.row_fields())
        except ValueError as exc:
            logger.info("item update rejected item=%s err=%s", st.item.id, exc)
            row = None
        if row is None:
            return await self.cell.update(
                lambda s: replace(s, phase="editing", notice=Notice("Failed to update", variant="destructive"))
            )
        item = ItemOut.model_validate(row)
        return await self.cell.update(
            lambda s: replace(s, phase="editing", item=item, notice=Notice("Item updated!"))
        )

    async def delete(self) -> DetailState:
        st = self.state
        try:
            await lifecycle.delete_item(self.gateway, self.user_id, st.item.id)
        except (NotFound, SagaFailed) as exc:
            logger.warning("item delete failed item=%s err=%s", st.item.id, exc)
            return await self.cell.update(
                lambda s: replace(s, notice=Notice("Failed to delete", variant="destructive"))
            )
        return await self.cell.update(
            lambda s: replace(s, phase="deleted", notice=Notice("Item deleted"), redirect=CLOSET_ROUTE)
        )

    def build_outfit_route(self) -> str:
        return f"{CLOSET_ROUTE}/item/{self.state.item.id}/build"

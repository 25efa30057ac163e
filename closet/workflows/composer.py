"""Outfit composition: manual build/edit, AI build around an anchor, AI suggest."""
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from closet.core.errors import ClosetError, MissingRequiredSlots, SagaFailed
from closet.core.vocab import REQUIRED_CATEGORIES, anchor_slot, slot_label
from closet.models.models import ClosetItem
from closet.services import lifecycle
from closet.services.gateway import ClosetGateway
from closet.workflows.functions import FunctionsClient
from closet.workflows.state import Notice, StateCell

logger = logging.getLogger("uvicorn.error")

SLOT_CONFIG: Dict[str, Tuple[str, ...]] = {
    "top": ("tops",),
    "bottom": ("bottoms",),
    "shoes": ("shoes",),
    "mid_layer": ("tops", "outerwear"),
    "outerwear": ("outerwear",),
    "accessory1": ("accessories",),
    "accessory2": ("accessories",),
}
SLOT_KEYS = tuple(SLOT_CONFIG)
REQUIRED_SLOT_KEYS = ("top", "bottom", "shoes")
ACCESSORY_KEYS = ("accessory1", "accessory2")
OUTFITS_ROUTE = "/app/outfits"
SUGGESTED_NAME = "AI Suggested Outfit"


@dataclass(frozen=True)
class SlotSelection:
    top: Optional[str] = None
    bottom: Optional[str] = None
    shoes: Optional[str] = None
    mid_layer: Optional[str] = None
    outerwear: Optional[str] = None
    accessory1: Optional[str] = None
    accessory2: Optional[str] = None

    def assign(self, key: str, item_id: Optional[str]) -> "SlotSelection":
        if key not in SLOT_CONFIG:
            raise ValueError(f"unknown_slot_{key}")
        return replace(self, **{key: item_id})

    def filled(self) -> Dict[str, str]:
        return {k: getattr(self, k) for k in SLOT_KEYS if getattr(self, k)}


def missing_slots(sel: SlotSelection) -> List[str]:
    return [k for k in REQUIRED_SLOT_KEYS if not getattr(sel, k)]


def can_save(sel: SlotSelection) -> bool:
    return not missing_slots(sel)


def selection_rows(sel: SlotSelection) -> List[Tuple[str, str]]:
    """Rows to store: numbered accessory keys collapse to `accessory`."""
    return [(slot_label(k), item_id) for k, item_id in sel.filled().items()]


def selection_from_rows(rows: Sequence[Tuple[str, str]]) -> SlotSelection:
    """Inverse of selection_rows; accessories beyond the second are dropped."""
    values: Dict[str, str] = {}
    accessories = iter(ACCESSORY_KEYS)
    for slot, item_id in rows:
        if slot == "accessory":
            key = next(accessories, None)
            if key is None:
                continue
        elif slot in SLOT_CONFIG:
            key = slot
        else:
            continue
        values[key] = item_id
    return SlotSelection(**values)


def candidates(items: Sequence[Any], key: str) -> List[Any]:
    allowed = SLOT_CONFIG[key]
    return [it for it in items if it.category in allowed]


def missing_categories(items: Sequence[Any]) -> List[str]:
    present = {it.category for it in items}
    return [c for c in REQUIRED_CATEGORIES if c not in present]


def _outfit_rows(outfit) -> List[Tuple[str, str]]:
    return [(oi.slot, oi.item_id) for oi in outfit.items]


@dataclass(frozen=True)
class ComposerState:
    phase: str = "loading"  # loading | blocked | editing | saving | saved
    items: Tuple[ClosetItem, ...] = ()
    selection: SlotSelection = field(default_factory=SlotSelection)
    name: str = ""
    outfit_id: Optional[str] = None
    missing: Tuple[str, ...] = ()
    notice: Optional[Notice] = None
    redirect: Optional[str] = None


class OutfitComposer:
    """Manual outfit build, or edit of an existing outfit with replace semantics."""

    def __init__(self, gateway: ClosetGateway, user_id: str):
        self.gateway = gateway
        self.user_id = user_id
        self.cell: StateCell[ComposerState] = StateCell(ComposerState())

    @property
    def state(self) -> ComposerState:
        return self.cell.state

    async def load(self, outfit_id: Optional[str] = None) -> ComposerState:
        items = tuple(await self.gateway.list_items(self.user_id, exclude_underwear=True))
        if outfit_id is None:
            missing = tuple(missing_categories(items))
            phase = "blocked" if missing else "editing"
            return await self.cell.update(lambda s: replace(s, phase=phase, items=items, missing=missing))
        outfit = await self.gateway.get_outfit(self.user_id, outfit_id)
        if outfit is None:
            return await self.cell.update(
                lambda s: replace(
                    s,
                    phase="blocked",
                    items=items,
                    notice=Notice("Outfit not found", variant="destructive"),
                    redirect=OUTFITS_ROUTE,
                )
            )
        selection = selection_from_rows(_outfit_rows(outfit))
        return await self.cell.update(
            lambda s: replace(
                s,
                phase="editing",
                items=items,
                selection=selection,
                name=outfit.name or "",
                outfit_id=outfit.id,
            )
        )

    def candidates(self, key: str) -> List[ClosetItem]:
        return candidates(self.state.items, key)

    async def assign(self, key: str, item_id: Optional[str]) -> ComposerState:
        if item_id is not None and item_id not in {it.id for it in self.candidates(key)}:
            raise ValueError("item_not_allowed_in_slot")
        return await self.cell.update(lambda s: replace(s, selection=s.selection.assign(key, item_id)))

    async def set_name(self, name: str) -> ComposerState:
        return await self.cell.update(lambda s: replace(s, name=name))

    async def save(self) -> ComposerState:
        st = self.state
        if st.phase != "editing":
            raise RuntimeError(f"composer is in {st.phase}, not editing")
        if not can_save(st.selection):
            err = MissingRequiredSlots(missing_slots(st.selection))
            return await self.cell.update(lambda s: replace(s, notice=Notice("Cannot save", str(err), "destructive")))
        await self.cell.update(lambda s: replace(s, phase="saving", notice=None))
        rows = selection_rows(st.selection)
        try:
            if st.outfit_id:
                await self.gateway.replace_outfit_items(self.user_id, st.outfit_id, st.name, rows)
                title = "Outfit updated!"
            else:
                await lifecycle.create_outfit(self.gateway, self.user_id, st.name, "manual", rows)
                title = "Outfit created!"
        except (SagaFailed, ValueError) as exc:
            logger.warning("composer save failed user=%s err=%s", self.user_id, exc)
            return await self.cell.update(
                lambda s: replace(s, phase="editing", notice=Notice("Failed to save", variant="destructive"))
            )
        return await self.cell.update(
            lambda s: replace(s, phase="saved", notice=Notice(title), redirect=OUTFITS_ROUTE)
        )


@dataclass(frozen=True)
class ResolvedPicks:
    top: Optional[ClosetItem] = None
    bottom: Optional[ClosetItem] = None
    shoes: Optional[ClosetItem] = None
    outerwear: Optional[ClosetItem] = None
    mid_layer: Optional[ClosetItem] = None
    accessories: Tuple[ClosetItem, ...] = ()

    def rows(self) -> List[Tuple[str, str]]:
        out = [
            (slot, getattr(self, slot).id)
            for slot in ("top", "bottom", "shoes", "mid_layer", "outerwear")
            if getattr(self, slot) is not None
        ]
        out.extend(("accessory", a.id) for a in self.accessories)
        return out

    def item_ids(self) -> List[str]:
        return [item_id for _, item_id in self.rows()]


def resolve_picks(picks: Mapping[str, Any], items: Sequence[ClosetItem]) -> ResolvedPicks:
    """Map returned ids onto fetched items; ids that match nothing are treated as no pick."""
    by_id = {it.id: it for it in items}

    def one(key: str) -> Optional[ClosetItem]:
        val = picks.get(key)
        return by_id.get(val) if isinstance(val, str) else None

    accessories = picks.get("accessories") or []
    return ResolvedPicks(
        top=one("top"),
        bottom=one("bottom"),
        shoes=one("shoes"),
        outerwear=one("outerwear"),
        mid_layer=one("mid_layer"),
        accessories=tuple(by_id[a] for a in accessories if isinstance(a, str) and a in by_id),
    )


@dataclass(frozen=True)
class BuildState:
    phase: str = "loading"  # loading | not_found | ready | generating | result | saving | saved
    items: Tuple[ClosetItem, ...] = ()
    anchor: Optional[ClosetItem] = None
    picks: ResolvedPicks = field(default_factory=ResolvedPicks)
    shopping: Tuple[Dict[str, Any], ...] = ()
    reasoning: str = ""
    style_notes: str = ""
    notice: Optional[Notice] = None
    redirect: Optional[str] = None


class AnchorOutfitBuilder:
    def __init__(self, gateway: ClosetGateway, functions: FunctionsClient, user_id: str):
        self.gateway = gateway
        self.functions = functions
        self.user_id = user_id
        self.cell: StateCell[BuildState] = StateCell(BuildState())

    @property
    def state(self) -> BuildState:
        return self.cell.state

    async def load(self, anchor_id: str) -> BuildState:
        items = tuple(await self.gateway.list_items(self.user_id))
        anchor = next((it for it in items if it.id == anchor_id), None)
        if anchor is None:
            return await self.cell.update(
                lambda s: replace(s, phase="not_found", items=items, notice=Notice("Item not found", variant="destructive"))
            )
        return await self.cell.update(lambda s: replace(s, phase="ready", items=items, anchor=anchor))

    async def generate(self) -> BuildState:
        """Ask for an outfit around the anchor; calling again regenerates."""
        if self.state.phase not in ("ready", "result"):
            raise RuntimeError(f"builder is in {self.state.phase}, not ready")
        st = await self.cell.update(lambda s: replace(s, phase="generating", notice=None))
        try:
            result = await self.functions.build_outfit(self.user_id, st.anchor.id)
        except ClosetError as exc:
            return await self.cell.update(
                lambda s: replace(
                    s,
                    phase="ready" if not s.reasoning else "result",
                    notice=Notice("Failed to build outfit", str(exc) or "Please try again.", "destructive"),
                )
            )
        picks = resolve_picks(result.get("closet_picks") or {}, st.items)
        return await self.cell.update(
            lambda s: replace(
                s,
                phase="result",
                picks=picks,
                shopping=tuple(result.get("shopping_suggestions") or ()),
                reasoning=result.get("outfit_reasoning") or "",
                style_notes=result.get("style_notes") or "",
            )
        )

    def outfit_rows(self) -> List[Tuple[str, str]]:
        st = self.state
        rows = [(anchor_slot(st.anchor.category), st.anchor.id)]
        rows.extend(r for r in st.picks.rows() if r[1] != st.anchor.id)
        return rows

    async def save(self) -> BuildState:
        st = self.state
        if st.phase != "result":
            raise RuntimeError(f"builder is in {st.phase}, not result")
        await self.cell.update(lambda s: replace(s, phase="saving"))
        name = f"Outfit with {st.anchor.subtype or st.anchor.category}"
        try:
            await lifecycle.create_outfit(self.gateway, self.user_id, name, "suggested", self.outfit_rows())
        except (SagaFailed, ValueError) as exc:
            logger.warning("anchor build save failed user=%s err=%s", self.user_id, exc)
            return await self.cell.update(
                lambda s: replace(s, phase="result", notice=Notice("Failed to save", variant="destructive"))
            )
        return await self.cell.update(
            lambda s: replace(s, phase="saved", notice=Notice("Outfit saved!"), redirect=OUTFITS_ROUTE)
        )


@dataclass(frozen=True)
class SuggestState:
    phase: str = "loading"  # loading | blocked | idle | requesting | showing | saving
    items: Tuple[ClosetItem, ...] = ()
    missing: Tuple[str, ...] = ()
    suggestion: Optional[ResolvedPicks] = None
    reasoning: str = ""
    notice: Optional[Notice] = None


class SuggestFlow:
    """Whole-closet suggestion with skip (log and re-request) and save."""

    def __init__(self, gateway: ClosetGateway, functions: FunctionsClient, user_id: str):
        self.gateway = gateway
        self.functions = functions
        self.user_id = user_id
        self.cell: StateCell[SuggestState] = StateCell(SuggestState())

    @property
    def state(self) -> SuggestState:
        return self.cell.state

    async def load(self) -> SuggestState:
        items = tuple(await self.gateway.list_items(self.user_id, exclude_underwear=True))
        missing = tuple(missing_categories(items))
        phase = "blocked" if missing else "idle"
        return await self.cell.update(lambda s: replace(s, phase=phase, items=items, missing=missing))

    async def request(self) -> SuggestState:
        if self.state.phase == "blocked":
            return self.state
        await self.cell.update(lambda s: replace(s, phase="requesting", notice=None))
        try:
            result = await self.functions.suggest_outfit(self.user_id)
        except ClosetError as exc:
            logger.info("suggest request failed user=%s err=%s", self.user_id, exc)
            return await self.cell.update(
                lambda s: replace(
                    s,
                    phase="idle",
                    suggestion=None,
                    notice=Notice("Suggestion failed", "Please try again.", "destructive"),
                )
            )
        picks = resolve_picks(result.get("outfit") or {}, self.state.items)
        return await self.cell.update(
            lambda s: replace(s, phase="showing", suggestion=picks, reasoning=result.get("reasoning") or "")
        )

    async def skip(self) -> SuggestState:
        st = self.state
        if st.suggestion is None:
            return st
        await self.gateway.log_suggestion(self.user_id, st.suggestion.item_ids(), "skipped")
        return await self.request()

    async def save(self) -> SuggestState:
        st = self.state
        if st.suggestion is None:
            return st
        await self.cell.update(lambda s: replace(s, phase="saving"))
        try:
            await self.gateway.log_suggestion(self.user_id, st.suggestion.item_ids(), "saved")
            await lifecycle.create_outfit(
                self.gateway, self.user_id, SUGGESTED_NAME, "suggested", st.suggestion.rows()
            )
        except (SagaFailed, ValueError) as exc:
            logger.warning("suggest save failed user=%s err=%s", self.user_id, exc)
            return await self.cell.update(
                lambda s: replace(s, phase="showing", notice=Notice("Failed to save", variant="destructive"))
            )
        return await self.cell.update(
            lambda s: replace(s, phase="idle", suggestion=None, reasoning="", notice=Notice("Outfit saved!"))
        )

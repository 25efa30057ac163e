"""The AI-backed closet functions.

Each function validates its input, calls the gateway with a fixed prompt and
extracts the first JSON object from the reply. Outfit picks are checked
against the requesting user's closet before they are returned.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
from urllib.parse import quote_plus

from closet.core.errors import (
    AIRateLimited,
    AIResponseParseError,
    AIUpstreamError,
    MissingCategories,
    NotFound,
    PreconditionFailed,
)
from closet.core.vocab import REQUIRED_CATEGORIES, coerce_ai_tags
from closet.models.models import ClosetItem
from closet.schemas.functions import (
    BuildOutfitOut,
    ClosetPicks,
    DetectOut,
    ShoppingSuggestion,
    SuggestedOutfit,
    SuggestOutfitOut,
)
from closet.schemas.items import ItemOut
from closet.services.gateway import ClosetGateway
from closet.services.llm.client import AIGateway
from closet.services.llm.parsing import extract_json_object
from closet.services.llm.prompts import (
    build_analyze_messages,
    build_detect_messages,
    build_outfit_prompt,
    build_remove_bg_messages,
    build_suggest_prompt,
)

logger = logging.getLogger("uvicorn.error")

MAX_ACCESSORIES = 2

# slot -> categories an item in it may come from
PICK_CATEGORIES: Dict[str, tuple] = {
    "top": ("tops",),
    "bottom": ("bottoms",),
    "shoes": ("shoes",),
    "mid_layer": ("tops", "outerwear"),
    "outerwear": ("outerwear",),
    "accessories": ("accessories",),
}


def shopping_search_url(color: str, description: str, style: str) -> str:
    query = " ".join(p for p in (color, description, style) if p)
    return f"https://www.google.com/search?q={quote_plus(query)}&tbm=shop"


async def analyze_clothing(ai: AIGateway, image: Optional[str]) -> Dict[str, str]:
    if not image:
        raise PreconditionFailed("No image provided")
    res = await ai.chat(build_analyze_messages(image))
    return coerce_ai_tags(extract_json_object(res.content))


async def detect_clothing(ai: AIGateway, image: Optional[str]) -> DetectOut:
    """Readiness probe for one camera frame.

    Rate limiting and unparseable replies come back as "not ready" so the
    scanner simply tries again on the next tick.
    """
    if not image:
        return DetectOut(ready=False, confidence=0, feedback="No image provided")
    try:
        res = await ai.chat(build_detect_messages(image))
    except AIRateLimited:
        return DetectOut(ready=False, confidence=0, feedback="Please wait a moment...")
    try:
        data = extract_json_object(res.content)
    except AIResponseParseError:
        logger.warning("detect-clothing unparseable reply len=%s", len(res.content))
        return DetectOut()
    try:
        confidence = float(data.get("confidence") or 0)
    except (TypeError, ValueError):
        confidence = 0
    clothing_type = data.get("clothing_type")
    return DetectOut(
        ready=data.get("ready") is True,
        confidence=max(0.0, min(100.0, confidence)),
        feedback=str(data.get("feedback") or "Scanning..."),
        clothing_type=str(clothing_type) if clothing_type else None,
    )


async def remove_background(ai: AIGateway, image: Optional[str]) -> str:
    if not image:
        raise PreconditionFailed("No image provided")
    res = await ai.chat(build_remove_bg_messages(image), model=ai.model_image, modalities=["image", "text"])
    if not res.images:
        logger.warning("remove-background returned no image model=%s", res.usage.model)
        raise AIUpstreamError("No image returned from AI")
    return res.images[0]


def _pick(value: Any, allowed: Mapping[str, ClosetItem], categories: Iterable[str]) -> Optional[str]:
    if not isinstance(value, str):
        return None
    item = allowed.get(value)
    if item is None or item.category not in categories:
        return None
    return item.id


def _pick_many(values: Any, allowed: Mapping[str, ClosetItem], categories: Iterable[str], limit: int) -> List[str]:
    if not isinstance(values, list):
        return []
    out: List[str] = []
    for v in values:
        got = _pick(v, allowed, categories)
        if got and got not in out:
            out.append(got)
    return out[:limit]


def _shopping(raw: Any) -> List[ShoppingSuggestion]:
    out: List[ShoppingSuggestion] = []
    for s in raw if isinstance(raw, list) else []:
        if not isinstance(s, dict):
            continue
        fields = {k: str(s.get(k) or "") for k in ("category", "description", "color", "style", "reasoning")}
        out.append(
            ShoppingSuggestion(
                **fields,
                search_url=shopping_search_url(fields["color"], fields["description"], fields["style"]),
            )
        )
    return out


async def build_outfit(
    gateway: ClosetGateway, ai: AIGateway, user_id: Optional[str], anchor_item_id: Optional[str]
) -> BuildOutfitOut:
    if not user_id or not anchor_item_id:
        raise PreconditionFailed("Missing userId or anchorItemId")
    anchor = await gateway.get_item(user_id, anchor_item_id)
    if anchor is None:
        raise NotFound("Anchor item not found")
    items = [it for it in await gateway.list_items(user_id, exclude_underwear=True) if it.id != anchor.id]
    parts = gateway.partition_by_category(items)
    needs = {cat: anchor.category != cat for cat in REQUIRED_CATEGORIES}
    missing = [cat for cat in REQUIRED_CATEGORIES if needs[cat] and not parts[cat]]
    logger.info(
        "build-outfit user=%s anchor=%s category=%s candidates=%s missing=%s",
        user_id,
        anchor.id,
        anchor.category,
        len(items),
        missing,
    )
    res = await ai.chat(build_outfit_prompt(anchor, parts, needs))
    data = extract_json_object(res.content)
    raw = data.get("closet_picks") if isinstance(data.get("closet_picks"), dict) else {}
    by_id = {it.id: it for it in items}
    picks = ClosetPicks(
        top=_pick(raw.get("top"), by_id, PICK_CATEGORIES["top"]) if needs["tops"] else None,
        bottom=_pick(raw.get("bottom"), by_id, PICK_CATEGORIES["bottom"]) if needs["bottoms"] else None,
        shoes=_pick(raw.get("shoes"), by_id, PICK_CATEGORIES["shoes"]) if needs["shoes"] else None,
        outerwear=_pick(raw.get("outerwear"), by_id, PICK_CATEGORIES["outerwear"]),
        accessories=_pick_many(raw.get("accessories"), by_id, PICK_CATEGORIES["accessories"], MAX_ACCESSORIES),
    )
    return BuildOutfitOut(
        anchor_item=ItemOut.model_validate(anchor).model_dump(mode="json"),
        closet_picks=picks,
        shopping_suggestions=_shopping(data.get("shopping_suggestions")),
        outfit_reasoning=str(data.get("outfit_reasoning") or ""),
        style_notes=str(data.get("style_notes") or ""),
    )


def _required_pick(value: Any, candidates: Sequence[ClosetItem], slot: str) -> str:
    by_id = {it.id: it for it in candidates}
    got = _pick(value, by_id, PICK_CATEGORIES[slot])
    if got:
        return got
    logger.warning("suggest-outfit invalid %s pick=%r, using newest candidate", slot, value)
    return candidates[0].id


async def suggest_outfit(gateway: ClosetGateway, ai: AIGateway, user_id: Optional[str]) -> SuggestOutfitOut:
    if not user_id:
        raise PreconditionFailed("Missing userId")
    items = await gateway.list_items(user_id, exclude_underwear=True)
    parts = gateway.partition_by_category(items)
    missing = [cat for cat in REQUIRED_CATEGORIES if not parts[cat]]
    if missing:
        raise MissingCategories(missing)
    res = await ai.chat(build_suggest_prompt(parts))
    data = extract_json_object(res.content)
    by_id = {it.id: it for it in items}
    top = _required_pick(data.get("top"), parts["tops"], "top")
    bottom = _required_pick(data.get("bottom"), parts["bottoms"], "bottom")
    shoes = _required_pick(data.get("shoes"), parts["shoes"], "shoes")
    outerwear = _pick(data.get("outerwear"), by_id, PICK_CATEGORIES["outerwear"])
    mid_layer = _pick(data.get("mid_layer"), by_id, PICK_CATEGORIES["mid_layer"])
    if mid_layer in (top, outerwear):
        mid_layer = None
    reasoning = str(data.get("reasoning") or "")
    outfit = SuggestedOutfit(
        top=top,
        bottom=bottom,
        shoes=shoes,
        mid_layer=mid_layer,
        outerwear=outerwear,
        accessories=_pick_many(data.get("accessories"), by_id, PICK_CATEGORIES["accessories"], MAX_ACCESSORIES),
        reasoning=reasoning,
    )
    return SuggestOutfitOut(outfit=outfit, reasoning=reasoning)

import re
from typing import Any, Dict, List, Mapping

CATEGORIES = ("tops", "bottoms", "outerwear", "shoes", "accessories", "underwear")

SUBTYPES: Dict[str, List[str]] = {
    "tops": ["t-shirt", "polo", "button-up", "sweater", "hoodie", "tank-top", "henley"],
    "bottoms": ["jeans", "chinos", "shorts", "sweatpants", "dress-pants", "joggers"],
    "outerwear": ["jacket", "blazer", "coat", "vest", "parka", "bomber"],
    "shoes": ["sneakers", "boots", "loafers", "sandals", "dress-shoes", "running-shoes"],
    "accessories": ["hat", "belt", "watch", "sunglasses", "scarf", "tie", "bag"],
    "underwear": ["boxers", "briefs", "undershirt", "socks"],
}

COLORS = (
    "black",
    "white",
    "gray",
    "navy",
    "blue",
    "red",
    "green",
    "brown",
    "beige",
    "cream",
    "olive",
    "burgundy",
    "pink",
    "yellow",
    "orange",
    "purple",
    "multicolor",
)

SEASONS = ("summer", "spring-fall", "winter", "all-season", "unknown")
PATTERNS = ("solid", "patterned", "unknown")
DRESS_LEVELS = ("casual", "smart-casual", "dressy", "unknown")
LAYER_ROLES = ("base", "mid", "outer", "unknown")
SLOTS = ("top", "bottom", "shoes", "mid_layer", "outerwear", "accessory")
OUTFIT_SOURCES = ("manual", "suggested")
SUGGESTION_ACTIONS = ("saved", "skipped")

# Closed enums other than category/subtype
ENUM_FIELDS: Dict[str, tuple] = {
    "primary_color": COLORS,
    "season": SEASONS,
    "pattern": PATTERNS,
    "dress_level": DRESS_LEVELS,
    "layer_role": LAYER_ROLES,
}

TAG_FIELDS = ("category", "subtype", "primary_color", "season", "pattern", "dress_level", "layer_role")

DEFAULT_TAGS: Dict[str, Any] = {
    "category": "tops",
    "subtype": "",
    "primary_color": "",
    "season": "unknown",
    "pattern": "unknown",
    "dress_level": "unknown",
    "layer_role": "unknown",
    "notes": "",
    "favorite": False,
}

# Categories an outfit must contain
REQUIRED_CATEGORIES = ("tops", "bottoms", "shoes")

_ANCHOR_SLOTS = {
    "tops": "top",
    "bottoms": "bottom",
    "shoes": "shoes",
    "outerwear": "outerwear",
}


def subtype_options(category: str) -> List[str]:
    return list(SUBTYPES.get(category, []))


def anchor_slot(category: str) -> str:
    """Outfit slot an anchor item occupies; anything unmapped is an accessory."""
    return _ANCHOR_SLOTS.get(category, "accessory")


def slot_label(slot_key: str) -> str:
    """Map numbered slot keys (accessory1, accessory2) to the stored label."""
    return re.sub(r"\d+$", "", slot_key)


def validate_tags(fields: Mapping[str, Any], *, category: str | None = None) -> None:
    """Raise ValueError when a tag set breaks the closed vocabularies.

    `category` is the item's effective category when `fields` is a partial
    update that does not carry one.
    """
    cat = fields.get("category", category)
    if cat is not None and cat not in CATEGORIES:
        raise ValueError("invalid_category")
    subtype = fields.get("subtype")
    if subtype:
        if cat is None or subtype not in SUBTYPES[cat]:
            raise ValueError("invalid_subtype")
    for name, allowed in ENUM_FIELDS.items():
        val = fields.get(name)
        if val and val not in allowed:
            raise ValueError(f"invalid_{name}")


def coerce_ai_tags(raw: Mapping[str, Any]) -> Dict[str, str]:
    """Keep only model-suggested tags that fit the vocabularies.

    Anything absent or off-vocabulary is dropped so the caller's defaults stay
    in place.
    """
    out: Dict[str, str] = {}
    cat = _clean(raw.get("category"))
    if cat in CATEGORIES:
        out["category"] = cat
    subtype = _clean(raw.get("subtype"))
    if subtype and subtype in SUBTYPES.get(out.get("category", DEFAULT_TAGS["category"]), []):
        out["subtype"] = subtype
    for name, allowed in ENUM_FIELDS.items():
        val = _clean(raw.get(name))
        if val in allowed:
            out[name] = val
    return out


def _clean(val: Any) -> str:
    if not isinstance(val, str):
        return ""
    return val.strip().lower()

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence

from closet.core.vocab import CATEGORIES, DRESS_LEVELS, LAYER_ROLES, PATTERNS, SEASONS

ANALYZE_TEXT = (
    "Analyze this clothing item image and return JSON with these fields:\n"
    f"- category: one of [{', '.join(CATEGORIES)}]\n"
    "- subtype: specific type (e.g., t-shirt, jeans, sneakers)\n"
    "- primary_color: main color (e.g., black, white, navy, blue)\n"
    f"- season: one of [{', '.join(SEASONS)}]\n"
    f"- pattern: one of [{', '.join(PATTERNS)}]\n"
    f"- dress_level: one of [{', '.join(DRESS_LEVELS)}]\n"
    f"- layer_role: one of [{', '.join(LAYER_ROLES)}]\n\n"
    "Return ONLY valid JSON, no markdown."
)

DETECT_TEXT = (
    "Analyze this camera frame and determine if it contains a CLEAR, WELL-VISIBLE clothing item "
    "that can be properly captured.\n\n"
    "Respond with a JSON object (no markdown) with these fields:\n"
    '- "ready": boolean - true ONLY if there is a single, clear clothing item that is well-lit and in '
    "focus, mostly visible in the frame, the main subject of the image, and a recognizable clothing article\n"
    '- "confidence": number 0-100 - how confident you are about the detection\n'
    '- "feedback": string - brief feedback for the user (e.g., "Move closer", "Hold steady", '
    '"Good - capturing!", "No clothing detected")\n'
    '- "clothing_type": string or null - what type of clothing is detected (e.g., "t-shirt", "jeans")\n\n'
    "Be strict - only return ready:true when the clothing item is clearly visible and would make a good "
    "closet photo."
)

REMOVE_BG_TEXT = (
    "Extract ONLY the single main clothing item (shirt, pants, dress, jacket, shoes, etc.) from this image. "
    "Follow these rules strictly:\n\n"
    "1. REMOVE COMPLETELY: background, people's body parts (hands, feet, arms, legs, torso), plants, "
    "furniture, hangers, mannequins, and ALL other objects\n"
    "2. KEEP ONLY: The single main clothing article with all its details, colors, and textures preserved\n"
    "3. ORIENTATION: Rotate the clothing item so it appears upright and properly oriented\n"
    "4. BACKGROUND: Output must have a pure white (#FFFFFF) background - not transparent, not gray\n"
    "5. CENTERING: Center the clothing item in the frame with some padding around it\n\n"
    "The final image should look like a professional product photo of just the clothing item on a clean "
    "white background."
)

STYLIST_INTRO = "You are a men's fashion stylist."


def _image_message(text: str, image_url: str) -> List[Dict[str, Any]]:
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": text},
                {"type": "image_url", "image_url": {"url": image_url}},
            ],
        }
    ]


def build_analyze_messages(image_url: str) -> List[Dict[str, Any]]:
    return _image_message(ANALYZE_TEXT, image_url)


def build_detect_messages(image_url: str) -> List[Dict[str, Any]]:
    return _image_message(DETECT_TEXT, image_url)


def build_remove_bg_messages(image_url: str) -> List[Dict[str, Any]]:
    return _image_message(REMOVE_BG_TEXT, image_url)


def describe_item(item: Any) -> str:
    return (
        f"{item.subtype or item.category} "
        f"({item.primary_color or 'unknown color'}, {item.dress_level or 'unknown style'})"
    )


def item_summary(items: Sequence[Any]) -> str:
    return "\n".join(f"{it.id}: {describe_item(it)}" for it in items)


def _section(label: str, items: Sequence[Any], empty: str | None = None) -> str:
    if items:
        return f"{label}:\n{item_summary(items)}"
    return f"{label}:\n{empty}" if empty else ""


def build_outfit_prompt(anchor: Any, parts: Mapping[str, Sequence[Any]], needs: Mapping[str, bool]) -> List[Dict[str, str]]:
    """Prompt for completing an outfit around `anchor`.

    `needs` says which of tops/bottoms/shoes the anchor leaves open; an empty
    needed category is called out so the model proposes a purchase instead.
    """
    sections = [
        f"{STYLIST_INTRO} Create a cohesive outfit built around this anchor item:",
        f"ANCHOR ITEM ({anchor.category}):\n{describe_item(anchor)}",
        "The user wants to build an outfit around this piece. Select items that complement it.",
    ]
    for cat, label in (("tops", "TOPS"), ("bottoms", "BOTTOMS"), ("shoes", "SHOES")):
        if needs.get(cat):
            sections.append(
                _section(f"AVAILABLE {label}", parts.get(cat, []), f"NO {label} IN CLOSET - Suggest a purchase")
            )
    sections.append(_section("OUTERWEAR (optional)", parts.get("outerwear", [])))
    sections.append(_section("ACCESSORIES (optional, pick 0-2)", parts.get("accessories", [])))
    sections.append(
        "Return JSON with:\n"
        "- closet_picks: object with keys for each slot (top, bottom, shoes, outerwear, accessories) containing "
        "item IDs from the user's closet. Use null if not selecting for that slot. accessories should be an array.\n"
        "- shopping_suggestions: array of objects with { category, description, color, style, reasoning } for "
        "items the user should consider buying to complete or enhance the outfit. Include suggestions if the "
        "user is missing essential categories or if a purchase would significantly improve the outfit.\n"
        "- outfit_reasoning: a brief explanation of why these items work together (1-2 sentences)\n"
        "- style_notes: any styling tips for wearing this outfit\n\n"
        "Make sure colors complement each other and dress levels match the anchor item. Return ONLY valid JSON."
    )
    return [{"role": "user", "content": "\n\n".join(s for s in sections if s)}]


def build_suggest_prompt(parts: Mapping[str, Sequence[Any]]) -> List[Dict[str, str]]:
    sections = [
        f"{STYLIST_INTRO} Create a cohesive outfit from these items.",
        _section("TOPS", parts.get("tops", [])),
        _section("BOTTOMS", parts.get("bottoms", [])),
        _section("SHOES", parts.get("shoes", [])),
        _section("OUTERWEAR (optional)", parts.get("outerwear", [])),
        _section("ACCESSORIES (optional, pick 0-2)", parts.get("accessories", [])),
        "Return JSON with:\n"
        "- top: item ID\n"
        "- bottom: item ID\n"
        "- shoes: item ID\n"
        "- mid_layer: item ID or null\n"
        "- outerwear: item ID or null\n"
        "- accessories: array of item IDs (0-2)\n"
        "- reasoning: brief style explanation (1 sentence)\n\n"
        "Ensure colors complement each other and dress levels match. Return ONLY JSON.",
    ]
    return [{"role": "user", "content": "\n\n".join(s for s in sections if s)}]

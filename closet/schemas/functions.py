from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ImageIn(BaseModel):
    imageBase64: Optional[str] = None


class BuildOutfitIn(BaseModel):
    userId: Optional[str] = None
    anchorItemId: Optional[str] = None


class SuggestOutfitIn(BaseModel):
    userId: Optional[str] = None


class AnalyzeOut(BaseModel):
    category: Optional[str] = None
    subtype: Optional[str] = None
    primary_color: Optional[str] = None
    season: Optional[str] = None
    pattern: Optional[str] = None
    dress_level: Optional[str] = None
    layer_role: Optional[str] = None


class DetectOut(BaseModel):
    ready: bool = False
    confidence: float = 0
    feedback: str = "Scanning..."
    clothing_type: Optional[str] = None


class RemoveBackgroundOut(BaseModel):
    image: str


class ClosetPicks(BaseModel):
    top: Optional[str] = None
    bottom: Optional[str] = None
    shoes: Optional[str] = None
    outerwear: Optional[str] = None
    accessories: List[str] = Field(default_factory=list)


class ShoppingSuggestion(BaseModel):
    category: str = ""
    description: str = ""
    color: str = ""
    style: str = ""
    reasoning: str = ""
    search_url: str = ""


class BuildOutfitOut(BaseModel):
    anchor_item: Dict[str, Any]
    closet_picks: ClosetPicks
    shopping_suggestions: List[ShoppingSuggestion] = Field(default_factory=list)
    outfit_reasoning: str = ""
    style_notes: str = ""


class SuggestedOutfit(BaseModel):
    top: Optional[str] = None
    bottom: Optional[str] = None
    shoes: Optional[str] = None
    mid_layer: Optional[str] = None
    outerwear: Optional[str] = None
    accessories: List[str] = Field(default_factory=list)
    reasoning: str = ""


class SuggestOutfitOut(BaseModel):
    outfit: SuggestedOutfit
    reasoning: str = ""

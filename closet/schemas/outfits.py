from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict


class OutfitItemIn(BaseModel):
    item_id: str
    slot: Literal["top", "bottom", "shoes", "mid_layer", "outerwear", "accessory"]


class OutfitItemOut(OutfitItemIn):
    model_config = ConfigDict(from_attributes=True)

    id: str


class OutfitCreate(BaseModel):
    name: Optional[str] = None
    source: Literal["manual", "suggested"] = "manual"
    items: List[OutfitItemIn]


class OutfitUpdate(BaseModel):
    name: Optional[str] = None
    items: List[OutfitItemIn]


class OutfitOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: Optional[str] = None
    source: str
    thumbnail_url: Optional[str] = None
    items: List[OutfitItemOut]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SuggestionEventIn(BaseModel):
    suggested_item_ids: List[str]
    action: Literal["saved", "skipped"]


class DeleteAllOut(BaseModel):
    rows: dict
    storage_failures: List[str] = []

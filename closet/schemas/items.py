from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    category: str
    subtype: Optional[str] = None
    primary_color: Optional[str] = None
    season: str = "unknown"
    pattern: str = "unknown"
    dress_level: str = "unknown"
    layer_role: str = "unknown"
    favorite: bool = False
    notes: Optional[str] = None
    original_image_url: str
    cutout_image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ItemUpdate(BaseModel):
    category: Optional[str] = None
    subtype: Optional[str] = None
    primary_color: Optional[str] = None
    season: Optional[str] = None
    pattern: Optional[str] = None
    dress_level: Optional[str] = None
    layer_role: Optional[str] = None
    favorite: Optional[bool] = None
    notes: Optional[str] = None


class FavoriteIn(BaseModel):
    favorite: bool

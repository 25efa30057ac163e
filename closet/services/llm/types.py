from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class LLMUsage(BaseModel):
    model: str = ""
    tokens_in: int = 0
    tokens_out: int = 0
    latency_ms: int = 0


class ChatResult(BaseModel):
    content: str = ""
    images: List[str] = Field(default_factory=list)
    usage: LLMUsage = Field(default_factory=LLMUsage)

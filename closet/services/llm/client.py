from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

import openai
from openai import AsyncOpenAI

from closet.core.config import settings
from closet.core.errors import AIConfigError, AICreditsExhausted, AIRateLimited, AIUpstreamError
from closet.services.llm.types import ChatResult, LLMUsage

logger = logging.getLogger("uvicorn.error")


def _image_url(entry: Any) -> Optional[str]:
    # message.images entries are gateway extensions and arrive as plain dicts
    if isinstance(entry, dict):
        inner = entry.get("image_url") or {}
        return inner.get("url") if isinstance(inner, dict) else None
    inner = getattr(entry, "image_url", None)
    if isinstance(inner, dict):
        return inner.get("url")
    return getattr(inner, "url", None)


class AIGateway:
    """Chat-completions client for the OpenAI-compatible AI gateway."""

    def __init__(
        self,
        client: Any = None,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model_text: Optional[str] = None,
        model_image: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ):
        self._client = client
        self.api_key = api_key if api_key is not None else settings.AI_GATEWAY_API_KEY
        self.base_url = base_url or settings.AI_GATEWAY_URL
        self.model_text = model_text or settings.AI_MODEL_TEXT
        self.model_image = model_image or settings.AI_MODEL_IMAGE
        self.timeout_ms = timeout_ms or settings.AI_TIMEOUT_MS

    @property
    def client(self):
        if self._client is None:
            if not self.api_key:
                logger.error("ai gateway api key is not configured")
                raise AIConfigError()
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    async def chat(
        self,
        messages: List[Dict[str, Any]],
        *,
        model: Optional[str] = None,
        modalities: Optional[Sequence[str]] = None,
    ) -> ChatResult:
        model = model or self.model_text
        kwargs: Dict[str, Any] = {"model": model, "messages": messages}
        if modalities:
            kwargs["extra_body"] = {"modalities": list(modalities)}
        client = self.client
        start = time.perf_counter()
        logger.info("llm:gateway request model=%s timeout_ms=%s", model, self.timeout_ms)
        try:
            resp = await asyncio.wait_for(
                client.chat.completions.create(**kwargs),
                timeout=self.timeout_ms / 1000.0,
            )
        except asyncio.TimeoutError as exc:
            logger.warning("llm:gateway timeout model=%s timeout_ms=%s", model, self.timeout_ms)
            raise AIUpstreamError("AI request timed out") from exc
        except openai.APIStatusError as exc:
            logger.warning("llm:gateway error model=%s status=%s", model, exc.status_code)
            if exc.status_code == 429:
                raise AIRateLimited() from exc
            if exc.status_code == 402:
                raise AICreditsExhausted() from exc
            raise AIUpstreamError(f"AI gateway error: {exc.status_code}", exc.status_code) from exc
        except openai.APIError as exc:
            logger.warning("llm:gateway failure model=%s err=%s", model, exc)
            raise AIUpstreamError("AI gateway unavailable") from exc
        latency_ms = int((time.perf_counter() - start) * 1000)
        message = resp.choices[0].message if resp.choices else None
        content = (getattr(message, "content", None) or "") if message else ""
        images = [u for u in (_image_url(e) for e in (getattr(message, "images", None) or [])) if u]
        usage = getattr(resp, "usage", None)
        return ChatResult(
            content=content,
            images=images,
            usage=LLMUsage(
                model=model,
                tokens_in=getattr(usage, "prompt_tokens", 0) or 0 if usage else 0,
                tokens_out=getattr(usage, "completion_tokens", 0) or 0 if usage else 0,
                latency_ms=latency_ms,
            ),
        )

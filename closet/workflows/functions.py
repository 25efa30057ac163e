import logging
from typing import Any, Dict, Optional

import httpx

from closet.core.config import settings
from closet.core.errors import (
    AICreditsExhausted,
    AIRateLimited,
    AIUpstreamError,
    MissingCategories,
    NotFound,
    PreconditionFailed,
)

logger = logging.getLogger("uvicorn.error")


class FunctionsClient:
    """Calls the AI functions over HTTP the way an app client does."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
    ):
        self.base_url = (base_url or settings.FUNCTIONS_BASE_URL).rstrip("/")
        self._client = client
        self.token = token

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=settings.AI_TIMEOUT_MS / 1000.0)
        return self._client

    async def _invoke(self, name: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            resp = await self.client.post(f"{self.base_url}/{name}", json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("functions:%s transport error err=%s", name, exc)
            raise AIUpstreamError("Network error") from exc
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if resp.status_code < 400:
            return body
        message = body.get("error") if isinstance(body, dict) else None
        logger.warning("functions:%s status=%s error=%s", name, resp.status_code, message)
        if resp.status_code == 429:
            raise AIRateLimited(message)
        if resp.status_code == 402:
            raise AICreditsExhausted(message)
        if resp.status_code == 400:
            if body.get("missing"):
                raise MissingCategories(body["missing"])
            raise PreconditionFailed(message or "Bad request")
        if resp.status_code == 404:
            raise NotFound(message or "Not found")
        raise AIUpstreamError(message, resp.status_code)

    async def analyze_clothing(self, image: str) -> Dict[str, Any]:
        return await self._invoke("analyze-clothing", {"imageBase64": image})

    async def detect_clothing(self, image: str) -> Dict[str, Any]:
        return await self._invoke("detect-clothing", {"imageBase64": image})

    async def remove_background(self, image: str) -> str:
        body = await self._invoke("remove-background", {"imageBase64": image})
        if not body.get("image"):
            raise AIUpstreamError("No image returned from AI")
        return body["image"]

    async def build_outfit(self, user_id: str, anchor_item_id: str) -> Dict[str, Any]:
        return await self._invoke("build-outfit", {"userId": user_id, "anchorItemId": anchor_item_id})

    async def suggest_outfit(self, user_id: str) -> Dict[str, Any]:
        return await self._invoke("suggest-outfit", {"userId": user_id})

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from closet.auth.deps import get_current_user_id
from closet.core.errors import AIConfigError, AIError, MissingCategories, NotFound, PreconditionFailed
from closet.schemas.functions import (
    AnalyzeOut,
    BuildOutfitIn,
    BuildOutfitOut,
    DetectOut,
    ImageIn,
    RemoveBackgroundOut,
    SuggestOutfitIn,
    SuggestOutfitOut,
)
from closet.services import ai_functions
from closet.services.gateway import ClosetGateway
from closet.services.llm import get_ai_gateway
from closet.services.llm.client import AIGateway
from closet.routers.deps import get_gateway

router = APIRouter(prefix="/functions", tags=["functions"])
logger = logging.getLogger("uvicorn.error")


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _ai_error(name: str, exc: AIError) -> JSONResponse:
    logger.warning("function %s failed status=%s err=%s", name, exc.status_code, exc.message)
    return _error(exc.status_code, exc.message)


def _check_caller(token_user: str, user_id: Optional[str]) -> Optional[JSONResponse]:
    if user_id and token_user != user_id:
        return _error(403, "forbidden")
    return None


@router.post("/analyze-clothing", response_model=AnalyzeOut, response_model_exclude_none=True)
async def analyze_clothing(body: ImageIn, ai: AIGateway = Depends(get_ai_gateway)):
    try:
        return await ai_functions.analyze_clothing(ai, body.imageBase64)
    except PreconditionFailed as exc:
        return _error(400, str(exc))
    except AIError as exc:
        return _ai_error("analyze-clothing", exc)


@router.post("/detect-clothing", response_model=DetectOut)
async def detect_clothing(body: ImageIn, ai: AIGateway = Depends(get_ai_gateway)):
    try:
        return await ai_functions.detect_clothing(ai, body.imageBase64)
    except AIConfigError as exc:
        return _ai_error("detect-clothing", exc)
    except AIError as exc:
        logger.warning("function detect-clothing upstream fault err=%s", exc.message)
        return _error(502, exc.message, ready=False, confidence=0, feedback="Error scanning", clothing_type=None)


@router.post("/remove-background", response_model=RemoveBackgroundOut)
async def remove_background(body: ImageIn, ai: AIGateway = Depends(get_ai_gateway)):
    try:
        image = await ai_functions.remove_background(ai, body.imageBase64)
    except PreconditionFailed as exc:
        return _error(400, str(exc))
    except AIError as exc:
        return _ai_error("remove-background", exc)
    return {"image": image}


@router.post("/build-outfit", response_model=BuildOutfitOut)
async def build_outfit(
    body: BuildOutfitIn,
    token_user: str = Depends(get_current_user_id),
    gateway: ClosetGateway = Depends(get_gateway),
    ai: AIGateway = Depends(get_ai_gateway),
):
    denied = _check_caller(token_user, body.userId)
    if denied:
        return denied
    try:
        return await ai_functions.build_outfit(gateway, ai, body.userId, body.anchorItemId)
    except PreconditionFailed as exc:
        return _error(400, str(exc))
    except NotFound as exc:
        return _error(404, str(exc))
    except AIError as exc:
        return _ai_error("build-outfit", exc)


@router.post("/suggest-outfit", response_model=SuggestOutfitOut)
async def suggest_outfit(
    body: SuggestOutfitIn,
    token_user: str = Depends(get_current_user_id),
    gateway: ClosetGateway = Depends(get_gateway),
    ai: AIGateway = Depends(get_ai_gateway),
):
    denied = _check_caller(token_user, body.userId)
    if denied:
        return denied
    try:
        return await ai_functions.suggest_outfit(gateway, ai, body.userId)
    except MissingCategories as exc:
        return _error(400, "Missing required items", missing=exc.missing)
    except PreconditionFailed as exc:
        return _error(400, str(exc))
    except AIError as exc:
        return _ai_error("suggest-outfit", exc)

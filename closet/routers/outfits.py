import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response

from closet.auth.deps import get_current_user_id
from closet.core.errors import SagaFailed
from closet.routers.deps import get_gateway
from closet.schemas.outfits import OutfitCreate, OutfitItemIn, OutfitOut, OutfitUpdate
from closet.services import lifecycle
from closet.services.gateway import ClosetGateway

router = APIRouter(prefix="/outfits", tags=["outfits"])
logger = logging.getLogger("uvicorn.error")

REQUIRED_SLOTS = ("top", "bottom", "shoes")


def _rows(items: List[OutfitItemIn]):
    rows = [(it.slot, it.item_id) for it in items]
    missing = [s for s in REQUIRED_SLOTS if s not in {slot for slot, _ in rows}]
    if missing:
        raise HTTPException(status_code=400, detail="missing_required_slots")
    return rows


@router.get("", response_model=List[OutfitOut])
async def list_outfits(
    user_id: str = Depends(get_current_user_id),
    gateway: ClosetGateway = Depends(get_gateway),
):
    return await gateway.list_outfits(user_id)


@router.post("", response_model=OutfitOut)
async def create_outfit(
    body: OutfitCreate,
    user_id: str = Depends(get_current_user_id),
    gateway: ClosetGateway = Depends(get_gateway),
):
    rows = _rows(body.items)
    try:
        return await lifecycle.create_outfit(gateway, user_id, body.name, body.source, rows)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SagaFailed as exc:
        logger.warning("create_outfit failed user=%s step=%s", user_id, exc.step)
        raise HTTPException(status_code=502, detail="outfit_create_failed")


@router.get("/{outfit_id}", response_model=OutfitOut)
async def get_outfit(
    outfit_id: str,
    user_id: str = Depends(get_current_user_id),
    gateway: ClosetGateway = Depends(get_gateway),
):
    outfit = await gateway.get_outfit(user_id, outfit_id)
    if not outfit:
        raise HTTPException(status_code=404, detail="outfit_not_found")
    return outfit


@router.put("/{outfit_id}", response_model=OutfitOut)
async def replace_outfit(
    outfit_id: str,
    body: OutfitUpdate,
    user_id: str = Depends(get_current_user_id),
    gateway: ClosetGateway = Depends(get_gateway),
):
    rows = _rows(body.items)
    try:
        outfit = await gateway.replace_outfit_items(user_id, outfit_id, body.name, rows)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if not outfit:
        raise HTTPException(status_code=404, detail="outfit_not_found")
    return outfit


@router.delete("/{outfit_id}", status_code=204)
async def delete_outfit(
    outfit_id: str,
    user_id: str = Depends(get_current_user_id),
    gateway: ClosetGateway = Depends(get_gateway),
):
    if not await gateway.delete_outfit(user_id, outfit_id):
        raise HTTPException(status_code=404, detail="outfit_not_found")
    return Response(status_code=204)

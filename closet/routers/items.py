import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response

from closet.auth.deps import get_current_user_id
from closet.core.errors import NotFound, SagaFailed
from closet.routers.deps import get_gateway
from closet.schemas.items import FavoriteIn, ItemOut, ItemUpdate
from closet.services import lifecycle
from closet.services.gateway import ClosetGateway

router = APIRouter(prefix="/items", tags=["items"])
logger = logging.getLogger("uvicorn.error")


@router.get("", response_model=List[ItemOut])
async def list_items(
    user_id: str = Depends(get_current_user_id),
    gateway: ClosetGateway = Depends(get_gateway),
):
    return await gateway.list_items(user_id)


@router.get("/{item_id}", response_model=ItemOut)
async def get_item(
    item_id: str,
    user_id: str = Depends(get_current_user_id),
    gateway: ClosetGateway = Depends(get_gateway),
):
    item = await gateway.get_item(user_id, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="item_not_found")
    return item


@router.patch("/{item_id}", response_model=ItemOut)
async def update_item(
    item_id: str,
    body: ItemUpdate,
    user_id: str = Depends(get_current_user_id),
    gateway: ClosetGateway = Depends(get_gateway),
):
    try:
        item = await gateway.update_item(user_id, item_id, body.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    if not item:
        raise HTTPException(status_code=404, detail="item_not_found")
    return item


@router.post("/{item_id}/favorite", response_model=ItemOut)
async def set_favorite(
    item_id: str,
    body: FavoriteIn,
    user_id: str = Depends(get_current_user_id),
    gateway: ClosetGateway = Depends(get_gateway),
):
    item = await gateway.set_favorite(user_id, item_id, body.favorite)
    if not item:
        raise HTTPException(status_code=404, detail="item_not_found")
    return item


@router.delete("/{item_id}", status_code=204)
async def delete_item(
    item_id: str,
    user_id: str = Depends(get_current_user_id),
    gateway: ClosetGateway = Depends(get_gateway),
):
    try:
        await lifecycle.delete_item(gateway, user_id, item_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="item_not_found")
    except SagaFailed as exc:
        logger.warning("delete_item failed user=%s item=%s step=%s", user_id, item_id, exc.step)
        raise HTTPException(status_code=502, detail="item_delete_failed")
    return Response(status_code=204)

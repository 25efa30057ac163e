import logging

from fastapi import APIRouter, Depends

from closet.auth.deps import get_current_user_id
from closet.core.errors import PartialDeleteError
from closet.routers.deps import get_gateway
from closet.schemas.outfits import DeleteAllOut, SuggestionEventIn
from closet.services import lifecycle
from closet.services.gateway import ClosetGateway

router = APIRouter(tags=["account"])
logger = logging.getLogger("uvicorn.error")


@router.post("/suggestions/events", status_code=201)
async def log_suggestion_event(
    body: SuggestionEventIn,
    user_id: str = Depends(get_current_user_id),
    gateway: ClosetGateway = Depends(get_gateway),
):
    ev = await gateway.log_suggestion(user_id, body.suggested_item_ids, body.action)
    return {"id": ev.id, "action": ev.action}


@router.delete("/account/data", response_model=DeleteAllOut)
async def delete_all_data(
    user_id: str = Depends(get_current_user_id),
    gateway: ClosetGateway = Depends(get_gateway),
):
    try:
        rows = await lifecycle.delete_all_data(gateway, user_id)
    except PartialDeleteError as exc:
        # rows are gone; report the buckets that still hold files
        return DeleteAllOut(rows=exc.rows, storage_failures=exc.failed)
    return DeleteAllOut(rows=rows)

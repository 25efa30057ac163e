import logging
from typing import Dict, List, Optional, Sequence

from closet.core.errors import NotFound, PartialDeleteError
from closet.core.saga import Saga
from closet.models.models import Outfit
from closet.services.gateway import ClosetGateway, SlotRow
from closet.storage.keys import user_prefix

logger = logging.getLogger("uvicorn.error")


async def create_outfit(
    gateway: ClosetGateway, user_id: str, name: Optional[str], source: str, rows: Sequence[SlotRow]
) -> Outfit:
    """Insert an outfit and its slot rows; the outfit is removed if the rows fail."""
    await gateway.check_rows(user_id, rows)

    async def insert_outfit(ctx):
        outfit = await gateway.insert_outfit(user_id, name, source)
        return outfit.id

    async def drop_outfit(ctx):
        await gateway.delete_outfit(user_id, ctx["outfit"])

    async def insert_rows(ctx):
        await gateway.insert_outfit_items(user_id, ctx["outfit"], rows)

    saga = Saga("create_outfit").step("outfit", insert_outfit, drop_outfit).step("items", insert_rows)
    ctx = await saga.run()
    return await gateway.get_outfit(user_id, ctx["outfit"])


async def delete_item(gateway: ClosetGateway, user_id: str, item_id: str) -> None:
    """Delete the row first, then its stored images; the row comes back if removal fails."""
    if await gateway.get_item(user_id, item_id) is None:
        raise NotFound("item_not_found")

    async def drop_row(ctx):
        return await gateway.delete_item_row(user_id, item_id)

    async def restore_row(ctx):
        await gateway.restore_item(ctx["row"])

    async def drop_objects(ctx):
        await gateway.remove_item_objects(user_id, item_id)

    await Saga("delete_item").step("row", drop_row, restore_row).step("objects", drop_objects).run()


async def delete_all_data(gateway: ClosetGateway, user_id: str) -> Dict[str, int]:
    """Remove every row and stored object a user owns.

    Row deletes always complete. Storage removal is attempted per bucket
    afterwards; if any bucket fails, PartialDeleteError is raised carrying the
    row counts and the buckets left dirty.
    """
    rows = await gateway.delete_user_rows(user_id)
    failed: List[str] = []
    prefix = user_prefix(user_id)
    for bucket in (gateway.originals_bucket, gateway.cutouts_bucket):
        try:
            keys = await gateway.store.list(bucket, prefix)
            if keys:
                await gateway.store.remove(bucket, keys)
        except Exception as exc:
            logger.warning("delete_all_data storage failed user=%s bucket=%s err=%s", user_id, bucket, exc)
            failed.append(bucket)
    if failed:
        raise PartialDeleteError(failed, rows)
    logger.info("delete_all_data user=%s rows=%s", user_id, rows)
    return rows


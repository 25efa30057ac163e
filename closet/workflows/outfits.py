import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from closet.models.models import Outfit
from closet.services.gateway import ClosetGateway
from closet.workflows.state import Notice, StateCell

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class OutfitListState:
    loaded: bool = False
    outfits: Tuple[Outfit, ...] = ()
    notice: Optional[Notice] = None


class OutfitLibrary:
    """Saved outfits, newest first, with delete."""

    def __init__(self, gateway: ClosetGateway, user_id: str):
        self.gateway = gateway
        self.user_id = user_id
        self.cell: StateCell[OutfitListState] = StateCell(OutfitListState())

    @property
    def state(self) -> OutfitListState:
        return self.cell.state

    async def load(self) -> OutfitListState:
        outfits = tuple(await self.gateway.list_outfits(self.user_id))
        return await self.cell.update(lambda s: replace(s, loaded=True, outfits=outfits, notice=None))

    async def delete(self, outfit_id: str) -> OutfitListState:
        if not await self.gateway.delete_outfit(self.user_id, outfit_id):
            return await self.cell.update(lambda s: replace(s, notice=Notice("Failed to delete", variant="destructive")))
        return await self.cell.update(
            lambda s: replace(
                s, outfits=tuple(o for o in s.outfits if o.id != outfit_id), notice=Notice("Outfit deleted")
            )
        )

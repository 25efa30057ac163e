import logging
from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple

from closet.core.errors import PartialDeleteError
from closet.services import lifecycle
from closet.services.gateway import ClosetGateway
from closet.workflows.state import Notice, StateCell

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class SettingsState:
    phase: str = "idle"  # idle | deleting | deleted
    rows: Optional[Dict[str, int]] = None
    storage_failures: Tuple[str, ...] = ()
    notice: Optional[Notice] = None


class AccountSettings:
    def __init__(self, gateway: ClosetGateway, user_id: str):
        self.gateway = gateway
        self.user_id = user_id
        self.cell: StateCell[SettingsState] = StateCell(SettingsState())

    @property
    def state(self) -> SettingsState:
        return self.cell.state

    async def delete_all_data(self) -> SettingsState:
        await self.cell.update(lambda s: replace(s, phase="deleting", notice=None))
        try:
            rows = await lifecycle.delete_all_data(self.gateway, self.user_id)
        except PartialDeleteError as exc:
            return await self.cell.update(
                lambda s: replace(
                    s,
                    phase="deleted",
                    rows=exc.rows,
                    storage_failures=tuple(exc.failed),
                    notice=Notice("All data deleted", "Some stored images could not be removed.", "destructive"),
                )
            )
        except Exception as exc:
            logger.warning("delete_all_data failed user=%s err=%s", self.user_id, exc)
            return await self.cell.update(
                lambda s: replace(s, phase="idle", notice=Notice("Failed to delete data", variant="destructive"))
            )
        return await self.cell.update(
            lambda s: replace(
                s, phase="deleted", rows=rows, notice=Notice("All data deleted", "Your closet has been cleared.")
            )
        )

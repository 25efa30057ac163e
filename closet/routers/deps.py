from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from closet.core.db import get_session
from closet.services.gateway import ClosetGateway
from closet.storage import ObjectStore, get_object_store


def get_gateway(
    session: AsyncSession = Depends(get_session),
    store: ObjectStore = Depends(get_object_store),
) -> ClosetGateway:
    return ClosetGateway(session, store)

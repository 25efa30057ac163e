import httpx
import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from closet.core.db import get_sessionmaker
from closet.core.errors import NotFound, PartialDeleteError, SagaFailed
from closet.models.models import Outfit
from closet.services import lifecycle
from closet.workflows.settings import AccountSettings
from tests.fixtures import USER, add_item, block_inserts, unblock_inserts


async def _seed(gateway):
    top = await add_item(gateway, "tops")
    bottom = await add_item(gateway, "bottoms")
    shoes = await add_item(gateway, "shoes")
    for it in (top, bottom, shoes):
        await gateway.upload_original(USER, it.id, b"jpeg", "image/jpeg")
    await gateway.upload_cutout(USER, top.id, b"png")
    rows = [("top", top.id), ("bottom", bottom.id), ("shoes", shoes.id)]
    outfit = await lifecycle.create_outfit(gateway, USER, "Seed", "manual", rows)
    await gateway.log_suggestion(USER, [top.id, bottom.id, shoes.id], "saved")
    return top, outfit


@pytest.mark.asyncio
async def test_delete_all_on_empty_account(gateway, store):
    rows = await lifecycle.delete_all_data(gateway, USER)
    assert rows == {"closet_items": 0, "outfits": 0, "suggestion_events": 0}


@pytest.mark.asyncio
async def test_delete_all_removes_rows_and_objects(gateway, store):
    await _seed(gateway)
    other = await add_item(gateway, "tops", user_id="other-user")
    await gateway.upload_original("other-user", other.id, b"jpeg", "image/jpeg")

    rows = await lifecycle.delete_all_data(gateway, USER)
    assert rows == {"closet_items": 3, "outfits": 1, "suggestion_events": 1}
    assert await gateway.count_user_rows(USER) == {"closet_items": 0, "outfits": 0, "suggestion_events": 0}
    assert await gateway.list_user_objects(USER) == {gateway.originals_bucket: [], gateway.cutouts_bucket: []}
    assert store.keys(gateway.originals_bucket) == [f"other-user/{other.id}/original.jpg"]
    assert await gateway.get_item("other-user", other.id) is not None


@pytest.mark.asyncio
async def test_delete_all_reports_storage_failure(gateway, store, monkeypatch):
    await _seed(gateway)
    real_list = store.list

    async def flaky_list(bucket, prefix):
        if bucket == gateway.cutouts_bucket:
            raise OSError("bucket unavailable")
        return await real_list(bucket, prefix)

    monkeypatch.setattr(store, "list", flaky_list)
    with pytest.raises(PartialDeleteError) as ei:
        await lifecycle.delete_all_data(gateway, USER)
    assert ei.value.failed == [gateway.cutouts_bucket]
    assert ei.value.rows["closet_items"] == 3
    assert await gateway.count_user_rows(USER) == {"closet_items": 0, "outfits": 0, "suggestion_events": 0}
    assert store.keys(gateway.originals_bucket) == []
    assert len(store.keys(gateway.cutouts_bucket)) == 1


@pytest.mark.asyncio
async def test_settings_surfaces_storage_failure(gateway, store, monkeypatch):
    await _seed(gateway)

    async def broken_remove(bucket, keys):
        raise OSError("denied")

    monkeypatch.setattr(store, "remove", broken_remove)
    state = await AccountSettings(gateway, USER).delete_all_data()
    assert state.phase == "deleted"
    assert set(state.storage_failures) == {gateway.originals_bucket, gateway.cutouts_bucket}
    assert state.notice.variant == "destructive"


@pytest.mark.asyncio
async def test_delete_account_api_reports_failures(client: httpx.AsyncClient, gateway, store, monkeypatch):
    await _seed(gateway)

    async def broken_remove(bucket, keys):
        raise OSError("denied")

    monkeypatch.setattr(store, "remove", broken_remove)
    resp = await client.delete("/v1/account/data")
    assert resp.status_code == 200
    body = resp.json()
    assert body["rows"]["closet_items"] == 3
    assert sorted(body["storage_failures"]) == sorted([gateway.originals_bucket, gateway.cutouts_bucket])


@pytest.mark.asyncio
async def test_item_delete_restores_row_when_storage_fails(gateway, store, monkeypatch):
    top, outfit = await _seed(gateway)

    async def broken_remove(bucket, keys):
        raise OSError("denied")

    monkeypatch.setattr(store, "remove", broken_remove)
    with pytest.raises(SagaFailed) as ei:
        await lifecycle.delete_item(gateway, USER, top.id)
    assert ei.value.step == "objects"
    assert ei.value.compensation_errors == []

    restored = await gateway.get_item(USER, top.id)
    assert restored is not None
    assert restored.category == "tops"
    again = await gateway.get_outfit(USER, outfit.id)
    assert ("top", top.id) in {(oi.slot, oi.item_id) for oi in again.items}


@pytest.mark.asyncio
async def test_item_delete_unknown(gateway):
    with pytest.raises(NotFound):
        await lifecycle.delete_item(gateway, USER, "missing")


@pytest.mark.asyncio
async def test_create_outfit_rejects_foreign_item(gateway):
    top = await add_item(gateway, "tops")
    foreign = await add_item(gateway, "shoes", user_id="other-user")
    with pytest.raises(ValueError, match="unknown_item"):
        await lifecycle.create_outfit(gateway, USER, None, "manual", [("top", top.id), ("shoes", foreign.id)])
    assert await gateway.list_outfits(USER) == []


@pytest.mark.asyncio
async def test_create_outfit_removes_outfit_when_database_rejects_rows(gateway):
    top = await add_item(gateway, "tops")
    bottom = await add_item(gateway, "bottoms")
    shoes = await add_item(gateway, "shoes")
    rows = [("top", top.id), ("bottom", bottom.id), ("shoes", shoes.id)]
    await block_inserts(gateway, "outfit_items")

    with pytest.raises(SagaFailed) as ei:
        await lifecycle.create_outfit(gateway, USER, "Blocked", "manual", rows)
    assert ei.value.step == "items"
    assert ei.value.compensation_errors == []

    async with get_sessionmaker()() as fresh:
        count = (await fresh.execute(select(func.count()).select_from(Outfit))).scalar_one()
    assert count == 0

    await unblock_inserts(gateway, "outfit_items")
    outfit = await lifecycle.create_outfit(gateway, USER, "Retry", "manual", rows)
    assert len(outfit.items) == 3


@pytest.mark.asyncio
async def test_gateway_usable_after_failed_write(gateway):
    await block_inserts(gateway, "suggestion_events")
    with pytest.raises(IntegrityError):
        await gateway.log_suggestion(USER, ["a"], "skipped")
    assert gateway.session.in_transaction() is False
    assert await gateway.count_user_rows(USER) == {"closet_items": 0, "outfits": 0, "suggestion_events": 0}

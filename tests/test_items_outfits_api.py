import httpx
import pytest

from tests.fixtures import USER, add_item


async def _closet(gateway):
    return {
        "top": await add_item(gateway, "tops", subtype="t-shirt"),
        "bottom": await add_item(gateway, "bottoms", subtype="chinos"),
        "shoes": await add_item(gateway, "shoes", subtype="loafers"),
        "hat": await add_item(gateway, "accessories", subtype="hat"),
        "belt": await add_item(gateway, "accessories", subtype="belt"),
    }


@pytest.mark.asyncio
async def test_list_items_newest_first_and_scoped(client: httpx.AsyncClient, gateway):
    first = await add_item(gateway, "tops")
    second = await add_item(gateway, "shoes")
    await add_item(gateway, "tops", user_id="other-user")
    resp = await client.get("/v1/items")
    assert resp.status_code == 200
    assert [it["id"] for it in resp.json()] == [second.id, first.id]


@pytest.mark.asyncio
async def test_get_unknown_item(client: httpx.AsyncClient):
    resp = await client.get("/v1/items/missing")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "item_not_found"


@pytest.mark.asyncio
async def test_patch_category_clears_subtype(client: httpx.AsyncClient, gateway):
    item = await add_item(gateway, "tops", subtype="polo")
    resp = await client.patch(f"/v1/items/{item.id}", json={"category": "bottoms"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["category"] == "bottoms"
    assert body["subtype"] is None


@pytest.mark.asyncio
async def test_patch_rejects_subtype_from_other_category(client: httpx.AsyncClient, gateway):
    item = await add_item(gateway, "tops")
    resp = await client.patch(f"/v1/items/{item.id}", json={"subtype": "boots"})
    assert resp.status_code == 422
    assert resp.json()["detail"] == "invalid_subtype"
    resp = await client.patch(f"/v1/items/{item.id}", json={"season": "monsoon"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_favorite_toggle(client: httpx.AsyncClient, gateway):
    item = await add_item(gateway, "shoes")
    resp = await client.post(f"/v1/items/{item.id}/favorite", json={"favorite": True})
    assert resp.status_code == 200
    assert resp.json()["favorite"] is True
    resp = await client.post("/v1/items/missing/favorite", json={"favorite": True})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_item_removes_objects_and_memberships(client: httpx.AsyncClient, gateway, store):
    closet = await _closet(gateway)
    top = closet["top"]
    await gateway.upload_original(USER, top.id, b"jpeg", "image/jpeg")
    await gateway.upload_cutout(USER, top.id, b"png")
    other_key, _ = await gateway.upload_original(USER, closet["bottom"].id, b"jpeg", "image/jpeg")
    payload = {
        "items": [
            {"item_id": top.id, "slot": "top"},
            {"item_id": closet["bottom"].id, "slot": "bottom"},
            {"item_id": closet["shoes"].id, "slot": "shoes"},
        ]
    }
    outfit = (await client.post("/v1/outfits", json=payload)).json()

    resp = await client.delete(f"/v1/items/{top.id}")
    assert resp.status_code == 204
    assert (await client.get(f"/v1/items/{top.id}")).status_code == 404
    assert store.keys(gateway.originals_bucket) == [other_key]
    assert store.keys(gateway.cutouts_bucket) == []
    got = (await client.get(f"/v1/outfits/{outfit['id']}")).json()
    assert top.id not in {row["item_id"] for row in got["items"]}
    assert (await client.delete(f"/v1/items/{top.id}")).status_code == 404


@pytest.mark.asyncio
async def test_create_outfit_requires_top_bottom_shoes(client: httpx.AsyncClient, gateway):
    closet = await _closet(gateway)
    payload = {"name": "No shoes", "items": [
        {"item_id": closet["top"].id, "slot": "top"},
        {"item_id": closet["bottom"].id, "slot": "bottom"},
    ]}
    resp = await client.post("/v1/outfits", json=payload)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "missing_required_slots"
    assert (await client.get("/v1/outfits")).json() == []


@pytest.mark.asyncio
async def test_create_outfit_rejects_unknown_items(client: httpx.AsyncClient, gateway):
    closet = await _closet(gateway)
    foreign = await add_item(gateway, "shoes", user_id="other-user")
    payload = {"items": [
        {"item_id": closet["top"].id, "slot": "top"},
        {"item_id": closet["bottom"].id, "slot": "bottom"},
        {"item_id": foreign.id, "slot": "shoes"},
    ]}
    resp = await client.post("/v1/outfits", json=payload)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "unknown_item"
    assert (await client.get("/v1/outfits")).json() == []


@pytest.mark.asyncio
async def test_outfit_crud(client: httpx.AsyncClient, gateway):
    closet = await _closet(gateway)
    payload = {
        "name": "Weekend",
        "items": [
            {"item_id": closet["top"].id, "slot": "top"},
            {"item_id": closet["bottom"].id, "slot": "bottom"},
            {"item_id": closet["shoes"].id, "slot": "shoes"},
            {"item_id": closet["hat"].id, "slot": "accessory"},
            {"item_id": closet["belt"].id, "slot": "accessory"},
        ],
    }
    resp = await client.post("/v1/outfits", json=payload)
    assert resp.status_code == 200
    outfit = resp.json()
    assert outfit["source"] == "manual"
    assert sorted(row["slot"] for row in outfit["items"]) == ["accessory", "accessory", "bottom", "shoes", "top"]

    update = {
        "name": "Weekend v2",
        "items": [
            {"item_id": closet["top"].id, "slot": "top"},
            {"item_id": closet["bottom"].id, "slot": "bottom"},
            {"item_id": closet["shoes"].id, "slot": "shoes"},
        ],
    }
    resp = await client.put(f"/v1/outfits/{outfit['id']}", json=update)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Weekend v2"
    assert len(resp.json()["items"]) == 3

    listed = (await client.get("/v1/outfits")).json()
    assert [o["id"] for o in listed] == [outfit["id"]]
    assert len(listed[0]["items"]) == 3

    assert (await client.delete(f"/v1/outfits/{outfit['id']}")).status_code == 204
    assert (await client.get(f"/v1/outfits/{outfit['id']}")).status_code == 404
    assert (await client.delete(f"/v1/outfits/{outfit['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_invalid_slot_is_rejected_by_schema(client: httpx.AsyncClient, gateway):
    closet = await _closet(gateway)
    payload = {"items": [{"item_id": closet["top"].id, "slot": "hat"}]}
    resp = await client.post("/v1/outfits", json=payload)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_suggestion_event_and_delete_account(client: httpx.AsyncClient, gateway, store):
    closet = await _closet(gateway)
    await gateway.upload_original(USER, closet["top"].id, b"jpeg", "image/jpeg")
    resp = await client.post(
        "/v1/suggestions/events",
        json={"suggested_item_ids": [closet["top"].id], "action": "skipped"},
    )
    assert resp.status_code == 201
    assert resp.json()["action"] == "skipped"

    resp = await client.delete("/v1/account/data")
    assert resp.status_code == 200
    body = resp.json()
    assert body["rows"] == {"closet_items": 5, "outfits": 0, "suggestion_events": 1}
    assert body["storage_failures"] == []
    assert store.objects == {}
    assert (await client.get("/v1/items")).json() == []


@pytest.mark.asyncio
async def test_health(client: httpx.AsyncClient):
    resp = await client.get("/v1/health")
    assert resp.status_code == 200

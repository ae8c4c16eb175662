# tests/test_examples.py
import uuid

import pytest
from httpx import AsyncClient

from helpers import API

pytestmark = pytest.mark.anyio


async def _create(client: AsyncClient, name: str, description=None) -> dict:
    r = await client.post(f"{API}/examples", json={"name": name, "description": description})
    assert r.status_code == 201, r.text
    return r.json()["data"]


async def test_crud_and_soft_delete(client: AsyncClient):
    created = await _create(client, "Widget", "first one")
    assert created["name"] == "Widget"
    example_id = created["id"]

    r = await client.get(f"{API}/examples/{example_id}")
    assert r.status_code == 200
    assert r.json()["data"]["description"] == "first one"

    r = await client.put(f"{API}/examples/{example_id}", json={"name": "Widget v2"})
    assert r.status_code == 200
    updated = r.json()["data"]
    assert updated["name"] == "Widget v2"
    assert updated["description"] == "first one"

    r = await client.delete(f"{API}/examples/{example_id}")
    assert r.status_code == 200
    assert r.json()["data"] == {"deleted": True}

    # 軟刪除後一律 404
    assert (await client.get(f"{API}/examples/{example_id}")).status_code == 404
    assert (await client.put(f"{API}/examples/{example_id}", json={"name": "x"})).status_code == 404
    assert (await client.delete(f"{API}/examples/{example_id}")).status_code == 404


async def test_get_unknown_example(client: AsyncClient):
    r = await client.get(f"{API}/examples/999999")
    assert r.status_code == 404
    assert r.json()["message"] == "Example not found"


async def test_create_validation(client: AsyncClient):
    r = await client.post(f"{API}/examples", json={"name": ""})
    assert r.status_code == 422


async def test_list_search_and_pagination(client: AsyncClient):
    tag = uuid.uuid4().hex[:8]
    for i in range(5):
        await _create(client, f"Gadget-{tag}-{i}")
    deleted = await _create(client, f"Gadget-{tag}-gone")
    await client.delete(f"{API}/examples/{deleted['id']}")

    r = await client.get(f"{API}/examples", params={"search": f"gadget-{tag}", "page": 1, "limit": 2})
    assert r.status_code == 200, r.text
    body = r.json()
    meta = body["meta"]
    assert meta["total"] == 5
    assert meta["page"] == 1
    assert meta["limit"] == 2
    assert meta["totalPages"] == 3
    # 最新的在前
    assert [e["name"] for e in body["data"]] == [f"Gadget-{tag}-4", f"Gadget-{tag}-3"]

    links = meta["links"]
    assert links["prev"] is None
    assert "page=2" in links["next"] and f"search=gadget-{tag}" in links["next"]
    assert "page=3" in links["last"]

    r = await client.get(f"{API}/examples", params={"search": f"gadget-{tag}", "page": 3, "limit": 2})
    body = r.json()
    assert [e["name"] for e in body["data"]] == [f"Gadget-{tag}-0"]
    assert body["meta"]["links"]["next"] is None
    assert "page=2" in body["meta"]["links"]["prev"]


async def test_search_treats_wildcards_literally(client: AsyncClient):
    tag = uuid.uuid4().hex[:8]
    await _create(client, f"Promo-{tag}-50%")
    await _create(client, f"Promo-{tag}-plain")
    await _create(client, f"Promo_{tag}")

    r = await client.get(f"{API}/examples", params={"search": "%", "limit": 100})
    assert r.status_code == 200, r.text
    names = [e["name"] for e in r.json()["data"]]
    assert f"Promo-{tag}-50%" in names
    assert all("%" in n for n in names)

    r = await client.get(f"{API}/examples", params={"search": "_", "limit": 100})
    names = [e["name"] for e in r.json()["data"]]
    assert f"Promo_{tag}" in names
    assert all("_" in n for n in names)

    r = await client.get(f"{API}/examples", params={"search": f"{tag}-50%"})
    assert [e["name"] for e in r.json()["data"]] == [f"Promo-{tag}-50%"]


async def test_list_limit_bounds(client: AsyncClient):
    assert (await client.get(f"{API}/examples", params={"limit": 0})).status_code == 422
    assert (await client.get(f"{API}/examples", params={"limit": 101})).status_code == 422
    assert (await client.get(f"{API}/examples", params={"page": 0})).status_code == 422

# tests/test_scripts.py
import pytest
from httpx import AsyncClient

from app.db.session import AsyncSessionLocal
from helpers import API
from scripts.generate_jwt_secrets import main as generate_main
from scripts.generate_jwt_secrets import rotate_jwt_secrets
from scripts.seed_examples import DEFAULT_COUNT, seed_examples


# === JWT 金鑰輪替 ===
def test_rotate_replaces_existing_keys_and_keeps_backup(tmp_path):
    env = tmp_path / ".env"
    original = "APP_NAME=demo\nSECRET_KEY=old-access\nREFRESH_SECRET_KEY=old-refresh\nLOG_LEVEL=INFO\n"
    env.write_text(original, encoding="utf-8")

    new_values = rotate_jwt_secrets(env)

    assert (tmp_path / ".env.bak").read_text(encoding="utf-8") == original
    lines = env.read_text(encoding="utf-8").splitlines()
    assert lines == [
        "APP_NAME=demo",
        f"SECRET_KEY={new_values['SECRET_KEY']}",
        f"REFRESH_SECRET_KEY={new_values['REFRESH_SECRET_KEY']}",
        "LOG_LEVEL=INFO",
    ]
    # token_hex(64) → 128 個 hex 字元，兩把互不相同
    assert all(len(v) == 128 for v in new_values.values())
    assert new_values["SECRET_KEY"] != new_values["REFRESH_SECRET_KEY"]


def test_rotate_appends_missing_keys(tmp_path):
    env = tmp_path / ".env"
    env.write_text("APP_NAME=demo", encoding="utf-8")

    new_values = rotate_jwt_secrets(env)

    content = env.read_text(encoding="utf-8")
    assert content.startswith("APP_NAME=demo\n")
    assert f"\nSECRET_KEY={new_values['SECRET_KEY']}\n" in content
    assert f"\nREFRESH_SECRET_KEY={new_values['REFRESH_SECRET_KEY']}\n" in content


def test_generate_fails_without_env_file(tmp_path):
    missing = tmp_path / ".env"
    assert generate_main(["--env-file", str(missing)]) == 1
    assert not missing.exists()
    assert not (tmp_path / ".env.bak").exists()


# === 範例資料 seed ===
@pytest.mark.anyio
async def test_seed_examples_fills_more_than_one_page(client: AsyncClient):
    before = (await client.get(f"{API}/examples", params={"limit": 1})).json()["meta"]["total"]

    async with AsyncSessionLocal() as db:
        assert await seed_examples(db) == DEFAULT_COUNT

    r = await client.get(f"{API}/examples", params={"search": "Example 10", "limit": 100})
    names = {e["name"] for e in r.json()["data"]}
    assert {"Example 10", "Example 100", "Example 103"} <= names

    r = await client.get(f"{API}/examples", params={"limit": 100})
    meta = r.json()["meta"]
    assert meta["total"] == before + DEFAULT_COUNT
    assert meta["totalPages"] >= 2

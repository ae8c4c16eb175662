# tests/helpers.py
import uuid
from typing import Any, Dict, Optional, Tuple

from httpx import AsyncClient
from sqlalchemy import select, update

from app.core.security import hash_token
from app.db.session import AsyncSessionLocal
from app.models.sessions import UserSession
from app.models.users import User
from app.queue.memory import InMemoryJobQueue

API = "/api/v1"
PASSWORD = "MyStrongPass1"


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}@example.com"


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def register(
    client: AsyncClient, email: Optional[str] = None, password: str = PASSWORD, name: str = "Kevin Test"
) -> Tuple[str, Dict[str, Any]]:
    email = email or unique_email()
    r = await client.post(f"{API}/auth/register", json={"name": name, "email": email, "password": password})
    assert r.status_code == 201, r.text
    return email, r.json()["data"]


async def login(client: AsyncClient, email: str, password: str = PASSWORD):
    return await client.post(f"{API}/auth/login", json={"email": email, "password": password})


async def login_pair(client: AsyncClient, email: str, password: str = PASSWORD) -> Tuple[str, str]:
    r = await login(client, email, password)
    assert r.status_code == 200, r.text
    tokens = r.json()["data"]["tokens"]
    return tokens["accessToken"], tokens["refreshToken"]


def queued_token(queue: InMemoryJobQueue, job_name: str, email: str) -> str:
    """取佇列中寄給該 email 的最新一筆 token。"""
    jobs = [j for j in queue.waiting_jobs(job_name) if j.data["email"] == email]
    assert jobs, f"no {job_name} job queued for {email}"
    return jobs[-1].data["token"]


async def get_user(email: str) -> User:
    async with AsyncSessionLocal() as db:
        res = await db.execute(select(User).where(User.email == email))
        return res.scalar_one()


async def set_user_fields(email: str, **values: Any) -> None:
    async with AsyncSessionLocal() as db:
        await db.execute(update(User).where(User.email == email).values(**values))
        await db.commit()


async def get_session_by_refresh(refresh_token: str) -> Optional[UserSession]:
    async with AsyncSessionLocal() as db:
        res = await db.execute(
            select(UserSession).where(UserSession.refresh_token_hash == hash_token(refresh_token))
        )
        return res.scalar_one_or_none()

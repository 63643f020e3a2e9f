"""
Shared fixtures for Alloqly backend integration tests.

By default the suite runs against a throwaway SQLite file through aiosqlite;
point TEST_DATABASE_URL at a Postgres database to run it there instead.
Each test function gets its own session. Tables are created with create_all
before the test and dropped afterwards.

The chat-completion API and the Supabase auth admin API are real httpx
clients wired to ``httpx.MockTransport`` handlers, so request building and
response parsing are exercised end to end.
"""
from __future__ import annotations

import json
import os
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple

import httpx
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

# Override DATABASE_URL *before* any app module is imported, so that
# settings.DATABASE_URL and the global engine point at the test DB.
TEST_DATABASE_URL = os.environ.get(
    "TEST_DATABASE_URL",
    "sqlite+aiosqlite:///./alloqly_test.db",
)
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["ALLOQLY_AI_API_KEY"] = ""
os.environ["SUPABASE_URL"] = ""
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = ""

from alloqly.database import Base, get_db  # noqa: E402
from alloqly.main import app  # noqa: E402
from alloqly.models import database_models  # noqa: E402,F401
from alloqly.services.llm_client import ChatCompletionService, get_llm_service  # noqa: E402
from alloqly.services.supabase_admin import SupabaseAdmin, get_supabase_admin  # noqa: E402


def _enable_sqlite_savepoints(engine) -> None:
    """pysqlite defers BEGIN; emit it ourselves so SAVEPOINTs nest correctly."""

    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


# ---------------------------------------------------------------------------
# Fake external APIs
# ---------------------------------------------------------------------------

class FakeCompletionAPI:
    """
    Stands in for ``POST {AI_BASE_URL}/chat/completions``.

    Queue replies with ``reply``/``reply_json``/``fail``; when the queue is
    empty the last reply is repeated. Every request body is kept in
    ``requests`` for assertions.
    """

    BASE_URL = "https://ai.test/v1"

    def __init__(self) -> None:
        self.requests: List[Dict[str, Any]] = []
        self._replies: List[Tuple[int, Any]] = []
        self._last: Tuple[int, Any] = (200, self._completion("ok"))

    @staticmethod
    def _completion(content: Optional[str]) -> Dict[str, Any]:
        return {"choices": [{"message": {"role": "assistant", "content": content}}]}

    def reply(self, content: Optional[str]) -> None:
        self._replies.append((200, self._completion(content)))

    def reply_json(self, payload: Dict[str, Any]) -> None:
        self.reply(json.dumps(payload))

    def fail(self, status_code: int, body: str = "upstream error") -> None:
        self._replies.append((status_code, {"error": {"message": body}}))

    def handler(self, request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith("/chat/completions")
        self.requests.append(json.loads(request.content))
        if self._replies:
            self._last = self._replies.pop(0)
        status_code, body = self._last
        return httpx.Response(status_code, json=body)

    def service(self) -> ChatCompletionService:
        return ChatCompletionService(
            api_key="test-key",
            base_url=self.BASE_URL,
            model="test-model",
            transport=httpx.MockTransport(self.handler),
        )


class FakeSupabaseAuth:
    """Stands in for the GoTrue admin API; ``status_code`` controls every reply."""

    URL = "https://supabase.test"

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.status_code = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={})

    def admin(self) -> SupabaseAdmin:
        return SupabaseAdmin(
            self.URL, "service-role-key", transport=httpx.MockTransport(self.handler)
        )


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a DB session for each test. After the test, all tables are dropped
    so each test starts with a clean slate.
    """
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
    if TEST_DATABASE_URL.startswith("sqlite"):
        _enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app with the DB dependency
    overridden to use the per-test session. AI and Supabase admin start out
    unconfigured; the ``ai`` and ``supabase`` fixtures switch them on.
    """

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_llm_service] = lambda: ChatCompletionService(api_key="")
    app.dependency_overrides[get_supabase_admin] = lambda: None

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def ai(client: AsyncClient) -> FakeCompletionAPI:
    api = FakeCompletionAPI()
    app.dependency_overrides[get_llm_service] = api.service
    return api


@pytest_asyncio.fixture
async def supabase(client: AsyncClient) -> FakeSupabaseAuth:
    fake = FakeSupabaseAuth()
    app.dependency_overrides[get_supabase_admin] = fake.admin
    return fake


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

AUTH_HEADERS = {
    "X-User-Id": "teacher-1",
    "X-User-Email": "teacher1@example.com",
    "X-User-Name": "Ms Rivera",
}

AUTH_HEADERS_USER2 = {
    "X-User-Id": "teacher-2",
    "X-User-Email": "teacher2@example.com",
    "X-User-Name": "Mr Okafor",
}

STUDENT_HEADERS = {
    "X-User-Id": "student-1",
    "X-User-Email": "sam@example.com",
    "X-User-Name": "Sam",
}

TEACHER_PROFILE = {
    "role": "teacher",
    "schoolName": "Hillside Middle",
    "district": "North District",
    "subjects": ["Science"],
    "gradesTaught": ["7"],
}

STUDENT_PROFILE = {
    "role": "student",
    "schoolName": "Hillside Middle",
    "gradeLevel": "7",
    "accommodations": {"selections": ["Extended time", "Frequent breaks"], "notes": ""},
}


async def onboard(client: AsyncClient, headers: Dict[str, str], payload: Dict[str, Any]) -> None:
    resp = await client.post("/api/profile", json=payload, headers=headers)
    assert resp.status_code == 200, resp.text


async def onboard_teacher(client: AsyncClient, headers: Optional[Dict[str, str]] = None) -> None:
    await onboard(client, headers or AUTH_HEADERS, TEACHER_PROFILE)


async def create_class(
    client: AsyncClient, name: str = "Period 2 Science", headers: Optional[Dict[str, str]] = None
) -> str:
    resp = await client.post("/api/classes", json={"name": name}, headers=headers or AUTH_HEADERS)
    assert resp.status_code == 201, resp.text
    return resp.json()["class"]["id"]


async def issue_code(client: AsyncClient, class_id: str, headers: Optional[Dict[str, str]] = None) -> str:
    resp = await client.post(f"/api/classes/{class_id}/code", headers=headers or AUTH_HEADERS)
    assert resp.status_code == 200, resp.text
    return resp.json()["code"]

"""Tests for POST /api/chat."""
import pytest
from httpx import AsyncClient

from alloqly.services.personas import Persona, quiz_system_prompt
from tests.conftest import FakeCompletionAPI


@pytest.mark.asyncio
async def test_chat_missing_prompt(client: AsyncClient):
    resp = await client.post("/api/chat", json={"disability": "adhd"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_chat_without_key_is_500(client: AsyncClient):
    resp = await client.post("/api/chat", json={"prompt": "Fractions"})
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Missing ALLOQLY_AI_API_KEY."


@pytest.mark.asyncio
async def test_chat_defaults_to_adhd(client: AsyncClient, ai: FakeCompletionAPI):
    ai.reply("  1. What is 1/2 + 1/4?  ")
    resp = await client.post("/api/chat", json={"prompt": "Fractions"})
    assert resp.status_code == 200
    assert resp.json() == {"output": "1. What is 1/2 + 1/4?", "persona": "adhd"}
    assert ai.requests[0]["messages"][0]["content"] == quiz_system_prompt(Persona.ADHD)
    assert ai.requests[0]["messages"][1] == {"role": "user", "content": "Fractions"}


@pytest.mark.asyncio
async def test_chat_uses_requested_persona(client: AsyncClient, ai: FakeCompletionAPI):
    resp = await client.post("/api/chat", json={"prompt": "Fractions", "disability": "Dyslexia"})
    assert resp.json()["persona"] == "dyslexia"
    assert ai.requests[0]["messages"][0]["content"] == quiz_system_prompt(Persona.DYSLEXIA)


@pytest.mark.asyncio
async def test_chat_unknown_persona_is_generic(client: AsyncClient, ai: FakeCompletionAPI):
    resp = await client.post("/api/chat", json={"prompt": "Fractions", "disability": "unknown"})
    assert resp.json()["persona"] == "generic"


@pytest.mark.asyncio
async def test_chat_upstream_error_is_502(client: AsyncClient, ai: FakeCompletionAPI):
    ai.fail(500, "model overloaded")
    resp = await client.post("/api/chat", json={"prompt": "Fractions"})
    assert resp.status_code == 502
    detail = resp.json()["detail"]
    assert "HTTP 500" in detail
    assert "model overloaded" in detail


@pytest.mark.asyncio
async def test_chat_empty_model_output_is_200(client: AsyncClient, ai: FakeCompletionAPI):
    ai.reply("")
    resp = await client.post("/api/chat", json={"prompt": "Fractions"})
    assert resp.status_code == 200
    assert resp.json()["output"] == ""


@pytest.mark.asyncio
async def test_chat_null_model_output_is_200(client: AsyncClient, ai: FakeCompletionAPI):
    ai.reply(None)
    resp = await client.post("/api/chat", json={"prompt": "Fractions"})
    assert resp.status_code == 200
    assert resp.json()["output"] == ""

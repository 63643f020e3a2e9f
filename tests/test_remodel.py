"""Tests for POST /api/remodel and the Remodeler service."""
import pytest
from httpx import AsyncClient

from alloqly.services.remodeler import (
    FALLBACK_ACCOMMODATIONS,
    FALLBACK_MISSIONS,
    FALLBACK_SUMMARY,
)
from tests.conftest import AUTH_HEADERS, AUTH_HEADERS_USER2, FakeCompletionAPI

ASSIGNMENT = "Write a five-paragraph essay comparing two ecosystems."

MODEL_PAYLOAD = {
    "summary": "Broke the essay into short timed stages.",
    "accommodations": ["Timer per paragraph", "Checklist", "Sentence starters", "Word bank", "Movement break", "Extra"],
    "missions": ["Pick two ecosystems", "List three facts each", "Draft body paragraphs", "Write the conclusion", "Extra"],
}


@pytest.mark.asyncio
async def test_remodel_missing_assignment(client: AsyncClient):
    resp = await client.post("/api/remodel", json={"profile": "adhd"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Missing assignment content."


@pytest.mark.asyncio
async def test_remodel_non_string_assignment(client: AsyncClient):
    resp = await client.post("/api/remodel", json={"assignment": {"text": "x"}, "profile": "adhd"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Missing assignment content."


@pytest.mark.asyncio
async def test_remodel_unsupported_profile(client: AsyncClient):
    resp = await client.post("/api/remodel", json={"assignment": ASSIGNMENT, "profile": "telepathy"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Unsupported learner profile."


@pytest.mark.asyncio
async def test_remodel_without_key_returns_fallback(client: AsyncClient):
    resp = await client.post("/api/remodel", json={"assignment": ASSIGNMENT, "profile": "Dyslexia"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["source"] == "mock"
    assert data["variant"] == "Dyslexia"
    assert data["summary"] == FALLBACK_SUMMARY
    assert data["accommodations"] == FALLBACK_ACCOMMODATIONS
    assert data["missions"] == FALLBACK_MISSIONS


@pytest.mark.asyncio
async def test_remodel_with_model_output(client: AsyncClient, ai: FakeCompletionAPI):
    ai.reply_json(MODEL_PAYLOAD)
    resp = await client.post("/api/remodel", json={"assignment": ASSIGNMENT, "profile": "adhd"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["source"] == "openai"
    assert data["variant"] == "ADHD"
    assert data["summary"] == MODEL_PAYLOAD["summary"]
    assert len(data["accommodations"]) == 5
    assert len(data["missions"]) == 4

    sent = ai.requests[0]
    assert sent["model"] == "test-model"
    assert sent["temperature"] == 0.7
    assert sent["response_format"] == {"type": "json_object"}
    assert ASSIGNMENT in sent["messages"][1]["content"]


@pytest.mark.asyncio
async def test_remodel_truncates_long_assignments(client: AsyncClient, ai: FakeCompletionAPI):
    ai.reply_json(MODEL_PAYLOAD)
    long_text = "A" * 1800 + "TAIL-MARKER"
    await client.post("/api/remodel", json={"assignment": long_text, "profile": "autism"})
    user_prompt = ai.requests[0]["messages"][1]["content"]
    assert "A" * 1800 in user_prompt
    assert "TAIL-MARKER" not in user_prompt


@pytest.mark.asyncio
async def test_remodel_partial_output_falls_back_per_field(client: AsyncClient, ai: FakeCompletionAPI):
    ai.reply_json({"summary": "Only a summary this time."})
    resp = await client.post("/api/remodel", json={"assignment": ASSIGNMENT, "profile": "visual"})
    data = resp.json()
    assert data["source"] == "openai"
    assert data["summary"] == "Only a summary this time."
    assert data["accommodations"] == FALLBACK_ACCOMMODATIONS
    assert data["missions"] == FALLBACK_MISSIONS


@pytest.mark.asyncio
async def test_remodel_unparsable_output_returns_fallback(client: AsyncClient, ai: FakeCompletionAPI):
    ai.reply("I am not JSON")
    resp = await client.post("/api/remodel", json={"assignment": ASSIGNMENT, "profile": "hearing"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["source"] == "mock"
    assert data["variant"] == "Hearing"


@pytest.mark.asyncio
async def test_remodel_upstream_error_returns_fallback(client: AsyncClient, ai: FakeCompletionAPI):
    ai.fail(500)
    resp = await client.post("/api/remodel", json={"assignment": ASSIGNMENT, "profile": "adhd"})
    assert resp.status_code == 200
    assert resp.json()["source"] == "mock"


@pytest.mark.asyncio
async def test_remodel_rate_limit_keeps_429(client: AsyncClient, ai: FakeCompletionAPI):
    ai.fail(429, "rate limited")
    resp = await client.post("/api/remodel", json={"assignment": ASSIGNMENT, "profile": "adhd"})
    assert resp.status_code == 429
    assert resp.json()["source"] == "mock"
    assert resp.json()["summary"] == FALLBACK_SUMMARY


@pytest.mark.asyncio
async def test_remodel_stores_variant_for_owned_assignment(client: AsyncClient, ai: FakeCompletionAPI):
    resp = await client.post(
        "/api/assignments",
        json={"title": "Ecosystems essay", "profile": "generic", "content": ASSIGNMENT},
        headers=AUTH_HEADERS,
    )
    assignment_id = resp.json()["assignment"]["id"]

    ai.reply_json(MODEL_PAYLOAD)
    resp = await client.post(
        "/api/remodel",
        json={"assignment": ASSIGNMENT, "profile": "adhd", "assignment_id": assignment_id},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 200
    variant_id = resp.json()["variant_id"]
    assert variant_id

    resp = await client.get(f"/api/assignments/{assignment_id}/variants", headers=AUTH_HEADERS)
    variants = resp.json()["variants"]
    assert [v["id"] for v in variants] == [variant_id]
    assert variants[0]["persona"] == "adhd"
    assert variants[0]["source"] == "openai"


@pytest.mark.asyncio
async def test_remodel_assignment_id_requires_owner(client: AsyncClient):
    resp = await client.post(
        "/api/assignments",
        json={"title": "Ecosystems essay", "profile": "generic"},
        headers=AUTH_HEADERS,
    )
    assignment_id = resp.json()["assignment"]["id"]
    body = {"assignment": ASSIGNMENT, "profile": "adhd", "assignment_id": assignment_id}

    resp = await client.post("/api/remodel", json=body, headers=AUTH_HEADERS_USER2)
    assert resp.status_code == 404

    resp = await client.post("/api/remodel", json=body)
    assert resp.status_code == 404

"""Tests for POST /api/assignments/extract."""
import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_extract_plain_text_upload(client: AsyncClient):
    resp = await client.post(
        "/api/assignments/extract",
        files={"file": ("reading.txt", b"Read pages 4-6.\n\nSummarise the main idea.", "text/plain")},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["text"] == "Read pages 4-6. Summarise the main idea."
    assert data["meta"]["fileName"] == "reading.txt"
    assert data["meta"]["wordCount"] == 7
    assert data["meta"]["snippet"] == data["text"]


@pytest.mark.asyncio
async def test_extract_without_file_is_400(client: AsyncClient):
    resp = await client.post("/api/assignments/extract", data={"other": "value"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "No file found in request."


@pytest.mark.asyncio
async def test_extract_empty_file_is_400(client: AsyncClient):
    resp = await client.post(
        "/api/assignments/extract",
        files={"file": ("empty.txt", b"", "text/plain")},
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Uploaded file is empty."


@pytest.mark.asyncio
async def test_extract_oversized_file_is_400(client: AsyncClient):
    resp = await client.post(
        "/api/assignments/extract",
        files={"file": ("huge.txt", b"a" * (5 * 1024 * 1024 + 10), "text/plain")},
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "File is too large. Try a file under 5MB."


@pytest.mark.asyncio
async def test_extract_unreadable_file_is_422(client: AsyncClient):
    resp = await client.post(
        "/api/assignments/extract",
        files={"file": ("blank.md", b"\n\n   \n", "text/markdown")},
    )
    assert resp.status_code == 422
    assert "couldn't extract readable text" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_extract_corrupt_docx_is_422(client: AsyncClient):
    resp = await client.post(
        "/api/assignments/extract",
        files={"file": ("x.docx", b"PK\x03\x04garbage", "application/octet-stream")},
    )
    assert resp.status_code == 422
    assert resp.json()["detail"].startswith("Cannot open DOCX file")

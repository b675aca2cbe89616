"""End-to-end tests of the HTTP API."""

import asyncio
from typing import AsyncGenerator

import httpx
import pytest

from conftest import resume_text
from server.api_server import create_app, status_for
from shared.exceptions.errors import (
    AccessDenied,
    EmbeddingRejected,
    EngineError,
    GenerationUnavailable,
    InvalidInput,
    StorageUnavailable,
)

API_HEADERS = {"X-Api-Key": "test-key", "X-User-Id": "alice"}


@pytest.fixture
async def client(helper_config) -> AsyncGenerator[httpx.AsyncClient, None]:
    app = create_app(helper_config)
    # ASGITransport does not run the lifespan on its own
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test", headers=API_HEADERS) as http:
            yield http


async def _wait_for_status(client: httpx.AsyncClient, document_id: str, timeout: float = 5.0) -> dict:
    for _ in range(int(timeout / 0.02)):
        response = await client.get(f"/knowledge-base/documents/{document_id}")
        body = response.json()
        if body["status"] != "processing":
            return body
        await asyncio.sleep(0.02)
    raise AssertionError(f"Document {document_id} still processing")


class TestKnowledgeBaseApi:
    async def test_upload_then_poll_until_embedded(self, client):
        response = await client.post(
            "/knowledge-base/documents",
            files={"file": ("resume.txt", resume_text(2000).encode(), "text/plain")},
            data={"category": "resume-version"},
        )

        assert response.status_code == 202
        accepted = response.json()
        assert accepted["status"] == "processing"
        assert accepted["filename"] == "resume.txt"

        done = await _wait_for_status(client, accepted["id"])
        assert done["status"] == "embedded"
        assert done["chunk_count"] == 5

        stats = (await client.get("/knowledge-base/stats")).json()
        assert stats["documents_by_category"]["resume-version"] == 1
        assert stats["total_vectors"] == 5

        listing = (await client.get("/knowledge-base/documents")).json()
        assert listing["total"] == 1

    async def test_delete_document(self, client):
        response = await client.post(
            "/knowledge-base/documents",
            files={"file": ("plan.md", b"# Plan\n\nLead a team.", "text/markdown")},
            data={"category": "career-plan"},
        )
        document_id = response.json()["id"]
        await _wait_for_status(client, document_id)

        deleted = await client.delete(f"/knowledge-base/documents/{document_id}")

        assert deleted.status_code == 200
        assert deleted.json() == {"id": document_id, "filename": "plan.md", "deleted": True}
        assert (await client.get(f"/knowledge-base/documents/{document_id}")).status_code == 404

    async def test_invalid_category_is_bad_request(self, client):
        response = await client.post(
            "/knowledge-base/documents",
            files={"file": ("cv.txt", b"text", "text/plain")},
            data={"category": "cover-letter"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInput"

    async def test_oversized_upload_is_rejected_before_ingestion(self, make_config):
        app = create_app(make_config(KB_MAX_UPLOAD_BYTES=64))
        async with app.router.lifespan_context(app):
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test", headers=API_HEADERS) as http:
                response = await http.post(
                    "/knowledge-base/documents",
                    files={"file": ("cv.txt", b"x" * 65, "text/plain")},
                    data={"category": "resume-version"},
                )

                assert response.status_code == 400
                assert response.json()["error"] == "InvalidInput"
                assert (await http.get("/knowledge-base/documents")).json()["total"] == 0

    async def test_unknown_document_is_not_found(self, client):
        response = await client.get("/knowledge-base/documents/missing")

        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

    async def test_wrong_api_key_is_unauthorized(self, client):
        response = await client.get("/knowledge-base/documents", headers={"X-Api-Key": "nope"})

        assert response.status_code == 401


class TestMemoryApi:
    async def test_record_and_query(self, client):
        recorded = await client.post("/memory", json={"content": "Got an offer from Acme, deadline is Friday"})

        assert recorded.status_code == 201
        memory = recorded.json()
        assert memory["user_id"] == "alice"
        assert memory["category"] == "career"
        assert memory["importance"] == 0.8

        queried = await client.post("/memory/query", json={"category": "career"})
        assert queried.json()["total"] == 1
        assert queried.json()["memories"][0]["id"] == memory["id"]

        fetched = await client.get(f"/memory/{memory['id']}")
        assert fetched.json() == memory

    async def test_other_users_partition_is_forbidden(self, client):
        response = await client.post("/memory/query", json={"user_id": "bob"})

        assert response.status_code == 403
        assert response.json()["error"] == "AccessDenied"

    async def test_memory_of_other_user_is_not_found(self, client):
        memory = (await client.post("/memory", json={"content": "private"}, headers={"X-User-Id": "bob"})).json()

        response = await client.get(f"/memory/{memory['id']}")

        assert response.status_code == 404

    async def test_blank_user_header_is_bad_request(self, client):
        response = await client.post("/memory", json={"content": "note"}, headers={"X-User-Id": "  "})

        assert response.status_code == 400


class TestContextApi:
    async def test_context_has_all_fields(self, client):
        await client.post("/memory", json={"content": "Interview at Globex", "metadata": {"location": "Berlin"}})

        response = await client.post("/context", json={"query": "Globex interview"})

        assert response.status_code == 200
        body = response.json()
        assert set(body) == {"recent_memories", "relevant_knowledge", "career_insights", "personal_context"}
        assert body["personal_context"] == {"location": "Berlin"}

    async def test_chat_without_generator_is_bad_gateway(self, client):
        response = await client.post("/chat", json={"message": "What next?"})

        assert response.status_code == 502
        assert response.json()["error"] == "GenerationUnavailable"


class TestErrorMapping:
    @pytest.mark.parametrize(
        "error, status",
        [
            (InvalidInput("x"), 400),
            (AccessDenied("x"), 403),
            (EmbeddingRejected("x"), 422),
            (GenerationUnavailable("x"), 502),
            (StorageUnavailable("x"), 503),
            (EngineError("x"), 500),
        ],
    )
    def test_status_for(self, error, status):
        assert status_for(error) == status

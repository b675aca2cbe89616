"""Pytest configuration and fixtures for engine tests."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest

from services.kb_ingestion.IngestionService import IngestionService
from services.memory.MemoryService import MemoryService
from shared.clients.embed.hashing.EmbedClientHashing import EmbedClientHashing
from shared.clients.extract.TextExtractor import TextExtractor
from shared.clients.rag.local.RAGClientLocal import RAGClientLocal
from shared.exceptions.errors import EmbeddingUnavailable
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.document import DocumentStatus, KnowledgeDocument
from shared.models.retry import RetryPolicy
from shared.stores.DocumentStore import DocumentStore
from shared.stores.MemoryStore import MemoryStore

BASE_CONFIG = {
    "EMBED_ENGINE": "hashing",
    "EMBED_DIMENSION": 64,
    "RAG_ENGINE": "local",
    "KB_WINDOW_TOKENS": 500,
    "KB_OVERLAP_TOKENS": 50,
    "KB_RETRY_BACKOFF": 0,
    "API_SERVER_API_KEY": "test-key",
}

RESUME_SENTENCE = "Led a platform team of six engineers and shipped a billing service in Python. "


def resume_text(length: int = 2000) -> str:
    """Deterministic resume-like text of exactly length characters."""
    return (RESUME_SENTENCE * (length // len(RESUME_SENTENCE) + 1))[:length]


# -------------------------------------------------------------------------
# Configuration Fixtures
# -------------------------------------------------------------------------


@pytest.fixture(scope="session")
def logger():
    return setup_logging("debug")


@pytest.fixture
def make_config(logger):
    """Factory for HelperConfig instances on top of BASE_CONFIG."""

    def _make(**overrides) -> HelperConfig:
        return HelperConfig(logger=logger, overrides={**BASE_CONFIG, **overrides})

    return _make


@pytest.fixture
def helper_config(make_config) -> HelperConfig:
    return make_config()


# -------------------------------------------------------------------------
# Client Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
def embed_client(helper_config) -> EmbedClientHashing:
    return EmbedClientHashing(helper_config=helper_config)


@pytest.fixture
async def rag_client(helper_config) -> AsyncGenerator[RAGClientLocal, None]:
    client = RAGClientLocal(helper_config=helper_config)
    await client.boot()
    yield client
    await client.close()


class FlakyEmbedClient(EmbedClientHashing):
    """Hashing embedder that fails the first `failures` backend calls."""

    def __init__(self, helper_config: HelperConfig, failures: int, error: type = EmbeddingUnavailable):
        super().__init__(helper_config=helper_config)
        self.failures = failures
        self.error = error
        self.calls = 0

    async def _do_embed_texts(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error("embedding backend down")
        return await super()._do_embed_texts(texts)


class BlockingEmbedClient(EmbedClientHashing):
    """Hashing embedder that waits until the test releases it."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def _do_embed_texts(self, texts: list[str]) -> list[list[float]]:
        self.started.set()
        await self.release.wait()
        return await super()._do_embed_texts(texts)


# -------------------------------------------------------------------------
# Service Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
def make_ingestion(helper_config, rag_client, embed_client):
    """Factory for IngestionService instances sharing the booted vector store."""

    def _make(embed=None, retry_policy: RetryPolicy | None = None, config: HelperConfig | None = None) -> IngestionService:
        cfg = config or helper_config
        return IngestionService(
            helper_config=cfg,
            document_store=DocumentStore(helper_config=cfg),
            rag_client=rag_client,
            embed_client=embed or embed_client,
            extractor=TextExtractor(helper_config=cfg),
            retry_policy=retry_policy,
        )

    return _make


@pytest.fixture
def ingestion_service(make_ingestion) -> IngestionService:
    return make_ingestion()


class StepClock:
    """Clock that advances by a fixed step on every call."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(minutes=1)):
        self.now = start or datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def memory_service(helper_config, clock) -> MemoryService:
    return MemoryService(helper_config=helper_config, memory_store=MemoryStore(helper_config=helper_config), clock=clock)


async def wait_terminal(service: IngestionService, document_id: str, timeout: float = 5.0) -> KnowledgeDocument:
    """Poll until a document leaves status processing."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        doc = service.get_document(document_id)
        if doc.status is not DocumentStatus.PROCESSING:
            return doc
        if loop.time() > deadline:
            raise AssertionError(f"Document {document_id} still processing after {timeout}s")
        await asyncio.sleep(0.01)

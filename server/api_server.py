"""FastAPI application entry point for the knowledge base engine."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from services.context.ChatService import ChatService
from services.context.ContextAssembler import ContextAssembler
from services.kb_ingestion.IngestionService import IngestionService
from services.memory.MemoryService import MemoryService
from server.routers.ContextRouter import router as context_router
from server.routers.KnowledgeBaseRouter import router as knowledge_base_router
from server.routers.MemoryRouter import router as memory_router
from server.models.responses import ErrorResponse
from shared.clients.ClientInterface import ClientInterface
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.extract.TextExtractor import TextExtractor
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.exceptions.errors import (
    AccessDenied,
    EmbeddingRejected,
    EmbeddingUnavailable,
    EngineError,
    ExtractionFailed,
    GenerationUnavailable,
    InvalidInput,
    NotFound,
    StorageUnavailable,
    UnsupportedFormat,
)
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.stores.DocumentStore import DocumentStore
from shared.stores.MemoryStore import MemoryStore

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")

# most specific first
ERROR_STATUS: list[tuple[type[EngineError], int]] = [
    (InvalidInput, 400),
    (AccessDenied, 403),
    (NotFound, 404),
    (UnsupportedFormat, 415),
    (EmbeddingRejected, 422),
    (ExtractionFailed, 422),
    (GenerationUnavailable, 502),
    (EmbeddingUnavailable, 503),
    (StorageUnavailable, 503),
]


def status_for(exc: EngineError) -> int:
    for error_class, status_code in ERROR_STATUS:
        if isinstance(exc, error_class):
            return status_code
    return 500


async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    """Translate engine errors into JSON responses."""
    status_code = status_for(exc)
    if status_code >= 500:
        logging.warning("%s %s failed: %s: %s", request.method, request.url.path, type(exc).__name__, exc)
    body = ErrorResponse(detail=str(exc), error=type(exc).__name__)
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def check_connections(
    embed_client: EmbedClientInterface,
    rag_client: RAGClientInterface,
    llm_client: ClientInterface | None,
) -> None:
    """Check connectivity to all configured backends on startup.

    Embedder and generator failures are non-fatal: uploads then end in status
    error and context assembly degrades, but the server stays up. Without a
    vector store nothing can be served.

    Raises:
        StorageUnavailable: If the vector store is not usable.
    """
    if not await rag_client.do_healthcheck():
        raise StorageUnavailable(f"RAG client '{rag_client.get_engine_name()}' is not usable. Cannot serve requests.")

    if not await embed_client.do_healthcheck():
        logging.warning(
            "Embed client '%s' is not reachable. Ingestion and knowledge retrieval will fail.",
            embed_client.get_engine_name(),
        )

    if llm_client is not None and not await llm_client.do_healthcheck():
        logging.warning("LLM client '%s' is not reachable. /chat will fail.", llm_client.get_engine_name())


def create_app(helper_config: HelperConfig | None = None) -> FastAPI:
    """Build the application.

    Args:
        helper_config (HelperConfig | None): Configuration to use instead of the
            process environment.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # when the app starts
        config = helper_config or HelperConfig(logger=logging)
        app.state.logging = config.get_logger()
        app.state.helper_config = config

        embed_client = EmbedClientManager(helper_config=config).get_client()
        rag_client = RAGClientManager(helper_config=config).get_client()
        llm_client = LLMClientManager(helper_config=config).get_client()
        clients = [client for client in (embed_client, rag_client, llm_client) if client is not None]

        logging.info("Booting all clients...")
        for client in clients:
            await client.boot()
        logging.info("All clients booted successfully.")

        document_store = DocumentStore(helper_config=config)
        memory_store = MemoryStore(helper_config=config)
        document_store.boot()
        memory_store.boot()

        memory_service = MemoryService(helper_config=config, memory_store=memory_store)
        context_assembler = ContextAssembler(
            helper_config=config,
            memory_service=memory_service,
            rag_client=rag_client,
            embed_client=embed_client,
        )
        app.state.embed_client = embed_client
        app.state.rag_client = rag_client
        app.state.llm_client = llm_client
        app.state.memory_service = memory_service
        app.state.context_assembler = context_assembler
        app.state.ingestion_service = IngestionService(
            helper_config=config,
            document_store=document_store,
            rag_client=rag_client,
            embed_client=embed_client,
            extractor=TextExtractor(helper_config=config),
        )
        app.state.chat_service = ChatService(
            helper_config=config,
            context_assembler=context_assembler,
            memory_service=memory_service,
            llm_client=llm_client,
        )

        await check_connections(embed_client, rag_client, llm_client)
        await app.state.ingestion_service.reconcile()

        # while the app is running...
        yield

        # when the app shuts down, stop ingestions and close all clients
        logging.info("Shutting down, closing all clients...")
        await app.state.ingestion_service.close()
        for client in clients:
            await client.close()
        logging.info("All clients closed.")

    app = FastAPI(
        title="kb_engine",
        description=(
            "Knowledge base ingestion and memory retrieval engine. Uploaded career documents "
            "are chunked, embedded and served through similarity search; per-user memories "
            "are scored and merged with knowledge hits into one context for an answer generator."
        ),
        version=app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(EngineError, engine_error_handler)

    app.include_router(knowledge_base_router)
    app.include_router(memory_router)
    app.include_router(context_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting kb_engine API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)

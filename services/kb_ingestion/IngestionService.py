"""Document ingestion pipeline.

Accepts uploaded bytes, extracts and chunks the text, embeds every chunk with a
bounded retry policy and stages the vectors in the RAG client. A document becomes
searchable only when all of its chunks are stored: the publish and the
processing -> embedded transition happen together under a per-document lock. Any
failure or cancellation rolls the staged vectors back and leaves the document in
status error (or removes it, when it was deleted meanwhile).
"""

import asyncio
import os
import uuid
from datetime import datetime, timezone

from services.kb_ingestion.TextChunker import ChunkingConfig, TextChunker
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.extract.TextExtractor import TextExtractor
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.exceptions.errors import EngineError, ExtractionFailed, InvalidInput, NotFound, StorageUnavailable
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import (
    ChunkSpan,
    DocumentCategory,
    DocumentStatus,
    KnowledgeBaseStats,
    KnowledgeDocument,
)
from shared.models.retry import RetryPolicy
from shared.stores.DocumentStore import DocumentStore

GENERIC_CONTENT_TYPE = "application/octet-stream"


def _make_chunk_id(document_id: str, chunk_index: int) -> str:
    """Build a deterministic UUID5 chunk id so re-staging a chunk overwrites it."""
    return str(uuid.uuid5(uuid.NAMESPACE_OID, f"{document_id}:{chunk_index}"))


def _now() -> datetime:
    return datetime.now(timezone.utc)


class IngestionService:
    """Owns the document lifecycle from upload to embedded | error."""

    def __init__(
        self,
        helper_config: HelperConfig,
        document_store: DocumentStore,
        rag_client: RAGClientInterface,
        embed_client: EmbedClientInterface,
        extractor: TextExtractor,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._document_store = document_store
        self._rag_client = rag_client
        self._embed_client = embed_client
        self._extractor = extractor

        self._chunker = TextChunker(ChunkingConfig(
            window_tokens=int(helper_config.get_number_val("KB_WINDOW_TOKENS", default=1000)),
            overlap_tokens=int(helper_config.get_number_val("KB_OVERLAP_TOKENS", default=200)),
            boundary_tolerance=float(helper_config.get_number_val("KB_BOUNDARY_TOLERANCE", default=0.1)),
        ))
        self._retry_policy = retry_policy or RetryPolicy(
            max_retries=int(helper_config.get_number_val("KB_MAX_RETRIES", default=3)),
            retry_backoff=float(helper_config.get_number_val("KB_RETRY_BACKOFF", default=0.5)),
            backoff_factor=float(helper_config.get_number_val("KB_RETRY_BACKOFF_FACTOR", default=2.0)),
            max_backoff=float(helper_config.get_number_val("KB_RETRY_MAX_BACKOFF", default=30.0)),
        )
        self._embed_fanout = max(1, int(helper_config.get_number_val("KB_EMBED_FANOUT", default=5)))
        self._max_upload_bytes = int(helper_config.get_number_val("KB_MAX_UPLOAD_BYTES", default=10 * 1024 * 1024))
        self._default_owner_id = helper_config.get_string_val("KB_DEFAULT_OWNER_ID", default="admin")

        self._ingest_sem = asyncio.Semaphore(max(1, int(helper_config.get_number_val("KB_INGEST_CONCURRENCY", default=3))))
        self._doc_locks: dict[str, asyncio.Lock] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    def get_max_upload_bytes(self) -> int:
        return self._max_upload_bytes

    def list_documents(self) -> list[KnowledgeDocument]:
        """All documents, newest upload first."""
        return self._document_store.list_all()

    def get_document(self, document_id: str) -> KnowledgeDocument:
        """
        Raises:
            NotFound: If the document does not exist.
        """
        return self._document_store.get(document_id)

    async def get_stats(self) -> KnowledgeBaseStats:
        """Recompute statistics from committed state.

        Category counts and chunk totals include embedded documents only;
        documents_by_status covers every document.

        Raises:
            StorageUnavailable: If the vector count cannot be read.
        """
        documents = self._document_store.snapshot()
        by_category = {category.value: 0 for category in DocumentCategory}
        by_status = {status.value: 0 for status in DocumentStatus}
        total_chunks = 0
        for doc in documents:
            by_status[doc.status.value] += 1
            if doc.status is DocumentStatus.EMBEDDED:
                by_category[doc.category.value] += 1
                total_chunks += doc.chunk_count

        return KnowledgeBaseStats(
            documents_by_category=by_category,
            documents_by_status=by_status,
            total_documents=len(documents),
            total_chunks=total_chunks,
            total_vectors=await self._rag_client.do_count(),
        )

    def _lock_for(self, document_id: str) -> asyncio.Lock:
        return self._doc_locks.setdefault(document_id, asyncio.Lock())

    ##########################################
    ################ UPLOAD ##################
    ##########################################

    def _accept(
        self,
        filename: str,
        raw_bytes: bytes,
        category: str | DocumentCategory,
        owner_id: str | None,
        mime_type: str | None,
    ) -> KnowledgeDocument:
        """Validate an upload and register it as processing.

        Raises:
            InvalidInput: On an unknown category, a missing file name, an empty or
                oversized body.
        """
        parsed_category = DocumentCategory.parse(category)
        name = os.path.basename((filename or "").strip())
        if not name:
            raise InvalidInput("A file name is required.")
        if not raw_bytes:
            raise InvalidInput(f"Uploaded file '{name}' is empty.")
        if len(raw_bytes) > self._max_upload_bytes:
            raise InvalidInput(
                f"Uploaded file '{name}' has {len(raw_bytes)} bytes, the limit is {self._max_upload_bytes}."
            )

        # the extension is more reliable than the content type browsers send
        guessed = self._extractor.get_content_type(name)
        mime = guessed if guessed != GENERIC_CONTENT_TYPE else (mime_type or GENERIC_CONTENT_TYPE)

        doc = KnowledgeDocument(
            id=uuid.uuid4().hex,
            filename=name,
            category=parsed_category,
            size_bytes=len(raw_bytes),
            uploaded_at=_now(),
            status=DocumentStatus.PROCESSING,
            owner_id=owner_id or self._default_owner_id,
            mime_type=mime,
        )
        self._document_store.add(doc)
        self.logging.info(
            "Accepted document id=%s ('%s', %s, %d bytes).", doc.id, doc.filename, doc.category.value, doc.size_bytes
        )
        return doc

    async def upload(
        self,
        filename: str,
        raw_bytes: bytes,
        category: str | DocumentCategory,
        owner_id: str | None = None,
        mime_type: str | None = None,
    ) -> KnowledgeDocument:
        """Accept a document and ingest it in the background.

        Returns:
            KnowledgeDocument: The accepted record, status processing.

        Raises:
            InvalidInput: If the upload is rejected.
        """
        doc = self._accept(filename, raw_bytes, category, owner_id, mime_type)
        task = asyncio.create_task(self._run_in_background(doc, raw_bytes), name=f"ingest-{doc.id}")
        self._track(doc.id, task)
        return doc

    async def ingest_and_wait(
        self,
        filename: str,
        raw_bytes: bytes,
        category: str | DocumentCategory,
        owner_id: str | None = None,
        mime_type: str | None = None,
    ) -> KnowledgeDocument:
        """Accept a document and wait until it reaches a terminal state.

        Returns:
            KnowledgeDocument: The terminal record (embedded or error).

        Raises:
            InvalidInput: If the upload is rejected.
            NotFound: If the document was deleted while it was ingested.
            StorageUnavailable: If a store failed (the document is marked error first).
        """
        doc = self._accept(filename, raw_bytes, category, owner_id, mime_type)
        task = asyncio.create_task(self._ingest(doc, raw_bytes), name=f"ingest-{doc.id}")
        self._track(doc.id, task)
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task.cancelled():
            raise NotFound(f"Document '{doc.id}' was deleted during ingestion.")
        return task.result()

    def _track(self, document_id: str, task: asyncio.Task) -> None:
        self._tasks[document_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(document_id, None))

    async def _run_in_background(self, doc: KnowledgeDocument, raw_bytes: bytes) -> None:
        """Background wrapper: failures end up on the record and in the log."""
        try:
            await self._ingest(doc, raw_bytes)
        except asyncio.CancelledError:
            self.logging.info("Ingestion of document id=%s cancelled.", doc.id)
        except Exception:
            self.logging.exception("Ingestion of document id=%s aborted.", doc.id)

    ##########################################
    ############### PIPELINE #################
    ##########################################

    async def _ingest(self, doc: KnowledgeDocument, raw_bytes: bytes) -> KnowledgeDocument:
        """Run extraction -> chunking -> embedding -> commit for one document.

        Returns:
            KnowledgeDocument: The terminal record.

        Raises:
            StorageUnavailable: After marking the document error.
            asyncio.CancelledError: After rolling back staged vectors.
        """
        async with self._ingest_sem:
            try:
                text = await asyncio.to_thread(self._extractor.extract, raw_bytes, doc.mime_type or "")
                spans = self._chunker.chunk(text)
                if not spans:
                    raise ExtractionFailed(f"Document '{doc.filename}' contains no text.")
                self.logging.debug("Document id=%s split into %d chunk(s).", doc.id, len(spans))

                await self._embed_and_stage(doc, spans)
                return await self._commit(doc, len(spans))
            except asyncio.CancelledError:
                try:
                    await self._rollback(doc.id)
                except StorageUnavailable as rollback_exc:
                    self.logging.error("Rollback of document id=%s failed: %s", doc.id, rollback_exc)
                raise
            except StorageUnavailable as exc:
                await self._fail(doc, exc)
                raise
            except EngineError as exc:
                return await self._fail(doc, exc)
            except Exception as exc:
                await self._fail(doc, exc)
                raise

    async def _embed_and_stage(self, doc: KnowledgeDocument, spans: list[ChunkSpan]) -> None:
        """Embed all chunks with bounded fan-out and stage their vectors.

        The first failure cancels the remaining chunk tasks.
        """
        sem = asyncio.Semaphore(self._embed_fanout)

        async def embed_one(span: ChunkSpan) -> None:
            async with sem:
                vector = await self._retry_policy.run(
                    lambda: self._embed_client.do_embed(span.text),
                    is_retryable=lambda exc: getattr(exc, "retryable", False),
                    on_retry=lambda attempt, exc, delay: self.logging.warning(
                        "Embedding chunk %d of document id=%s failed (attempt %d): %s. Retrying in %.2fs.",
                        span.index, doc.id, attempt, exc, delay,
                    ),
                )
            point = VectorPoint(
                document_id=doc.id,
                chunk_index=span.index,
                category=doc.category.value,
                owner_id=doc.owner_id,
                uploaded_at=doc.uploaded_at,
                filename=doc.filename,
                chunk_text=span.text,
                start_offset=span.start_offset,
                end_offset=span.end_offset,
            )
            await self._rag_client.do_put(_make_chunk_id(doc.id, span.index), vector, point)

        tasks = [asyncio.create_task(embed_one(span)) for span in spans]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _commit(self, doc: KnowledgeDocument, chunk_count: int) -> KnowledgeDocument:
        """Publish the staged vectors and move the document to embedded."""
        async with self._lock_for(doc.id):
            current = self._document_store.find(doc.id)
            if current is not None and current.status is DocumentStatus.EMBEDDED:
                # another attempt committed first, its vectors stay
                self.logging.info("Document id=%s already embedded; commit skipped.", doc.id)
                return current
            if current is None or current.status is not DocumentStatus.PROCESSING:
                # deleted or failed while embedding
                await self._rag_client.do_delete_by_document(doc.id)
                self.logging.info("Document id=%s changed during ingestion; commit skipped.", doc.id)
                return current or doc

            published = await self._rag_client.do_publish(doc.id)
            updated = self._document_store.compare_and_set(
                doc.id,
                DocumentStatus.PROCESSING,
                {"status": DocumentStatus.EMBEDDED, "chunk_count": chunk_count, "processed_at": _now()},
            )
            if updated is None:
                await self._rag_client.do_delete_by_document(doc.id)
                return self._document_store.find(doc.id) or doc

        self.logging.info(
            "Document id=%s ('%s') embedded. Stats delta: %s +1, chunks +%d, vectors +%d.",
            doc.id, doc.filename, doc.category.value, chunk_count, published,
        )
        return updated

    async def _fail(self, doc: KnowledgeDocument, exc: BaseException) -> KnowledgeDocument:
        """Roll back staged vectors and move the document to error.

        A document that another attempt already embedded keeps its vectors.
        """
        reason = f"{type(exc).__name__}: {exc}"
        async with self._lock_for(doc.id):
            current = self._document_store.find(doc.id)
            if current is not None and current.status is DocumentStatus.EMBEDDED:
                self.logging.info("Document id=%s already embedded; failure of a second attempt ignored.", doc.id)
                return current
            try:
                await self._rollback(doc.id)
            except StorageUnavailable as rollback_exc:
                self.logging.error("Rollback of document id=%s failed: %s", doc.id, rollback_exc)

            updated = self._document_store.compare_and_set(
                doc.id,
                DocumentStatus.PROCESSING,
                {"status": DocumentStatus.ERROR, "chunk_count": 0, "failure_reason": reason, "processed_at": _now()},
            )
        if updated is None:
            return self._document_store.find(doc.id) or doc

        self.logging.warning(
            "Document id=%s ('%s') failed: %s. Stats delta: chunks +0, vectors +0.", doc.id, doc.filename, reason
        )
        return updated

    async def _rollback(self, document_id: str) -> None:
        removed = await self._rag_client.do_delete_by_document(document_id)
        if removed:
            self.logging.debug("Rolled back %d vector(s) of document id=%s.", removed, document_id)

    ##########################################
    ################ DELETE ##################
    ##########################################

    async def delete_document(self, document_id: str) -> KnowledgeDocument:
        """Delete a document with all its vectors, cancelling a running ingestion.

        Returns:
            KnowledgeDocument: The removed record.

        Raises:
            NotFound: If the document does not exist.
            StorageUnavailable: If the vectors cannot be removed.
        """
        self._document_store.get(document_id)

        task = self._tasks.get(document_id)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

        async with self._lock_for(document_id):
            removed_vectors = await self._rag_client.do_delete_by_document(document_id)
            removed = self._document_store.delete(document_id)
        self._doc_locks.pop(document_id, None)

        self.logging.info(
            "Deleted document id=%s ('%s') with %d vector(s).", document_id, removed.filename, removed_vectors
        )
        return removed

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def reconcile(self) -> None:
        """Align the vector store with the loaded document records after a restart.

        Vectors whose document is missing or not embedded are removed. An embedded
        document whose vector count no longer matches its chunk count is moved to
        error with its remaining vectors removed.

        Raises:
            StorageUnavailable: If the vector store cannot be read or written.
        """
        counts = await self._rag_client.do_count_by_document()
        orphaned = 0
        for document_id in counts:
            doc = self._document_store.find(document_id)
            if doc is None or doc.status is not DocumentStatus.EMBEDDED:
                orphaned += await self._rag_client.do_delete_by_document(document_id)

        incomplete = 0
        for doc in self._document_store.snapshot():
            if doc.status is not DocumentStatus.EMBEDDED or counts.get(doc.id, 0) == doc.chunk_count:
                continue
            await self._rag_client.do_delete_by_document(doc.id)
            self._document_store.compare_and_set(
                doc.id,
                DocumentStatus.EMBEDDED,
                {
                    "status": DocumentStatus.ERROR,
                    "chunk_count": 0,
                    "failure_reason": "Stored vectors incomplete after restart.",
                    "processed_at": _now(),
                },
            )
            incomplete += 1

        if orphaned or incomplete:
            self.logging.warning(
                "Reconciled vector store: removed %d orphaned vector(s), %d document(s) moved to error.",
                orphaned, incomplete,
            )

    async def close(self) -> None:
        """Cancel running ingestions; their documents roll back and stay processing."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.wait(tasks)
            self.logging.info("Cancelled %d running ingestion(s).", len(tasks))

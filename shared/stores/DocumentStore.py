"""Document records of the knowledge base.

The store keeps an immutable mapping of id -> KnowledgeDocument. Every write builds
a new mapping under a lock and swaps the reference, so list and stats readers see
one consistent state without locking.
"""

import os
import threading
from datetime import datetime, timezone
from typing import Any, Mapping

from shared.exceptions.errors import InvalidInput, NotFound
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperPersistence import atomic_json_save, load_json
from shared.models.document import DocumentStatus, KnowledgeDocument

SNAPSHOT_FILE = "documents.json"


class DocumentStore:
    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._persist_dir = helper_config.get_optional_string_val("KB_PERSIST_DIR")
        self._write_lock = threading.Lock()
        self._documents: Mapping[str, KnowledgeDocument] = {}

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    def boot(self) -> None:
        """Load persisted documents.

        Documents that were still processing when the previous process stopped
        cannot resume (their bytes are gone) and are loaded as error.
        """
        if not self._persist_dir:
            return
        raw = load_json(os.path.join(self._persist_dir, SNAPSHOT_FILE), default=[])
        documents: dict[str, KnowledgeDocument] = {}
        interrupted = 0
        for item in raw:
            doc = KnowledgeDocument.model_validate(item)
            if doc.status is DocumentStatus.PROCESSING:
                doc = doc.model_copy(update={
                    "status": DocumentStatus.ERROR,
                    "failure_reason": "Ingestion interrupted by restart.",
                    "processed_at": datetime.now(timezone.utc),
                })
                interrupted += 1
            documents[doc.id] = doc
        with self._write_lock:
            self._swap(documents)
        self.logging.info("Loaded %d document(s), %d interrupted.", len(documents), interrupted)

    ##########################################
    ################ GETTER ##################
    ##########################################

    def find(self, document_id: str) -> KnowledgeDocument | None:
        return self._documents.get(document_id)

    def get(self, document_id: str) -> KnowledgeDocument:
        """
        Raises:
            NotFound: If no document has this id.
        """
        doc = self._documents.get(document_id)
        if doc is None:
            raise NotFound(f"Document '{document_id}' not found.")
        return doc

    def list_all(self) -> list[KnowledgeDocument]:
        """All documents, newest upload first."""
        docs = list(self._documents.values())
        docs.sort(key=lambda d: (d.uploaded_at, d.id), reverse=True)
        return docs

    def snapshot(self) -> tuple[KnowledgeDocument, ...]:
        """Consistent view of every document, in no particular order."""
        return tuple(self._documents.values())

    ##########################################
    ################ WRITES ##################
    ##########################################

    def add(self, document: KnowledgeDocument) -> KnowledgeDocument:
        """
        Raises:
            InvalidInput: If a document with the same id exists.
        """
        with self._write_lock:
            if document.id in self._documents:
                raise InvalidInput(f"Document '{document.id}' already exists.")
            documents = dict(self._documents)
            documents[document.id] = document
            self._swap(documents)
        return document

    def compare_and_set(
        self,
        document_id: str,
        expected: DocumentStatus,
        changes: dict[str, Any],
    ) -> KnowledgeDocument | None:
        """Replace a document only if it still has the expected status.

        Args:
            document_id (str): Document to update.
            expected (DocumentStatus): Status the document must currently have.
            changes (dict[str, Any]): Field updates for the new record.

        Returns:
            KnowledgeDocument | None: The new record, or None if the document is gone
                or its status differs.
        """
        with self._write_lock:
            current = self._documents.get(document_id)
            if current is None or current.status is not expected:
                return None
            updated = current.model_copy(update=changes)
            documents = dict(self._documents)
            documents[document_id] = updated
            self._swap(documents)
        return updated

    def delete(self, document_id: str) -> KnowledgeDocument:
        """
        Raises:
            NotFound: If no document has this id.
        """
        with self._write_lock:
            if document_id not in self._documents:
                raise NotFound(f"Document '{document_id}' not found.")
            documents = dict(self._documents)
            removed = documents.pop(document_id)
            self._swap(documents)
        return removed

    ##########################################
    ############### SNAPSHOT #################
    ##########################################

    def _swap(self, documents: dict[str, KnowledgeDocument]) -> None:
        """Publish a new mapping. Caller holds the write lock."""
        if self._persist_dir:
            atomic_json_save(
                os.path.join(self._persist_dir, SNAPSHOT_FILE),
                [doc.model_dump(mode="json") for doc in documents.values()],
            )
        self._documents = documents

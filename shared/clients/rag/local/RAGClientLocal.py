"""In-process implementation of RAGClientInterface.

Searchable state is an immutable snapshot (entries + normalised vector matrix).
Writers build a new snapshot under a lock and swap the reference; readers take the
reference once and work on it, so a search never observes half of a publish or
half of a delete. Staged chunks live outside the snapshot until do_publish().

Every swap is written to vectors.json atomically and reloaded on boot() when a
persist directory is configured: RAG_LOCAL_PERSIST_DIR, else KB_PERSIST_DIR so the
vectors live next to the document records.
"""

import os
import threading
from typing import NamedTuple

import numpy as np

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.SearchHit import SearchHit
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.exceptions.errors import InvalidInput, StorageUnavailable
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperPersistence import atomic_json_save, load_json
from shared.models.config import EnvConfig

SNAPSHOT_FILE = "vectors.json"


class _Entry(NamedTuple):
    vector: np.ndarray
    point: VectorPoint


class _Snapshot:
    """Immutable view of all searchable chunks."""

    __slots__ = ("entries", "ids", "matrix")

    def __init__(self, entries: dict[str, _Entry], dimension: int):
        self.entries = entries
        self.ids = tuple(entries.keys())
        if self.ids:
            self.matrix = np.vstack([entries[chunk_id].vector for chunk_id in self.ids])
        else:
            self.matrix = np.zeros((0, max(dimension, 1)), dtype="float32")


def _normalise(vector: list[float]) -> np.ndarray:
    vec = np.asarray(vector, dtype="float32")
    norm = float(np.linalg.norm(vec))
    return vec / norm if norm > 0 else vec


class RAGClientLocal(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._dimension = int(self.get_config_val("DIMENSION", default=0, val_type="number"))
        self._persist_dir = self._helper_config.get_optional_string_val(
            self._get_config_key_name("PERSIST_DIR")
        ) or self._helper_config.get_optional_string_val("KB_PERSIST_DIR")

        self._write_lock = threading.Lock()
        self._visible = _Snapshot({}, self._dimension)
        self._staged: dict[str, dict[str, _Entry]] = {}
        self._ready = False

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Local"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="DIMENSION", val_type="number", default=0),
        ]

    def get_dimension(self) -> int:
        """Vector dimension enforced by the store; 0 until the first write when not configured."""
        return self._dimension

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def boot(self) -> None:
        """Load the persisted snapshot, if any, and accept requests."""
        if self._persist_dir:
            self._load_snapshot()
        self._ready = True

    async def close(self) -> None:
        self._ready = False

    async def do_healthcheck(self) -> bool:
        return self._ready

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def _ensure_ready(self) -> None:
        if not self._ready:
            raise StorageUnavailable("Local vector store is not booted.")

    def _check_dimension(self, length: int) -> None:
        if self._dimension and length != self._dimension:
            raise InvalidInput(f"Vector dimension {length} does not match store dimension {self._dimension}.")

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_put(self, chunk_id: str, vector: list[float], point: VectorPoint) -> None:
        self._ensure_ready()
        self._check_point(chunk_id, point)
        entry = _Entry(vector=_normalise(vector), point=point)

        with self._write_lock:
            self._check_dimension(len(entry.vector))
            if not self._dimension:
                self._dimension = len(entry.vector)

            if chunk_id in self._visible.entries:
                # upsert of an already published chunk stays visible
                entries = dict(self._visible.entries)
                entries[chunk_id] = entry
                self._swap(entries)
            else:
                self._staged.setdefault(point.document_id, {})[chunk_id] = entry

    async def do_publish(self, document_id: str) -> int:
        self._ensure_ready()
        with self._write_lock:
            staged = self._staged.pop(document_id, {})
            if not staged:
                return 0
            entries = dict(self._visible.entries)
            entries.update(staged)
            self._swap(entries)
        self.logging.debug("Published %d chunk(s) of document %s.", len(staged), document_id)
        return len(staged)

    async def do_search(
        self,
        query_vector: list[float],
        top_k: int,
        category: str | None = None,
        owner_id: str | None = None,
    ) -> list[SearchHit]:
        self._ensure_ready()
        self._check_top_k(top_k)

        # single reference read: everything below works on one consistent snapshot
        snapshot = self._visible
        if not snapshot.ids:
            return []
        if len(query_vector) != snapshot.matrix.shape[1]:
            raise InvalidInput(
                f"Query vector dimension {len(query_vector)} does not match store dimension {snapshot.matrix.shape[1]}."
            )

        scores = snapshot.matrix @ _normalise(query_vector)
        candidates: list[tuple[float, float, str]] = []
        for position, chunk_id in enumerate(snapshot.ids):
            point = snapshot.entries[chunk_id].point
            if category is not None and point.category != category:
                continue
            if owner_id is not None and point.owner_id != owner_id:
                continue
            candidates.append((round(float(scores[position]), 6), point.uploaded_at.timestamp(), chunk_id))

        candidates.sort(key=lambda c: (-c[0], -c[1], c[2]))
        return [
            SearchHit(chunk_id=chunk_id, score=score, point=snapshot.entries[chunk_id].point)
            for score, _, chunk_id in candidates[:top_k]
        ]

    async def do_delete_by_document(self, document_id: str) -> int:
        self._ensure_ready()
        with self._write_lock:
            staged = self._staged.pop(document_id, {})
            entries = {
                chunk_id: entry
                for chunk_id, entry in self._visible.entries.items()
                if entry.point.document_id != document_id
            }
            removed_visible = len(self._visible.entries) - len(entries)
            if removed_visible:
                self._swap(entries)
        return removed_visible + len(staged)

    async def do_count(self) -> int:
        self._ensure_ready()
        return len(self._visible.ids)

    async def do_count_by_document(self) -> dict[str, int]:
        self._ensure_ready()
        counts: dict[str, int] = {}
        for entry in self._visible.entries.values():
            counts[entry.point.document_id] = counts.get(entry.point.document_id, 0) + 1
        return counts

    ##########################################
    ############### SNAPSHOT #################
    ##########################################

    def _swap(self, entries: dict[str, _Entry]) -> None:
        """Replace the visible snapshot. Caller holds the write lock."""
        snapshot = _Snapshot(entries, self._dimension)
        if self._persist_dir:
            self._save_snapshot(snapshot)
        self._visible = snapshot

    def _save_snapshot(self, snapshot: _Snapshot) -> None:
        atomic_json_save(
            os.path.join(self._persist_dir, SNAPSHOT_FILE),
            {
                "dimension": self._dimension,
                "points": [
                    {
                        "chunk_id": chunk_id,
                        "vector": snapshot.entries[chunk_id].vector.tolist(),
                        "payload": snapshot.entries[chunk_id].point.model_dump(mode="json"),
                    }
                    for chunk_id in snapshot.ids
                ],
            },
        )

    def _load_snapshot(self) -> None:
        raw = load_json(os.path.join(self._persist_dir, SNAPSHOT_FILE), default=None)
        if raw is None:
            return
        self._dimension = int(raw.get("dimension") or self._dimension)
        entries = {
            item["chunk_id"]: _Entry(
                vector=np.asarray(item["vector"], dtype="float32"),
                point=VectorPoint.model_validate(item["payload"]),
            )
            for item in raw.get("points", [])
        }
        self._visible = _Snapshot(entries, self._dimension)
        self.logging.info("Loaded %d vector(s) from %s.", len(entries), self._persist_dir)

"""Recording and querying of per-user memories."""

import copy
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from services.memory.MemoryClassifier import infer_category, score_importance
from shared.exceptions.errors import InvalidInput
from shared.helper.HelperConfig import HelperConfig
from shared.models.memory import Memory, MemoryCategory
from shared.stores.MemoryStore import MemoryStore

RELEVANCE_WEIGHT = 0.6
IMPORTANCE_WEIGHT = 0.25
RECENCY_WEIGHT = 0.15

_TERM_RE = re.compile(r"[a-z0-9][a-z0-9+#.-]*")
STOP_WORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "but", "by", "can", "do", "does", "for", "from",
    "have", "how", "i", "in", "is", "it", "me", "my", "of", "on", "or", "should", "so", "that",
    "the", "this", "to", "was", "we", "what", "when", "where", "which", "who", "why", "with",
    "you", "your", "about", "any", "get", "would", "could",
})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _terms(text: str) -> set[str]:
    terms = set()
    for term in _TERM_RE.findall(text.lower()):
        term = term.rstrip(".-")
        if not term or term in STOP_WORDS:
            continue
        # crude plural folding so "interviews" matches "interview"
        if len(term) > 3 and term.endswith("s") and not term.endswith("ss"):
            term = term[:-1]
        terms.add(term)
    return terms


class MemoryService:
    """Records immutable memories and ranks them for retrieval."""

    def __init__(
        self,
        helper_config: HelperConfig,
        memory_store: MemoryStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._memory_store = memory_store
        self._clock = clock
        self._half_life_hours = float(helper_config.get_number_val("MEMORY_RECENCY_HALF_LIFE_HOURS", default=72))
        self._max_content_chars = int(helper_config.get_number_val("MEMORY_MAX_CONTENT_CHARS", default=10000))
        self._max_limit = int(helper_config.get_number_val("MEMORY_MAX_QUERY_LIMIT", default=100))

    ##########################################
    ################ WRITES ##################
    ##########################################

    def record(
        self,
        requester_id: str,
        user_id: str,
        content: str,
        category: str | MemoryCategory | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> Memory:
        """Record a new memory for user_id.

        The category is inferred when omitted. Importance is computed once, here.

        Raises:
            InvalidInput: If the content is empty or too long, or the category unknown.
            AccessDenied: If requester_id differs from user_id.
        """
        content = (content or "").strip()
        if not content:
            raise InvalidInput("Memory content must not be empty.")
        if len(content) > self._max_content_chars:
            raise InvalidInput(f"Memory content exceeds {self._max_content_chars} characters.")

        if category is None or category == "":
            resolved = infer_category(content)
        else:
            resolved = MemoryCategory.parse(category)
        meta = copy.deepcopy(dict(metadata or {}))

        memory = Memory(
            id=uuid.uuid4().hex,
            user_id=user_id,
            content=content,
            category=resolved,
            importance=score_importance(content, resolved, meta),
            metadata=meta,
            created_at=self._clock(),
        )
        self._memory_store.append(requester_id, memory)
        self.logging.debug(
            "Recorded memory %s for user %s (%s, importance %.2f).",
            memory.id, user_id, resolved.value, memory.importance,
        )
        return memory

    ##########################################
    ################ READS ###################
    ##########################################

    def list_memories(self, requester_id: str, user_id: str) -> tuple[Memory, ...]:
        """All memories of user_id in insertion order.

        Raises:
            AccessDenied: If requester_id differs from user_id.
        """
        return self._memory_store.list_for(requester_id, user_id)

    def get_memory(self, requester_id: str, user_id: str, memory_id: str) -> Memory:
        """
        Raises:
            AccessDenied: If requester_id differs from user_id.
            NotFound: If the memory does not exist in the user's partition.
        """
        return self._memory_store.get(requester_id, user_id, memory_id)

    def query(
        self,
        requester_id: str,
        user_id: str,
        category: str | MemoryCategory | None = None,
        free_text_query: str | None = None,
        limit: int = 10,
    ) -> list[Memory]:
        """Return the user's memories, best first.

        With free text, memories are ranked by
        0.6 * relevance + 0.25 * importance + 0.15 * recency. Without it they are
        ordered by recency, then importance. Ties go to the later insertion.

        Args:
            requester_id (str): Identity of the caller.
            user_id (str): Partition to read.
            category (str | MemoryCategory | None): Restrict to one category.
            free_text_query (str | None): Text to rank against.
            limit (int): Maximum number of memories, >= 1.

        Raises:
            InvalidInput: If limit is out of range or the category unknown.
            AccessDenied: If requester_id differs from user_id.
        """
        if limit < 1 or limit > self._max_limit:
            raise InvalidInput(f"limit must be between 1 and {self._max_limit}, got {limit}.")
        wanted = MemoryCategory.parse(category) if category else None

        memories = self._memory_store.list_for(requester_id, user_id)
        indexed = [
            (position, memory)
            for position, memory in enumerate(memories)
            if wanted is None or memory.category is wanted
        ]

        text = (free_text_query or "").strip()
        if text:
            now = self._clock()
            query_terms = _terms(text)
            ranked = sorted(
                indexed,
                key=lambda item: (
                    self._blend(item[1], query_terms, now),
                    item[1].created_at,
                    item[0],
                ),
                reverse=True,
            )
        else:
            ranked = sorted(
                indexed,
                key=lambda item: (item[1].created_at, item[1].importance, item[0]),
                reverse=True,
            )
        return [memory for _, memory in ranked[:limit]]

    ##########################################
    ################ SCORING #################
    ##########################################

    def recency(self, memory: Memory, now: datetime) -> float:
        """Exponential decay with MEMORY_RECENCY_HALF_LIFE_HOURS, 1.0 for a fresh memory."""
        age_hours = max(0.0, (now - memory.created_at).total_seconds() / 3600.0)
        if self._half_life_hours <= 0:
            return 1.0
        return 0.5 ** (age_hours / self._half_life_hours)

    @staticmethod
    def relevance(memory: Memory, query_terms: set[str]) -> float:
        """Share of the distinct query terms present in the memory content."""
        if not query_terms:
            return 0.0
        return len(query_terms & _terms(memory.content)) / len(query_terms)

    def _blend(self, memory: Memory, query_terms: set[str], now: datetime) -> float:
        score = (
            RELEVANCE_WEIGHT * self.relevance(memory, query_terms)
            + IMPORTANCE_WEIGHT * memory.importance
            + RECENCY_WEIGHT * self.recency(memory, now)
        )
        return round(score, 6)

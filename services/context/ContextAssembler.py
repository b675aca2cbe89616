"""Builds the context object handed to the answer generator.

The assembler is total: every field of ConversationContext is always returned.
Knowledge retrieval is best effort, an unreachable vector store or embedder
leaves relevant_knowledge empty instead of failing the whole context.
"""

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.exceptions.errors import EmbeddingRejected, EmbeddingUnavailable, StorageUnavailable
from shared.helper.HelperConfig import HelperConfig
from shared.models.context import ConversationContext, KnowledgeHit
from shared.models.memory import Memory, MemoryCategory
from services.memory.MemoryService import MemoryService

INSIGHT_CATEGORIES = (MemoryCategory.CAREER, MemoryCategory.GOALS)
PERSONAL_KEYS = (
    "skills",
    "skill_gaps",
    "target_roles",
    "target_role",
    "target_companies",
    "timeline",
    "location",
    "current_role",
    "years_experience",
)


class ContextAssembler:
    def __init__(
        self,
        helper_config: HelperConfig,
        memory_service: MemoryService,
        rag_client: RAGClientInterface,
        embed_client: EmbedClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._memory_service = memory_service
        self._rag_client = rag_client
        self._embed_client = embed_client

        self._recent_window = int(helper_config.get_number_val("CONTEXT_RECENT_WINDOW", default=10))
        self._knowledge_top_k = int(helper_config.get_number_val("CONTEXT_KNOWLEDGE_TOP_K", default=5))
        self._insight_threshold = float(helper_config.get_number_val("CONTEXT_INSIGHT_THRESHOLD", default=0.6))
        self._insight_limit = int(helper_config.get_number_val("CONTEXT_INSIGHT_LIMIT", default=5))
        self._knowledge_owner_id = helper_config.get_optional_string_val("CONTEXT_KNOWLEDGE_OWNER_ID")

    ##########################################
    ################ CORE ####################
    ##########################################

    async def build_context(self, requester_id: str, user_id: str, query: str) -> ConversationContext:
        """Merge the user's memories with knowledge base hits for query.

        Args:
            requester_id (str): Identity of the caller.
            user_id (str): The user whose memories are read.
            query (str): The current user message.

        Returns:
            ConversationContext: All four fields present, possibly empty.

        Raises:
            AccessDenied: If requester_id differs from user_id.
        """
        memories = self._memory_service.list_memories(requester_id, user_id)
        recent = self._memory_service.query(
            requester_id,
            user_id,
            free_text_query=query,
            limit=self._recent_window,
        )

        context = ConversationContext(
            recent_memories=recent,
            relevant_knowledge=await self._find_knowledge(query),
            career_insights=self._career_insights(memories),
            personal_context=self._personal_context(memories),
        )
        self.logging.debug(
            "Context for user %s: %d recent, %d knowledge, %d insights, %d personal keys.",
            user_id,
            len(context.recent_memories),
            len(context.relevant_knowledge),
            len(context.career_insights),
            len(context.personal_context),
        )
        return context

    ##########################################
    ############### HELPERS ##################
    ##########################################

    async def _find_knowledge(self, query: str) -> list[KnowledgeHit]:
        if not query or not query.strip():
            return []
        try:
            vector = await self._embed_client.do_embed(query)
            hits = await self._rag_client.do_search(
                query_vector=vector,
                top_k=self._knowledge_top_k,
                owner_id=self._knowledge_owner_id,
            )
        except (StorageUnavailable, EmbeddingUnavailable, EmbeddingRejected) as exc:
            self.logging.warning("Knowledge retrieval skipped: %s", exc)
            return []

        return [
            KnowledgeHit(
                chunk_id=hit.chunk_id,
                document_id=hit.point.document_id,
                filename=hit.point.filename,
                category=hit.point.category,
                chunk_index=hit.point.chunk_index,
                text=hit.point.chunk_text,
                score=hit.score,
                start_offset=hit.point.start_offset,
                end_offset=hit.point.end_offset,
            )
            for hit in hits
        ]

    def _career_insights(self, memories: tuple[Memory, ...]) -> list[Memory]:
        """Important career and goal memories, newest first."""
        indexed = [
            (position, memory)
            for position, memory in enumerate(memories)
            if memory.category in INSIGHT_CATEGORIES and memory.importance >= self._insight_threshold
        ]
        indexed.sort(key=lambda item: (item[1].created_at, item[0]), reverse=True)
        return [memory for _, memory in indexed[: self._insight_limit]]

    @staticmethod
    def _personal_context(memories: tuple[Memory, ...]) -> dict:
        """Stable facts from memory metadata; the newest value per key wins."""
        ordered = sorted(enumerate(memories), key=lambda item: (item[1].created_at, item[0]))
        facts: dict = {}
        for _, memory in ordered:
            for key in PERSONAL_KEYS:
                value = memory.metadata.get(key)
                if value not in (None, "", [], {}):
                    facts[key] = value
        return facts

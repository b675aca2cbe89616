"""One conversational turn: context -> answer generator -> recorded memory."""

from pydantic import BaseModel

from services.context.ContextAssembler import ContextAssembler
from services.memory.MemoryService import MemoryService
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.exceptions.errors import GenerationUnavailable, InvalidInput
from shared.helper.HelperConfig import HelperConfig
from shared.models.context import ConversationContext
from shared.models.memory import Memory


class ChatTurn(BaseModel):
    reply: str
    context: ConversationContext
    memory: Memory


class ChatService:
    def __init__(
        self,
        helper_config: HelperConfig,
        context_assembler: ContextAssembler,
        memory_service: MemoryService,
        llm_client: LLMClientInterface | None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._context_assembler = context_assembler
        self._memory_service = memory_service
        self._llm_client = llm_client

    async def do_chat(self, requester_id: str, user_id: str, message: str, metadata: dict | None = None) -> ChatTurn:
        """Answer a message and record it as a memory of the user.

        The turn is recorded only after the generator answered, so a failed
        generation leaves no trace in the user's memories.

        Raises:
            GenerationUnavailable: If no generator is configured or it failed.
            AccessDenied: If requester_id differs from user_id.
            InvalidInput: If the message is empty.
        """
        if not message or not message.strip():
            raise InvalidInput("Chat message must not be empty.")
        if self._llm_client is None:
            raise GenerationUnavailable("No answer generator configured (LLM_ENGINE).")

        context = await self._context_assembler.build_context(requester_id, user_id, message)
        reply = await self._llm_client.do_generate(context, message)

        turn_metadata = dict(metadata or {})
        turn_metadata.setdefault("source", "chat")
        memory = self._memory_service.record(requester_id, user_id, message, metadata=turn_metadata)

        self.logging.info("Answered chat turn for user %s (%d chars).", user_id, len(reply))
        return ChatTurn(reply=reply, context=context, memory=memory)

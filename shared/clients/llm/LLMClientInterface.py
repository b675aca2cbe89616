from abc import abstractmethod

import httpx

from shared.clients.HttpClientInterface import HttpClientInterface
from shared.exceptions.errors import GenerationUnavailable
from shared.helper.HelperConfig import HelperConfig
from shared.models.context import ConversationContext

SYSTEM_PROMPT = (
    "You are an expert career advisor. Give personalised, actionable guidance that "
    "references the user's background and goals, offers concrete next steps and "
    "suggests skills or resources to develop. Stay encouraging but realistic and keep "
    "the answer under 300 words."
)


class LLMClientInterface(HttpClientInterface):
    """Answer generator: ConversationContext plus user message in, reply text out.

    Engines only describe their wire format (endpoint, request body, reply
    extraction); prompt rendering and error translation live here.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.chat_model = helper_config.get_string_val("LLM_CHAT_MODEL", default="")
        # prompt size limits
        self.max_knowledge = int(helper_config.get_number_val("LLM_PROMPT_KNOWLEDGE", default=3))
        self.max_insights = int(helper_config.get_number_val("LLM_PROMPT_INSIGHTS", default=3))

    def _get_client_type(self) -> str:
        return "llm"

    ##########################################
    ############# WIRE FORMAT ################
    ##########################################

    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        pass

    @abstractmethod
    def get_chat_payload(self, messages: list[dict]) -> dict:
        """Request body carrying role/content messages for this engine."""
        pass

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> str:
        """Reply text from the decoded response body; ValueError if there is none."""
        pass

    ##########################################
    ################ PROMPT ##################
    ##########################################

    def build_messages(self, context: ConversationContext, user_message: str) -> list[dict]:
        """Render the context object into chat messages.

        Args:
            context (ConversationContext): Assembled memories and knowledge.
            user_message (str): The user's current message.

        Returns:
            list[dict]: A system message followed by one user message.
        """
        sections = []

        if context.personal_context:
            lines = [f"- {key}: {value}" for key, value in context.personal_context.items()]
            sections.append("PERSONAL CONTEXT:\n" + "\n".join(lines))

        if context.recent_memories:
            lines = [f"- {memory.content}" for memory in context.recent_memories]
            sections.append("RECENT CONVERSATION HISTORY:\n" + "\n".join(lines))

        if context.relevant_knowledge:
            lines = [
                f"- [{hit.filename}] {hit.text.strip()}"
                for hit in context.relevant_knowledge[: self.max_knowledge]
            ]
            sections.append("RELEVANT KNOWLEDGE:\n" + "\n".join(lines))

        if context.career_insights:
            lines = [f"- {memory.content}" for memory in context.career_insights[: self.max_insights]]
            sections.append("CAREER INSIGHTS:\n" + "\n".join(lines))

        sections.append(f"USER QUERY: {user_message}")
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": "\n\n".join(sections)},
        ]

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_chat(self, messages: list[dict]) -> str:
        """Send messages to the backend and return its reply.

        Raises:
            GenerationUnavailable: On transport errors, non-2xx answers or an
                answer without reply text.
        """
        try:
            response = await self.do_request(
                "POST",
                self._get_endpoint_chat(),
                json=self.get_chat_payload(messages),
                raise_on_error=True,
            )
            return self.extract_chat_response(response.json())
        except (httpx.HTTPError, RuntimeError, ValueError) as exc:
            raise GenerationUnavailable(f"{self.get_engine_name()} produced no answer: {exc}") from exc

    async def do_generate(self, context: ConversationContext, user_message: str) -> str:
        """Generate an answer grounded on context."""
        return await self.do_chat(self.build_messages(context, user_message))

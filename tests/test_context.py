"""Tests for context assembly and chat turns."""

from unittest.mock import AsyncMock

import pytest

from conftest import resume_text
from services.context.ChatService import ChatService
from services.context.ContextAssembler import ContextAssembler
from shared.clients.llm.ollama.LLMClientOllama import LLMClientOllama
from shared.exceptions.errors import AccessDenied, GenerationUnavailable, InvalidInput
from shared.models.context import ConversationContext
from shared.models.memory import MemoryCategory


@pytest.fixture
def assembler(helper_config, memory_service, rag_client, embed_client) -> ContextAssembler:
    return ContextAssembler(
        helper_config=helper_config,
        memory_service=memory_service,
        rag_client=rag_client,
        embed_client=embed_client,
    )


class TestBuildContext:
    async def test_all_fields_present_for_new_user(self, assembler):
        context = await assembler.build_context("alice", "alice", "What should I learn next?")

        assert context.recent_memories == []
        assert context.relevant_knowledge == []
        assert context.career_insights == []
        assert context.personal_context == {}

    async def test_knowledge_hits_carry_chunk_details(self, assembler, ingestion_service):
        doc = await ingestion_service.ingest_and_wait("cv.txt", resume_text(1200).encode(), "resume-version")

        context = await assembler.build_context("alice", "alice", "platform team billing service")

        assert 0 < len(context.relevant_knowledge) <= 5
        hit = context.relevant_knowledge[0]
        assert hit.document_id == doc.id
        assert hit.filename == "cv.txt"
        assert hit.category == "resume-version"
        assert hit.text
        assert hit.end_offset > hit.start_offset

    async def test_unreachable_vector_store_degrades_to_empty_knowledge(self, assembler, memory_service, rag_client):
        memory_service.record("alice", "alice", "Interview at Globex for a staff role", metadata={"location": "Berlin"})
        await rag_client.close()

        context = await assembler.build_context("alice", "alice", "Globex interview")

        assert context.relevant_knowledge == []
        assert len(context.recent_memories) == 1
        assert context.personal_context == {"location": "Berlin"}

    async def test_career_insights_filtered_and_newest_first(self, assembler, memory_service):
        weak = memory_service.record("alice", "alice", "Thinking about careers", category="career")
        first = memory_service.record("alice", "alice", "Promotion review is in May", category="career")
        memory_service.record("alice", "alice", "Salary talk went well", category="skills")
        second = memory_service.record("alice", "alice", "Goal: lead a team", category="goals", metadata={"importance": "high"})

        context = await assembler.build_context("alice", "alice", "next steps")

        assert weak.importance < 0.6
        assert [m.id for m in context.career_insights] == [second.id, first.id]
        assert all(m.category in (MemoryCategory.CAREER, MemoryCategory.GOALS) for m in context.career_insights)

    async def test_personal_context_keeps_newest_value(self, assembler, memory_service):
        memory_service.record("alice", "alice", "Old target", metadata={"target_role": "senior", "timeline": "2026"})
        memory_service.record("alice", "alice", "New target", metadata={"target_role": "staff", "mood": "happy"})

        context = await assembler.build_context("alice", "alice", "")

        assert context.personal_context == {"target_role": "staff", "timeline": "2026"}

    async def test_other_requester_is_denied(self, assembler):
        with pytest.raises(AccessDenied):
            await assembler.build_context("mallory", "alice", "anything")


class TestChat:
    async def test_chat_answers_and_records_turn(self, helper_config, assembler, memory_service):
        llm = AsyncMock()
        llm.do_generate.return_value = "Focus on system design."
        service = ChatService(helper_config, assembler, memory_service, llm)

        turn = await service.do_chat("alice", "alice", "How do I prepare for my interview?")

        assert turn.reply == "Focus on system design."
        assert turn.memory.content == "How do I prepare for my interview?"
        assert turn.memory.metadata["source"] == "chat"
        assert memory_service.get_memory("alice", "alice", turn.memory.id) == turn.memory
        context, message = llm.do_generate.await_args.args
        assert message == "How do I prepare for my interview?"
        assert context.recent_memories == []

    async def test_failed_generation_records_nothing(self, helper_config, assembler, memory_service):
        llm = AsyncMock()
        llm.do_generate.side_effect = GenerationUnavailable("model offline")
        service = ChatService(helper_config, assembler, memory_service, llm)

        with pytest.raises(GenerationUnavailable):
            await service.do_chat("alice", "alice", "Hello")
        assert memory_service.list_memories("alice", "alice") == ()

    async def test_without_generator(self, helper_config, assembler, memory_service):
        service = ChatService(helper_config, assembler, memory_service, None)

        with pytest.raises(GenerationUnavailable):
            await service.do_chat("alice", "alice", "Hello")
        with pytest.raises(InvalidInput):
            await service.do_chat("alice", "alice", "  ")


class TestPrompt:
    def test_messages_contain_context_sections(self, make_config, memory_service):
        llm = LLMClientOllama(make_config(LLM_OLLAMA_BASE_URL="http://ollama:11434", LLM_CHAT_MODEL="llama3"))
        memory = memory_service.record("alice", "alice", "Interview at Globex", metadata={"location": "Berlin"})

        context = ConversationContext(recent_memories=[memory], personal_context={"location": "Berlin"})
        messages = llm.build_messages(context, "What now?")

        assert messages[0]["role"] == "system"
        user = messages[1]["content"]
        assert "PERSONAL CONTEXT:\n- location: Berlin" in user
        assert "- Interview at Globex" in user
        assert "RELEVANT KNOWLEDGE" not in user
        assert user.endswith("USER QUERY: What now?")
        assert llm.get_chat_payload(messages)["model"] == "llama3"

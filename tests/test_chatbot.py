"""Tests for RAGChatbot question answering, commands and status."""

from unittest.mock import MagicMock, patch

import pytest

from kbchat import APOLOGY, ConversationManager, RAGChatbot
from kbchat.chatbot import REBUILT_MESSAGE
from kbchat.exceptions import CompletionError, EmbeddingError, VectorStoreConnectionError
from kbchat.vector_store.chroma_store import ChromaVectorStore


def test_status_before_any_question(chatbot_factory, sky_knowledge_base):
    chatbot = chatbot_factory(sky_knowledge_base)

    status = chatbot.status()

    assert "Chat History: 0 messages" in status
    assert "Model: gpt-4o-mini" in status
    assert "- Vector store: memory (Connected) (in-process memory)" in status
    assert "- Collection: test-documents (Available)" in status
    assert "- Documents: 1 documents" in status


def test_status_when_not_connected(chatbot_factory, sky_knowledge_base):
    chatbot = chatbot_factory(sky_knowledge_base, initialize=False)

    status = chatbot.status()

    assert "(Not connected)" in status
    assert "- Documents: Not available" in status


def test_status_when_count_fails(chatbot_factory, sky_knowledge_base):
    chatbot = chatbot_factory(sky_knowledge_base)

    with patch.object(
        chatbot.pipeline.vector_store,
        "count",
        side_effect=VectorStoreConnectionError("down"),
    ):
        status = chatbot.status()

    assert "- Documents: Error fetching count" in status


def test_ask_streams_and_records_history(
    chatbot_factory, sky_knowledge_base, fake_streamer_factory
):
    streamer = fake_streamer_factory(["The sky ", "is blue."])
    chatbot = chatbot_factory(sky_knowledge_base, streamer)

    fragments = list(chatbot.ask("What colour is the sky?"))

    assert fragments == ["The sky ", "is blue."]
    system_prompt, user_message = streamer.calls[0]
    assert user_message == "What colour is the sky?"
    assert "Source: facts/sky.md:\nThe sky is blue." in system_prompt
    assert [(turn.role, turn.content) for turn in chatbot.conversation.history] == [
        ("user", "What colour is the sky?"),
        ("assistant", "The sky is blue."),
    ]
    assert "Chat History: 2 messages" in chatbot.status()


def test_second_question_sees_history(
    chatbot_factory, sky_knowledge_base, fake_streamer_factory
):
    streamer = fake_streamer_factory(["Blue."])
    chatbot = chatbot_factory(sky_knowledge_base, streamer)

    list(chatbot.ask("What colour is the sky?"))
    list(chatbot.ask("Are you sure?"))

    second_prompt = streamer.calls[1][0]
    assert "Previous conversation:\nHuman: What colour is the sky?\nAssistant: Blue." in (
        second_prompt
    )


@pytest.mark.parametrize(
    "error",
    [CompletionError("stream failed"), VectorStoreConnectionError("down")],
)
def test_ask_apologizes_on_stream_failure(
    chatbot_factory, sky_knowledge_base, fake_streamer_factory, error
):
    streamer = fake_streamer_factory(["partial "], error=error)
    chatbot = chatbot_factory(sky_knowledge_base, streamer)

    fragments = list(chatbot.ask("What colour is the sky?"))

    assert fragments == ["partial ", APOLOGY]
    assert chatbot.conversation.history == []
    assert streamer.closed is True


def test_ask_apologizes_on_embedding_failure(chatbot_factory, sky_knowledge_base):
    chatbot = chatbot_factory(sky_knowledge_base)

    with patch.object(
        chatbot.pipeline.embedding_service,
        "get_embedding",
        side_effect=EmbeddingError("quota"),
    ):
        fragments = list(chatbot.ask("What colour is the sky?"))

    assert fragments == [APOLOGY]
    assert chatbot.conversation.history == []


def test_ask_closed_early_closes_stream(
    chatbot_factory, sky_knowledge_base, fake_streamer_factory
):
    streamer = fake_streamer_factory(["one", "two", "three"])
    chatbot = chatbot_factory(sky_knowledge_base, streamer)

    iterator = chatbot.ask("What colour is the sky?")
    assert next(iterator) == "one"
    iterator.close()

    assert streamer.closed is True
    assert chatbot.conversation.history == []


def test_history_is_bounded(chatbot_factory, sky_knowledge_base, fake_streamer_factory):
    chatbot = chatbot_factory(
        sky_knowledge_base, fake_streamer_factory(["ok"]), max_turns=4
    )

    for i in range(5):
        list(chatbot.ask(f"question {i}"))

    assert len(chatbot.conversation.history) == 4
    assert chatbot.conversation.history[0].content == "question 3"


@pytest.mark.parametrize("command", ["status", "STATUS", "  Status  "])
def test_respond_status_command(chatbot_factory, sky_knowledge_base, command):
    chatbot = chatbot_factory(sky_knowledge_base)

    output = "".join(chatbot.respond(command))

    assert output.startswith("System Status:")
    assert chatbot.conversation.history == []


def test_respond_rebuild_command(
    chatbot_factory, knowledge_base_factory, sky_knowledge_base
):
    chatbot = chatbot_factory(sky_knowledge_base)
    knowledge_base_factory({"facts/grass.md": "Grass is green."})

    output = list(chatbot.respond("Rebuild"))

    assert output == [REBUILT_MESSAGE]
    assert chatbot.pipeline.document_count() == 2


def test_respond_rebuild_failure_apologizes(chatbot_factory, sky_knowledge_base):
    chatbot = chatbot_factory(sky_knowledge_base)

    with patch.object(
        chatbot.pipeline.embedding_service,
        "get_embeddings_batch",
        side_effect=EmbeddingError("quota"),
    ):
        output = list(chatbot.respond("rebuild"))

    assert output == [APOLOGY]


def test_rebuild_with_chroma_server_down_apologizes(
    rag_pipeline_factory, sky_knowledge_base, fake_streamer_factory
):
    client = MagicMock()
    client.get_or_create_collection.return_value.count.return_value = 0
    pipeline = rag_pipeline_factory(
        sky_knowledge_base, vector_store=ChromaVectorStore(client=client)
    )
    pipeline.initialize()
    chatbot = RAGChatbot(pipeline, ConversationManager(), fake_streamer_factory())
    client.delete_collection.side_effect = ConnectionRefusedError("server down")

    output = list(chatbot.respond("rebuild"))

    assert output == [APOLOGY]


def test_respond_routes_questions_to_ask(
    chatbot_factory, sky_knowledge_base, fake_streamer_factory
):
    chatbot = chatbot_factory(sky_knowledge_base, fake_streamer_factory(["Blue."]))

    assert list(chatbot.respond("What about the status of the sky?")) == ["Blue."]

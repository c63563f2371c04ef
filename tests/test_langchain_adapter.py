from __future__ import annotations

import json

import pytest
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage, HumanMessage, ToolMessage

from solaris.domain.models.message import Message, Role, ToolCallPart, ToolResultPart
from solaris.infrastructure.llm.langchain_adapter import (
    LangChainChatModel,
    LangChainDocumentWriter,
    from_langchain_message,
    to_langchain_messages,
)


def test_history_converts_to_langchain_messages():
    call = ToolCallPart(tool_call_id="call_1", tool_name="read_plan", arguments={"id": "p1"})
    history = [
        Message.user("continue"),
        Message.assistant("Reading the plan.", tool_calls=[call]),
        Message.tool([ToolResultPart(tool_call_id="call_1", tool_name="read_plan", result={"status": "in_progress"})]),
    ]

    converted = to_langchain_messages(history)

    assert isinstance(converted[0], HumanMessage)
    assert converted[0].content == "continue"
    assert isinstance(converted[1], AIMessage)
    assert converted[1].tool_calls[0]["name"] == "read_plan"
    assert converted[1].tool_calls[0]["args"] == {"id": "p1"}
    assert converted[1].tool_calls[0]["id"] == "call_1"
    assert isinstance(converted[2], ToolMessage)
    assert converted[2].tool_call_id == "call_1"
    assert json.loads(converted[2].content) == {"status": "in_progress"}


def test_failed_tool_results_are_flagged():
    result = ToolResultPart(tool_call_id="call_1", tool_name="read_plan", result={"error": "x"}, is_error=True)
    converted = to_langchain_messages([Message.tool([result])])

    assert converted[0].status == "error"


def test_model_response_converts_back():
    response = AIMessage(
        content=[{"type": "text", "text": "Let me check. "}, "Done."],
        tool_calls=[{"name": "read_plan", "args": {"id": "p1"}, "id": "call_9"}],
    )

    message = from_langchain_message(response)

    assert message.role == Role.ASSISTANT
    assert message.text == "Let me check. Done."
    assert message.tool_calls[0].tool_call_id == "call_9"
    assert message.tool_calls[0].arguments == {"id": "p1"}


@pytest.mark.asyncio
async def test_chat_model_generates_assistant_messages():
    llm = GenericFakeChatModel(messages=iter([AIMessage(content="Hello there")]))
    model = LangChainChatModel(llm)

    response = await model.generate([Message.user("hi")], [{"name": "read_plan", "description": "d", "parameters": {}}])

    assert response.role == Role.ASSISTANT
    assert response.text == "Hello there"
    assert response.tool_calls == []


@pytest.mark.asyncio
async def test_document_writer_streams_fragments():
    llm = GenericFakeChatModel(messages=iter([AIMessage(content="# Title\n\nSome body text")]))
    writer = LangChainDocumentWriter(llm)

    chunks = [chunk async for chunk in writer.stream("You write documents.", "A title")]

    assert len(chunks) > 1
    assert "".join(chunks) == "# Title\n\nSome body text"

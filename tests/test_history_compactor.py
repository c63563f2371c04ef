from __future__ import annotations

import json

import pytest

from solaris.domain.context.checkpoint import (
    ARGUMENT_PREVIEW_CHARS,
    CHECKPOINT_BANNER,
    RECENT_CONTEXT_MARKER,
    RESULT_PREVIEW_CHARS,
    HistoryCompactor,
    digest_line,
)
from solaris.domain.context.context_manager import ContextManager
from solaris.domain.context.memory.runtime_memory import ConversationMemory
from solaris.domain.models.message import Message, Role, ToolCallPart, ToolResultPart


def tool_round(index: int, filler: int = 400):
    call = ToolCallPart(tool_call_id=f"call_{index}", tool_name="search_documents", arguments={"query": f"q{index}"})
    return [
        Message.assistant("x" * filler, tool_calls=[call]),
        Message.tool([ToolResultPart(tool_call_id=f"call_{index}", tool_name="search_documents", result={"count": index})]),
    ]


def long_history(rounds: int, request: str = "Build me a quarterly report"):
    messages = [Message.user(request)]
    for i in range(rounds):
        messages.extend(tool_round(i))
    return messages


@pytest.fixture
def compactor():
    return HistoryCompactor(threshold=1000)


def test_history_under_threshold_is_untouched(compactor):
    history = long_history(1)
    result = compactor.compact(history)

    assert not result.compacted
    assert result.messages == history
    assert result.tokens_before == result.tokens_after


def test_compaction_keeps_checkpoint_plus_recent_tail(compactor):
    history = long_history(30)
    result = compactor.compact(history)

    assert result.compacted
    assert len(result.messages) == 11
    assert result.messages[1:] == history[-10:]

    checkpoint = result.messages[0]
    assert checkpoint.role == Role.USER
    assert checkpoint.is_checkpoint
    assert checkpoint.text.startswith(CHECKPOINT_BANNER)
    assert "ORIGINAL REQUEST:\nBuild me a quarterly report" in checkpoint.text
    assert checkpoint.text.endswith(RECENT_CONTEXT_MARKER)
    assert "read_plan" in checkpoint.text
    assert result.tokens_after < result.tokens_before


def test_digest_keeps_only_the_latest_twenty_lines(compactor):
    result = compactor.compact(long_history(30))

    # 25 trimmed rounds produce 50 lines; the newest 20 survive
    assert len(result.digest) == 20
    assert result.digest[-1] == '- result search_documents: {"count": 24}'
    assert result.digest[0] == '- called search_documents({"query": "q15"})'
    assert "\n".join(result.digest) in result.messages[0].text


def test_argument_and_result_previews_are_truncated():
    call = ToolCallPart(tool_name="create_document", arguments={"title": "y" * 500})
    line = digest_line(call)
    preview = line[len("- called create_document("):-1]
    assert len(preview) == ARGUMENT_PREVIEW_CHARS
    assert preview.endswith("...")
    assert preview.startswith(json.dumps({"title": "y" * 500})[:ARGUMENT_PREVIEW_CHARS - 3])

    result = ToolResultPart(tool_call_id="c", tool_name="read_document", result="z" * 500)
    line = digest_line(result)
    assert len(line[len("- result read_document: "):]) == RESULT_PREVIEW_CHARS


def test_failed_results_are_marked():
    result = ToolResultPart(tool_call_id="c", tool_name="read_plan", result={"error": "Document not found"}, is_error=True)
    assert digest_line(result).startswith("- failed read_plan: ")


def test_short_history_is_never_compacted(compactor):
    history = [Message.user("z" * 5000)] + [Message.assistant("w" * 2000) for _ in range(9)]
    result = compactor.compact(history)

    assert not result.compacted
    assert result.messages == history


def test_recompaction_sees_through_the_previous_checkpoint(compactor):
    first = compactor.compact(long_history(30))
    history = list(first.messages)
    for i in range(100, 130):
        history.extend(tool_round(i))

    second = compactor.compact(history)

    assert second.compacted
    assert second.original_request == "Build me a quarterly report"
    assert second.messages[0].text.count(CHECKPOINT_BANNER) == 1
    assert len(second.digest) == 20
    assert second.digest[-1].startswith("- result search_documents")


def test_history_without_user_message_has_empty_request(compactor):
    history = []
    for i in range(30):
        history.extend(tool_round(i))

    result = compactor.compact(history)

    assert result.compacted
    assert result.original_request == ""
    assert "ORIGINAL REQUEST:\n\n" in result.messages[0].text


@pytest.mark.asyncio
async def test_context_manager_replaces_stored_history():
    manager = ContextManager(HistoryCompactor(threshold=1000))
    await manager.record("s1", *long_history(30))

    result = await manager.prepare_history("s1")
    stored = await manager.get_history("s1")

    assert result.compacted
    assert stored == result.messages
    summary = await manager.get_context_summary("s1")
    assert summary["checkpointed"] is True
    assert summary["message_count"] == 11


@pytest.mark.asyncio
async def test_context_manager_leaves_small_history_alone():
    manager = ContextManager()
    await manager.record("s1", Message.user("hi"))

    result = await manager.prepare_history("s1")

    assert not result.compacted
    assert await manager.get_history("s1") == [Message.user("hi")]


@pytest.mark.asyncio
async def test_least_recently_used_history_is_evicted():
    memory = ConversationMemory(max_sessions=2)
    await memory.append("s1", Message.user("one"))
    await memory.append("s2", Message.user("two"))
    await memory.get_history("s1")
    await memory.append("s3", Message.user("three"))

    assert await memory.get_history("s2") == []
    assert await memory.get_history("s1") == [Message.user("one")]
    assert list(memory.conversations) == ["s3", "s1"]

from __future__ import annotations

import asyncio

import pytest

from solaris.application.websocket.connection_manager import ConnectionManager
from solaris.domain.models.document import DocumentKind
from solaris.domain.streaming.delta_channel import DeltaChannel
from solaris.domain.streaming.streaming_handler import StreamingHandler


class RecordingConnections(ConnectionManager):
    """Records relayed events; sending waits while the gate is closed."""

    def __init__(self):
        super().__init__()
        self.events = []
        self.gate = asyncio.Event()
        self.gate.set()

    async def send_event(self, session_id, event):
        await self.gate.wait()
        self.events.append(event)
        return True


def relayed_types(connections):
    return [event.payload["type"] for event in connections.events]


async def stream_document(channel, document_id, words, chat_id="chat-1"):
    sink = await channel.open(document_id, chat_id=chat_id)
    for word in words:
        await sink.write_delta(DocumentKind.TEXT, word)
    await sink.finish()


@pytest.mark.asyncio
async def test_relay_forwards_long_streams_in_full():
    channel = DeltaChannel()
    connections = RecordingConnections()
    handler = StreamingHandler(channel, connections)
    handler.start("chat-1")
    words = [f"w{i} " for i in range(channel.subscriber_buffer * 2)]

    await stream_document(channel, "doc-1", words)
    await handler.flush("chat-1")

    types = relayed_types(connections)
    assert types.count("data-textDelta") == len(words)
    assert types[-1] == "data-finish"
    await handler.stop("chat-1")


@pytest.mark.asyncio
async def test_relay_recovers_after_falling_behind():
    channel = DeltaChannel(subscriber_buffer=4)
    connections = RecordingConnections()
    handler = StreamingHandler(channel, connections)
    task = handler.start("chat-1")

    connections.gate.clear()
    await stream_document(channel, "doc-1", [f"a{i} " for i in range(10)])
    connections.gate.set()
    await handler.flush("chat-1")

    assert "data-finish" not in relayed_types(connections)
    connections.events.clear()

    await stream_document(channel, "doc-2", ["b1 ", "b2 "])
    await handler.flush("chat-1")

    assert relayed_types(connections) == ["data-textDelta", "data-textDelta", "data-finish"]
    assert handler.start("chat-1") is task
    await handler.stop("chat-1")
    assert task.done()


@pytest.mark.asyncio
async def test_start_replaces_an_ended_relay():
    channel = DeltaChannel()
    connections = RecordingConnections()
    handler = StreamingHandler(channel, connections)

    first = handler.start("chat-1")
    handler.streaming_sessions["chat-1"][0].end()
    await first

    second = handler.start("chat-1")
    assert second is not first

    await stream_document(channel, "doc-1", ["hello"])
    await handler.flush("chat-1")
    assert relayed_types(connections)[-1] == "data-finish"
    await handler.stop("chat-1")

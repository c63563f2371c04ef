from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

from solaris.domain.document.artifact_generator import ArtifactGenerator, word_chunks
from solaris.domain.document.document_store import DocumentStore
from solaris.domain.models.message import Message
from solaris.domain.plan.plan_engine import PlanEngine
from solaris.domain.streaming.delta_channel import DeltaChannel
from solaris.infrastructure.persistence.memory_repository import InMemoryDocumentRepository


class FakeDocumentWriter:
    """Streams scripted outputs word by word; falls back to an echo of the prompt."""

    def __init__(self, outputs: Optional[List[str]] = None, fail_after: Optional[int] = None):
        self.outputs = list(outputs or [])
        self.fail_after = fail_after
        self.calls: List[tuple] = []

    async def stream(self, system: str, prompt: str):
        self.calls.append((system, prompt))
        content = self.outputs.pop(0) if self.outputs else f"Generated content for {prompt}"
        for count, chunk in enumerate(word_chunks(content)):
            if self.fail_after is not None and count >= self.fail_after:
                raise RuntimeError("writer connection lost")
            yield chunk


Response = Union[Message, Callable[[List[Message]], Any]]


class ScriptedChatModel:
    """Returns scripted responses in order; callables get the messages and may be async."""

    def __init__(self, responses: List[Response], default: Optional[Response] = None):
        self.responses = list(responses)
        self.default = default
        self.calls: List[List[Message]] = []
        self.tools: List[List[Dict[str, Any]]] = []

    async def generate(self, messages: List[Message], tools: List[Dict[str, Any]]) -> Message:
        self.calls.append(list(messages))
        self.tools.append(tools)
        response = self.responses.pop(0) if self.responses else self.default
        if response is None:
            return Message.assistant("Nothing left to do.")
        if callable(response):
            response = response(messages)
            if asyncio.iscoroutine(response):
                response = await response
        return response


@pytest.fixture
def repository():
    return InMemoryDocumentRepository()


@pytest.fixture
def store(repository):
    return DocumentStore(repository)


@pytest.fixture
def channel():
    return DeltaChannel()


@pytest.fixture
def writer():
    return FakeDocumentWriter()


@pytest.fixture
def artifacts(store, channel, writer):
    return ArtifactGenerator(store, channel, writer)


@pytest.fixture
def plans(store, artifacts):
    return PlanEngine(store, artifacts)

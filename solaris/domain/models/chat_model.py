from typing import Any, AsyncIterator, Dict, List, Protocol

from .message import Message


class ChatModel(Protocol):
    """Language model provider used by the session orchestrator"""

    async def generate(self, messages: List[Message], tools: List[Dict[str, Any]]) -> Message:
        """Return the next assistant message, possibly carrying tool calls"""
        ...


class DocumentWriter(Protocol):
    """Streams generated document text for a system prompt and a user prompt"""

    def stream(self, system: str, prompt: str) -> AsyncIterator[str]:
        ...

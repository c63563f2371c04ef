from typing import List, Optional
import asyncio
from collections import OrderedDict
import structlog

from solaris.domain.models.message import Message

logger = structlog.get_logger(__name__)


class ConversationMemory:
    """Owns the conversation history of active sessions.

    Histories are append-only during a turn. The only other mutation is
    ``replace``, used when the compactor substitutes a checkpointed history.
    Histories outlive their websocket so a conversation can be continued;
    at most ``max_sessions`` are kept, the least recently used is evicted.
    """

    def __init__(self, max_sessions: Optional[int] = 1000):
        self.conversations: "OrderedDict[str, List[Message]]" = OrderedDict()
        self.max_sessions = max_sessions
        self._lock = asyncio.Lock()

    async def append(self, session_id: str, *messages: Message):
        """Append messages to a session history"""

        async with self._lock:
            self.conversations.setdefault(session_id, []).extend(messages)
            self._touch(session_id)

    async def replace(self, session_id: str, messages: List[Message]):
        """Substitute the whole history of a session"""

        async with self._lock:
            self.conversations[session_id] = list(messages)
            self._touch(session_id)

    async def get_history(self, session_id: str) -> List[Message]:
        """Get a copy of the history for a session"""

        async with self._lock:
            if session_id not in self.conversations:
                return []
            self.conversations.move_to_end(session_id)
            return list(self.conversations[session_id])

    async def clear_session(self, session_id: str):
        """Drop the history of a session"""

        async with self._lock:
            self.conversations.pop(session_id, None)

    def _touch(self, session_id: str):
        self.conversations.move_to_end(session_id)
        if self.max_sessions is None:
            return
        while len(self.conversations) > self.max_sessions:
            evicted, _ = self.conversations.popitem(last=False)
            logger.info("Evicted idle conversation history", session_id=evicted)

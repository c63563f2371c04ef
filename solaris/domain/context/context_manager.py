from typing import Dict, List, Any, Optional
import structlog

from solaris.domain.models.message import Message
from solaris.infrastructure.observability.logging import agent_logger
from .checkpoint import HistoryCompactor, CompactionResult
from .memory.runtime_memory import ConversationMemory
from .token_budget import estimate_tokens

logger = structlog.get_logger(__name__)


class ContextManager:
    """Assembles the model context for a session and keeps it within budget"""

    def __init__(
        self,
        compactor: Optional[HistoryCompactor] = None,
        memory: Optional[ConversationMemory] = None
    ):
        self.compactor = compactor or HistoryCompactor()
        self.memory = memory or ConversationMemory()

    async def record(self, session_id: str, *messages: Message):
        """Append messages to the session history"""

        await self.memory.append(session_id, *messages)

    async def get_history(self, session_id: str) -> List[Message]:
        return await self.memory.get_history(session_id)

    async def prepare_history(self, session_id: str) -> CompactionResult:
        """Compact the stored history if needed and return what the model sees.

        Called before every model invocation; when compaction happens the
        stored history is replaced by the checkpointed one.
        """

        history = await self.memory.get_history(session_id)
        result = self.compactor.compact(history)

        if result.compacted:
            await self.memory.replace(session_id, result.messages)
            agent_logger.log_compaction(
                session_id=session_id,
                tokens_before=result.tokens_before,
                tokens_after=result.tokens_after,
                messages_before=len(history),
                messages_after=len(result.messages),
                digest_lines=len(result.digest)
            )

        return result

    async def get_context_summary(self, session_id: str) -> Dict[str, Any]:
        """Get a summary of the current context"""

        history = await self.memory.get_history(session_id)

        if not history:
            return {
                "session_id": session_id,
                "status": "no_context"
            }

        return {
            "session_id": session_id,
            "message_count": len(history),
            "estimated_tokens": estimate_tokens(history),
            "threshold": self.compactor.threshold,
            "checkpointed": history[0].is_checkpoint
        }

    async def clear_session_context(self, session_id: str):
        """Clear all context for a session"""

        logger.info("Clearing session context", session_id=session_id)
        await self.memory.clear_session(session_id)

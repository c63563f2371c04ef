from typing import List, Optional
from pydantic import BaseModel, Field
import structlog

from solaris.domain.models.message import (
    CheckpointInfo, Message, Role, TextPart, ToolCallPart, ToolResultPart
)
from .token_budget import estimate_tokens, serialize_payload

logger = structlog.get_logger(__name__)

CHECKPOINT_BANNER = (
    "[CONTEXT CHECKPOINT - Your conversation history was trimmed to stay within context limits]"
)

RESUME_INSTRUCTIONS = """INSTRUCTIONS:
1. Use read_plan to check the current plan state
2. Use list_documents to see what documents have been created
3. Continue executing the plan from where you left off; do not restart steps already marked complete
4. Update the plan after completing each step
5. Before marking the plan completed, use read_document to verify the deliverables are complete and contain real content"""

RECENT_CONTEXT_MARKER = "Recent context follows below."

ARGUMENT_PREVIEW_CHARS = 100
RESULT_PREVIEW_CHARS = 80


class CompactionResult(BaseModel):
    """Outcome of a compaction attempt"""
    compacted: bool
    messages: List[Message]
    tokens_before: int
    tokens_after: int
    original_request: str = ""
    digest: List[str] = Field(default_factory=list)


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - 3] + "..."


def digest_line(part) -> Optional[str]:
    """One-line summary of a tool call or a tool result"""

    if isinstance(part, ToolCallPart):
        arguments = _truncate(serialize_payload(part.arguments), ARGUMENT_PREVIEW_CHARS)
        return f"- called {part.tool_name}({arguments})"
    if isinstance(part, ToolResultPart):
        prefix = "failed" if part.is_error else "result"
        result = _truncate(serialize_payload(part.result), RESULT_PREVIEW_CHARS)
        return f"- {prefix} {part.tool_name}: {result}"
    return None


def render_checkpoint(original_request: str, digest: List[str]) -> str:
    """Text of a checkpoint message"""

    sections = [CHECKPOINT_BANNER, f"ORIGINAL REQUEST:\n{original_request}"]
    if digest:
        sections.append("WORK COMPLETED SO FAR (tool activity before the trim):\n" + "\n".join(digest))
    sections.append(RESUME_INSTRUCTIONS)
    sections.append(RECENT_CONTEXT_MARKER)
    return "\n\n".join(sections)


class HistoryCompactor:
    """Replaces an over-budget history prefix with a single checkpoint message"""

    def __init__(
        self,
        threshold: int = 50_000,
        recent_count: int = 10,
        max_digest_lines: int = 20
    ):
        self.threshold = threshold
        self.recent_count = recent_count
        self.max_digest_lines = max_digest_lines

    def compact(self, messages: List[Message]) -> CompactionResult:
        """Compact ``messages`` if their estimate exceeds the threshold"""

        messages = list(messages)
        tokens = estimate_tokens(messages)

        if tokens <= self.threshold:
            return CompactionResult(compacted=False, messages=messages, tokens_before=tokens, tokens_after=tokens)

        if len(messages) <= self.recent_count:
            # Nothing left to trim; a checkpoint would only grow the history
            logger.warning(
                "History over budget but too short to compact",
                tokens=tokens,
                message_count=len(messages)
            )
            return CompactionResult(compacted=False, messages=messages, tokens_before=tokens, tokens_after=tokens)

        tail_start = len(messages) - self.recent_count
        recent = messages[tail_start:]

        first_user_index = self._first_user_index(messages)
        original_request, digest = self._extract(messages, first_user_index, tail_start)

        checkpoint = Message(
            role=Role.USER,
            parts=[TextPart(text=render_checkpoint(original_request, digest))],
            checkpoint=CheckpointInfo(original_request=original_request, digest=digest)
        )

        compacted = [checkpoint] + recent
        return CompactionResult(
            compacted=True,
            messages=compacted,
            tokens_before=tokens,
            tokens_after=estimate_tokens(compacted),
            original_request=original_request,
            digest=digest
        )

    def _first_user_index(self, messages: List[Message]) -> Optional[int]:
        for index, message in enumerate(messages):
            if message.role == Role.USER:
                return index
        return None

    def _extract(self, messages: List[Message], first_user_index: Optional[int], tail_start: int):
        """Original request and digest lines for the region being trimmed"""

        digest: List[str] = []

        if first_user_index is None:
            original_request = ""
            region = messages[:tail_start]
        else:
            first_user = messages[first_user_index]
            if first_user.is_checkpoint:
                # See through an earlier checkpoint to the real request
                original_request = first_user.checkpoint.original_request
                digest.extend(first_user.checkpoint.digest)
            else:
                original_request = first_user.text
            region = messages[first_user_index + 1:tail_start]

        for message in region:
            for part in message.parts:
                line = digest_line(part)
                if line is not None:
                    digest.append(line)

        if self.max_digest_lines == 0:
            return original_request, []
        return original_request, digest[-self.max_digest_lines:]

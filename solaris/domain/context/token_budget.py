"""
Token budget estimation.

A character-count heuristic (about four characters per token) rather than a
real tokenizer: deterministic, and adding content never lowers the estimate.
"""

from typing import Any, Iterable
import json
import math

from solaris.domain.models.message import Message, TextPart, ToolCallPart, ToolResultPart

CHARS_PER_TOKEN = 4


def serialize_payload(payload: Any) -> str:
    """Stable JSON rendering of a tool argument or result payload"""
    if isinstance(payload, str):
        return payload
    return json.dumps(payload, default=str, ensure_ascii=False)


def count_characters(message: Message) -> int:
    """Characters a message contributes to the estimate, role name included"""

    total = len(message.role.value)
    for part in message.parts:
        if isinstance(part, TextPart):
            total += len(part.text)
        elif isinstance(part, ToolCallPart):
            total += len(part.tool_name) + len(serialize_payload(part.arguments))
        elif isinstance(part, ToolResultPart):
            total += len(part.tool_name) + len(serialize_payload(part.result))
    return total


def estimate_tokens(messages: Iterable[Message]) -> int:
    """Estimate the token count of a message sequence"""

    total_chars = sum(count_characters(message) for message in messages)
    return math.ceil(total_chars / CHARS_PER_TOKEN)

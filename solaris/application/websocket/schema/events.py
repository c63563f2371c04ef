from typing import Dict, Any, Optional, List, Literal
from pydantic import BaseModel, Field
from datetime import datetime, timezone
from enum import Enum


def _now() -> datetime:
    return datetime.now(timezone.utc)


class EventType(str, Enum):
    """WebSocket event types"""
    MARKDOWN = "markdown"
    STREAM_PART = "stream_part"
    ERROR = "error"
    CONNECTION = "connection"
    USER_MESSAGE = "user_message"
    TURN_COMPLETE = "turn_complete"


class BaseEvent(BaseModel):
    """Base event model for all WebSocket messages"""
    type: EventType
    timestamp: datetime = Field(default_factory=_now)
    session_id: Optional[str] = None


class MarkdownEvent(BaseEvent):
    """Assistant text for the chat transcript"""
    type: Literal[EventType.MARKDOWN] = EventType.MARKDOWN
    payload: str


class StreamPartEvent(BaseEvent):
    """One document stream part, in wire form"""
    type: Literal[EventType.STREAM_PART] = EventType.STREAM_PART
    payload: Dict[str, Any]


class TurnCompleteEvent(BaseEvent):
    """End of an agent turn"""
    type: Literal[EventType.TURN_COMPLETE] = EventType.TURN_COMPLETE
    payload: Dict[str, Any]


class ErrorEvent(BaseEvent):
    """Error event"""
    type: Literal[EventType.ERROR] = EventType.ERROR
    payload: Dict[str, Any]
    error_code: Optional[str] = None


class ConnectionEvent(BaseEvent):
    """Connection status event"""
    type: Literal[EventType.CONNECTION] = EventType.CONNECTION
    status: Literal["connected", "disconnected", "reconnecting"]


class UserMessage(BaseEvent):
    """User message event"""
    type: Literal[EventType.USER_MESSAGE] = EventType.USER_MESSAGE
    content: str = Field(min_length=1)
    attachments: Optional[List[Dict[str, Any]]] = None
    metadata: Optional[Dict[str, Any]] = None

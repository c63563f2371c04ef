from typing import Dict, Any, List, Optional, Union, Literal, Annotated
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone
from enum import Enum
import uuid


class Role(str, Enum):
    """Conversation roles"""
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class TextPart(BaseModel):
    """Plain text content"""
    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ToolCallPart(BaseModel):
    """A tool invocation requested by the model"""
    model_config = ConfigDict(frozen=True)

    type: Literal["tool_call"] = "tool_call"
    tool_call_id: str = Field(default_factory=lambda: f"call_{uuid.uuid4().hex[:12]}")
    tool_name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ToolResultPart(BaseModel):
    """The outcome of a tool invocation"""
    model_config = ConfigDict(frozen=True)

    type: Literal["tool_result"] = "tool_result"
    tool_call_id: str
    tool_name: str
    result: Any = None
    is_error: bool = False


ContentPart = Annotated[Union[TextPart, ToolCallPart, ToolResultPart], Field(discriminator="type")]


class CheckpointInfo(BaseModel):
    """Marks a synthetic message that replaced a trimmed history prefix"""
    model_config = ConfigDict(frozen=True)

    original_request: str = ""
    digest: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Message(BaseModel):
    """A single entry of the conversation history; immutable once appended"""
    model_config = ConfigDict(frozen=True)

    role: Role
    parts: List[ContentPart] = Field(default_factory=list)
    checkpoint: Optional[CheckpointInfo] = Field(None, description="Set only on checkpoint messages")

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(role=Role.USER, parts=[TextPart(text=text)])

    @classmethod
    def assistant(cls, text: str = "", tool_calls: Optional[List[ToolCallPart]] = None) -> "Message":
        parts: List[Any] = [TextPart(text=text)] if text else []
        parts.extend(tool_calls or [])
        return cls(role=Role.ASSISTANT, parts=parts)

    @classmethod
    def tool(cls, results: List[ToolResultPart]) -> "Message":
        return cls(role=Role.TOOL, parts=list(results))

    @property
    def text(self) -> str:
        """Concatenation of all text parts"""
        return " ".join(part.text for part in self.parts if isinstance(part, TextPart))

    @property
    def tool_calls(self) -> List[ToolCallPart]:
        return [part for part in self.parts if isinstance(part, ToolCallPart)]

    @property
    def tool_results(self) -> List[ToolResultPart]:
        return [part for part in self.parts if isinstance(part, ToolResultPart)]

    @property
    def is_checkpoint(self) -> bool:
        return self.checkpoint is not None

from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime, timezone
from enum import Enum

from .message import Message


class AgentStatus(str, Enum):
    """Agent turn status"""
    COMPLETED = "completed"
    STEP_LIMIT = "step_limit"


class TurnResult(BaseModel):
    """Outcome of a single agent turn"""
    session_id: str
    turn_id: str
    status: AgentStatus
    final_message: Optional[Message] = Field(None, description="Last assistant message of the turn")
    tool_steps: int = Field(0, description="Model responses that requested tools")
    tool_results: List[Dict[str, Any]] = Field(default_factory=list)
    compactions: int = Field(0, description="Times the history was compacted during the turn")
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the turn"""
        return {
            "session_id": self.session_id,
            "turn_id": self.turn_id,
            "status": self.status.value,
            "tool_steps": self.tool_steps,
            "errors": len([r for r in self.tool_results if r.get("is_error")]),
            "compactions": self.compactions,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }

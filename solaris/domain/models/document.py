from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone
from enum import Enum
import uuid


class DocumentKind(str, Enum):
    """Closed set of artifact kinds"""
    TEXT = "text"
    CODE = "code"
    SHEET = "sheet"
    PLAN = "plan"
    IMAGE = "image"
    PRESENTATION = "presentation"
    WEBVIEW = "webview"


def new_document_id() -> str:
    return str(uuid.uuid4())


class Document(BaseModel):
    """One version of a document; all versions of a document share its id"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Stable id shared by every version")
    version: int = Field(ge=1, description="Monotonic per-id version counter")
    title: str
    kind: DocumentKind
    content: str = ""
    owner: str = Field(description="Owning user id")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    project_id: Optional[str] = None

    def summary(self, preview_chars: int = 0) -> dict:
        """Listing row for tool results"""
        row = {
            "id": self.id,
            "title": self.title,
            "kind": self.kind.value,
            "created_at": self.created_at.isoformat(),
        }
        if preview_chars:
            row["content_preview"] = self.content[:preview_chars] if self.content else None
        return row


class Suggestion(BaseModel):
    """Inline edit proposal generated against one specific document version"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    document_id: str
    document_created_at: datetime = Field(description="created_at of the version the suggestion targets")
    original_text: str
    suggested_text: str
    description: Optional[str] = None
    owner: str
    is_resolved: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def is_stale(self, latest: Document) -> bool:
        """True when a newer version superseded the one this was generated for"""
        return latest.id == self.document_id and latest.created_at != self.document_created_at

from typing import Any, Dict
from pydantic import BaseModel, ConfigDict
from enum import Enum

from solaris.domain.models.document import DocumentKind


class StreamPartType(str, Enum):
    """Stream event vocabulary sent to UI consumers"""
    ID = "data-id"
    TITLE = "data-title"
    KIND = "data-kind"
    CLEAR = "data-clear"
    TEXT_DELTA = "data-textDelta"
    CODE_DELTA = "data-codeDelta"
    SHEET_DELTA = "data-sheetDelta"
    PLAN_DELTA = "data-planDelta"
    IMAGE_DELTA = "data-imageDelta"
    PRESENTATION_DELTA = "data-presentationDelta"
    WEBVIEW_DELTA = "data-webviewDelta"
    FINISH = "data-finish"

    @property
    def is_delta(self) -> bool:
        return self in _DELTA_TYPES.values()


_DELTA_TYPES: Dict[DocumentKind, StreamPartType] = {
    DocumentKind.TEXT: StreamPartType.TEXT_DELTA,
    DocumentKind.CODE: StreamPartType.CODE_DELTA,
    DocumentKind.SHEET: StreamPartType.SHEET_DELTA,
    DocumentKind.PLAN: StreamPartType.PLAN_DELTA,
    DocumentKind.IMAGE: StreamPartType.IMAGE_DELTA,
    DocumentKind.PRESENTATION: StreamPartType.PRESENTATION_DELTA,
    DocumentKind.WEBVIEW: StreamPartType.WEBVIEW_DELTA,
}

_missing = set(DocumentKind) - set(_DELTA_TYPES)
if _missing:
    raise RuntimeError(f"No delta stream type for document kinds: {sorted(k.value for k in _missing)}")


def delta_type_for(kind: DocumentKind) -> StreamPartType:
    """Delta discriminator used for fragments of a document kind"""
    return _DELTA_TYPES[DocumentKind(kind)]


class StreamPart(BaseModel):
    """One event of a document generation stream"""
    model_config = ConfigDict(frozen=True)

    type: StreamPartType
    data: Any = None
    transient: bool = False

    @classmethod
    def delta(cls, kind: DocumentKind, text: str) -> "StreamPart":
        return cls(type=delta_type_for(kind), data=text, transient=True)

    def to_wire(self) -> Dict[str, Any]:
        payload = {"type": self.type.value, "data": self.data}
        if self.transient:
            payload["transient"] = True
        return payload

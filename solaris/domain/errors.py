from typing import Dict, Any, Optional
from enum import Enum


class ErrorKind(str, Enum):
    """Error categories surfaced to callers and the model"""
    VALIDATION = "validation"
    FORBIDDEN = "forbidden"
    KIND_MISMATCH = "kind_mismatch"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    STORAGE = "storage"
    STREAM_TRANSPORT = "stream_transport"
    TOOL_FAILURE = "tool_failure"


class AgentError(Exception):
    """Base class for all errors raised by the agent core"""

    kind: ErrorKind = ErrorKind.TOOL_FAILURE
    retryable: bool = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self, uniform_access: bool = False) -> Dict[str, Any]:
        """Structured error payload returned in place of a tool result.

        With ``uniform_access`` not-found and forbidden errors are reported
        identically so the payload does not reveal whether an id exists.
        """

        kind = self.kind
        message = self.message
        if uniform_access and kind in (ErrorKind.NOT_FOUND, ErrorKind.FORBIDDEN):
            kind = ErrorKind.NOT_FOUND
            message = "Document not found"

        return {
            "error": message,
            "error_kind": kind.value,
            "retryable": self.retryable,
        }


class ToolValidationError(AgentError):
    """Malformed tool arguments, rejected before any side effect"""
    kind = ErrorKind.VALIDATION


class AuthorizationError(AgentError):
    """The caller does not own the resource"""
    kind = ErrorKind.FORBIDDEN


class KindMismatchError(AuthorizationError):
    """The resource exists but is of the wrong document kind"""
    kind = ErrorKind.KIND_MISMATCH


class NotFoundError(AgentError):
    """The id does not resolve to any version"""
    kind = ErrorKind.NOT_FOUND


class ConflictError(AgentError):
    """A concurrent writer created a newer version first"""
    kind = ErrorKind.CONFLICT
    retryable = True


class StorageError(AgentError):
    """The persistence collaborator failed or is unreachable"""
    kind = ErrorKind.STORAGE
    retryable = True


class StreamTransportError(AgentError):
    """Delta delivery failed; generation itself is unaffected"""
    kind = ErrorKind.STREAM_TRANSPORT


class PlanFormatError(AgentError):
    """Plan content is missing a required section"""
    kind = ErrorKind.VALIDATION


class InvalidTransitionError(AgentError):
    """A plan revision breaks the status or step-index rules"""
    kind = ErrorKind.VALIDATION

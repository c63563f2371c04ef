import structlog
import logging
import sys
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import os


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "solaris-agent"
) -> None:
    """Setup structured logging configuration"""

    # Configure Python logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
        version=os.getenv("SERVICE_VERSION", "unknown")
    )


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add service context to all log entries"""

    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()

    # Turn-scoped identifiers are bound by the orchestrator
    context = structlog.contextvars.get_contextvars()
    for key in ("session_id", "turn_id", "owner"):
        if key in context and key not in event_dict:
            event_dict[key] = context[key]

    return event_dict


class AgentLogger:
    """Specialized logger for agent operations"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_tool_execution(
        self,
        tool_name: str,
        session_id: str,
        input_data: Dict[str, Any],
        duration_ms: Optional[float] = None,
        success: bool = True,
        error: Optional[str] = None,
        error_kind: Optional[str] = None
    ):
        """Log tool execution events"""

        log = self.logger.info if success else self.logger.warning
        log(
            "tool_execution",
            tool_name=tool_name,
            session_id=session_id,
            input_keys=sorted(input_data.keys()),
            duration_ms=duration_ms,
            success=success,
            error=error,
            error_kind=error_kind
        )

    def log_compaction(
        self,
        session_id: str,
        tokens_before: int,
        tokens_after: int,
        messages_before: int,
        messages_after: int,
        digest_lines: int
    ):
        """Log a history compaction"""

        self.logger.info(
            "history_compacted",
            session_id=session_id,
            tokens_before=tokens_before,
            tokens_after=tokens_after,
            messages_before=messages_before,
            messages_after=messages_after,
            digest_lines=digest_lines
        )

    def log_document_version(
        self,
        document_id: str,
        kind: str,
        version: int,
        owner: str
    ):
        """Log creation of a document version"""

        self.logger.info(
            "document_version_created",
            document_id=document_id,
            kind=kind,
            version=version,
            owner=owner
        )

    def log_stream_event(
        self,
        document_id: str,
        generation_id: str,
        action: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Log stream session lifecycle events"""

        self.logger.debug(
            "stream_event",
            document_id=document_id,
            generation_id=generation_id,
            action=action,
            details=details or {}
        )


# Global logger instance
agent_logger = AgentLogger("solaris")

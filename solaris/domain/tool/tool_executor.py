from typing import Any, Dict
import time
import structlog

from solaris.domain.errors import AgentError, ErrorKind, ToolValidationError
from solaris.domain.models.message import ToolCallPart, ToolResultPart
from solaris.infrastructure.observability.logging import agent_logger
from .tool_registry import ToolContext, ToolRegistry
from .tool_validator import validate_tool_call

logger = structlog.get_logger(__name__)


class ToolExecutor:
    """Executes tool calls and turns every failure into a tool result.

    A failing tool never aborts the turn: the error goes back to the model
    as a structured payload so it can retry, pick another tool or report it.
    Cancellation is not a failure and propagates.
    """

    def __init__(self, registry: ToolRegistry, uniform_access_errors: bool = False):
        self.registry = registry
        self.uniform_access_errors = uniform_access_errors

    async def execute(self, call: ToolCallPart, context: ToolContext) -> ToolResultPart:
        """Execute one tool call"""

        started = time.perf_counter()
        try:
            tool = self.registry.get_tool(call.tool_name)
            if tool is None:
                raise ToolValidationError(f"Unknown tool: {call.tool_name}")

            arguments = validate_tool_call(tool, call.arguments)
            result = await tool.handler(arguments, context)
            return self._finish(call, context, started, result)

        except AgentError as e:
            return self._fail(call, context, started, e.to_payload(self.uniform_access_errors), e.kind)
        except Exception as e:
            logger.exception("Tool raised unexpectedly", tool_name=call.tool_name)
            payload = {"error": f"{type(e).__name__}: {e}", "error_kind": ErrorKind.TOOL_FAILURE.value, "retryable": False}
            return self._fail(call, context, started, payload, ErrorKind.TOOL_FAILURE)

    def _finish(self, call: ToolCallPart, context: ToolContext, started: float, result: Any) -> ToolResultPart:
        agent_logger.log_tool_execution(
            tool_name=call.tool_name,
            session_id=context.session_id,
            input_data=call.arguments,
            duration_ms=(time.perf_counter() - started) * 1000
        )
        return ToolResultPart(tool_call_id=call.tool_call_id, tool_name=call.tool_name, result=result)

    def _fail(
        self,
        call: ToolCallPart,
        context: ToolContext,
        started: float,
        payload: Dict[str, Any],
        kind: ErrorKind
    ) -> ToolResultPart:
        # Logs keep the real kind even when the payload is made uniform
        agent_logger.log_tool_execution(
            tool_name=call.tool_name,
            session_id=context.session_id,
            input_data=call.arguments if isinstance(call.arguments, dict) else {},
            duration_ms=(time.perf_counter() - started) * 1000,
            success=False,
            error=payload.get("error"),
            error_kind=kind.value
        )
        return ToolResultPart(
            tool_call_id=call.tool_call_id,
            tool_name=call.tool_name,
            result=payload,
            is_error=True
        )

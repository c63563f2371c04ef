from typing import TypedDict, List, Dict, Any, Optional, Literal
from langgraph.graph import StateGraph, END
import asyncio
import uuid
import structlog
from datetime import datetime, timezone

from solaris.domain.context.context_manager import ContextManager
from solaris.domain.models.agent_state import AgentStatus, TurnResult
from solaris.domain.models.chat_model import ChatModel
from solaris.domain.models.message import Message, Role, ToolResultPart
from solaris.domain.orchestration.resources import SessionResources
from solaris.domain.tool.tool_executor import ToolExecutor
from solaris.domain.tool.tool_registry import ToolContext, ToolRegistry

logger = structlog.get_logger(__name__)

STEP_LIMIT_ERROR = {
    "error": "Tool step limit reached for this turn",
    "error_kind": "tool_failure",
    "retryable": False,
}

TURN_CANCELLED_ERROR = {
    "error": "Turn was cancelled before this tool call finished",
    "error_kind": "tool_failure",
    "retryable": True,
}


class TurnState(TypedDict):
    """State for the turn graph"""
    session_id: str
    owner: str
    messages: List[Message]
    last_response: Optional[Message]
    tool_steps: int
    compactions: int
    tool_results: List[Dict[str, Any]]


class SessionOrchestrator:
    """Runs agent turns: compact, call the model, dispatch tools, repeat"""

    def __init__(
        self,
        model: ChatModel,
        context_manager: ContextManager,
        registry: ToolRegistry,
        executor: Optional[ToolExecutor] = None,
        max_tool_steps: int = 25
    ):
        self.model = model
        self.context_manager = context_manager
        self.registry = registry
        self.executor = executor or ToolExecutor(registry)
        self.max_tool_steps = max_tool_steps
        self.session_resources: Dict[str, SessionResources] = {}
        self.workflow = self._create_workflow()

    def _create_workflow(self):
        """Create the turn graph"""

        workflow = StateGraph(TurnState)

        workflow.add_node("compact_history", self.compaction_node)
        workflow.add_node("call_model", self.model_node)
        workflow.add_node("execute_tools", self.tool_execution_node)

        workflow.set_entry_point("compact_history")
        workflow.add_edge("compact_history", "call_model")
        workflow.add_conditional_edges(
            "call_model",
            self.route_after_model,
            {
                "tools": "execute_tools",
                "done": END
            }
        )
        # Compaction runs again before every model call
        workflow.add_edge("execute_tools", "compact_history")

        return workflow.compile()

    async def compaction_node(self, state: TurnState) -> Dict[str, Any]:
        """Compact the session history if it is over budget"""

        result = await self.context_manager.prepare_history(state["session_id"])
        return {
            "messages": result.messages,
            "compactions": state["compactions"] + (1 if result.compacted else 0)
        }

    async def model_node(self, state: TurnState) -> Dict[str, Any]:
        """Invoke the model with the prepared history"""

        logger.debug("Calling model", message_count=len(state["messages"]))
        response = await self.model.generate(state["messages"], self.registry.specs())
        await self.context_manager.record(state["session_id"], response)

        return {
            "messages": state["messages"] + [response],
            "last_response": response
        }

    async def tool_execution_node(self, state: TurnState) -> Dict[str, Any]:
        """Run every tool call of the last model response, in order"""

        response = state["last_response"]
        context = ToolContext(
            session_id=state["session_id"],
            owner=state["owner"],
            resources=self.resources_for(state["session_id"])
        )

        results: List[ToolResultPart] = []
        for call in response.tool_calls:
            logger.info("Dispatching tool", tool_name=call.tool_name, tool_call_id=call.tool_call_id)
            results.append(await self.executor.execute(call, context))

        tool_message = Message.tool(results)
        await self.context_manager.record(state["session_id"], tool_message)

        return {
            "messages": state["messages"] + [tool_message],
            "tool_steps": state["tool_steps"] + 1,
            "tool_results": state["tool_results"] + [
                {"tool_name": r.tool_name, "is_error": r.is_error, "result": r.result} for r in results
            ]
        }

    def route_after_model(self, state: TurnState) -> Literal["tools", "done"]:
        """Continue with tools while the model asks for them and steps remain"""

        response = state["last_response"]
        if response is not None and response.tool_calls and state["tool_steps"] < self.max_tool_steps:
            return "tools"
        return "done"

    async def run_turn(
        self,
        session_id: str,
        owner: str,
        text: str,
        timeout: Optional[float] = None
    ) -> TurnResult:
        """Process one user message through the turn graph.

        A timeout is handled exactly like cancellation: tool dispatch stops
        and the error propagates to the caller.
        """

        turn_id = uuid.uuid4().hex
        started_at = datetime.now(timezone.utc)

        with structlog.contextvars.bound_contextvars(session_id=session_id, turn_id=turn_id):
            logger.info("Turn started", owner=owner)
            await self.context_manager.record(session_id, Message.user(text))

            try:
                if timeout is not None:
                    final_state = await asyncio.wait_for(self._invoke(session_id, owner), timeout)
                else:
                    final_state = await self._invoke(session_id, owner)
            except (asyncio.CancelledError, asyncio.TimeoutError) as e:
                logger.warning("Turn cancelled", reason=type(e).__name__)
                await self._answer_pending_calls(session_id, TURN_CANCELLED_ERROR)
                raise

            status = AgentStatus.COMPLETED
            last_response = final_state["last_response"]
            if last_response is not None and last_response.tool_calls:
                status = AgentStatus.STEP_LIMIT
                await self._answer_pending_calls(session_id, STEP_LIMIT_ERROR)
                logger.warning("Turn hit tool step limit", max_tool_steps=self.max_tool_steps)

            logger.info("Turn finished", status=status.value, tool_steps=final_state["tool_steps"])
            return TurnResult(
                session_id=session_id,
                turn_id=turn_id,
                status=status,
                final_message=last_response,
                tool_steps=final_state["tool_steps"],
                tool_results=final_state["tool_results"],
                compactions=final_state["compactions"],
                started_at=started_at,
                finished_at=datetime.now(timezone.utc)
            )

    async def _answer_pending_calls(self, session_id: str, error: Dict[str, Any]):
        """Answer unresolved tool calls of the last assistant message so the history stays well-formed"""

        history = await self.context_manager.get_history(session_id)
        if not history or history[-1].role != Role.ASSISTANT or not history[-1].tool_calls:
            return

        await self.context_manager.record(session_id, Message.tool([
            ToolResultPart(
                tool_call_id=call.tool_call_id,
                tool_name=call.tool_name,
                result=error,
                is_error=True
            )
            for call in history[-1].tool_calls
        ]))

    async def _invoke(self, session_id: str, owner: str) -> TurnState:
        initial_state: TurnState = {
            "session_id": session_id,
            "owner": owner,
            "messages": [],
            "last_response": None,
            "tool_steps": 0,
            "compactions": 0,
            "tool_results": []
        }
        # Each tool step takes three graph supersteps
        config = {"recursion_limit": self.max_tool_steps * 3 + 5}
        return await self.workflow.ainvoke(initial_state, config=config)

    def resources_for(self, session_id: str) -> SessionResources:
        """Resource handles owned by a session"""

        if session_id not in self.session_resources:
            self.session_resources[session_id] = SessionResources(session_id)
        return self.session_resources[session_id]

    async def close_session(self, session_id: str, clear_history: bool = False):
        """Release everything a session owns"""

        resources = self.session_resources.pop(session_id, None)
        if resources is not None:
            await resources.release_all()
        if clear_history:
            await self.context_manager.clear_session_context(session_id)
        logger.info("Session closed", session_id=session_id)

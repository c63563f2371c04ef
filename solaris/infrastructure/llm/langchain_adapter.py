from typing import Any, AsyncIterator, Dict, List
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
import structlog

from solaris.domain.context.token_budget import serialize_payload
from solaris.domain.models.message import Message, Role, ToolCallPart

logger = structlog.get_logger(__name__)


def _content_text(content: Any) -> str:
    """Flatten langchain message content (str or content blocks) to text"""

    if isinstance(content, str):
        return content

    chunks = []
    for block in content or []:
        if isinstance(block, str):
            chunks.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            chunks.append(block.get("text", ""))
    return "".join(chunks)


def to_langchain_messages(messages: List[Message]) -> List[BaseMessage]:
    """Convert conversation history to langchain messages"""

    converted: List[BaseMessage] = []
    for message in messages:
        if message.role == Role.USER:
            converted.append(HumanMessage(content=message.text))

        elif message.role == Role.ASSISTANT:
            converted.append(AIMessage(
                content=message.text,
                tool_calls=[
                    {"name": call.tool_name, "args": call.arguments, "id": call.tool_call_id}
                    for call in message.tool_calls
                ]
            ))

        else:
            # One ToolMessage per result
            for result in message.tool_results:
                converted.append(ToolMessage(
                    content=serialize_payload(result.result),
                    tool_call_id=result.tool_call_id,
                    name=result.tool_name,
                    status="error" if result.is_error else "success"
                ))

    return converted


def from_langchain_message(message: BaseMessage) -> Message:
    """Convert a model response back to an assistant message"""

    tool_calls = []
    for call in getattr(message, "tool_calls", None) or []:
        fields: Dict[str, Any] = {"tool_name": call["name"], "arguments": call.get("args") or {}}
        if call.get("id"):
            fields["tool_call_id"] = call["id"]
        tool_calls.append(ToolCallPart(**fields))

    return Message.assistant(_content_text(message.content), tool_calls=tool_calls)


class LangChainChatModel:
    """ChatModel backed by any langchain-core chat model"""

    def __init__(self, llm: BaseChatModel):
        self.llm = llm

    def _bind(self, tools: List[Dict[str, Any]]):
        if not tools:
            return self.llm
        try:
            return self.llm.bind_tools(tools)
        except NotImplementedError:
            logger.warning("Chat model does not support tool binding", model=type(self.llm).__name__)
            return self.llm

    async def generate(self, messages: List[Message], tools: List[Dict[str, Any]]) -> Message:
        runnable = self._bind(tools)
        response = await runnable.ainvoke(to_langchain_messages(messages))
        return from_langchain_message(response)


class LangChainDocumentWriter:
    """DocumentWriter streaming text from a langchain-core chat model"""

    def __init__(self, llm: BaseChatModel):
        self.llm = llm

    async def stream(self, system: str, prompt: str) -> AsyncIterator[str]:
        async for chunk in self.llm.astream([SystemMessage(content=system), HumanMessage(content=prompt)]):
            text = _content_text(chunk.content)
            if text:
                yield text

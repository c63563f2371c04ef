from typing import Dict, List, Any, Optional, Type, Callable, Awaitable
from pydantic import BaseModel, ConfigDict, Field
import re

from solaris.domain.orchestration.resources import SessionResources


class ToolContext(BaseModel):
    """Per-call context handed to tool handlers"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    session_id: str = Field(description="Conversation id")
    owner: str = Field(description="Calling user id")
    resources: Optional[SessionResources] = None


ToolHandler = Callable[[Any, ToolContext], Awaitable[Dict[str, Any]]]


class Tool(BaseModel):
    """A callable tool exposed to the model"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    args_model: Type[BaseModel]
    handler: ToolHandler
    category: str = "general"

    def spec(self) -> Dict[str, Any]:
        """Schema handed to the model"""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.args_model.model_json_schema(),
        }


class ToolRegistry:
    """Registry for managing available tools"""

    def __init__(self):
        self.tools: Dict[str, Tool] = {}
        self.tool_categories: Dict[str, List[str]] = {}

    def register_tool(self, tool: Tool):
        """Register a new tool"""

        if tool.name in self.tools:
            raise ValueError(f"Tool already registered: {tool.name}")

        self.tools[tool.name] = tool
        self.tool_categories.setdefault(tool.category, []).append(tool.name)

    def register_tools(self, tools: List[Tool]):
        for tool in tools:
            self.register_tool(tool)

    def get_tool(self, name: str) -> Optional[Tool]:
        return self.tools.get(name)

    def specs(self) -> List[Dict[str, Any]]:
        """Schemas of every registered tool"""
        return [tool.spec() for tool in self.tools.values()]

    def get_tools_by_category(self, category: str) -> List[Tool]:
        """Get tools by category"""

        names = self.tool_categories.get(category, [])
        return [self.tools[name] for name in names if name in self.tools]

    def search_tools(self, query: str, limit: int = 5) -> List[Dict[str, Any]]:
        """Search tools by name or description, best keyword overlap first"""

        query_words = set(re.findall(r"\w+", query.lower()))
        scored = []

        for tool in self.tools.values():
            name = tool.name.lower()
            description = tool.description.lower()

            if query.lower() in name or query.lower() in description:
                score = 1.0
            elif query_words:
                name_words = set(re.findall(r"\w+", name.replace("_", " ")))
                desc_words = set(re.findall(r"\w+", description))
                # Weight name matches higher
                overlap = len(query_words & name_words) * 2 + len(query_words & desc_words)
                score = min(overlap / len(query_words), 1.0)
            else:
                score = 0.0

            if score > 0:
                scored.append((score, tool))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [
            {"name": tool.name, "description": tool.description, "category": tool.category, "score": round(score, 2)}
            for score, tool in scored[:limit]
        ]

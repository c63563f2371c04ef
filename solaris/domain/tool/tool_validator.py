from typing import Any, Dict
from pydantic import BaseModel, ValidationError

from solaris.domain.errors import ToolValidationError
from .tool_registry import Tool


def validate_tool_call(tool: Tool, arguments: Dict[str, Any]) -> BaseModel:
    """Parse tool arguments against the tool schema before any side effect"""

    if not isinstance(arguments, dict):
        raise ToolValidationError(f"Arguments for {tool.name} must be an object")

    try:
        return tool.args_model.model_validate(arguments)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(loc) for loc in error['loc']) or 'arguments'}: {error['msg']}"
            for error in e.errors()
        ]
        raise ToolValidationError(
            f"Invalid arguments for {tool.name}: " + "; ".join(problems),
            {"problems": problems}
        )

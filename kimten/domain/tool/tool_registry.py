from typing import Dict, List, Any, Optional
import inspect
import json
import time
import structlog
from langchain_core.tools import BaseTool, StructuredTool
from pydantic import BaseModel, ValidationError

from kimten.infrastructure.observability.logging import TurnMetrics, agent_logger
from .tool_validator import ToyDefinition, ToyDefinitionValidator

logger = structlog.get_logger(__name__)


# Used when a toy declares no input schema; dict schemas pass arguments through as given
ANY_ARGS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {},
    "additionalProperties": True,
}


def to_json_safe(value: Any) -> Any:
    """Convert a tool result into plain JSON data"""

    if value is None:
        return None

    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")

    try:
        return json.loads(json.dumps(value))
    except (TypeError, ValueError):
        return {"value": str(value)}


def tool_error(tool_name: str, error: Any) -> Dict[str, Any]:
    return {"error": str(error), "toolName": tool_name}


class ToolRegistry:
    """Registry for managing the tools a Kimten may call"""

    def __init__(self, toys: Optional[Dict[str, Any]] = None, metrics: Optional[TurnMetrics] = None):
        self.metrics = metrics if metrics is not None else TurnMetrics()
        self.tools: Dict[str, BaseTool] = {}
        self.definitions: Dict[str, ToyDefinition] = ToyDefinitionValidator.validate_toys(toys)

        for definition in self.definitions.values():
            self.register_tool(definition)

    def register_tool(self, definition: ToyDefinition):
        """Register a new tool"""

        self.tools[definition.name] = StructuredTool(
            name=definition.name,
            description=definition.description or f"Tool {definition.name}",
            args_schema=definition.input_schema or ANY_ARGS_SCHEMA,
            coroutine=self._wrap(definition),
            metadata={"strict": definition.strict} if definition.strict is not None else None,
        )

    def _wrap(self, definition: ToyDefinition):
        """Tool errors come back as {error, toolName} instead of raising"""

        async def run(**kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                result = definition.execute(kwargs)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                agent_logger.log_tool_execution(
                    definition.name,
                    kwargs,
                    duration_ms=(time.perf_counter() - start) * 1000,
                    success=False,
                    error=str(e)
                )
                self.metrics.record_tool_call(definition.name, success=False)
                return tool_error(definition.name, e)

            agent_logger.log_tool_execution(
                definition.name,
                kwargs,
                duration_ms=(time.perf_counter() - start) * 1000
            )
            self.metrics.record_tool_call(definition.name)
            return to_json_safe(result)

        return run

    @property
    def names(self) -> List[str]:
        return list(self.tools.keys())

    @property
    def strict(self) -> Optional[bool]:
        """True when any tool asked for strict argument handling"""
        if any(definition.strict for definition in self.definitions.values()):
            return True
        return None

    def as_langchain_tools(self) -> List[BaseTool]:
        return list(self.tools.values())

    async def execute(self, tool_name: str, args: Any) -> Any:
        """Invoke a tool by name, returning a JSON-safe result or an error payload"""

        tool = self.tools.get(tool_name)
        if tool is None:
            logger.warning("Unknown tool requested", tool_name=tool_name)
            return tool_error(tool_name, f'Unknown tool "{tool_name}".')

        args = args if isinstance(args, dict) else {}

        # StructuredTool passes dict-schema arguments through unchecked
        rejection = ToyDefinitionValidator.validate_arguments(self.definitions[tool_name], args)
        if rejection is not None:
            logger.info("Tool arguments rejected", tool_name=tool_name)
            self.metrics.record_tool_call(tool_name, success=False)
            return tool_error(tool_name, rejection)

        try:
            return await tool.ainvoke(args)
        except ValidationError as e:
            logger.info("Tool arguments rejected", tool_name=tool_name)
            self.metrics.record_tool_call(tool_name, success=False)
            return tool_error(tool_name, e)

    def __len__(self) -> int:
        return len(self.tools)

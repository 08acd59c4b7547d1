from .tool_registry import ToolRegistry, to_json_safe
from .tool_validator import ToyDefinition, ToyDefinitionValidator

__all__ = ["ToolRegistry", "ToyDefinition", "ToyDefinitionValidator", "to_json_safe"]

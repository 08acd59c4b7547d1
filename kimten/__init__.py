from kimten.domain.brain.base_brain import BaseBrain
from kimten.domain.context.attachment_resolver import normalize_attachments, resolve_attachment_payloads
from kimten.domain.context.context_redactor import serialize_context
from kimten.domain.context.memory.short_term_memory import MEMORY_LIMIT, ShortTermMemory
from kimten.domain.context.schema_descriptor import SchemaDescriptor, describe_schema
from kimten.domain.models import GenerationRequest, GenerationResult, InputValidationError, Role, TurnRecord
from kimten.domain.orchestration.core.call_sequencer import CallSequencer
from kimten.domain.orchestration.core.kimten import Kimten
from kimten.domain.tool.tool_registry import ToolRegistry
from kimten.infrastructure.llm.chat_model_brain import ChatModelBrain
from kimten.infrastructure.observability.logging import setup_logging

__version__ = "0.1.0"

__all__ = [
    "BaseBrain",
    "CallSequencer",
    "ChatModelBrain",
    "GenerationRequest",
    "GenerationResult",
    "InputValidationError",
    "Kimten",
    "MEMORY_LIMIT",
    "Role",
    "SchemaDescriptor",
    "ShortTermMemory",
    "ToolRegistry",
    "TurnRecord",
    "describe_schema",
    "normalize_attachments",
    "resolve_attachment_payloads",
    "serialize_context",
    "setup_logging",
]

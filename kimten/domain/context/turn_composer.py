from typing import Any, Dict, Iterable, List, Optional, Union
import structlog

from kimten.domain.models import ComposedTurn, Role, TurnRecord
from .schema_descriptor import describe_schema

logger = structlog.get_logger(__name__)

DEFAULT_PERSONALITY = "You are a helpful assistant."
TOOL_POLICY_PREFIX = "Tool policy: You can use these tools when needed for accurate answers:"
TOOL_POLICY_SUFFIX = "Do not fabricate tool results."
BOX_SCHEMA_HINT_PREFIX = (
    "Return ONLY a valid JSON object (no text commentary or markdown) that exactly matches "
    "this schema (field names/types required):"
)
CONTEXT_BLOCK_PREFIX = "Context (JSON):"
USER_MESSAGE_BLOCK_PREFIX = "User message:"
INSTRUCTION_SEPARATOR = "\n\n"


def build_tools_system_suffix(tool_names: Iterable[str]) -> str:
    names = list(tool_names)
    if not names:
        return ""
    return f"{INSTRUCTION_SEPARATOR}{TOOL_POLICY_PREFIX} {', '.join(names)}. {TOOL_POLICY_SUFFIX}"


def build_system_instructions(personality: str, tool_names: Iterable[str]) -> str:
    return f"{personality}{build_tools_system_suffix(tool_names)}"


def build_schema_hint(box: Any) -> str:
    if box is None:
        return ""
    return f"{BOX_SCHEMA_HINT_PREFIX} {describe_schema(box)}"


def build_context_envelope(raw_input: str, context_text: str) -> str:
    if not context_text:
        return raw_input
    return (
        f"{CONTEXT_BLOCK_PREFIX}\n{context_text}"
        f"{INSTRUCTION_SEPARATOR}{USER_MESSAGE_BLOCK_PREFIX}\n{raw_input}"
    )


def build_effective_input(raw_input: str, context_text: str, schema_hint: str) -> str:
    """Schema hint first, then the context envelope (or the raw input)"""
    base_input = build_context_envelope(raw_input, context_text)
    if not schema_hint:
        return base_input
    return f"{schema_hint}{INSTRUCTION_SEPARATOR}{base_input}"


def build_outbound_content(
    effective_input: str,
    payloads: Optional[List[Dict[str, Any]]] = None
) -> Union[str, List[Dict[str, Any]]]:
    if not payloads:
        return effective_input
    return [{"type": "text", "text": effective_input}, *payloads]


def compose_turn(
    history: List[TurnRecord],
    raw_input: str,
    context_text: str = "",
    schema_hint: str = "",
    payloads: Optional[List[Dict[str, Any]]] = None
) -> ComposedTurn:
    """Build outbound messages for one turn without touching memory.

    The backend sees the enriched turn; memory only ever receives the raw
    user text carried in ``persisted``.
    """

    effective_input = build_effective_input(raw_input, context_text, schema_hint)
    outbound = TurnRecord(role=Role.USER, content=build_outbound_content(effective_input, payloads))

    return ComposedTurn(
        messages=[*history, outbound],
        persisted=TurnRecord(role=Role.USER, content=raw_input),
        effective_input=effective_input,
    )


class TurnComposer:
    """Holds per-instance prompt pieces and composes each turn"""

    def __init__(self, personality: str, tool_names: Iterable[str] = (), box: Any = None):
        self.instructions = build_system_instructions(personality, tool_names)
        # The box is fixed for the instance, so its hint is computed once
        self.schema_hint = build_schema_hint(box)

    def compose(
        self,
        history: List[TurnRecord],
        raw_input: str,
        context_text: str = "",
        payloads: Optional[List[Dict[str, Any]]] = None
    ) -> ComposedTurn:
        turn = compose_turn(history, raw_input, context_text, self.schema_hint, payloads)

        logger.debug(
            "Composed turn",
            history_length=len(history),
            has_context=bool(context_text),
            has_schema_hint=bool(self.schema_hint),
            attachments=len(payloads or []),
        )

        return turn

from typing import Any, Dict, List, Optional
import json
import time
import structlog
from langchain_core.language_models.chat_models import BaseChatModel
from pydantic import BaseModel

from kimten.domain.brain.base_brain import BaseBrain
from kimten.domain.context.attachment_resolver import resolve_attachment_payloads
from kimten.domain.context.context_redactor import serialize_context
from kimten.domain.context.memory.short_term_memory import ShortTermMemory
from kimten.domain.context.turn_composer import TurnComposer
from kimten.domain.models import (
    Attachment, CallOptions, GenerationRequest, GenerationResult,
    InputValidationError, Role, TurnRecord
)
from kimten.domain.tool.tool_registry import ToolRegistry
from kimten.infrastructure.config.settings import get_settings
from kimten.infrastructure.llm.chat_model_brain import ChatModelBrain
from kimten.infrastructure.observability.logging import TurnMetrics, agent_logger
from .call_sequencer import CallSequencer
from .validation import validate_config, validate_play_options

logger = structlog.get_logger(__name__)


def _resolve_brain(brain: Any) -> BaseBrain:
    if isinstance(brain, BaseBrain):
        return brain
    if isinstance(brain, BaseChatModel):
        return ChatModelBrain(brain)
    raise InputValidationError(
        'Kimten config "brain" is required and must be a LangChain chat model or a BaseBrain.'
    )


def _to_json_text(output: Any) -> str:
    if isinstance(output, BaseModel):
        return output.model_dump_json()
    return json.dumps(output, ensure_ascii=False, default=str)


class Kimten:
    """A tiny tool-using agent with short-term memory.

    Each ``play`` call runs one turn: the caller's message, optionally
    enriched with redacted context, a schema hint and attachments, is sent
    to the brain together with the remembered conversation. Only the raw
    message and the reply are remembered. Overlapping calls on one instance
    run one at a time in submission order.
    """

    def __init__(
        self,
        brain: Any,
        toys: Optional[Dict[str, Any]] = None,
        name: Optional[str] = None,
        personality: Optional[str] = None,
        hops: Optional[int] = None,
        box: Any = None,
        memory_limit: Optional[int] = None,
        context_char_limit: Optional[int] = None
    ):
        settings = get_settings()
        self.config = validate_config(
            name=name,
            personality=personality,
            hops=settings.hops if hops is None else hops,
            box=box,
            memory_limit=settings.memory_limit if memory_limit is None else memory_limit,
            context_char_limit=settings.context_char_limit if context_char_limit is None else context_char_limit,
        )
        self.brain = _resolve_brain(brain)
        self.metrics = TurnMetrics()
        self.tools = ToolRegistry(toys, metrics=self.metrics)
        self.memory = ShortTermMemory(self.config.memory_limit)
        self.composer = TurnComposer(self.config.personality, self.tools.names, self.config.box)
        self.sequencer = CallSequencer()

    @property
    def name(self) -> Optional[str]:
        return self.config.name

    def history(self) -> List[TurnRecord]:
        """Snapshot of remembered messages"""
        return self.memory.list()

    async def play(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        options: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Run one turn and return the reply text, or structured output when a box is set"""

        if not isinstance(message, str):
            raise InputValidationError("Kimten play(input) expects input to be a string.")

        if context is not None and not isinstance(context, dict):
            raise InputValidationError(
                "Kimten play(input, context) expects context to be a plain object (dict) when provided."
            )

        attachments, call_options = validate_play_options(options)

        return await self.sequencer.submit(self._run_turn, message, context, attachments, call_options)

    async def _run_turn(
        self,
        message: str,
        context: Optional[Dict[str, Any]],
        attachments: List[Attachment],
        call_options: CallOptions
    ) -> Any:
        start = time.perf_counter()
        structlog.contextvars.bind_contextvars(kimten=self.name)

        try:
            context_text = serialize_context(context, self.config.context_char_limit)
            payloads = await resolve_attachment_payloads(attachments)
            turn = self.composer.compose(self.memory.list(), message, context_text, payloads)

            agent_logger.log_turn_event(
                "turn_started",
                self.name,
                {"history_length": len(turn.messages) - 1, "attachments": len(payloads)}
            )

            result: GenerationResult = await self.brain.generate(GenerationRequest(
                instructions=self.composer.instructions,
                messages=turn.messages,
                tools=self.tools,
                max_steps=self.config.hops,
                output_schema=self.config.box,
                call_options=call_options,
            ))
        except Exception as e:
            logger.error("Turn failed", kimten=self.name, error=str(e))
            self.metrics.record_turn(success=False)
            raise
        finally:
            structlog.contextvars.unbind_contextvars("kimten")

        assistant_content = self._assistant_content(result)
        self.memory.add(turn.persisted)
        self.memory.add(TurnRecord(role=Role.ASSISTANT, content=assistant_content))

        duration_ms = (time.perf_counter() - start) * 1000
        self.metrics.record_turn(duration_ms)
        self.metrics.set_memory_size(len(self.memory))
        agent_logger.log_memory_update(self.name, "append_turn", len(self.memory))
        agent_logger.log_turn_event(
            "turn_completed",
            self.name,
            {"duration_ms": duration_ms, "metrics": self.metrics.summary()}
        )

        return result.output if self.config.box is not None else assistant_content

    def _assistant_content(self, result: GenerationResult) -> str:
        text = result.text if isinstance(result.text, str) else ""
        if self.config.box is None:
            return text
        if text.strip():
            return text
        return _to_json_text(result.output)

    def forget(self):
        """Clear short-term memory for this instance"""

        logger.info("Clearing memory", kimten=self.name)
        self.memory.clear()
        self.metrics.set_memory_size(0)
        agent_logger.log_memory_update(self.name, "clear", 0)

from typing import Any, Dict, List, Optional, Union
import base64
import json
import weakref
import structlog
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import (
    AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
)
from langchain_core.runnables import Runnable
from pydantic import TypeAdapter, ValidationError

from kimten.domain.brain.base_brain import BaseBrain
from kimten.domain.models import (
    CallOptions, GenerationRequest, GenerationResult, Role, TurnRecord
)

logger = structlog.get_logger(__name__)

_BINARY_SOURCES = (bytes, bytearray, memoryview)


def _strip_code_fences(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped[3:]
        if stripped.startswith("json"):
            stripped = stripped[len("json"):]
        stripped = stripped.rstrip()
        if stripped.endswith("```"):
            stripped = stripped[:-3]
    return stripped.strip()


def _encode(data: Any) -> str:
    return base64.b64encode(bytes(data)).decode("ascii")


def to_content_block(part: Dict[str, Any]) -> Dict[str, Any]:
    """Map an attachment payload onto a LangChain standard content block"""

    part_type = part.get("type")
    if part_type == "image":
        source = part.get("image")
        if isinstance(source, _BINARY_SOURCES):
            block = {"type": "image", "source_type": "base64", "data": _encode(source)}
        else:
            block = {"type": "image", "source_type": "url", "url": str(source)}
        if part.get("media_type"):
            block["mime_type"] = part["media_type"]
        return block

    if part_type == "file":
        source = part.get("data")
        if isinstance(source, _BINARY_SOURCES):
            block = {"type": "file", "source_type": "base64", "data": _encode(source)}
        else:
            block = {"type": "file", "source_type": "url", "url": str(source)}
        block["mime_type"] = part.get("media_type")
        if part.get("filename"):
            block["filename"] = part["filename"]
        return block

    return part


def to_langchain_message(record: TurnRecord) -> BaseMessage:
    content: Union[str, List[Any]]
    if isinstance(record.content, str):
        content = record.content
    else:
        content = [to_content_block(part) for part in record.content]

    if record.role == Role.SYSTEM:
        return SystemMessage(content=content)
    if record.role == Role.ASSISTANT:
        return AIMessage(content=content)
    if record.role == Role.TOOL:
        return ToolMessage(content=content, tool_call_id=record.tool_call_id or "")
    return HumanMessage(content=content)


def message_text(message: Optional[BaseMessage]) -> str:
    """Plain text of a message, joining text blocks of multi-part content"""

    if message is None:
        return ""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts)


def call_kwargs(options: CallOptions) -> Dict[str, Any]:
    """Translate call options to the parameter names chat models use"""

    kwargs = options.as_kwargs()
    if "max_output_tokens" in kwargs:
        kwargs["max_tokens"] = kwargs.pop("max_output_tokens")
    return kwargs


class ChatModelBrain(BaseBrain):
    """Generation backend over a LangChain chat model with a bounded tool loop"""

    def __init__(self, chat_model: BaseChatModel):
        self.chat_model = chat_model
        # Derived structured-output runnables, keyed by schema identity
        self._structured: "weakref.WeakKeyDictionary[Any, Runnable]" = weakref.WeakKeyDictionary()

    def structured_model(self, schema: Any) -> Runnable:
        try:
            cached = self._structured.get(schema)
        except TypeError:
            # dict schemas cannot be weakly referenced
            return self.chat_model.with_structured_output(schema)

        if cached is None:
            cached = self.chat_model.with_structured_output(schema)
            self._structured[schema] = cached
        return cached

    def _prepare_model(self, request: GenerationRequest) -> Runnable:
        model: Runnable = self.chat_model
        tools = request.tools

        if tools is not None and len(tools) > 0:
            bind_kwargs = {"strict": True} if tools.strict else {}
            model = self.chat_model.bind_tools(tools.as_langchain_tools(), **bind_kwargs)

        kwargs = call_kwargs(request.call_options)
        if kwargs:
            model = model.bind(**kwargs)
        return model

    def _parse_output(self, schema: Any, text: str) -> Any:
        """Try to read structured output straight from the reply text"""

        cleaned = _strip_code_fences(text)
        if not cleaned:
            return None
        try:
            if isinstance(schema, dict):
                parsed = json.loads(cleaned)
                return parsed if isinstance(parsed, dict) else None
            adapter = schema if isinstance(schema, TypeAdapter) else TypeAdapter(schema)
            return adapter.validate_json(cleaned)
        except (ValidationError, ValueError):
            return None

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        messages: List[BaseMessage] = [
            SystemMessage(content=request.instructions),
            *(to_langchain_message(record) for record in request.messages),
        ]
        model = self._prepare_model(request)
        tools = request.tools
        response: Optional[BaseMessage] = None

        for _ in range(request.max_steps):
            response = await model.ainvoke(messages)
            messages.append(response)

            tool_calls = getattr(response, "tool_calls", None) or []
            if not tool_calls or tools is None:
                break

            for call in tool_calls:
                result = await tools.execute(call["name"], call.get("args") or {})
                messages.append(ToolMessage(
                    content=json.dumps(result, ensure_ascii=False),
                    tool_call_id=call.get("id") or "",
                    name=call["name"],
                ))
        else:
            logger.warning("Tool loop stopped at step limit", max_steps=request.max_steps)

        text = message_text(response)

        if request.output_schema is None:
            return GenerationResult(text=text)

        output = self._parse_output(request.output_schema, text)
        if output is None:
            history = messages[:-1] if isinstance(messages[-1], AIMessage) else messages
            output = await self.structured_model(request.output_schema).ainvoke(history)

        return GenerationResult(text=text, output=output)

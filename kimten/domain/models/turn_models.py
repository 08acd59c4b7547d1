from typing import Dict, Any, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


class InputValidationError(TypeError, ValueError):
    """Raised when caller input is rejected before a turn starts"""


class Role(str, Enum):
    """Conversation roles"""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class TurnRecord(BaseModel):
    """A single message in the conversation"""
    model_config = ConfigDict(frozen=True)

    role: Role = Field(description="Who produced the message")
    content: Union[str, List[Dict[str, Any]]] = Field(description="Text or multi-part payload")
    tool_call_id: Optional[str] = Field(None, description="Tool call this message answers")


class ImageAttachment(BaseModel):
    """Normalized image attachment"""
    model_config = ConfigDict(frozen=True)

    kind: str = "image"
    image: Any = Field(description="Path, URL, data URI or raw bytes")
    media_type: Optional[str] = None


class FileAttachment(BaseModel):
    """Normalized file attachment"""
    model_config = ConfigDict(frozen=True)

    kind: str = "file"
    data: Any = Field(description="Path, URL, data URI or raw bytes")
    media_type: str
    filename: Optional[str] = None


Attachment = Union[ImageAttachment, FileAttachment]


class CallOptions(BaseModel):
    """Per-call sampling parameters"""
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    max_output_tokens: Optional[int] = None

    def as_kwargs(self) -> Dict[str, Any]:
        """Only the options the caller actually set"""
        return self.model_dump(exclude_none=True)


class ComposedTurn(BaseModel):
    """Outbound messages for one turn plus the record kept in memory"""
    model_config = ConfigDict(frozen=True)

    messages: List[TurnRecord] = Field(description="History followed by the enriched user turn")
    persisted: TurnRecord = Field(description="Raw user message written to memory on success")
    effective_input: str = Field(description="Enriched text sent for this turn")


class GenerationRequest(BaseModel):
    """Everything the backend needs to produce a reply"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    instructions: str
    messages: List[TurnRecord]
    tools: Any = None
    max_steps: int = 10
    output_schema: Any = None
    call_options: CallOptions = Field(default_factory=CallOptions)


class GenerationResult(BaseModel):
    """Backend reply"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    text: Optional[str] = None
    output: Any = None

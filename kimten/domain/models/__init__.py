from .turn_models import (
    Attachment,
    CallOptions,
    ComposedTurn,
    FileAttachment,
    GenerationRequest,
    GenerationResult,
    ImageAttachment,
    InputValidationError,
    Role,
    TurnRecord,
)

__all__ = [
    "Attachment",
    "CallOptions",
    "ComposedTurn",
    "FileAttachment",
    "GenerationRequest",
    "GenerationResult",
    "ImageAttachment",
    "InputValidationError",
    "Role",
    "TurnRecord",
]

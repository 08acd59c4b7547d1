from typing import Any, Dict, List, Optional, Tuple
import math
from pydantic import BaseModel, ConfigDict

from kimten.domain.context.attachment_resolver import normalize_attachments
from kimten.domain.context.schema_descriptor import SchemaDescriptor
from kimten.domain.context.turn_composer import DEFAULT_PERSONALITY
from kimten.domain.models import Attachment, CallOptions, InputValidationError

ALLOWED_PLAY_OPTION_KEYS = ("attachments", "temperature", "top_p", "top_k", "max_output_tokens")
_PLAY_PREFIX = "Kimten play(input, context, options)"


class KimtenConfig(BaseModel):
    """Validated construction-time configuration"""
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: Optional[str] = None
    personality: str = DEFAULT_PERSONALITY
    hops: int = 10
    box: Any = None
    memory_limit: int = 10
    context_char_limit: int = 4000


def _is_integer(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value) and value.is_integer()


def _positive_int(value: Any, key: str) -> int:
    if not _is_integer(value) or value <= 0:
        raise InputValidationError(f'Kimten config "{key}" must be a positive integer.')
    return int(value)


def validate_config(
    name: Any = None,
    personality: Any = None,
    hops: Any = 10,
    box: Any = None,
    memory_limit: Any = 10,
    context_char_limit: Any = 4000
) -> KimtenConfig:
    """Validate everything except the brain and toys, which have their own checks"""

    resolved_personality = DEFAULT_PERSONALITY if personality is None else personality
    if not isinstance(resolved_personality, str) or not resolved_personality.strip():
        raise InputValidationError('Kimten config "personality" must be a non-empty string when provided.')

    if name is not None and (not isinstance(name, str) or not name.strip()):
        raise InputValidationError('Kimten config "name" must be a non-empty string when provided.')

    if box is not None and (isinstance(box, (str, bytes)) or not SchemaDescriptor().supports(box)):
        raise InputValidationError(
            'Kimten config "box" must be a pydantic model, type, TypeAdapter or JSON schema dict when provided.'
        )

    return KimtenConfig(
        name=name,
        personality=resolved_personality,
        hops=_positive_int(hops, "hops"),
        box=box,
        memory_limit=_positive_int(memory_limit, "memory_limit"),
        context_char_limit=_positive_int(context_char_limit, "context_char_limit"),
    )


def _number_option(options: Dict[str, Any], key: str) -> Optional[float]:
    value = options.get(key)
    if value is None:
        return None

    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InputValidationError(f'{_PLAY_PREFIX} option "{key}" must be a number when provided.')

    if key == "top_p" and not 0 <= value <= 1:
        raise InputValidationError(f'{_PLAY_PREFIX} option "top_p" must be between 0 and 1.')

    return value


def _integer_option(options: Dict[str, Any], key: str) -> Optional[int]:
    value = options.get(key)
    if value is None:
        return None

    if not _is_integer(value) or value < 1:
        raise InputValidationError(f'{_PLAY_PREFIX} option "{key}" must be an integer >= 1 when provided.')

    return int(value)


def validate_play_options(options: Any) -> Tuple[List[Attachment], CallOptions]:
    """Validate per-call options into attachments and sampling parameters"""

    if options is None:
        return [], CallOptions()

    if not isinstance(options, dict):
        raise InputValidationError(f"{_PLAY_PREFIX} expects options to be a dict when provided.")

    for key in options:
        if key not in ALLOWED_PLAY_OPTION_KEYS:
            raise InputValidationError(
                f'{_PLAY_PREFIX} does not support option "{key}". '
                f'Allowed options: {", ".join(ALLOWED_PLAY_OPTION_KEYS)}.'
            )

    call_options = CallOptions(
        temperature=_number_option(options, "temperature"),
        top_p=_number_option(options, "top_p"),
        top_k=_integer_option(options, "top_k"),
        max_output_tokens=_integer_option(options, "max_output_tokens"),
    )

    return normalize_attachments(options.get("attachments")), call_options

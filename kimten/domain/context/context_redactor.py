from typing import Any, Dict, List, Optional
import json
import structlog

from kimten.domain.models import InputValidationError

logger = structlog.get_logger(__name__)

CONTEXT_CHAR_LIMIT = 4000
REDACTION_MARKER = "[REDACTED]"
CIRCULAR_MARKER = "[Circular]"
TRUNCATION_MARKER = "\n...(truncated)"
SENSITIVE_KEY_TOKENS = ("password", "token", "secret", "apikey", "api_key")


def is_sensitive_key(key: Any) -> bool:
    """Check whether a mapping key looks like it holds a credential"""
    lowered = str(key).lower()
    return any(token in lowered for token in SENSITIVE_KEY_TOKENS)


def _unserializable(value: Any) -> str:
    return f"[Unserializable: {type(value).__name__}]"


def _redact(value: Any, ancestors: List[int]) -> Any:
    """Copy value into JSON-friendly containers, masking sensitive keys"""

    if isinstance(value, dict):
        if id(value) in ancestors:
            return CIRCULAR_MARKER
        ancestors.append(id(value))
        redacted: Dict[str, Any] = {}
        for key, item in value.items():
            name = key if isinstance(key, str) else str(key)
            if name in redacted:
                # 1 and "1" render to the same key; the first one wins
                continue
            redacted[name] = REDACTION_MARKER if is_sensitive_key(name) else _redact(item, ancestors)
        ancestors.pop()
        return redacted

    if isinstance(value, (list, tuple, set, frozenset)):
        if id(value) in ancestors:
            return CIRCULAR_MARKER
        ancestors.append(id(value))
        items = [_redact(item, ancestors) for item in value]
        ancestors.pop()
        return items

    return value


def serialize_context(context: Optional[Dict[str, Any]], limit: int = CONTEXT_CHAR_LIMIT) -> str:
    """Render a context mapping as redacted, size-bounded JSON text.

    Returns an empty string for ``None`` and whenever the mapping cannot be
    rendered at all. Non-dict input is a caller error.
    """

    if context is None:
        return ""

    if not isinstance(context, dict):
        raise InputValidationError(
            "Kimten play(input, context) expects context to be a plain object (dict) when provided."
        )

    try:
        text = json.dumps(_redact(context, []), indent=2, ensure_ascii=False, default=_unserializable)
    except Exception as e:
        logger.warning("Context serialization failed", error=str(e))
        return ""

    if len(text) <= limit:
        return text

    logger.debug("Context truncated", length=len(text), limit=limit)
    return f"{text[:limit]}{TRUNCATION_MARKER}"

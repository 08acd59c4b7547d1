from typing import Any, Dict, List, Optional
import asyncio
import os
import re
import structlog

from kimten.domain.models import (
    Attachment, FileAttachment, ImageAttachment, InputValidationError
)

logger = structlog.get_logger(__name__)

_SCHEME_PATTERN = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
_BINARY_SOURCES = (bytes, bytearray, memoryview)
_ERROR_PREFIX = "Kimten play(input, context, options)"


def _normalize_source(value: Any) -> Any:
    """Return the source as str/bytes-like, or None when unsupported"""
    if isinstance(value, str) or isinstance(value, _BINARY_SOURCES):
        return value
    if isinstance(value, os.PathLike):
        return os.fspath(value)
    return None


def _optional_text(attachment: Dict[str, Any], key: str, index: int, kind: str) -> Optional[str]:
    value = attachment.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InputValidationError(
            f'{_ERROR_PREFIX} {kind} attachment at index {index} has invalid "{key}" (string expected).'
        )
    if not value.strip():
        raise InputValidationError(
            f'{_ERROR_PREFIX} {kind} attachment at index {index} has invalid "{key}" (non-empty string expected).'
        )
    return value.strip()


def _normalize_image(attachment: Dict[str, Any], index: int) -> ImageAttachment:
    source = _normalize_source(attachment.get("image"))
    if source is None:
        raise InputValidationError(
            f'{_ERROR_PREFIX} image attachment at index {index} must include "image" '
            "as str, os.PathLike, bytes, bytearray, or memoryview."
        )
    return ImageAttachment(image=source, media_type=_optional_text(attachment, "media_type", index, "image"))


def _normalize_file(attachment: Dict[str, Any], index: int) -> FileAttachment:
    source = _normalize_source(attachment.get("data"))
    if source is None:
        raise InputValidationError(
            f'{_ERROR_PREFIX} file attachment at index {index} must include "data" '
            "as str, os.PathLike, bytes, bytearray, or memoryview."
        )
    media_type = attachment.get("media_type")
    if not isinstance(media_type, str) or not media_type.strip():
        raise InputValidationError(
            f'{_ERROR_PREFIX} file attachment at index {index} must include a non-empty "media_type" string.'
        )
    return FileAttachment(
        data=source,
        media_type=media_type.strip(),
        filename=_optional_text(attachment, "filename", index, "file"),
    )


def normalize_attachments(value: Any) -> List[Attachment]:
    """Validate caller attachment descriptors"""

    if value is None:
        return []

    if not isinstance(value, list):
        raise InputValidationError(f'{_ERROR_PREFIX} option "attachments" must be a list when provided.')

    normalized: List[Attachment] = []
    for index, attachment in enumerate(value):
        if not isinstance(attachment, dict):
            raise InputValidationError(f"{_ERROR_PREFIX} attachment at index {index} must be a dict.")

        kind = attachment.get("kind")
        if kind == "image":
            normalized.append(_normalize_image(attachment, index))
        elif kind == "file":
            normalized.append(_normalize_file(attachment, index))
        else:
            raise InputValidationError(
                f'{_ERROR_PREFIX} attachment at index {index} has invalid "kind". Expected "image" or "file".'
            )

    return normalized


def to_local_path(value: str) -> Optional[str]:
    """Return a filesystem path candidate, or None for URLs and data URIs"""
    trimmed = value.strip()
    if not trimmed or trimmed.startswith("data:") or _SCHEME_PATTERN.match(trimmed):
        return None
    return trimmed


def _read_regular_file(path: str) -> Optional[bytes]:
    if not os.path.isfile(path):
        return None
    with open(path, "rb") as f:
        return f.read()


async def _try_read_local_file(value: str) -> Optional[Dict[str, Any]]:
    path = to_local_path(value)
    if path is None:
        return None

    try:
        content = await asyncio.to_thread(_read_regular_file, path)
    except OSError as e:
        logger.debug("Attachment source left unresolved", path=path, error=str(e))
        return None

    if content is None:
        return None
    return {"bytes": content, "path": path}


async def _resolve_one(attachment: Attachment) -> Dict[str, Any]:
    if isinstance(attachment, ImageAttachment):
        payload: Dict[str, Any] = {"type": "image", "image": attachment.image}
        if attachment.media_type:
            payload["media_type"] = attachment.media_type
        if isinstance(attachment.image, str):
            local = await _try_read_local_file(attachment.image)
            if local:
                payload["image"] = local["bytes"]
        return payload

    payload = {"type": "file", "data": attachment.data, "media_type": attachment.media_type}
    if attachment.filename:
        payload["filename"] = attachment.filename
    if isinstance(attachment.data, str):
        local = await _try_read_local_file(attachment.data)
        if local:
            payload["data"] = local["bytes"]
            payload.setdefault("filename", os.path.basename(local["path"]))
    return payload


async def resolve_attachment_payloads(attachments: List[Attachment]) -> List[Dict[str, Any]]:
    """Resolve local file sources to bytes, concurrently, preserving order.

    Anything that is not a readable regular file passes through untouched and
    is treated as a remote reference.
    """

    if not attachments:
        return []
    return list(await asyncio.gather(*(_resolve_one(attachment) for attachment in attachments)))

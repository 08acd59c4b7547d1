from __future__ import annotations

import math

import pytest
from typing import List, Optional

from pydantic import BaseModel, TypeAdapter

from kimten.domain.context.turn_composer import DEFAULT_PERSONALITY
from kimten.domain.models import CallOptions, ImageAttachment, InputValidationError
from kimten.domain.orchestration.core.validation import validate_config, validate_play_options


class Answer(BaseModel):
    value: int


def test_config_defaults():
    config = validate_config()
    assert config.personality == DEFAULT_PERSONALITY
    assert config.name is None
    assert config.hops == 10
    assert config.memory_limit == 10
    assert config.context_char_limit == 4000


def test_config_accepts_integral_floats_and_boxes():
    config = validate_config(name="Mochi", hops=3.0, box=Answer, memory_limit=2)
    assert config.hops == 3
    assert config.box is Answer
    assert validate_config(box={"type": "object"}).box == {"type": "object"}


@pytest.mark.parametrize(
    "kwargs",
    [
        {"personality": ""},
        {"personality": "   "},
        {"personality": 5},
        {"name": ""},
        {"name": 12},
        {"box": "string"},
        {"box": b"{}"},
        {"box": 42},
        {"box": object()},
        {"hops": 0},
        {"hops": True},
        {"hops": 2.5},
        {"memory_limit": -1},
        {"context_char_limit": "100"},
    ],
)
def test_config_rejects_invalid_values(kwargs):
    with pytest.raises(InputValidationError):
        validate_config(**kwargs)


def test_play_options_none():
    attachments, call_options = validate_play_options(None)
    assert attachments == []
    assert call_options == CallOptions()
    assert call_options.as_kwargs() == {}


def test_play_options_are_parsed():
    attachments, call_options = validate_play_options({
        "temperature": 0.2,
        "top_p": 1,
        "top_k": 40.0,
        "max_output_tokens": 256,
        "attachments": [{"kind": "image", "image": "https://example.com/a.png"}],
    })
    assert call_options.as_kwargs() == {
        "temperature": 0.2,
        "top_p": 1,
        "top_k": 40,
        "max_output_tokens": 256,
    }
    assert isinstance(attachments[0], ImageAttachment)


@pytest.mark.parametrize(
    "options",
    [
        "fast",
        {"seed": 1},
        {"temperature": "hot"},
        {"temperature": math.nan},
        {"temperature": math.inf},
        {"temperature": True},
        {"top_p": 1.5},
        {"top_p": -0.1},
        {"top_k": 0},
        {"top_k": 1.5},
        {"max_output_tokens": False},
        {"attachments": "cat.png"},
    ],
)
def test_play_options_reject_invalid_values(options):
    with pytest.raises(InputValidationError):
        validate_play_options(options)


def test_unknown_option_message_lists_allowed_keys():
    with pytest.raises(InputValidationError) as exc_info:
        validate_play_options({"seed": 1})
    assert 'does not support option "seed"' in str(exc_info.value)
    assert "max_output_tokens" in str(exc_info.value)


def test_validation_errors_are_type_and_value_errors():
    with pytest.raises(TypeError):
        validate_play_options({"top_k": 0})
    with pytest.raises(ValueError):
        validate_play_options({"top_k": 0})


@pytest.mark.parametrize("box", [TypeAdapter(List[int]), List[int], Optional[str], int])
def test_config_accepts_adapters_and_annotations(box):
    assert validate_config(box=box).box is box

"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage
from langchain_core.outputs import ChatGeneration, ChatResult
from langchain_core.runnables import RunnableLambda
from pydantic import Field

from kimten.domain.brain.base_brain import BaseBrain
from kimten.domain.models import GenerationRequest, GenerationResult
from kimten.infrastructure.config.settings import get_settings


class ScriptedChatModel(BaseChatModel):
    """Chat model that replays canned replies and records every call."""

    responses: List[Any] = Field(default_factory=list)
    structured_outputs: List[Any] = Field(default_factory=list)
    calls: List[Dict[str, Any]] = Field(default_factory=list)
    bound_tools: List[Dict[str, Any]] = Field(default_factory=list)
    structured_calls: List[Any] = Field(default_factory=list)

    @property
    def _llm_type(self) -> str:
        return "scripted"

    def _generate(self, messages, stop=None, run_manager=None, **kwargs) -> ChatResult:
        self.calls.append({"messages": list(messages), "kwargs": kwargs})
        response = self.responses.pop(0) if self.responses else ""
        if isinstance(response, Exception):
            raise response
        message = response if isinstance(response, BaseMessage) else AIMessage(content=response)
        return ChatResult(generations=[ChatGeneration(message=message)])

    def bind_tools(self, tools, **kwargs):
        self.bound_tools.append({"tools": list(tools), "kwargs": kwargs})
        return self

    def with_structured_output(self, schema, **kwargs):
        def respond(messages):
            self.structured_calls.append({"schema": schema, "messages": list(messages)})
            return self.structured_outputs.pop(0)

        return RunnableLambda(respond)


class RecordingBrain(BaseBrain):
    """Backend double: records requests, replies from a script."""

    def __init__(self, replies: Optional[List[Any]] = None, delays: Optional[List[float]] = None):
        self.replies = list(replies or [])
        self.delays = list(delays or [])
        self.requests: List[GenerationRequest] = []

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        self.requests.append(request)
        if self.delays:
            await asyncio.sleep(self.delays.pop(0))
        reply = self.replies.pop(0) if self.replies else "ok"
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, GenerationResult):
            return reply
        return GenerationResult(text=reply)


@pytest.fixture(scope="function")
def scripted_model() -> ScriptedChatModel:
    return ScriptedChatModel()


@pytest.fixture(scope="function")
def recording_brain() -> RecordingBrain:
    return RecordingBrain()


@pytest.fixture(scope="function")
def tmp_files(tmp_path: Path) -> Path:
    """Temporary directory with a couple of attachment files."""
    d = tmp_path / "files"
    d.mkdir(parents=True, exist_ok=True)
    (d / "report.pdf").write_bytes(b"%PDF-1.4 fake")
    (d / "cat.png").write_bytes(b"\x89PNG fake")
    return d


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Ensure tests run with default settings (no leftover KIMTEN_* vars)."""
    for var in [
        "KIMTEN_MEMORY_LIMIT",
        "KIMTEN_HOPS",
        "KIMTEN_CONTEXT_CHAR_LIMIT",
        "KIMTEN_LOG_LEVEL",
        "KIMTEN_LOG_FORMAT",
        "KIMTEN_SERVICE_NAME",
    ]:
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()

from __future__ import annotations

import pytest

from kimten.domain.context.memory import MEMORY_LIMIT, ShortTermMemory
from kimten.domain.models import InputValidationError, Role, TurnRecord


def _user(text: str) -> TurnRecord:
    return TurnRecord(role=Role.USER, content=text)


def test_memory_keeps_insertion_order():
    mem = ShortTermMemory()
    mem.add(_user("a"))
    mem.add(TurnRecord(role=Role.ASSISTANT, content="b"))
    assert [r.content for r in mem.list()] == ["a", "b"]
    assert [r.role for r in mem.list()] == [Role.USER, Role.ASSISTANT]


def test_memory_evicts_oldest_beyond_limit():
    mem = ShortTermMemory(limit=3)
    for i in range(5):
        mem.add(_user(f"m{i}"))
    assert len(mem) == 3
    assert [r.content for r in mem.list()] == ["m2", "m3", "m4"]


def test_memory_default_limit():
    mem = ShortTermMemory()
    for i in range(MEMORY_LIMIT + 4):
        mem.add(_user(str(i)))
    assert len(mem) == MEMORY_LIMIT
    assert mem.list()[0].content == "4"


def test_memory_snapshot_is_independent():
    mem = ShortTermMemory()
    mem.add(_user("a"))
    snapshot = mem.list()
    snapshot.append(_user("intruder"))
    mem.add(_user("b"))
    assert [r.content for r in snapshot] == ["a", "intruder"]
    assert [r.content for r in mem.list()] == ["a", "b"]


def test_memory_snapshot_copies_multipart_content():
    mem = ShortTermMemory()
    mem.add(TurnRecord(role=Role.USER, content=[{"type": "text", "text": "hi"}]))
    snapshot = mem.list()
    snapshot[0].content[0]["text"] = "changed"
    assert mem.list()[0].content[0]["text"] == "hi"


def test_memory_clear():
    mem = ShortTermMemory(limit=2)
    mem.add(_user("a"))
    mem.clear()
    assert len(mem) == 0
    assert mem.list() == []


@pytest.mark.parametrize("limit", [0, -1, True, 2.5, "3", None])
def test_memory_rejects_invalid_limit(limit):
    with pytest.raises(InputValidationError):
        ShortTermMemory(limit=limit)

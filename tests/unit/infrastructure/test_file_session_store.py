"""Unit tests for the JSONL session store."""

import asyncio
import json

import pytest

from taskpilot.infrastructure.persistence.file_session_store import FileSessionStore


@pytest.mark.asyncio
async def test_append_and_read_in_order(session_store):
    for i in range(3):
        await session_store.append_entry("s1", {"mode": "THINK", "i": i})

    entries = await session_store.read_entries("s1")
    assert [e["i"] for e in entries] == [0, 1, 2]


@pytest.mark.asyncio
async def test_log_is_bounded(tmp_path):
    store = FileSessionStore(tmp_path, max_lines=5)
    for i in range(12):
        await store.append_entry("s1", {"i": i})
        assert len(await store.read_entries("s1")) <= 5

    entries = await store.read_entries("s1")
    assert [e["i"] for e in entries] == [7, 8, 9, 10, 11]


@pytest.mark.asyncio
async def test_concurrent_appends_keep_every_line_intact(tmp_path):
    store = FileSessionStore(tmp_path, max_lines=50)

    await asyncio.gather(*(store.append_entry("s1", {"i": i}) for i in range(20)))

    entries = await store.read_entries("s1")
    assert sorted(e["i"] for e in entries) == list(range(20))


@pytest.mark.asyncio
async def test_malformed_lines_come_back_raw(session_store):
    path = session_store.get_session_path("s1")
    path.parent.mkdir(parents=True)
    path.write_text('{"mode": "START"}\nnot json\n[1, 2]\n\n', encoding="utf-8")

    entries = await session_store.read_entries("s1")

    assert entries == [{"mode": "START"}, {"raw": "not json"}, {"raw": "[1, 2]"}]


@pytest.mark.asyncio
async def test_unknown_session_is_empty(session_store):
    assert await session_store.read_entries("never-written") == []


@pytest.mark.asyncio
async def test_clear_truncates(session_store):
    await session_store.append_entry("s1", {"mode": "START"})
    await session_store.clear("s1")
    assert await session_store.read_entries("s1") == []


@pytest.mark.asyncio
async def test_unserializable_entry_is_swallowed(session_store):
    class Unserializable:
        def __str__(self):
            raise ValueError("cannot render")

    await session_store.append_entry("s1", {"bad": Unserializable()})
    await session_store.append_entry("s1", {"mode": "OK"})

    assert await session_store.read_entries("s1") == [{"mode": "OK"}]


@pytest.mark.asyncio
async def test_list_sessions(session_store):
    await session_store.append_entry("b", {"mode": "START"})
    await session_store.append_entry("a", {"mode": "START"})
    assert await session_store.list_sessions() == ["a", "b"]


def test_session_id_cannot_escape_directory(session_store):
    path = session_store.get_session_path("../../etc")
    assert session_store.sessions_dir in path.parents


def test_entries_are_json_lines(session_store):
    asyncio.run(session_store.append_entry("s1", {"mode": "START", "task": "ü"}))
    line = session_store.get_session_path("s1").read_text(encoding="utf-8").strip()
    assert json.loads(line) == {"mode": "START", "task": "ü"}


def test_max_lines_must_be_positive(tmp_path):
    with pytest.raises(ValueError):
        FileSessionStore(tmp_path, max_lines=0)


def write_undecodable_line(store, session_id):
    path = store.get_session_path(session_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\xff\xfe garbage\n")


@pytest.mark.asyncio
async def test_undecodable_line_comes_back_raw(session_store):
    write_undecodable_line(session_store, "s1")
    await session_store.append_entry("s1", {"mode": "START"})

    entries = await session_store.read_entries("s1")

    assert len(entries) == 2
    assert "garbage" in entries[0]["raw"]
    assert entries[1] == {"mode": "START"}


@pytest.mark.asyncio
async def test_undecodable_line_does_not_stop_pruning(tmp_path):
    store = FileSessionStore(tmp_path, max_lines=3)
    write_undecodable_line(store, "s1")

    for i in range(10):
        await store.append_entry("s1", {"i": i})

    lines = store.get_session_path("s1").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    assert [e["i"] for e in await store.read_entries("s1")] == [7, 8, 9]

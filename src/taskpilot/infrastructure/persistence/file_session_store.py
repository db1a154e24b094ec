"""
File-Based Session Store

Each session is a bounded JSONL log (the "context window") at
``<sessions_dir>/<session_id>/context_window.jsonl``, one Mode Event per line.

Appends are serialized per session with an asyncio.Lock. After every append
the file is pruned to the newest ``max_lines`` entries. Locks live as long as
the store, one per session id ever touched.

Reads decode with replacement characters, so a line holding invalid UTF-8
neither blocks pruning nor breaks retrieval; it comes back as a
``{"raw": ...}`` entry. The log is a best-effort trace: write failures are
logged and swallowed so that they never interrupt the agent.
"""

import asyncio
import json
from pathlib import Path
from typing import Any

import aiofiles
import structlog

CONTEXT_FILE_NAME = "context_window.jsonl"
DEFAULT_MAX_LINES = 4000


class FileSessionStore:
    def __init__(
        self, sessions_dir: str | Path = ".taskpilot/sessions", max_lines: int = DEFAULT_MAX_LINES
    ):
        if max_lines < 1:
            raise ValueError("max_lines must be at least 1")
        self.sessions_dir = Path(sessions_dir)
        self.max_lines = max_lines
        self.locks: dict[str, asyncio.Lock] = {}
        self.logger = structlog.get_logger().bind(component="session_store")

    def _get_lock(self, session_id: str) -> asyncio.Lock:
        if session_id not in self.locks:
            self.locks[session_id] = asyncio.Lock()
        return self.locks[session_id]

    def get_session_path(self, session_id: str) -> Path:
        safe_id = session_id.replace("/", "_").replace("\\", "_").replace("..", "_")
        return self.sessions_dir / safe_id / CONTEXT_FILE_NAME

    async def append_entry(self, session_id: str, entry: dict[str, Any]) -> None:
        path = self.get_session_path(session_id)
        async with self._get_lock(session_id):
            try:
                line = json.dumps(entry, ensure_ascii=False, default=str)
                path.parent.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(path, "a", encoding="utf-8") as f:
                    await f.write(line + "\n")
                await self._prune(path)
            except (OSError, TypeError, ValueError) as exc:
                self.logger.warning("session_append_failed", session_id=session_id, error=str(exc))

    async def _prune(self, path: Path) -> None:
        async with aiofiles.open(path, "r", encoding="utf-8", errors="replace") as f:
            lines = [line for line in (await f.read()).splitlines() if line.strip()]

        if len(lines) <= self.max_lines:
            return

        kept = lines[-self.max_lines :]
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write("\n".join(kept) + "\n")
        self.logger.debug("session_pruned", path=str(path), dropped=len(lines) - len(kept))

    async def read_entries(self, session_id: str) -> list[dict[str, Any]]:
        """Ordered entries; lines that are not JSON objects come back as ``{"raw": line}``."""
        path = self.get_session_path(session_id)
        if not path.exists():
            return []

        async with aiofiles.open(path, "r", encoding="utf-8", errors="replace") as f:
            content = await f.read()

        entries: list[dict[str, Any]] = []
        for line in content.splitlines():
            if not line.strip():
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                entry = None
            entries.append(entry if isinstance(entry, dict) else {"raw": line})
        return entries

    async def clear(self, session_id: str) -> None:
        path = self.get_session_path(session_id)
        async with self._get_lock(session_id):
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(path, "w", encoding="utf-8") as f:
                    await f.write("")
            except OSError as exc:
                self.logger.warning("session_clear_failed", session_id=session_id, error=str(exc))
                return
        self.logger.info("session_cleared", session_id=session_id)

    async def list_sessions(self) -> list[str]:
        if not self.sessions_dir.exists():
            return []
        return sorted(
            child.name
            for child in self.sessions_dir.iterdir()
            if child.is_dir() and (child / CONTEXT_FILE_NAME).exists()
        )

"""
Filesystem tools: createFile, writeFile, readFile, listDirectory, searchFiles
and getSystemInfo.

Every handler returns a ``{"success": bool, ...}`` dict and reports filesystem
errors in ``error`` instead of raising. readFile, listDirectory and
getSystemInfo are terminal: their successful result is itself the answer.
"""

import os
import platform
import sys
from pathlib import Path
from typing import Any

import aiofiles

from taskpilot.core.domain.events import utc_now_iso
from taskpilot.infrastructure.tools.registry import ToolSpec

MAX_READ_BYTES = 10 * 1024 * 1024
MAX_SEARCH_RESULTS = 500


def _schema(properties: dict[str, dict[str, Any]], required: list[str]) -> dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required}


PATH_PROPERTY = {"type": "string", "description": "File or directory path"}
CONTENT_PROPERTY = {"type": "string", "description": "Text content"}


async def create_file(path: str, content: str = "") -> dict[str, Any]:
    """Create a new file; refuses to overwrite an existing one."""
    file_path = Path(path).resolve()
    if file_path.exists():
        return {"success": False, "error": f"File already exists: {path}", "path": str(file_path)}
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(file_path, "x", encoding="utf-8") as f:
            await f.write(content)
    except OSError as exc:
        return {"success": False, "error": str(exc), "path": str(file_path)}
    return {
        "success": True,
        "path": str(file_path),
        "size": len(content.encode("utf-8")),
        "timestamp": utc_now_iso(),
    }


async def write_file(path: str, content: str, append: bool = False) -> dict[str, Any]:
    file_path = Path(path).resolve()
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(file_path, "a" if append else "w", encoding="utf-8") as f:
            await f.write(content)
    except OSError as exc:
        return {"success": False, "error": str(exc), "path": str(file_path)}
    return {
        "success": True,
        "path": str(file_path),
        "size": len(content.encode("utf-8")),
        "mode": "append" if append else "overwrite",
        "timestamp": utc_now_iso(),
    }


async def read_file(path: str) -> dict[str, Any]:
    file_path = Path(path).resolve()
    if not file_path.is_file():
        return {"success": False, "error": f"File not found: {path}", "path": str(file_path)}
    size = file_path.stat().st_size
    if size > MAX_READ_BYTES:
        return {"success": False, "error": f"File too large: {size} bytes", "path": str(file_path)}
    try:
        async with aiofiles.open(file_path, "r", encoding="utf-8") as f:
            content = await f.read()
    except (OSError, UnicodeDecodeError) as exc:
        return {"success": False, "error": str(exc), "path": str(file_path)}
    return {"success": True, "path": str(file_path), "content": content, "size": size}


async def list_directory(path: str = ".") -> dict[str, Any]:
    dir_path = Path(path).resolve()
    if not dir_path.exists():
        return {"success": False, "error": f"Directory not found: {path}", "path": str(dir_path)}
    if not dir_path.is_dir():
        return {"success": False, "error": f"Path is not a directory: {path}", "path": str(dir_path)}

    items = []
    try:
        for child in sorted(dir_path.iterdir()):
            try:
                stats = child.stat()
            except OSError:
                items.append({"name": child.name, "type": "unknown"})
                continue
            items.append(
                {
                    "name": child.name,
                    "type": "directory" if child.is_dir() else "file",
                    "size": stats.st_size,
                }
            )
    except OSError as exc:
        return {"success": False, "error": str(exc), "path": str(dir_path)}
    return {"success": True, "path": str(dir_path), "items": items, "count": len(items)}


async def search_files(pattern: str, path: str = ".") -> dict[str, Any]:
    """Recursive glob search for files whose name matches ``pattern``."""
    root = Path(path).resolve()
    if not root.is_dir():
        return {"success": False, "error": f"Directory not found: {path}", "pattern": pattern}
    try:
        files = [str(match) for match in root.rglob(pattern) if match.is_file()]
    except (OSError, ValueError) as exc:
        return {"success": False, "error": str(exc), "pattern": pattern}
    return {
        "success": True,
        "pattern": pattern,
        "directory": str(root),
        "files": files[:MAX_SEARCH_RESULTS],
        "count": len(files),
    }


async def get_system_info() -> dict[str, Any]:
    return {
        "success": True,
        "info": {
            "platform": platform.system(),
            "release": platform.release(),
            "architecture": platform.machine(),
            "python_version": sys.version.split()[0],
            "cwd": os.getcwd(),
            "cpu_count": os.cpu_count(),
        },
        "timestamp": utc_now_iso(),
    }


def filesystem_tools() -> list[ToolSpec]:
    return [
        ToolSpec(
            name="createFile",
            description="Create a new file with optional content (fails if it exists)",
            handler=create_file,
            parameters_schema=_schema({"path": PATH_PROPERTY, "content": CONTENT_PROPERTY}, ["path"]),
        ),
        ToolSpec(
            name="writeFile",
            description="Write or append content to a file",
            handler=write_file,
            parameters_schema=_schema(
                {
                    "path": PATH_PROPERTY,
                    "content": CONTENT_PROPERTY,
                    "append": {"type": "boolean", "description": "Append instead of overwrite"},
                },
                ["path", "content"],
            ),
        ),
        ToolSpec(
            name="readFile",
            description="Read the content of a text file",
            handler=read_file,
            parameters_schema=_schema({"path": PATH_PROPERTY}, ["path"]),
            terminal=True,
        ),
        ToolSpec(
            name="listDirectory",
            description="List the entries of a directory",
            handler=list_directory,
            parameters_schema=_schema({"path": PATH_PROPERTY}, []),
            terminal=True,
        ),
        ToolSpec(
            name="searchFiles",
            description="Recursively find files matching a glob pattern",
            handler=search_files,
            parameters_schema=_schema(
                {
                    "pattern": {"type": "string", "description": "Glob pattern, e.g. *.py"},
                    "path": {"type": "string", "description": "Directory to search"},
                },
                ["pattern"],
            ),
        ),
        ToolSpec(
            name="getSystemInfo",
            description="Report platform, Python version and working directory",
            handler=get_system_info,
            parameters_schema=_schema({}, []),
            terminal=True,
        ),
    ]

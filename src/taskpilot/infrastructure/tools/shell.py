"""Shell command tool: executeCommand."""

import asyncio
from typing import Any

from taskpilot.infrastructure.tools.registry import ToolSpec

DANGEROUS_PATTERNS = (
    "rm -rf /",
    "rm -rf /*",
    "dd if=/dev/zero",
    "dd if=/dev/random",
    "format c:",
    "del /f /s /q",
    ":(){ :|:& };:",
    "> /dev/sda",
    "mkfs.",
)


async def execute_command(
    command: str, cwd: str | None = None, timeout: float = 30.0
) -> dict[str, Any]:
    """Run ``command`` in a shell, returning stdout, stderr and the return code."""
    if not isinstance(command, str) or not command.strip():
        return {"success": False, "error": "Invalid command: must be a non-empty string"}

    if any(pattern in command.lower() for pattern in DANGEROUS_PATTERNS):
        return {"success": False, "error": "Command blocked for safety reasons", "command": command}

    try:
        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
    except OSError as exc:
        return {"success": False, "error": str(exc), "command": command}

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return {"success": False, "error": f"Command timed out after {timeout}s", "command": command}

    stdout_text = stdout.decode(errors="replace").strip() if stdout else ""
    stderr_text = stderr.decode(errors="replace").strip() if stderr else ""
    result = {
        "success": process.returncode == 0,
        "stdout": stdout_text,
        "stderr": stderr_text,
        "returncode": process.returncode,
        "command": command,
    }
    if process.returncode != 0:
        result["error"] = stderr_text or f"Command failed with code {process.returncode}"
    return result


def shell_tools(default_timeout: float = 30.0) -> list[ToolSpec]:
    async def handler(command: str, cwd: str | None = None, timeout: float | None = None):
        return await execute_command(command, cwd=cwd, timeout=timeout or default_timeout)

    return [
        ToolSpec(
            name="executeCommand",
            description="Execute a shell command and return its output",
            handler=handler,
            parameters_schema={
                "type": "object",
                "properties": {
                    "command": {"type": "string", "description": "Shell command to run"},
                    "cwd": {"type": "string", "description": "Working directory"},
                    "timeout": {"type": "number", "description": "Timeout in seconds"},
                },
                "required": ["command"],
            },
        )
    ]

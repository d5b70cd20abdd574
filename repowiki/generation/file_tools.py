"""File-reading tools granted to the model during a completion.

A ``FileFunctions`` instance is bound to one checkout and one
``FileReadLog``. Every successful read appends the repository-relative path
to that log, which becomes the attribution list of the document being
written. Each concurrent topic gets its own log, so attribution never leaks
between topics.

Tool failures (missing file, too large, bad range, path escape) are returned
to the model as text. The model decides what to do with them; nothing here
raises into the completion loop.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger("repowiki.generation.file_tools")

MAX_FILE_BYTES = 1024 * 1024


class FileReadLog:
    """Ordered, de-duplicated record of paths read during one task."""

    def __init__(self) -> None:
        self._paths: dict[str, None] = {}

    def record(self, path: str) -> None:
        self._paths.setdefault(path, None)

    @property
    def paths(self) -> list[str]:
        return list(self._paths)

    def __len__(self) -> int:
        return len(self._paths)

    def __contains__(self, path: object) -> bool:
        return path in self._paths


class FileFunctions:
    """Read-only access to files inside one repository checkout."""

    def __init__(self, git_path: str | Path, read_log: FileReadLog | None = None) -> None:
        self.root = Path(git_path).resolve()
        self.read_log = read_log if read_log is not None else FileReadLog()

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def read_file(self, path: str) -> str:
        """Return the full text of one file, or an error message."""
        resolved, rel, error = self._resolve(path)
        if error:
            return error
        try:
            text = resolved.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            return f"File is not valid UTF-8 text: {rel}"
        except OSError as e:
            return f"Error reading file {rel}: {e}"
        self.read_log.record(rel)
        return text

    def read_files(self, paths: list[str]) -> dict[str, str]:
        """Read several files; each entry is the text or an error message."""
        return {p: self.read_file(p) for p in paths}

    def read_file_lines(self, path: str, start_line: int, end_line: int) -> str:
        """Return lines ``start_line``..``end_line`` (0-based, inclusive)."""
        resolved, rel, error = self._resolve(path)
        if error:
            return error
        try:
            lines = resolved.read_text(encoding="utf-8").splitlines()
        except UnicodeDecodeError:
            return f"File is not valid UTF-8 text: {rel}"
        except OSError as e:
            return f"Error reading file {rel}: {e}"

        if start_line < 0 or end_line < start_line or start_line >= len(lines):
            return (
                f"Invalid line range {start_line}-{end_line} for {rel} "
                f"({len(lines)} lines)"
            )
        end_line = min(end_line, len(lines) - 1)
        self.read_log.record(rel)
        return "\n".join(lines[start_line:end_line + 1])

    # ------------------------------------------------------------------
    # Model-facing plumbing
    # ------------------------------------------------------------------

    def tool_schemas(self) -> list[dict[str, Any]]:
        """OpenAI-style function definitions for the three tools."""
        return [
            {
                "type": "function",
                "function": {
                    "name": "read_file",
                    "description": "Read the full content of a file in the repository.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "path": {
                                "type": "string",
                                "description": "Path relative to the repository root",
                            },
                        },
                        "required": ["path"],
                    },
                },
            },
            {
                "type": "function",
                "function": {
                    "name": "read_files",
                    "description": "Read several files in the repository at once.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "paths": {
                                "type": "array",
                                "items": {"type": "string"},
                                "description": "Paths relative to the repository root",
                            },
                        },
                        "required": ["paths"],
                    },
                },
            },
            {
                "type": "function",
                "function": {
                    "name": "read_file_lines",
                    "description": (
                        "Read a range of lines from a file. Line numbers are "
                        "0-based and the range is inclusive."
                    ),
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "path": {"type": "string"},
                            "start_line": {"type": "integer"},
                            "end_line": {"type": "integer"},
                        },
                        "required": ["path", "start_line", "end_line"],
                    },
                },
            },
        ]

    def invoke(self, name: str, arguments: str) -> str:
        """Run a tool call from the model and return its result as text."""
        try:
            args = json.loads(arguments or "{}")
        except json.JSONDecodeError as e:
            return f"Invalid tool arguments for {name}: {e}"
        if not isinstance(args, dict):
            return f"Invalid tool arguments for {name}: expected an object"

        logger.debug("Tool call %s(%s)", name, args)
        try:
            if name == "read_file":
                return self.read_file(str(args["path"]))
            if name == "read_files":
                return json.dumps(self.read_files([str(p) for p in args["paths"]]))
            if name == "read_file_lines":
                return self.read_file_lines(
                    str(args["path"]), int(args["start_line"]), int(args["end_line"])
                )
        except (KeyError, TypeError, ValueError) as e:
            return f"Invalid tool arguments for {name}: {e}"
        return f"Unknown tool: {name}"

    def _resolve(self, path: str) -> tuple[Path, str, str | None]:
        """Resolve *path* inside the checkout; third element is an error message."""
        candidate = (self.root / path.lstrip("/")).resolve()
        try:
            rel = candidate.relative_to(self.root).as_posix()
        except ValueError:
            return candidate, path, f"Path is outside the repository: {path}"
        if not candidate.is_file():
            return candidate, rel, f"File not found: {rel}"
        if candidate.stat().st_size >= MAX_FILE_BYTES:
            return candidate, rel, f"File too large: {rel} (limit is 1 MiB)"
        return candidate, rel, None

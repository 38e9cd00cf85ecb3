"""
Manifest I/O — read and update the files adapters derive state from.

Missing files are normal (a project may simply not use an ecosystem)
and yield ``None``.  Files that exist but cannot be parsed raise
``ManifestReadError``; files that cannot be written raise
``OperationError``.
"""

from __future__ import annotations

import json
import tomllib
from pathlib import Path
from typing import Any

from runtimekit.core.errors import ManifestReadError, OperationError


def _read_text(path: Path) -> str | None:
    if not path.is_file():
        return None
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestReadError(str(path), str(e)) from e


def read_json(path: Path) -> dict[str, Any] | None:
    """Parse a JSON object file."""
    raw = _read_text(path)
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ManifestReadError(str(path), f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ManifestReadError(str(path), f"expected an object, got {type(data).__name__}")
    return data


def read_toml(path: Path) -> dict[str, Any] | None:
    raw = _read_text(path)
    if raw is None:
        return None
    try:
        return tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise ManifestReadError(str(path), f"invalid TOML: {e}") from e


def read_text_lines(path: Path) -> list[str] | None:
    """Non-empty lines with ``#`` comments stripped."""
    raw = _read_text(path)
    if raw is None:
        return None
    lines = []
    for line in raw.splitlines():
        line = line.split("#", 1)[0].strip()
        if line:
            lines.append(line)
    return lines


def read_raw_lines(path: Path) -> list[str] | None:
    """Every line as written, comments included."""
    raw = _read_text(path)
    return None if raw is None else raw.splitlines()


def write_lines(path: Path, lines: list[str]) -> None:
    text = "\n".join(lines) + "\n" if lines else ""
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise OperationError(f"Cannot write {path}: {e}") from e

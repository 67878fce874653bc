"""Locating the external programs the pipelines run."""

from __future__ import annotations

import os
import shlex
import shutil
from collections.abc import Iterable
from dataclasses import dataclass
from os import PathLike
from pathlib import Path

__all__ = [
    "Tool",
    "find_java",
    "find_minced",
    "find_blast_tool",
    "find_prodigal",
    "format_command",
]


def _arg(value: object) -> str:
    if isinstance(value, (str, os.PathLike)):
        return os.fspath(value)
    return str(value)


@dataclass(frozen=True)
class Tool:
    """An external program, given as the argument vector that starts it."""

    argv: tuple[str, ...]

    def command(self, *args: object) -> list[str]:
        """Return the full argument vector for running the tool with ``args``."""
        return [*self.argv, *(_arg(a) for a in args)]


def find_java() -> Tool | None:
    """Find a Java executable on PATH."""
    found = shutil.which("java")
    return Tool((found,)) if found else None


def find_minced(java: Tool, minced_jar: str | PathLike[str]) -> Tool | None:
    """Return a tool running the MinCED jar with ``java``, if the jar exists."""
    jar = Path(minced_jar)
    if not jar.exists():
        return None
    return Tool((*java.argv, "-jar", str(jar)))


def find_blast_tool(prefix: str | PathLike[str] | None, name: str) -> Tool | None:
    """Find a BLAST+ program in ``<prefix>/bin`` or, without a prefix, on PATH."""
    if prefix is not None:
        found = shutil.which(name, path=str(Path(prefix) / "bin"))
    else:
        found = shutil.which(name)
    return Tool((found,)) if found else None


def find_prodigal(binary: str | PathLike[str] | None) -> Tool | None:
    """Find Prodigal at ``binary`` (a path or a command name), or on PATH."""
    if binary is None:
        found = shutil.which("prodigal")
    elif Path(binary).is_file():
        found = str(binary)
    else:
        found = shutil.which(os.fspath(binary))
    return Tool((found,)) if found else None


def format_command(argv: Iterable[object]) -> str:
    """Render an argument vector as a shell-quoted command line."""
    return shlex.join(_arg(a) for a in argv)
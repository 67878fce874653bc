"""Byte copying with periodic progress reports, and FTP downloads built on it."""

from __future__ import annotations

import ftplib
import sys
import time
from os import PathLike
from pathlib import Path
from typing import IO, Protocol

__all__ = ["copy_with_progress", "ftp_retrieve"]

_CHUNK_SIZE = 64 * 1024
_DEFAULT_INTERVAL = 1.0


class _FtpConnection(Protocol):
    def voidcmd(self, cmd: str) -> str: ...

    def size(self, filename: str) -> int | None: ...

    def retrbinary(self, cmd: str, callback, blocksize: int = ...) -> str: ...


def _format_bytes(count: float) -> str:
    for unit in ("B", "KiB", "MiB", "GiB"):
        if count < 1024:
            return f"{count:.1f} {unit}" if unit != "B" else f"{int(count)} {unit}"
        count /= 1024
    return f"{count:.1f} TiB"


class _Progress:
    """Writes a single updating progress line to standard error."""

    def __init__(self, total: int | None, interval: float) -> None:
        self.total = total
        self.interval = interval
        self.done = 0
        self._start = time.monotonic()
        self._last_report = self._start

    def update(self, count: int) -> None:
        self.done += count
        now = time.monotonic()
        if now - self._last_report >= self.interval:
            self._last_report = now
            self._report(now)

    def finish(self) -> None:
        self._report(time.monotonic())
        sys.stderr.write("\n")
        sys.stderr.flush()

    def _report(self, now: float) -> None:
        elapsed = now - self._start
        rate = self.done / elapsed if elapsed > 0 else 0.0
        if self.total:
            percent = 100.0 * self.done / self.total
            line = (
                f"\r{self.done}/{self.total} bytes ({percent:.1f}%) "
                f"at {_format_bytes(rate)}/s"
            )
        else:
            line = f"\r{self.done} bytes at {_format_bytes(rate)}/s"
        sys.stderr.write(line)
        sys.stderr.flush()


def copy_with_progress(
    source: IO[bytes],
    destination: IO[bytes],
    total_size: int | None = None,
    interval: float = _DEFAULT_INTERVAL,
) -> int:
    """Copy ``source`` into ``destination``, reporting progress every ``interval`` seconds.

    ``total_size`` may be None when the size is unknown. Returns the number of bytes copied.
    """
    progress = _Progress(total_size, interval)
    try:
        while chunk := source.read(_CHUNK_SIZE):
            destination.write(chunk)
            progress.update(len(chunk))
    finally:
        progress.finish()
    return progress.done


def _remote_size(conn: _FtpConnection, file_name: str) -> int | None:
    try:
        conn.voidcmd("TYPE I")
        return conn.size(file_name)
    except ftplib.error_perm:
        return None


def ftp_retrieve(
    conn: _FtpConnection, file_name: str, local_path: str | PathLike[str]
) -> Path:
    """Download ``file_name`` from the connection's current directory into ``local_path``.

    The data is first written to ``<local_path>.part``, which is removed on failure and
    renamed into place on success.
    """
    local_path = Path(local_path)
    size = _remote_size(conn, file_name)
    if size is None:
        raise FileNotFoundError(f"File {file_name!r} does not exist in the FTP server")

    partial_path = local_path.with_name(local_path.name + ".part")
    progress = _Progress(size, _DEFAULT_INTERVAL)

    try:
        with open(partial_path, "wb") as out:

            def write(block: bytes) -> None:
                out.write(block)
                progress.update(len(block))

            conn.retrbinary(f"RETR {file_name}", write)
    except BaseException:
        partial_path.unlink(missing_ok=True)
        raise
    finally:
        progress.finish()

    partial_path.replace(local_path)
    return local_path
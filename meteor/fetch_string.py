"""Download files exported by STRING Viruses and read them back."""

from __future__ import annotations

import enum
import gzip
import re
import sys
import urllib.request
from collections.abc import Iterable
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import IO

from meteor.transfer import copy_with_progress

__all__ = [
    "STRING_VIRUSES_BASE_URL",
    "STRING_VIRUSES_VERSION",
    "StringFile",
    "ProteinLinksRecord",
    "parse_string_id",
    "fetch_string_viruses",
]

# The server does not offer https.
STRING_VIRUSES_BASE_URL = "http://viruses.string-db.org/download"
STRING_VIRUSES_VERSION = "v10.5"

_TAXID_RE = re.compile(r"\+?[0-9]+")


class StringFile(enum.Enum):
    """Files offered for download, named without version or extension."""

    PROTEIN_LINKS = "protein.links"
    PROTEIN_LINKS_DETAILED = "protein.links.detailed"
    PROTEIN_LINKS_FULL = "protein.links.full"
    PROTEIN_SEQUENCES = "protein.sequences"
    SPECIES = "species"
    PROTEIN_ALIASES = "protein.aliases"

    def full_file_name(self) -> str:
        """Return the versioned file name as published on the server."""
        if self is StringFile.PROTEIN_SEQUENCES:
            extension = "fa.gz"
        elif self is StringFile.SPECIES:
            extension = "txt"
        else:
            extension = "txt.gz"
        return f"{self.value}.{STRING_VIRUSES_VERSION}.{extension}"

    def local_path(self, download_dir: str | PathLike[str]) -> Path:
        return Path(download_dir) / self.full_file_name()

    def is_gz_compressed(self) -> bool:
        return self is not StringFile.SPECIES

    def open_read(self, download_dir: str | PathLike[str]) -> IO[bytes]:
        """Open the downloaded file for reading, decompressing it when needed."""
        path = self.local_path(download_dir)
        if self.is_gz_compressed():
            return gzip.open(path, "rb")
        return open(path, "rb")


@dataclass(frozen=True)
class ProteinLinksRecord:
    """One interaction from the protein links file."""

    protein_id_a: str
    protein_id_b: str
    combined_score: int


def parse_string_id(string_id: str) -> tuple[int, str] | None:
    """Split an identifier such as ``9606.ENSP0001`` into its taxid and protein name."""
    taxid, sep, name = string_id.partition(".")
    if not sep or not _TAXID_RE.fullmatch(taxid):
        return None
    return int(taxid), name


def _download(url: str, local_path: Path) -> None:
    partial_path = local_path.with_name(local_path.name + ".part")
    with urllib.request.urlopen(url) as response:
        length = response.headers.get("Content-Length")
        total = int(length) if length and length.isdigit() else None
        try:
            with open(partial_path, "wb") as out:
                copy_with_progress(response, out, total, 1.0)
        except BaseException:
            partial_path.unlink(missing_ok=True)
            raise
    partial_path.replace(local_path)


def fetch_string_viruses(
    files: Iterable[StringFile | str],
    download_dir: str | PathLike[str],
    force_download: bool = False,
) -> list[Path]:
    """Download each of ``files`` into ``download_dir`` and return their local paths.

    Files already present are kept unless ``force_download`` is set.
    """
    work_dir = Path(download_dir)
    work_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    for file in files:
        file = StringFile(file)
        file_name = file.full_file_name()
        local_path = work_dir / file_name

        if force_download or not local_path.exists():
            url = f"{STRING_VIRUSES_BASE_URL}/{file_name}"
            print(f"Downloading {url!r} to {str(local_path)!r}", file=sys.stderr)
            _download(url, local_path)
        else:
            print(
                f"File {file_name!r} is already present as {str(local_path)!r}, skipping "
                "(delete it or use --force-download to re-download)"
            )
        paths.append(local_path)

    return paths
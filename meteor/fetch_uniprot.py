"""Download UniProt taxonomic division files."""

from __future__ import annotations

import ftplib
import sys
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path

from meteor.transfer import ftp_retrieve

__all__ = [
    "FTP_HOST",
    "REMOTE_DIVISIONS_DIRECTORY",
    "UniProtFetchOptions",
    "division_file_name",
    "fetch_uniprot",
    "list_files",
]

FTP_HOST = "ftp.uniprot.org"
REMOTE_DIVISIONS_DIRECTORY = (
    "/pub/databases/uniprot/current_release/knowledgebase/taxonomic_divisions"
)
SWISSPROT_FILE_NAME_PART = "sprot"
TREMBL_FILE_NAME_PART = "trembl"


@dataclass
class UniProtFetchOptions:
    """Which UniProt division files to fetch and where to keep them."""

    uniprot_divisions: list[str] = field(default_factory=list)
    download_dir: str | PathLike[str] = "."
    exclude_swissprot: bool = False
    exclude_trembl: bool = False
    force_download: bool = False

    def db_filename_parts(self) -> list[str]:
        """Return the database parts of the file names, SwissProt first."""
        parts = []
        if not self.exclude_swissprot:
            parts.append(SWISSPROT_FILE_NAME_PART)
        if not self.exclude_trembl:
            parts.append(TREMBL_FILE_NAME_PART)
        return parts

    def _file_names(self) -> list[str]:
        return [
            division_file_name(db, division)
            for db in self.db_filename_parts()
            for division in self.uniprot_divisions
        ]


def division_file_name(db: str, division: str) -> str:
    return f"uniprot_{db}_{division}.xml.gz"


def _connect() -> ftplib.FTP:
    conn = ftplib.FTP(FTP_HOST)
    conn.login("anonymous", "anonymous")
    conn.cwd(REMOTE_DIVISIONS_DIRECTORY)
    return conn


def fetch_uniprot(options: UniProtFetchOptions) -> list[Path]:
    """Download the selected division files and return their local paths.

    A connection is opened only if some file actually needs downloading.
    """
    work_dir = Path(options.download_dir)
    work_dir.mkdir(parents=True, exist_ok=True)

    conn: ftplib.FTP | None = None
    paths = []
    try:
        for file_name in options._file_names():
            local_path = work_dir / file_name
            if options.force_download or not local_path.exists():
                if conn is None:
                    conn = _connect()
                remote_path = f"{REMOTE_DIVISIONS_DIRECTORY}/{file_name}"
                print(f"Downloading {remote_path!r} to {str(local_path)!r}", file=sys.stderr)
                ftp_retrieve(conn, file_name, local_path)
            else:
                print(
                    f"File {file_name!r} is already present as {str(local_path)!r}, skipping "
                    "(delete it or use --force-download to re-download)"
                )
            paths.append(local_path)
    except BaseException:
        if conn is not None:
            conn.close()
        raise

    if conn is not None:
        conn.quit()
    return paths


def list_files(options: UniProtFetchOptions) -> list[Path]:
    """Return the paths of the selected division files, which must already exist."""
    paths = []
    for file_name in options._file_names():
        path = Path(options.download_dir) / file_name
        if not path.exists():
            raise FileNotFoundError(
                f"{file_name} does not exist in {options.download_dir}. "
                "Run `meteor fetch uniprot` first?"
            )
        paths.append(path)
    return paths
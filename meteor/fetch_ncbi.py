"""Download and unpack the NCBI Taxonomy dump."""

from __future__ import annotations

import ftplib
import sys
import tarfile
from os import PathLike
from pathlib import Path

from meteor.transfer import ftp_retrieve

__all__ = [
    "FTP_HOST",
    "REMOTE_TAXONOMY_DIRECTORY",
    "TAXDUMP_FILE_NAME",
    "fetch_ncbi_taxonomy",
]

FTP_HOST = "ftp.ncbi.nlm.nih.gov"
REMOTE_TAXONOMY_DIRECTORY = "/pub/taxonomy"
TAXDUMP_FILE_NAME = "taxdump.tar.gz"


def _extract(archive_path: Path, work_dir: Path) -> None:
    with tarfile.open(archive_path, "r:gz") as archive:
        if hasattr(tarfile, "data_filter"):
            archive.extractall(work_dir, filter="data")
        else:
            archive.extractall(work_dir)


def fetch_ncbi_taxonomy(
    download_dir: str | PathLike[str],
    force_download: bool = False,
    no_extract: bool = False,
) -> Path:
    """Fetch ``taxdump.tar.gz`` into ``download_dir`` and unpack it there.

    An existing archive is kept unless ``force_download`` is set. Returns the archive path.
    """
    work_dir = Path(download_dir)
    work_dir.mkdir(parents=True, exist_ok=True)

    file_name = TAXDUMP_FILE_NAME
    local_path = work_dir / file_name

    if not force_download and local_path.exists():
        print(
            f"File {file_name!r} is already present as {str(local_path)!r}, skipping "
            "(delete it or use --force-download to re-download)"
        )
        return local_path

    with ftplib.FTP(FTP_HOST) as conn:
        conn.login("anonymous", "anonymous")
        conn.cwd(REMOTE_TAXONOMY_DIRECTORY)

        print(f"Downloading {file_name!r} to {str(local_path)!r}", file=sys.stderr)
        ftp_retrieve(conn, file_name, local_path)

        if not no_extract:
            _extract(local_path, work_dir)
            print(f"{file_name} extracted into {str(work_dir)!r}")

    return local_path
"""Host prediction by matching CRISPR spacers of metagenomic contigs against viral contigs."""

from __future__ import annotations

import os
import re
import shutil
import subprocess
import sys
import tempfile
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import IO, Any

from meteor.mapping import MultiMapping, VirusHostMapping
from meteor.tools import Tool, find_blast_tool, find_java, find_minced, format_command

__all__ = [
    "CRISPRS_FILE_NAME",
    "SPACERS_FILE_NAME",
    "VIRAL_SEQS_BLASTDB_NAME",
    "VIRAL_SEQS_BLASTDB_NDB_NAME",
    "BLASTOUT_FILE_NAME",
    "BLASTOUT_FMT",
    "DEFAULT_PERC_IDENTITY",
    "PipelineError",
    "MincedSpacersPipeline",
    "host_name_from_spacer",
    "crispr_match",
]

CRISPRS_FILE_NAME = "crisprs.txt"
SPACERS_FILE_NAME = "crisprs_spacers.fa"  # fixed by MinCED since v0.1.5
VIRAL_SEQS_BLASTDB_NAME = "viral_seqs.blastdb"
VIRAL_SEQS_BLASTDB_NDB_NAME = "viral_seqs.blastdb.ndb"
BLASTOUT_FILE_NAME = "spacer_search.blastout"
BLASTOUT_FMT = "6 qaccver saccver"
DEFAULT_PERC_IDENTITY = 95

_SPACER_SUFFIX_RE = re.compile(r"_CRISPR_\d+_spacer_\d+\Z")

StrPath = str | PathLike[str]


class PipelineError(RuntimeError):
    """An external tool is missing or did not finish successfully."""


def _absolute(path: StrPath) -> str:
    return os.path.abspath(os.fspath(path))


def _run_step(argv: Sequence[str], cwd: Path, label: str, dry_run: bool) -> None:
    print(f"Running {format_command(argv)}", file=sys.stderr)
    if dry_run:
        return
    try:
        result = subprocess.run(list(argv), cwd=cwd)
    except OSError as exc:
        raise PipelineError(f"Running {label}: {exc}") from exc
    if result.returncode != 0:
        code = max(result.returncode, 0)
        raise PipelineError(f"{label} finished with non-zero exit code: {code}")


def _write_output(output: str, write: Callable[[IO[str]], Any]) -> None:
    """Write to the file ``output``, or to standard output when it is ``-``."""
    if output == "-":
        try:
            write(sys.stdout)
            sys.stdout.flush()
        except BrokenPipeError:
            pass
    else:
        with open(output, "w", newline="", encoding="utf-8") as stream:
            write(stream)


def host_name_from_spacer(spacer_name: str) -> str:
    """Strip the ``_CRISPR_<n>_spacer_<m>`` suffix MinCED appends to the contig name."""
    match = _SPACER_SUFFIX_RE.search(spacer_name)
    if match is None:
        raise ValueError(f"Could not parse spacer name from blast output: {spacer_name!r}")
    return spacer_name[: match.start()]


def _parse_blast_row(row: Sequence[str]) -> tuple[str, str]:
    spacer_name, virus_name = row[0], row[1]
    return virus_name, host_name_from_spacer(spacer_name)


@dataclass
class MincedSpacersPipeline:
    """Extracts spacers with MinCED and searches them in the viral contigs with blastn."""

    minced: Tool
    makeblastdb: Tool
    blastn: Tool
    work_dir: Path
    blastn_num_threads: int | None = None
    dry_run: bool = False

    def __post_init__(self) -> None:
        self.work_dir = Path(self.work_dir)

    def minced_command(self, metagenomic_seqs: StrPath) -> list[str]:
        return self.minced.command("-spacers", _absolute(metagenomic_seqs), CRISPRS_FILE_NAME)

    def makeblastdb_command(self, viral_seqs: StrPath) -> list[str]:
        return self.makeblastdb.command(
            "-input_type", "fasta",
            "-dbtype", "nucl",
            "-in", _absolute(viral_seqs),
            "-out", VIRAL_SEQS_BLASTDB_NAME,
        )

    def blastn_command(self, perc_identity: int) -> list[str]:
        threads = [] if self.blastn_num_threads is None else ["-num_threads", str(self.blastn_num_threads)]
        return self.blastn.command(
            *threads,
            "-task", "blastn-short",
            "-perc_identity", str(perc_identity),
            "-query", SPACERS_FILE_NAME,
            "-db", VIRAL_SEQS_BLASTDB_NAME,
            "-outfmt", BLASTOUT_FMT,
            "-out", BLASTOUT_FILE_NAME,
        )

    def match_spacers(
        self,
        viral_seqs: StrPath,
        metagenomic_seqs: StrPath,
        perc_identity: int = DEFAULT_PERC_IDENTITY,
    ) -> None:
        """Run every step whose output is not yet in the work directory."""
        self.work_dir.mkdir(parents=True, exist_ok=True)

        if (self.work_dir / SPACERS_FILE_NAME).exists():
            print(
                f"{SPACERS_FILE_NAME} already exists in the working directory, skipping "
                "MinCED. Delete the file to re-generate it",
                file=sys.stderr,
            )
        else:
            _run_step(self.minced_command(metagenomic_seqs), self.work_dir, "MinCED", self.dry_run)

        if (self.work_dir / VIRAL_SEQS_BLASTDB_NDB_NAME).exists():
            print(
                f"{VIRAL_SEQS_BLASTDB_NDB_NAME} already exists in the working directory, "
                f"skipping makeblastdb. Delete all {VIRAL_SEQS_BLASTDB_NAME}* files to "
                "re-generate the database",
                file=sys.stderr,
            )
        else:
            _run_step(
                self.makeblastdb_command(viral_seqs), self.work_dir, "makeblastdb", self.dry_run
            )

        if (self.work_dir / BLASTOUT_FILE_NAME).exists():
            print(
                f"{BLASTOUT_FILE_NAME} already exists in the working directory, skipping BLAST "
                "search. Delete the file to re-generate it",
                file=sys.stderr,
            )
        else:
            _run_step(self.blastn_command(perc_identity), self.work_dir, "blastn", self.dry_run)

    def collect_virus_host_mapping(self) -> VirusHostMapping:
        """Read the blastn hits into a virus to host mapping."""
        with open(self.work_dir / BLASTOUT_FILE_NAME, newline="", encoding="utf-8") as stream:
            try:
                mapping = MultiMapping.read_tsv(stream, False, _parse_blast_row)
            except ValueError as exc:
                raise ValueError(f"Reading BLAST+ blastn output: {exc}") from exc
        return VirusHostMapping(mapping)


def crispr_match(
    viral_seqs: StrPath,
    metagenomic_seqs: StrPath,
    minced_jar: StrPath,
    output: str = "-",
    work_dir: StrPath | None = None,
    blast_prefix: StrPath | None = None,
    num_threads: int | None = None,
    perc_identity: int = DEFAULT_PERC_IDENTITY,
    dry_run: bool = False,
) -> VirusHostMapping:
    """Predict virus hosts from CRISPR spacer hits and write them as TSV to ``output``."""
    java = find_java()
    if java is None:
        raise PipelineError("Could not locate a Java executable in PATH")
    minced = find_minced(java, minced_jar)
    if minced is None:
        raise PipelineError("Could not locate the provided MinCED .jar file")
    makeblastdb = find_blast_tool(blast_prefix, "makeblastdb")
    if makeblastdb is None:
        raise PipelineError("Could not find a makeblastdb executable")
    blastn = find_blast_tool(blast_prefix, "blastn")
    if blastn is None:
        raise PipelineError("Could not find a blastn executable")

    temp_dir: Path | None = None
    if work_dir is None:
        temp_dir = Path(tempfile.mkdtemp(prefix="crispr-match"))
        work_path = temp_dir
    else:
        work_path = Path(work_dir)

    try:
        pipeline = MincedSpacersPipeline(
            minced, makeblastdb, blastn, work_path, num_threads, dry_run
        )
        pipeline.match_spacers(viral_seqs, metagenomic_seqs, perc_identity)
        try:
            mapping = pipeline.collect_virus_host_mapping()
        except (OSError, ValueError) as exc:
            raise PipelineError(
                f"Collecting the virus-host mapping from the BLAST output: {exc}"
            ) from exc
    except BaseException:
        if temp_dir is not None:
            print(
                "Intentionally not deleting temporary work directory for inspection due to "
                f"a previous error: {str(temp_dir)!r}",
                file=sys.stderr,
            )
        raise

    try:
        _write_output(output, mapping.write_tsv)
    finally:
        if temp_dir is not None:
            shutil.rmtree(temp_dir, ignore_errors=True)
    return mapping
"""Predicting viral proteins with Prodigal and matching them to UniProt with blastp."""

from __future__ import annotations

import math
import os
import re
import shutil
import subprocess
import sys
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from os import PathLike
from pathlib import Path

from meteor.crispr import PipelineError, _write_output
from meteor.mapping import MultiMapping, ProteinVirusTaxidMapping
from meteor.tools import Tool, find_blast_tool, find_prodigal, format_command

__all__ = [
    "FAA_FILE_NAME",
    "BLASTOUT_FMT",
    "BLASTOUT_FILE_NAME",
    "DEFAULT_PRODIGAL_PROCEDURE",
    "DEFAULT_EVALUE_THRESHOLD",
    "ProdigalBlastpPipeline",
    "virus_name_from_protein",
    "match_viral_proteins",
]

FAA_FILE_NAME = "predicted_viral_proteins.faa"
BLASTOUT_FMT = "6 qseqid saccver staxid"
BLASTOUT_FILE_NAME = "uniprot_viral_search.blastout"
DEFAULT_PRODIGAL_PROCEDURE = "meta"
DEFAULT_EVALUE_THRESHOLD = 1e-3

_PROTEIN_SUFFIX_RE = re.compile(r"_\d+\Z")

StrPath = str | PathLike[str]


def _absolute(path: StrPath) -> str:
    return os.path.abspath(os.fspath(path))


def _format_evalue(value: float) -> str:
    """Render a float in plain decimal notation, without an exponent."""
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return format(Decimal(repr(value)).normalize(), "f")


def _run_step(
    argv: Sequence[str], cwd: Path, label: str, dry_run: bool, quiet: bool = False
) -> None:
    print(f"Running {format_command(argv)}", file=sys.stderr)
    if dry_run:
        return
    try:
        result = subprocess.run(
            list(argv), cwd=cwd, stdout=subprocess.DEVNULL if quiet else None
        )
    except OSError as exc:
        raise PipelineError(f"Running {label}: {exc}") from exc
    if result.returncode != 0:
        code = max(result.returncode, 0)
        raise PipelineError(f"{label} finished with non-zero exit code: {code}")


def virus_name_from_protein(predicted_name: str) -> str:
    """Strip the ``_<n>`` suffix Prodigal appends to the contig name of each protein."""
    match = _PROTEIN_SUFFIX_RE.search(predicted_name)
    if match is None:
        raise ValueError(f"Could not parse virus name from blast output: {predicted_name!r}")
    return predicted_name[: match.start()]


def _parse_taxid(text: str) -> int:
    taxid = int(text)
    if taxid < 0:
        raise ValueError(f"invalid taxid: {text!r}")
    return taxid


def _parse_blast_row(row: Sequence[str]) -> tuple[str, tuple[str, int]]:
    predicted_name, accession, taxid = row[0], row[1], _parse_taxid(row[2])
    return accession, (virus_name_from_protein(predicted_name), taxid)


@dataclass
class ProdigalBlastpPipeline:
    """Finds proteins in viral contigs and searches them in a UniProt BLAST database."""

    prodigal: Tool
    blastp: Tool
    work_dir: Path
    prodigal_procedure: str = DEFAULT_PRODIGAL_PROCEDURE
    blastp_num_threads: int | None = None
    dry_run: bool = False

    def __post_init__(self) -> None:
        self.work_dir = Path(self.work_dir)

    def prodigal_command(self, viral_seqs: StrPath) -> list[str]:
        return self.prodigal.command(
            "-a", FAA_FILE_NAME,
            "-i", _absolute(viral_seqs),
            "-p", self.prodigal_procedure,
        )

    def blastp_command(self, uniprot_blastdb: StrPath, evalue: float) -> list[str]:
        threads = [] if self.blastp_num_threads is None else ["-num_threads", str(self.blastp_num_threads)]
        return self.blastp.command(
            *threads,
            "-db", _absolute(uniprot_blastdb),
            "-evalue", _format_evalue(evalue),
            "-query", FAA_FILE_NAME,
            "-outfmt", BLASTOUT_FMT,
            "-out", BLASTOUT_FILE_NAME,
        )

    def find_and_match_proteins(
        self,
        viral_seqs: StrPath,
        uniprot_blastdb: StrPath,
        evalue: float = DEFAULT_EVALUE_THRESHOLD,
    ) -> None:
        """Run every step whose output is not yet in the work directory."""
        if (self.work_dir / FAA_FILE_NAME).exists():
            print(
                f"{FAA_FILE_NAME} already exists in the working directory, skipping Prodigal. "
                "Delete the file to re-generate it",
                file=sys.stderr,
            )
        else:
            _run_step(
                self.prodigal_command(viral_seqs), self.work_dir, "Prodigal", self.dry_run,
                quiet=True,
            )

        if (self.work_dir / BLASTOUT_FILE_NAME).exists():
            print(
                f"{BLASTOUT_FILE_NAME} already exists in the working directory, skipping BLAST "
                "search. Delete the file to re-generate it",
                file=sys.stderr,
            )
        else:
            _run_step(
                self.blastp_command(uniprot_blastdb, evalue), self.work_dir, "blastp",
                self.dry_run,
            )

    def collect_viral_protein_mapping(self) -> ProteinVirusTaxidMapping:
        """Read the blastp hits into an accession to (virus name, taxid) mapping."""
        with open(self.work_dir / BLASTOUT_FILE_NAME, newline="", encoding="utf-8") as stream:
            try:
                mapping = MultiMapping.read_tsv(stream, False, _parse_blast_row)
            except ValueError as exc:
                raise ValueError(f"Reading BLAST+ blastp output: {exc}") from exc
        return ProteinVirusTaxidMapping(mapping)


def match_viral_proteins(
    viral_seqs: StrPath,
    uniprot_blastdb: StrPath,
    output: str = "-",
    work_dir: StrPath | None = None,
    dry_run: bool = False,
    prodigal_bin: StrPath | None = None,
    prodigal_procedure: str = DEFAULT_PRODIGAL_PROCEDURE,
    blast_prefix: StrPath | None = None,
    evalue: float = DEFAULT_EVALUE_THRESHOLD,
    num_threads: int | None = None,
) -> ProteinVirusTaxidMapping:
    """Match viral proteins to UniProt accessions and write the mapping as TSV to ``output``."""
    prodigal = find_prodigal(prodigal_bin)
    if prodigal is None:
        raise PipelineError("Could not locate a Prodigal executable")
    blastp = find_blast_tool(blast_prefix, "blastp")
    if blastp is None:
        raise PipelineError("Could not find a blastp executable")

    temp_dir: Path | None = None
    if work_dir is None:
        temp_dir = Path(tempfile.mkdtemp(prefix="match-viral-proteins"))
        work_path = temp_dir
    else:
        work_path = Path(work_dir)
    work_path.mkdir(parents=True, exist_ok=True)

    try:
        pipeline = ProdigalBlastpPipeline(
            prodigal, blastp, work_path, prodigal_procedure, num_threads, dry_run
        )
        pipeline.find_and_match_proteins(viral_seqs, uniprot_blastdb, evalue)
        mapping = pipeline.collect_viral_protein_mapping()
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
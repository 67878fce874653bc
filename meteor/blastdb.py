"""Building a protein BLAST database from UniProt division files."""

from __future__ import annotations

import csv
import gzip
import re
import shutil
import subprocess
import sys
import tempfile
import xml.etree.ElementTree as ET
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from os import PathLike
from pathlib import Path

from meteor.crispr import PipelineError
from meteor.fetch_uniprot import UniProtFetchOptions, list_files
from meteor.tools import Tool, find_blast_tool, format_command
from meteor.uniprot_xml import NCBI_TAXONOMY, EntryBuilder, SubfieldsAction, UniProtXmlReader

__all__ = [
    "FASTA_FILE_NAME",
    "TAXID_MAP_FILE_NAME",
    "UniProtEntry",
    "UniProtEntryBuilder",
    "read_entries",
    "write_makeblastdb_inputs",
    "makeblastdb_command",
    "prepare_uniprot_blastdb",
]

FASTA_FILE_NAME = "sequences.fa"
TAXID_MAP_FILE_NAME = "taxid.tab"
_DEFAULT_DB_NAME = "blastdb"

_TAXID_RE = re.compile(r"\+?[0-9]+")

StrPath = str | PathLike[str]


@dataclass(frozen=True)
class UniProtEntry:
    """The parts of a UniProt entry that go into the BLAST database."""

    primary_accession: str
    taxid: int
    sequence: str


class UniProtEntryBuilder(EntryBuilder):
    """Collects the primary accession, the organism taxid and the sequence of an entry."""

    def __init__(self) -> None:
        self.primary_accession: str | None = None
        self.taxid: int | None = None
        self.protein_sequence: str | None = None

    def accession(self, acc: str) -> None:
        if self.primary_accession is None:
            self.primary_accession = acc

    def sequence(self, sequence: str) -> None:
        if self.protein_sequence is None:
            self.protein_sequence = sequence

    def begin_organism(self) -> SubfieldsAction:
        return SubfieldsAction.POPULATE

    def begin_organism_dbreference(self, ref_type: str, ref_id: str) -> SubfieldsAction:
        if self.taxid is None and ref_type == NCBI_TAXONOMY:
            self.taxid = int(ref_id) if _TAXID_RE.fullmatch(ref_id) else None
        return SubfieldsAction.SKIP

    def finish(self) -> UniProtEntry | None:
        if self.primary_accession is None or self.taxid is None or self.protein_sequence is None:
            return None
        return UniProtEntry(self.primary_accession, self.taxid, self.protein_sequence)


def read_entries(paths: Iterable[StrPath]) -> Iterator[UniProtEntry]:
    """Yield the complete entries of each gzip-compressed UniProt XML file in turn."""
    for path in paths:
        path = Path(path)
        print(f"Loading {path}", file=sys.stderr)
        try:
            stream = gzip.open(path, "rb")
        except OSError as exc:
            raise OSError(f"Opening UniProt XML {str(path)!r}: {exc}") from exc
        with stream:
            try:
                yield from UniProtXmlReader(stream).entries(UniProtEntryBuilder)
            except ET.ParseError as exc:
                raise ValueError(f"Reading UniProt entries from {path}: {exc}") from exc


def write_makeblastdb_inputs(
    work_dir: StrPath, uniprot_files: Iterable[StrPath]
) -> tuple[Path, Path]:
    """Write the FASTA file and the taxid map that makeblastdb reads.

    Returns the paths of the FASTA file and of the taxid map.
    """
    work_dir = Path(work_dir)
    fasta_path = work_dir / FASTA_FILE_NAME
    taxid_map_path = work_dir / TAXID_MAP_FILE_NAME

    with open(fasta_path, "w", encoding="utf-8") as fasta, open(
        taxid_map_path, "w", newline="", encoding="utf-8"
    ) as taxid_map:
        taxid_writer = csv.writer(taxid_map, delimiter=" ", lineterminator="\n")
        for entry in read_entries(uniprot_files):
            fasta.write(f">{entry.primary_accession}\n{entry.sequence}\n")
            taxid_writer.writerow([entry.primary_accession, entry.taxid])

    return fasta_path, taxid_map_path


def makeblastdb_command(
    makeblastdb: Tool, fasta_path: StrPath, taxid_map_path: StrPath, db_path: StrPath
) -> list[str]:
    """Return the makeblastdb invocation building a protein database with taxids."""
    return makeblastdb.command(
        "-parse_seqids",
        "-input_type", "fasta",
        "-dbtype", "prot",
        "-in", fasta_path,
        "-taxid_map", taxid_map_path,
        "-out", db_path,
    )


def prepare_uniprot_blastdb(
    uniprot_divisions: Iterable[str],
    uniprot_dir: StrPath,
    work_dir: StrPath | None = None,
    output: StrPath | None = None,
    exclude_swissprot: bool = False,
    exclude_trembl: bool = False,
    skip_makeblastdb: bool = False,
    blast_prefix: StrPath | None = None,
) -> Path:
    """Prepare makeblastdb inputs from downloaded UniProt divisions and build the database.

    With ``skip_makeblastdb`` only the inputs are written and the recommended command is
    printed. A failing makeblastdb is reported but not raised. Returns the database path.
    """
    if skip_makeblastdb and work_dir is None:
        raise ValueError("--skip-makeblastdb requires --work-dir")
    if skip_makeblastdb and output is not None:
        raise ValueError("--skip-makeblastdb cannot be used with --output")

    if skip_makeblastdb:
        makeblastdb = Tool(("makeblastdb",))
    else:
        found = find_blast_tool(blast_prefix, "makeblastdb")
        if found is None:
            raise PipelineError(
                "makeblastdb executable not found, please make sure that BLAST+ is installed"
            )
        makeblastdb = found

    temp_dir: Path | None = None
    if work_dir is None:
        temp_dir = Path(tempfile.mkdtemp(prefix="prepare-uniprot-blastdb"))
        work_path = temp_dir
    else:
        work_path = Path(work_dir)

    keep_temp = False
    try:
        work_path.mkdir(parents=True, exist_ok=True)
        fasta_path = work_path / FASTA_FILE_NAME
        taxid_map_path = work_path / TAXID_MAP_FILE_NAME

        if not fasta_path.exists() or not taxid_map_path.exists():
            print("Preparing makeblastdb input files from UniProt divisions", file=sys.stderr)
            options = UniProtFetchOptions(
                uniprot_divisions=list(uniprot_divisions),
                download_dir=uniprot_dir,
                exclude_swissprot=exclude_swissprot,
                exclude_trembl=exclude_trembl,
            )
            uniprot_files = list_files(options)
            write_makeblastdb_inputs(work_path, uniprot_files)
            print(f"TAXID mapping file written to {str(taxid_map_path)!r}", file=sys.stderr)
            print(f"Sequences written to {str(fasta_path)!r}", file=sys.stderr)
        else:
            print(
                "makeblastdb input files already exist, proceeding to makeblastdb",
                file=sys.stderr,
            )

        db_path = Path(output) if output is not None else work_path / _DEFAULT_DB_NAME
        db_path.parent.mkdir(parents=True, exist_ok=True)

        argv = makeblastdb_command(makeblastdb, fasta_path, taxid_map_path, db_path)

        if skip_makeblastdb:
            print("Recommended makeblastdb command:", file=sys.stderr)
            print(f"  $ {format_command(argv)}", file=sys.stderr)
            return db_path

        print(f"Running {format_command(argv)}", file=sys.stderr)
        try:
            result = subprocess.run(argv, stdin=subprocess.DEVNULL)
        except OSError as exc:
            raise PipelineError(f"Executing makeblastdb: {exc}") from exc

        if result.returncode == 0:
            print("makeblastdb finished successfully", file=sys.stderr)
        else:
            if result.returncode > 0:
                print(f"makeblastdb finished with exit code {result.returncode}", file=sys.stderr)
            else:
                print("Unknown error running makeblastdb", file=sys.stderr)
            if temp_dir is not None:
                keep_temp = True
                print(
                    "Intentionally not deleting temporary work directory for inspection due "
                    f"to error: {str(temp_dir)!r}",
                    file=sys.stderr,
                )
        return db_path
    finally:
        if temp_dir is not None and not keep_temp:
            shutil.rmtree(temp_dir, ignore_errors=True)
"""Command-line interface."""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Sequence

from meteor.blastdb import prepare_uniprot_blastdb
from meteor.crispr import DEFAULT_PERC_IDENTITY, crispr_match
from meteor.fetch_ncbi import fetch_ncbi_taxonomy
from meteor.fetch_string import StringFile, fetch_string_viruses
from meteor.fetch_uniprot import UniProtFetchOptions, fetch_uniprot
from meteor.prodigal import (
    DEFAULT_EVALUE_THRESHOLD,
    DEFAULT_PRODIGAL_PROCEDURE,
    match_viral_proteins,
)

__all__ = ["build_parser", "main"]

_MINCED_JAR_ENV = "METEOR_MINCED_JAR"
_BLAST_PREFIX_ENV = "METEOR_BLAST_PREFIX"
_NUM_THREADS_ENV = "METEOR_BLAST_NUM_THREADS"
_PERC_IDENTITY_ENV = "METEOR_BLAST_PERC_IDENTITY"
_PRODIGAL_BIN_ENV = "METEOR_PRODIGAL_BIN"
_EVALUE_ENV = "METEOR_BLAST_EVALUE_THRESHOLD"


def _run_fetch_ncbi(args: argparse.Namespace) -> None:
    fetch_ncbi_taxonomy(args.download_dir, args.force_download, args.no_extract)


def _run_fetch_string(args: argparse.Namespace) -> None:
    fetch_string_viruses(args.files, args.download_dir, args.force_download)


def _run_fetch_uniprot(args: argparse.Namespace) -> None:
    fetch_uniprot(
        UniProtFetchOptions(
            uniprot_divisions=args.uniprot_divisions,
            download_dir=args.download_dir,
            exclude_swissprot=args.exclude_swissprot,
            exclude_trembl=args.exclude_trembl,
            force_download=args.force_download,
        )
    )


def _run_crispr_match(args: argparse.Namespace) -> None:
    crispr_match(
        args.viral_seqs,
        args.metagenomic_seqs,
        args.minced_jar,
        output=args.output,
        work_dir=args.work_dir,
        blast_prefix=args.blast_prefix,
        num_threads=args.num_threads,
        perc_identity=args.perc_identity,
        dry_run=args.dry_run,
    )


def _run_prepare_blastdb(args: argparse.Namespace) -> None:
    prepare_uniprot_blastdb(
        args.uniprot_divisions,
        args.uniprot_dir,
        work_dir=args.work_dir,
        output=args.output,
        exclude_swissprot=args.exclude_swissprot,
        exclude_trembl=args.exclude_trembl,
        skip_makeblastdb=args.skip_makeblastdb,
        blast_prefix=args.blast_prefix,
    )


def _run_match_viral_proteins(args: argparse.Namespace) -> None:
    match_viral_proteins(
        args.viral_seqs,
        args.uniprot_blastdb,
        output=args.output,
        work_dir=args.work_dir,
        dry_run=args.dry_run,
        prodigal_bin=args.prodigal_bin,
        prodigal_procedure=args.prodigal_procedure,
        blast_prefix=args.blast_prefix,
        evalue=args.evalue,
        num_threads=args.num_threads,
    )


def _add_fetch(commands: argparse._SubParsersAction) -> None:
    fetch = commands.add_parser(
        "fetch",
        help="Download external files to be used by Meteor.",
        description="Download external files to be used by Meteor.",
    )
    sources = fetch.add_subparsers(dest="fetch_command", required=True, metavar="SOURCE")

    ncbi = sources.add_parser("ncbi-taxonomy", help="Fetch the NCBI Taxonomy")
    ncbi.add_argument("-f", "--force-download", action="store_true",
                      help="Always re-download existing files")
    ncbi.add_argument("-d", "--download-dir", required=True,
                      help="Directory to download the NCBI Taxonomy into")
    ncbi.add_argument("--no-extract", action="store_true", help="Do not unpack taxdump")
    ncbi.set_defaults(handler=_run_fetch_ncbi)

    string = sources.add_parser("string-viruses", help="Fetch STRING Viruses exported data")
    string.add_argument("files", nargs="+", choices=[f.value for f in StringFile],
                        metavar="FILES",
                        help="File names to download (not including version or extension).")
    string.add_argument("-f", "--force-download", action="store_true",
                        help="Always re-download existing files")
    string.add_argument("-d", "--download-dir", required=True,
                        help="Directory to download Viruses StringDB files into")
    string.set_defaults(handler=_run_fetch_string)

    uniprot = sources.add_parser("uniprot", help="Fetch UniProt division sequences and metadata.")
    uniprot.add_argument("uniprot_divisions", nargs="+",
                         help="UniProt divisions to include. Example: viruses.")
    uniprot.add_argument("--exclude-swissprot", action="store_true",
                         help="Do not include SwissProt proteins")
    uniprot.add_argument("--exclude-trembl", action="store_true",
                         help="Do not include TrEMBL proteins")
    uniprot.add_argument("--force-download", action="store_true",
                         help="Always re-download existing files")
    uniprot.add_argument("-d", "--download-dir", required=True,
                         help="Directory to download UniProt files into")
    uniprot.set_defaults(handler=_run_fetch_uniprot)


def _add_crispr_match(commands: argparse._SubParsersAction) -> None:
    parser = commands.add_parser(
        "crispr-match",
        help="Match CRISPR spacers of metagenomic contigs against viral contigs.",
    )
    parser.add_argument("-d", "--work-dir",
                        help="Directory to place intermediate files in, instead of a temporary "
                             "directory. Existing files will not be re-created.")
    minced_default = os.environ.get(_MINCED_JAR_ENV)
    parser.add_argument("--minced", dest="minced_jar", metavar="MINCED_JAR",
                        default=minced_default, required=minced_default is None,
                        help="Path to the MinCED .jar file.")
    blast = parser.add_argument_group("BLAST Options")
    blast.add_argument("--blast-prefix", default=os.environ.get(_BLAST_PREFIX_ENV),
                       help="Installation prefix of the NCBI BLAST+ toolkit to use.")
    blast.add_argument("--num-threads", type=int, default=os.environ.get(_NUM_THREADS_ENV),
                       help="Number of threads (blastn -num_threads option).")
    blast.add_argument("--perc-identity", type=int,
                       default=os.environ.get(_PERC_IDENTITY_ENV, DEFAULT_PERC_IDENTITY),
                       help="Minimum hit identity %% for the blastn search (0-100).")
    parser.add_argument("--dry-run", action="store_true",
                        help="Do not actually run any external tools, print the command instead.")
    parser.add_argument("viral_seqs", help="FASTA file of the metaviromic sample.")
    parser.add_argument("metagenomic_seqs", help="FASTA file of the metagenomic sample.")
    parser.add_argument("-o", "--output", default="-",
                        help="Output path (virus_name, host_name TSV). Use - for standard output.")
    parser.set_defaults(handler=_run_crispr_match)


def _add_ppi(commands: argparse._SubParsersAction) -> None:
    ppi = commands.add_parser(
        "ppi",
        help="Commands that can be used to obtain protein-protein interaction networks.",
    )
    steps = ppi.add_subparsers(dest="ppi_command", required=True, metavar="STEP")

    prepare = steps.add_parser(
        "prepare-uniprot-blastdb",
        help="Prepare a BLAST database using UniProt protein sequences",
    )
    prepare.add_argument("uniprot_divisions", nargs="+",
                         help="UniProt divisions to include. Example: viruses.")
    prepare.add_argument("--exclude-swissprot", action="store_true",
                         help="Do not include SwissProt proteins")
    prepare.add_argument("--exclude-trembl", action="store_true",
                         help="Do not include TrEMBL proteins")
    prepare.add_argument("--uniprot-dir", required=True, help="Directory with UniProt files.")
    prepare.add_argument("--work-dir",
                         help="Directory to use to prepare the inputs for makeblastdb. "
                              "A temporary directory is used by default.")
    exclusive = prepare.add_mutually_exclusive_group()
    exclusive.add_argument("--skip-makeblastdb", action="store_true",
                           help="Do not run makeblastdb, just set up input files")
    exclusive.add_argument("-o", "--output",
                           help="Output BLAST DB path. Default: <WORK_DIR>/blastdb")
    prepare.add_argument("--blast-prefix", default=os.environ.get(_BLAST_PREFIX_ENV),
                         help="Installation prefix of the NCBI BLAST+ toolkit to use.")
    prepare.set_defaults(handler=_run_prepare_blastdb)

    match = steps.add_parser(
        "match-viral-proteins",
        help="Extract viral proteins and search them in a UniProt BLAST+ database.",
    )
    match.add_argument("--work-dir",
                       help="Directory for intermediate files. A temporary directory is used "
                            "by default.")
    match.add_argument("--dry-run", action="store_true",
                       help="Do not actually run any external tools, print the command instead.")
    prodigal = match.add_argument_group("Prodigal Options")
    prodigal.add_argument("--prodigal-bin", default=os.environ.get(_PRODIGAL_BIN_ENV),
                          help="Path to the prodigal executable if not in PATH.")
    prodigal.add_argument("--prodigal-procedure", default=DEFAULT_PRODIGAL_PROCEDURE,
                          help="Prodigal procedure (-p flag) to use.")
    blast = match.add_argument_group("BLAST Options")
    blast.add_argument("--blast-prefix", default=os.environ.get(_BLAST_PREFIX_ENV),
                       help="Installation prefix of the NCBI BLAST+ toolkit to use.")
    blast.add_argument("--uniprot-blastdb", required=True,
                       help="Location of the UniProt BLAST+ database.")
    blast.add_argument("--evalue", type=float,
                       default=os.environ.get(_EVALUE_ENV, DEFAULT_EVALUE_THRESHOLD),
                       help="E-value threshold for the blastp search.")
    blast.add_argument("--num-threads", type=int, default=os.environ.get(_NUM_THREADS_ENV),
                       help="Number of threads (blastp -num_threads option).")
    match.add_argument("viral_seqs", help="Input FASTA of viral contigs.")
    match.add_argument("-o", "--output", default="-",
                       help="Output path (uniprot_accession, virus_name, virus_taxid TSV). "
                            "Use - for standard output.")
    match.set_defaults(handler=_run_match_viral_proteins)


def build_parser() -> argparse.ArgumentParser:
    """Build the parser for the ``meteor`` command and its subcommands."""
    parser = argparse.ArgumentParser(
        prog="meteor", description="METEOR: Metagenome and Metavirome Joint Analysis"
    )
    commands = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")
    _add_fetch(commands)
    _add_crispr_match(commands)
    _add_ppi(commands)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command given by ``argv``; returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if (
        args.command == "ppi"
        and args.ppi_command == "prepare-uniprot-blastdb"
        and args.skip_makeblastdb
        and args.work_dir is None
    ):
        parser.error("--skip-makeblastdb requires --work-dir")

    try:
        args.handler(args)
    except KeyboardInterrupt:
        return 130
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
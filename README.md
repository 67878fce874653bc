# meteor

Tools for joint analysis of a metagenomic sample and a metaviromic sample
taken from the same environment. `meteor` links viral contigs to their
probable hosts through CRISPR spacers, matches viral proteins to UniProt,
and downloads the reference data those analyses need.

It drives external programs (Java with MinCED, the NCBI BLAST+ toolkit,
Prodigal) and handles their inputs, working directories and outputs. The
package itself needs nothing beyond the Python standard library.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## External programs

Depending on the command you run, these must be available:

- **Java** on `PATH` and a **MinCED** `.jar` file, for CRISPR spacer detection.
- **NCBI BLAST+** (`makeblastdb`, `blastn`, `blastp`), either on `PATH` or
  in the `bin` directory of an installation prefix given with `--blast-prefix`.
- **Prodigal**, on `PATH` or given with `--prodigal-bin`.

## Usage

Everything is reached through the `meteor` command:

```
meteor --help
```

The command exits with status 0 on success and 1 on error, printing
`Error: ...` to standard error.

### Downloading reference data

```
meteor fetch ncbi-taxonomy -d ncbi-taxonomy
meteor fetch string-viruses -d stringdb protein.links protein.aliases
meteor fetch uniprot -d uniprot viruses
```

- `ncbi-taxonomy` downloads `taxdump.tar.gz` over FTP and unpacks it into
  the download directory unless `--no-extract` is given.
- `string-viruses` downloads STRING Viruses (v10.5) files over HTTP. The
  accepted names are `protein.links`, `protein.links.detailed`,
  `protein.links.full`, `protein.sequences`, `species` and `protein.aliases`.
- `uniprot` downloads `uniprot_<db>_<division>.xml.gz` for each division,
  for both SwissProt (`sprot`) and TrEMBL (`trembl`) unless
  `--exclude-swissprot` or `--exclude-trembl` is given.

Files already present are skipped unless `--force-download` is given.
Downloads are written to a `.part` file first and renamed only once
complete; a failed transfer removes the `.part` file. Progress is reported
on standard error.

### Virus–host matching through CRISPR spacers

```
meteor crispr-match --minced minced.jar viral_contigs.fa metagenome.fa -o matches.tsv
```

CRISPR spacers are extracted from the metagenomic contigs with MinCED, a
nucleotide BLAST database is built from the viral contigs, and the spacers
are searched against it with `blastn -task blastn-short`. The host name is
the spacer name with its `_CRISPR_<n>_spacer_<m>` suffix removed. The result
is a tab-separated file with the columns `virus_name` and `host_name`
(`-o -`, the default, writes to standard output).

Options:

- `-d/--work-dir DIR` keeps intermediate files in `DIR` instead of a
  temporary directory; steps whose outputs already exist there are skipped.
- `--perc-identity N` sets the minimum identity of spacer hits (default 95).
- `--num-threads N` is passed on to `blastn`.
- `--dry-run` prints the commands instead of running them.

If the pipeline fails while using a temporary directory, that directory is
kept and its location printed so it can be inspected.

### Protein preparation for interaction analysis

```
meteor ppi prepare-uniprot-blastdb --uniprot-dir uniprot viruses -o uniprot_db/blastdb
meteor ppi match-viral-proteins --uniprot-blastdb uniprot_db/blastdb viral_contigs.fa -o proteins.tsv
```

`prepare-uniprot-blastdb` reads the UniProt XML divisions previously
downloaded with `meteor fetch uniprot`, writes `sequences.fa` and an
accession-to-taxid map `taxid.tab` into the work directory, and runs
`makeblastdb` to build a protein database (by default `<WORK_DIR>/blastdb`).
Entries lacking an accession, an NCBI taxid or a sequence are left out.
`--skip-makeblastdb` (which needs `--work-dir` and excludes `--output`)
only prepares the inputs and prints the recommended command. A failing
`makeblastdb` is reported but does not make the command fail.

`match-viral-proteins` predicts proteins in the viral contigs with Prodigal
(procedure `meta` unless `--prodigal-procedure` says otherwise) and searches
them against that database with `blastp` (`--evalue`, default `0.001`).
The virus name is the protein name with its `_<n>` suffix removed. The
output is a tab-separated file with the columns `uniprot_accession`,
`virus_name` and `virus_taxid`. `--work-dir`, `--dry-run` and
`--num-threads` behave as for `crispr-match`.

### Environment variables

Defaults for some options can be set in the environment:

| Variable | Option |
| --- | --- |
| `METEOR_MINCED_JAR` | `--minced` |
| `METEOR_BLAST_PREFIX` | `--blast-prefix` |
| `METEOR_BLAST_NUM_THREADS` | `--num-threads` |
| `METEOR_BLAST_PERC_IDENTITY` | `--perc-identity` |
| `METEOR_PRODIGAL_BIN` | `--prodigal-bin` |
| `METEOR_BLAST_EVALUE_THRESHOLD` | `--evalue` |

## Using it from Python

The building blocks are importable:

- `meteor.mapping`: `MultiMapping` (keys to ordered sets of distinct values,
  read from and written to TSV), `VirusHostMapping`, `HostVirusMapping`,
  `ProteinVirusTaxidMapping` and `load_crispr_matches(path)`.
- `meteor.uniprot_xml`: `UniProtXmlReader(source).entries(builder_factory)`
  streams `<entry>` elements through an `EntryBuilder` subclass that
  collects only the fields you need; `IdentityBuilder` returns the inner
  builder itself.
- `meteor.blastdb`: `UniProtEntryBuilder`, `read_entries(paths)`,
  `write_makeblastdb_inputs(work_dir, uniprot_files)` and
  `prepare_uniprot_blastdb(...)`.
- `meteor.crispr`: `MincedSpacersPipeline`, `host_name_from_spacer` and
  `crispr_match(...)`.
- `meteor.prodigal`: `ProdigalBlastpPipeline`, `virus_name_from_protein`
  and `match_viral_proteins(...)`.
- `meteor.fetch_ncbi`, `meteor.fetch_string`, `meteor.fetch_uniprot`: the
  download functions, plus `StringFile` and `parse_string_id` for working
  with STRING Viruses files.
- `meteor.tools`: `find_java`, `find_minced`, `find_blast_tool`,
  `find_prodigal` and `format_command`.

## What it does not do

The package stops at preparing inputs. It does not load or preprocess a
taxonomy, assign metagenomic contigs to taxa, refine host predictions
against such an assignment, or build a virus–host interaction network from
the downloaded STRING Viruses files: the downloaded taxonomy dump and
STRING files are only fetched here, not analysed.
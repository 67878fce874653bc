import gzip
import os
import sys
from pathlib import Path

import pytest

from meteor.blastdb import (
    FASTA_FILE_NAME,
    TAXID_MAP_FILE_NAME,
    UniProtEntry,
    UniProtEntryBuilder,
    makeblastdb_command,
    prepare_uniprot_blastdb,
    read_entries,
    write_makeblastdb_inputs,
)
from meteor.crispr import PipelineError
from meteor.fetch_uniprot import division_file_name
from meteor.tools import Tool
from meteor.uniprot_xml import NCBI_TAXONOMY, SubfieldsAction

SAMPLE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<uniprot>
<entry>
  <accession>P00001</accession>
  <accession>Q00001</accession>
  <name>TEST1_VIRUS</name>
  <organism>
    <name type="scientific">Test virus one</name>
    <dbReference type="NCBI Taxonomy" id="10001"/>
  </organism>
  <sequence length="5">MKTAY</sequence>
</entry>
<entry>
  <accession>P00002</accession>
  <organism>
    <name type="scientific">No taxid virus</name>
  </organism>
  <sequence length="3">MAA</sequence>
</entry>
<entry>
  <accession>P00003</accession>
  <organism>
    <dbReference type="NCBI Taxonomy" id="abc"/>
    <dbReference type="NCBI Taxonomy" id="10003"/>
  </organism>
  <sequence length="4">MGGL</sequence>
</entry>
</uniprot>
"""

SECOND_XML = """<?xml version="1.0" encoding="UTF-8"?>
<uniprot>
<entry>
  <accession>A00009</accession>
  <organism><dbReference type="NCBI Taxonomy" id="42"/></organism>
  <sequence>MQ</sequence>
</entry>
</uniprot>
"""


def _write_gz(path: Path, text: str) -> Path:
    with gzip.open(path, "wt", encoding="utf-8") as stream:
        stream.write(text)
    return path


def _fake_makeblastdb(prefix: Path, exit_code: int) -> Path:
    bin_dir = prefix / "bin"
    bin_dir.mkdir(parents=True)
    record = prefix / "argv.txt"
    script = bin_dir / "makeblastdb"
    script.write_text(
        f"#!{sys.executable}\n"
        "import sys\n"
        f"open({str(record)!r}, 'w').write('\\n'.join(sys.argv[1:]))\n"
        f"sys.exit({exit_code})\n"
    )
    os.chmod(script, 0o755)
    return record


def test_builder_keeps_first_accession_and_sequence():
    builder = UniProtEntryBuilder()
    builder.accession("A1")
    builder.accession("B2")
    builder.sequence("MK")
    builder.sequence("ZZ")
    assert builder.begin_organism_dbreference(NCBI_TAXONOMY, "7") is SubfieldsAction.SKIP
    assert builder.finish() == UniProtEntry("A1", 7, "MK")


def test_builder_populates_organism():
    assert UniProtEntryBuilder().begin_organism() is SubfieldsAction.POPULATE


def test_builder_ignores_other_reference_types():
    builder = UniProtEntryBuilder()
    builder.accession("A1")
    builder.sequence("MK")
    builder.begin_organism_dbreference("EMBL", "5")
    assert builder.finish() is None


def test_builder_keeps_first_valid_taxid():
    builder = UniProtEntryBuilder()
    builder.accession("A1")
    builder.sequence("MK")
    builder.begin_organism_dbreference(NCBI_TAXONOMY, "11")
    builder.begin_organism_dbreference(NCBI_TAXONOMY, "12")
    assert builder.finish() == UniProtEntry("A1", 11, "MK")


def test_read_entries_from_gzip(tmp_path):
    path = _write_gz(tmp_path / "a.xml.gz", SAMPLE_XML)
    assert list(read_entries([path])) == [
        UniProtEntry("P00001", 10001, "MKTAY"),
        UniProtEntry("P00003", 10003, "MGGL"),
    ]


def test_read_entries_follows_file_order(tmp_path):
    first = _write_gz(tmp_path / "a.xml.gz", SECOND_XML)
    second = _write_gz(tmp_path / "b.xml.gz", SAMPLE_XML)
    accessions = [entry.primary_accession for entry in read_entries([first, second])]
    assert accessions == ["A00009", "P00001", "P00003"]


def test_read_entries_malformed_xml(tmp_path):
    path = _write_gz(tmp_path / "bad.xml.gz", "<uniprot><entry><accession>X</entry>")
    with pytest.raises(ValueError):
        list(read_entries([path]))


def test_write_makeblastdb_inputs(tmp_path):
    path = _write_gz(tmp_path / "a.xml.gz", SAMPLE_XML)
    fasta_path, taxid_map_path = write_makeblastdb_inputs(tmp_path, [path])
    assert fasta_path == tmp_path / FASTA_FILE_NAME
    assert taxid_map_path == tmp_path / TAXID_MAP_FILE_NAME
    assert fasta_path.read_text() == ">P00001\nMKTAY\n>P00003\nMGGL\n"
    assert taxid_map_path.read_text() == "P00001 10001\nP00003 10003\n"


def test_makeblastdb_command():
    argv = makeblastdb_command(Tool(("makeblastdb",)), Path("s.fa"), "t.tab", Path("db"))
    assert argv == [
        "makeblastdb", "-parse_seqids", "-input_type", "fasta", "-dbtype", "prot",
        "-in", "s.fa", "-taxid_map", "t.tab", "-out", "db",
    ]


def test_prepare_skip_makeblastdb_writes_inputs(tmp_path, capsys):
    uniprot_dir = tmp_path / "uniprot"
    uniprot_dir.mkdir()
    _write_gz(uniprot_dir / division_file_name("sprot", "viruses"), SAMPLE_XML)
    work = tmp_path / "work"

    db_path = prepare_uniprot_blastdb(
        ["viruses"], uniprot_dir, work_dir=work, exclude_trembl=True, skip_makeblastdb=True
    )

    assert db_path == work / "blastdb"
    assert (work / FASTA_FILE_NAME).read_text().startswith(">P00001\n")
    assert (work / TAXID_MAP_FILE_NAME).read_text().splitlines()[0] == "P00001 10001"
    assert "Recommended makeblastdb command" in capsys.readouterr().err


def test_prepare_keeps_existing_inputs(tmp_path):
    work = tmp_path / "work"
    work.mkdir()
    (work / FASTA_FILE_NAME).write_text(">KEEP\nM\n")
    (work / TAXID_MAP_FILE_NAME).write_text("KEEP 1\n")

    prepare_uniprot_blastdb(["viruses"], tmp_path / "missing", work_dir=work, skip_makeblastdb=True)

    assert (work / FASTA_FILE_NAME).read_text() == ">KEEP\nM\n"


def test_prepare_missing_division_files(tmp_path):
    with pytest.raises(FileNotFoundError):
        prepare_uniprot_blastdb(
            ["viruses"], tmp_path, work_dir=tmp_path / "work", skip_makeblastdb=True
        )


def test_prepare_skip_requires_work_dir(tmp_path):
    with pytest.raises(ValueError):
        prepare_uniprot_blastdb(["viruses"], tmp_path, skip_makeblastdb=True)


def test_prepare_skip_conflicts_with_output(tmp_path):
    with pytest.raises(ValueError):
        prepare_uniprot_blastdb(
            ["viruses"], tmp_path, work_dir=tmp_path, output=tmp_path / "db",
            skip_makeblastdb=True,
        )


def test_prepare_without_makeblastdb(tmp_path):
    prefix = tmp_path / "blast"
    (prefix / "bin").mkdir(parents=True)
    with pytest.raises(PipelineError):
        prepare_uniprot_blastdb(["viruses"], tmp_path, work_dir=tmp_path, blast_prefix=prefix)


def test_prepare_runs_makeblastdb(tmp_path):
    record = _fake_makeblastdb(tmp_path / "blast", 0)
    uniprot_dir = tmp_path / "uniprot"
    uniprot_dir.mkdir()
    _write_gz(uniprot_dir / division_file_name("trembl", "viruses"), SECOND_XML)
    work = tmp_path / "work"
    out = tmp_path / "out" / "db"

    db_path = prepare_uniprot_blastdb(
        ["viruses"], uniprot_dir, work_dir=work, output=out,
        exclude_swissprot=True, blast_prefix=tmp_path / "blast",
    )

    assert db_path == out
    assert out.parent.is_dir()
    args = record.read_text().split("\n")
    assert args[0] == "-parse_seqids"
    assert args[-2:] == ["-out", str(out)]
    assert str(work / FASTA_FILE_NAME) in args


def test_prepare_reports_failing_makeblastdb(tmp_path, capsys):
    _fake_makeblastdb(tmp_path / "blast", 3)
    work = tmp_path / "work"
    work.mkdir()
    (work / FASTA_FILE_NAME).write_text(">A\nM\n")
    (work / TAXID_MAP_FILE_NAME).write_text("A 1\n")

    db_path = prepare_uniprot_blastdb(
        ["viruses"], tmp_path, work_dir=work, blast_prefix=tmp_path / "blast"
    )

    assert db_path == work / "blastdb"
    assert "exit code 3" in capsys.readouterr().err
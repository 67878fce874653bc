import shlex
import shutil
from pathlib import Path
from unittest import mock

from meteor.tools import (
    Tool,
    find_blast_tool,
    find_java,
    find_minced,
    find_prodigal,
    format_command,
)


def make_executable(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(0o755)
    return path


def test_command_appends_arguments():
    tool = Tool(("java", "-jar", "minced.jar"))
    assert tool.command("-spacers", Path("in.fa"), 3) == [
        "java", "-jar", "minced.jar", "-spacers", "in.fa", "3",
    ]


def test_find_java_uses_path():
    with mock.patch.object(shutil, "which", return_value="/opt/jdk/bin/java") as which:
        assert find_java() == Tool(("/opt/jdk/bin/java",))
    which.assert_called_once_with("java")


def test_find_java_missing():
    with mock.patch.object(shutil, "which", return_value=None):
        assert find_java() is None


def test_find_minced_existing_jar(tmp_path):
    jar = tmp_path / "minced.jar"
    jar.write_bytes(b"")
    tool = find_minced(Tool(("java",)), jar)
    assert tool.command("-spacers") == ["java", "-jar", str(jar), "-spacers"]


def test_find_minced_missing_jar(tmp_path):
    assert find_minced(Tool(("java",)), tmp_path / "absent.jar") is None


def test_find_blast_tool_with_prefix(tmp_path):
    exe = make_executable(tmp_path / "bin" / "makeblastdb")
    tool = find_blast_tool(tmp_path, "makeblastdb")
    assert Path(tool.argv[0]) == exe
    assert find_blast_tool(tmp_path, "blastn") is None


def test_find_blast_tool_on_path():
    with mock.patch.object(shutil, "which", return_value="/usr/bin/blastn") as which:
        assert find_blast_tool(None, "blastn") == Tool(("/usr/bin/blastn",))
    which.assert_called_once_with("blastn")


def test_find_prodigal_explicit_file(tmp_path):
    exe = make_executable(tmp_path / "prodigal")
    assert find_prodigal(exe) == Tool((str(exe),))


def test_find_prodigal_missing(tmp_path):
    with mock.patch.object(shutil, "which", return_value=None):
        assert find_prodigal(tmp_path / "nope") is None
        assert find_prodigal(None) is None


def test_format_command_roundtrip():
    argv = ["blastn", "-outfmt", "6 qaccver saccver", Path("out file.tsv")]
    rendered = format_command(argv)
    assert shlex.split(rendered) == ["blastn", "-outfmt", "6 qaccver saccver", "out file.tsv"]
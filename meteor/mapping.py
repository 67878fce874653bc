"""Multi-valued mappings read from and written to tab-separated files."""

from __future__ import annotations

import csv
from collections.abc import Callable, Hashable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from os import PathLike
from typing import IO, Any

Row = Sequence[str]
RowParser = Callable[[Row], "tuple[Hashable, Hashable]"]
RowFormatter = Callable[[Any, Any], Iterable[Any]]

__all__ = [
    "MultiMapping",
    "VirusHostMapping",
    "HostVirusMapping",
    "ProteinVirusTaxidMapping",
    "load_crispr_matches",
]


def _first_two_columns(row: Row) -> tuple[str, str]:
    return row[0], row[1]


def _key_value_row(key: Any, value: Any) -> list[Any]:
    return [key, value]


def _tsv_rows(stream: IO[str], has_headers: bool) -> Iterator[tuple[int, list[str]]]:
    """Yield (line number, fields) for every non-empty data row, enforcing equal widths."""
    expected_width: int | None = None
    reader = csv.reader(stream, delimiter="\t")
    for row in reader:
        if not row:
            continue
        if expected_width is None:
            expected_width = len(row)
        elif len(row) != expected_width:
            raise ValueError(
                f"line {reader.line_num}: found record with {len(row)} fields, "
                f"but the previous record has {expected_width} fields"
            )
        if has_headers:
            has_headers = False
            continue
        yield reader.line_num, row


class MultiMapping:
    """A mapping from each key to an ordered set of distinct values."""

    def __init__(self, pairs: Iterable[tuple[Hashable, Hashable]] = ()) -> None:
        self._values: dict[Hashable, dict[Hashable, None]] = {}
        for key, value in pairs:
            self.add(key, value)

    def add(self, key: Hashable, value: Hashable) -> None:
        """Associate ``value`` with ``key``; repeated pairs are stored once."""
        self._values.setdefault(key, {})[value] = None

    def lookup(self, key: Hashable) -> list[Any]:
        """Return the values associated with ``key`` in insertion order."""
        return list(self._values.get(key, ()))

    def items(self) -> Iterator[tuple[Any, Any]]:
        """Yield every (key, value) pair, grouped by key in insertion order."""
        for key, values in self._values.items():
            for value in values:
                yield key, value

    def keys(self) -> list[Any]:
        """Return the distinct keys."""
        return list(self._values)

    def values(self) -> list[Any]:
        """Return the distinct values across all keys."""
        return list(dict.fromkeys(value for _, value in self.items()))

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return sum(len(values) for values in self._values.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MultiMapping):
            return NotImplemented
        return list(self.items()) == list(other.items())

    @classmethod
    def read_tsv(
        cls,
        stream: IO[str],
        has_headers: bool = True,
        parse: RowParser | None = None,
    ) -> "MultiMapping":
        """Build a mapping from a TSV stream, turning each row into a pair with ``parse``."""
        parse = parse or _first_two_columns
        mapping = cls()
        for line_num, row in _tsv_rows(stream, has_headers):
            try:
                key, value = parse(row)
            except IndexError as exc:
                raise ValueError(f"line {line_num}: too few fields in {row!r}") from exc
            except ValueError as exc:
                raise ValueError(f"line {line_num}: {exc}") from exc
            mapping.add(key, value)
        return mapping

    def write_tsv(
        self,
        stream: IO[str],
        header: Sequence[str] | None = None,
        format_row: RowFormatter | None = None,
    ) -> None:
        """Write the pairs as TSV rows, preceded by ``header`` when given."""
        format_row = format_row or _key_value_row
        writer = csv.writer(stream, delimiter="\t", lineterminator="\n")
        if header is not None:
            writer.writerow(header)
        for key, value in self.items():
            writer.writerow(format_row(key, value))


_VIRUS_HOST_HEADER = ("virus_name", "host_name")
_PROTEIN_VIRUS_HEADER = ("uniprot_accession", "virus_name", "virus_taxid")


@dataclass
class VirusHostMapping:
    """Hosts predicted for each virus."""

    mapping: MultiMapping = field(default_factory=MultiMapping)

    @classmethod
    def read_tsv(cls, stream: IO[str]) -> "VirusHostMapping":
        return cls(MultiMapping.read_tsv(stream, True))

    def write_tsv(self, stream: IO[str]) -> None:
        self.mapping.write_tsv(stream, _VIRUS_HOST_HEADER)


@dataclass
class HostVirusMapping:
    """Viruses predicted for each host, stored in the virus-host file layout."""

    mapping: MultiMapping = field(default_factory=MultiMapping)

    @classmethod
    def read_tsv(cls, stream: IO[str]) -> "HostVirusMapping":
        return cls(MultiMapping.read_tsv(stream, True, lambda row: (row[1], row[0])))

    def write_tsv(self, stream: IO[str]) -> None:
        self.mapping.write_tsv(
            stream,
            _VIRUS_HOST_HEADER,
            lambda host_name, virus_name: [virus_name, host_name],
        )


def _parse_taxid(text: str) -> int:
    taxid = int(text)
    if taxid < 0:
        raise ValueError(f"invalid taxid: {text!r}")
    return taxid


@dataclass
class ProteinVirusTaxidMapping:
    """(virus name, virus taxid) pairs matched to each UniProt accession."""

    mapping: MultiMapping = field(default_factory=MultiMapping)

    @classmethod
    def read_tsv(cls, stream: IO[str]) -> "ProteinVirusTaxidMapping":
        return cls(
            MultiMapping.read_tsv(
                stream,
                True,
                lambda row: (row[0], (row[1], _parse_taxid(row[2]))),
            )
        )

    def write_tsv(self, stream: IO[str]) -> None:
        self.mapping.write_tsv(
            stream,
            _PROTEIN_VIRUS_HEADER,
            lambda accession, virus: [accession, virus[0], virus[1]],
        )


def load_crispr_matches(path: str | PathLike[str]) -> VirusHostMapping:
    """Load a virus-host TSV file as written by the CRISPR matching step."""
    with open(path, newline="", encoding="utf-8") as stream:
        return VirusHostMapping.read_tsv(stream)
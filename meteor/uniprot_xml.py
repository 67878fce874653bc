"""Streaming reader for UniProt XML entries driven by builder callbacks."""

from __future__ import annotations

import abc
import enum
import logging
import xml.etree.ElementTree as ET
from collections.abc import Callable, Iterator
from os import PathLike
from typing import IO, Any

__all__ = [
    "NCBI_TAXONOMY",
    "SubfieldsAction",
    "EntryBuilder",
    "IdentityBuilder",
    "UniProtXmlReader",
]

logger = logging.getLogger(__name__)

NCBI_TAXONOMY = "NCBI Taxonomy"

_ACCESSION = "accession"
_COPYRIGHT = "copyright"
_COMMON = "common"
_DBREFERENCE = "dbReference"
_ENTRY = "entry"
_NAME = "name"
_ORGANISM = "organism"
_PROPERTY = "property"
_SCIENTIFIC = "scientific"
_SEQUENCE = "sequence"
_UNIPROT = "uniprot"


class SubfieldsAction(enum.Enum):
    """Whether the reader should descend into an element's children."""

    SKIP = "skip"
    POPULATE = "populate"


class EntryBuilder(abc.ABC):
    """Receives the fields of one UniProt entry; every callback defaults to doing nothing."""

    def accession(self, acc: str) -> None:
        pass

    def name(self, name: str) -> None:
        pass

    def sequence(self, sequence: str) -> None:
        pass

    def begin_dbreference(self, ref_type: str, ref_id: str) -> SubfieldsAction:
        return SubfieldsAction.SKIP

    def dbreference_property(self, prop_type: str, prop_value: str) -> None:
        pass

    def finish_dbreference(self) -> None:
        pass

    def begin_organism(self) -> SubfieldsAction:
        return SubfieldsAction.SKIP

    def organism_scientific_name(self, name: str) -> None:
        pass

    def organism_common_name(self, name: str) -> None:
        pass

    def begin_organism_dbreference(self, ref_type: str, ref_id: str) -> SubfieldsAction:
        return SubfieldsAction.SKIP

    def organism_dbreference_property(self, prop_type: str, prop_value: str) -> None:
        pass

    def finish_organism_dbreference(self) -> None:
        pass

    def finish_organism(self) -> None:
        pass

    @abc.abstractmethod
    def finish(self) -> Any:
        """Return the built entry, or None to drop it."""


class IdentityBuilder(EntryBuilder):
    """Forwards every callback to an inner builder and yields that builder itself."""

    def __init__(self, inner: EntryBuilder) -> None:
        self.inner = inner

    def accession(self, acc: str) -> None:
        self.inner.accession(acc)

    def name(self, name: str) -> None:
        self.inner.name(name)

    def sequence(self, sequence: str) -> None:
        self.inner.sequence(sequence)

    def begin_dbreference(self, ref_type: str, ref_id: str) -> SubfieldsAction:
        return self.inner.begin_dbreference(ref_type, ref_id)

    def dbreference_property(self, prop_type: str, prop_value: str) -> None:
        self.inner.dbreference_property(prop_type, prop_value)

    def finish_dbreference(self) -> None:
        self.inner.finish_dbreference()

    def begin_organism(self) -> SubfieldsAction:
        return self.inner.begin_organism()

    def organism_scientific_name(self, name: str) -> None:
        self.inner.organism_scientific_name(name)

    def organism_common_name(self, name: str) -> None:
        self.inner.organism_common_name(name)

    def begin_organism_dbreference(self, ref_type: str, ref_id: str) -> SubfieldsAction:
        return self.inner.begin_organism_dbreference(ref_type, ref_id)

    def organism_dbreference_property(self, prop_type: str, prop_value: str) -> None:
        self.inner.organism_dbreference_property(prop_type, prop_value)

    def finish_organism_dbreference(self) -> None:
        self.inner.finish_organism_dbreference()

    def finish_organism(self) -> None:
        self.inner.finish_organism()

    def finish(self) -> EntryBuilder:
        return self.inner


def _local(tag: str) -> str:
    return tag.rpartition("}")[2]


def _read_text(element: ET.Element, on_text: Callable[[str], None]) -> None:
    """Pass each non-blank text run of ``element`` (ignoring nested elements) to ``on_text``."""
    pieces = [element.text, *(child.tail for child in element)]
    for piece in pieces:
        if piece and (text := piece.strip()):
            on_text(text)


def _read_dbreference(
    element: ET.Element,
    begin: Callable[[str, str], SubfieldsAction],
    add_property: Callable[[str, str], None],
) -> None:
    ref_type = element.get("type")
    ref_id = element.get("id")
    if ref_type is None or ref_id is None:
        return
    if begin(ref_type, ref_id) is not SubfieldsAction.POPULATE:
        return
    for child in element:
        if _local(child.tag) != _PROPERTY:
            continue
        prop_type = child.get("type")
        prop_value = child.get("value")
        if prop_type is not None and prop_value is not None:
            add_property(prop_type, prop_value)


def _read_organism(element: ET.Element, builder: EntryBuilder) -> None:
    for child in element:
        tag = _local(child.tag)
        if tag == _SCIENTIFIC:
            _read_text(child, builder.organism_scientific_name)
        elif tag == _COMMON:
            _read_text(child, builder.organism_common_name)
        elif tag == _DBREFERENCE:
            _read_dbreference(
                child,
                builder.begin_organism_dbreference,
                builder.organism_dbreference_property,
            )
            builder.finish_organism_dbreference()


def _read_entry(element: ET.Element, builder: EntryBuilder) -> None:
    for child in element:
        tag = _local(child.tag)
        if tag == _ACCESSION:
            _read_text(child, builder.accession)
        elif tag == _NAME:
            _read_text(child, builder.name)
        elif tag == _DBREFERENCE:
            _read_dbreference(child, builder.begin_dbreference, builder.dbreference_property)
            builder.finish_dbreference()
        elif tag == _SEQUENCE:
            _read_text(child, builder.sequence)
        elif tag == _ORGANISM:
            if builder.begin_organism() is SubfieldsAction.POPULATE:
                _read_organism(child, builder)
            builder.finish_organism()


class UniProtXmlReader:
    """Reads ``<entry>`` elements from a UniProt XML document one at a time."""

    def __init__(self, source: str | PathLike[str] | IO[bytes] | IO[str]) -> None:
        self._source = source

    def entries(self, builder_factory: Callable[[], EntryBuilder]) -> Iterator[Any]:
        """Yield the result of ``finish()`` for each entry, skipping entries that give None.

        Malformed XML raises ``xml.etree.ElementTree.ParseError`` and ends the iteration.
        """
        depth = 0
        root: ET.Element | None = None
        root_is_uniprot = False

        for event, element in ET.iterparse(self._source, events=("start", "end")):
            tag = _local(element.tag)

            if event == "start":
                depth += 1
                if depth == 1:
                    root = element
                    root_is_uniprot = tag == _UNIPROT
                    if tag not in (_UNIPROT, _ENTRY, _COPYRIGHT):
                        logger.warning("Unknown tag found while scanning entries: %r", tag)
                elif depth == 2 and root_is_uniprot and tag not in (_ENTRY, _COPYRIGHT):
                    logger.warning("Unknown tag found while scanning entries: %r", tag)
                continue

            depth -= 1
            top_level = depth == 0 or (depth == 1 and root_is_uniprot)

            if tag == _ENTRY and top_level:
                builder = builder_factory()
                _read_entry(element, builder)
                entry = builder.finish()
                if depth == 1 and root is not None:
                    root.remove(element)
                if entry is not None:
                    yield entry
            elif depth == 1 and root is not None:
                root.remove(element)
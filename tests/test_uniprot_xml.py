import io
import xml.etree.ElementTree as ET

import pytest

from meteor.uniprot_xml import (
    NCBI_TAXONOMY,
    EntryBuilder,
    IdentityBuilder,
    SubfieldsAction,
    UniProtXmlReader,
)


class RecordingBuilder(EntryBuilder):
    def __init__(self, populate=True):
        self.populate = populate
        self.events = []

    def accession(self, acc):
        self.events.append(("accession", acc))

    def name(self, name):
        self.events.append(("name", name))

    def sequence(self, sequence):
        self.events.append(("sequence", sequence))

    def begin_dbreference(self, ref_type, ref_id):
        self.events.append(("dbref", ref_type, ref_id))
        return SubfieldsAction.POPULATE if self.populate else SubfieldsAction.SKIP

    def dbreference_property(self, prop_type, prop_value):
        self.events.append(("prop", prop_type, prop_value))

    def finish_dbreference(self):
        self.events.append(("end_dbref",))

    def begin_organism(self):
        self.events.append(("organism",))
        return SubfieldsAction.POPULATE if self.populate else SubfieldsAction.SKIP

    def organism_scientific_name(self, name):
        self.events.append(("scientific", name))

    def begin_organism_dbreference(self, ref_type, ref_id):
        self.events.append(("org_dbref", ref_type, ref_id))
        return SubfieldsAction.POPULATE

    def organism_dbreference_property(self, prop_type, prop_value):
        self.events.append(("org_prop", prop_type, prop_value))

    def finish_organism_dbreference(self):
        self.events.append(("end_org_dbref",))

    def finish_organism(self):
        self.events.append(("end_organism",))

    def finish(self):
        return self.events


class AccessionOnly(EntryBuilder):
    def __init__(self):
        self.acc = None

    def accession(self, acc):
        if self.acc is None:
            self.acc = acc

    def finish(self):
        return self.acc


DOC = b"""<?xml version="1.0" encoding="UTF-8"?>
<uniprot xmlns="http://uniprot.org/uniprot">
  <entry>
    <accession>Q00001</accession>
    <accession>Q00002</accession>
    <name>PROT_ONE</name>
    <dbReference type="GO" id="GO:0000001">
      <property type="term" value="C:membrane"/>
    </dbReference>
    <organism>
      <scientific>Example virus</scientific>
      <dbReference type="NCBI Taxonomy" id="12345"/>
    </organism>
    <sequence length="4">MKVL</sequence>
  </entry>
  <entry>
    <name>NO_ACCESSION</name>
  </entry>
  <copyright>ignored</copyright>
</uniprot>
"""


def read(builder_factory, data=DOC):
    return list(UniProtXmlReader(io.BytesIO(data)).entries(builder_factory))


def test_populated_entry_events():
    events = read(RecordingBuilder)[0]
    assert events == [
        ("accession", "Q00001"),
        ("accession", "Q00002"),
        ("name", "PROT_ONE"),
        ("dbref", "GO", "GO:0000001"),
        ("prop", "term", "C:membrane"),
        ("end_dbref",),
        ("organism",),
        ("scientific", "Example virus"),
        ("org_dbref", NCBI_TAXONOMY, "12345"),
        ("end_org_dbref",),
        ("end_organism",),
        ("sequence", "MKVL"),
    ]


def test_skip_does_not_descend():
    events = read(lambda: RecordingBuilder(populate=False))[0]
    assert ("prop", "term", "C:membrane") not in events
    assert ("scientific", "Example virus") not in events
    assert ("end_dbref",) in events
    assert ("end_organism",) in events


def test_entries_finishing_with_none_are_dropped():
    assert read(AccessionOnly) == ["Q00001"]


def test_dbreference_without_id_is_not_begun_but_finished():
    data = b'<uniprot><entry><dbReference type="GO"><property type="a" value="b"/></dbReference></entry></uniprot>'
    events = read(RecordingBuilder, data)[0]
    assert events == [("end_dbref",)]


def test_unknown_top_level_elements_are_skipped():
    data = b"<uniprot><other><entry><accession>X</accession></entry></other><entry><accession>Y</accession></entry></uniprot>"
    assert read(AccessionOnly, data) == ["Y"]


def test_identity_builder_returns_inner_builder():
    results = read(lambda: IdentityBuilder(AccessionOnly()))
    assert [builder.acc for builder in results] == ["Q00001", None]


def test_malformed_xml_raises():
    data = b"<uniprot><entry><accession>A1</accession></uniprot>"
    with pytest.raises(ET.ParseError):
        read(AccessionOnly, data)


def test_entries_before_error_are_yielded():
    data = b"<uniprot><entry><accession>A1</accession></entry><entry><bad></uniprot>"
    iterator = UniProtXmlReader(io.BytesIO(data)).entries(AccessionOnly)
    assert next(iterator) == "A1"
    with pytest.raises(ET.ParseError):
        next(iterator)
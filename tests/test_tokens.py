"""Tests for placeholder syntax and text slot consolidation."""

from docx.oxml import parse_xml
from docx.oxml.ns import nsdecls, qn
from lxml import etree

from docmerge.namespaces import ODF_NS
from docmerge.scanning.slots import BOUNDARY, consolidate, docx_slots, odf_slots, slots_text
from docmerge.scanning.tokens import find_tokens, humanize, parse_parameters, to_raw_token


class TestFindTokens:
    def test_simple_path(self) -> None:
        tokens = find_tokens("Dear [client_name],")
        assert len(tokens) == 1
        assert tokens[0].path == "client_name"
        assert tokens[0].start == 5
        assert tokens[0].parameters == {}

    def test_parameters(self) -> None:
        (token,) = find_tokens('[body;type=html;title="Main body";required]')
        assert token.path == "body"
        assert token.parameters == {"type": "html", "title": "Main body", "required": "true"}

    def test_array_path(self) -> None:
        (token,) = find_tokens("[annexes[*].title]")
        assert token.path == "annexes[*].title"

    def test_dotted_path(self) -> None:
        (token,) = find_tokens("[meeting.date]")
        assert token.path == "meeting.date"

    def test_control_token(self) -> None:
        (token,) = find_tokens("[onshow;repeat=annexes]")
        assert token.is_control
        assert token.parameters["repeat"] == "annexes"

    def test_ignores_prose_brackets(self) -> None:
        assert find_tokens("See [1] and [] and [ spaced ]") == []

    def test_several_tokens(self) -> None:
        paths = [t.path for t in find_tokens("[a] and [b;type=number] then [c]")]
        assert paths == ["a", "b", "c"]

    def test_boundary_breaks_token(self) -> None:
        assert find_tokens(f"[na{BOUNDARY}me]") == []


class TestParameters:
    def test_keys_are_lowercased_and_first_wins(self) -> None:
        assert parse_parameters(";Type=date;type=text") == {"type": "date"}

    def test_single_quotes(self) -> None:
        assert parse_parameters(";title='A; B'") == {"title": "A; B"}

    def test_humanize(self) -> None:
        assert humanize("resolution_title") == "Resolution title"
        assert humanize("") == ""

    def test_to_raw_token_label_and_type(self) -> None:
        (match,) = find_tokens("[annexes[*].due_date;data_type=date]")
        token = to_raw_token(match)
        assert token.label == "Due date"
        assert token.declared_type == "date"

    def test_to_raw_token_explicit_label(self) -> None:
        (match,) = find_tokens("[x;label=Amount]")
        assert to_raw_token(match).label == "Amount"


def _docx_paragraph(xml: str):
    return parse_xml(f"<w:p {nsdecls('w')}>{xml}</w:p>")


def _odf_paragraph(xml: str):
    decls = " ".join(f'xmlns:{p}="{uri}"' for p, uri in ODF_NS.items())
    return etree.fromstring(f"<text:p {decls}>{xml}</text:p>")


class TestDocxSlots:
    def test_split_token_is_consolidated(self) -> None:
        p = _docx_paragraph(
            "<w:r><w:t>Dear [cli</w:t></w:r><w:r><w:rPr><w:b/></w:rPr><w:t>ent_</w:t></w:r><w:r><w:t>name], hi</w:t></w:r>"
        )
        slots = docx_slots(p)
        before = slots_text(slots)
        assert consolidate(slots) == 1
        assert slots_text(slots) == before
        texts = [t.text for t in p.iter(qn("w:t"))]
        assert texts[0] == "Dear [client_name]"
        assert texts[2] == ", hi"
        assert [m.path for m in find_tokens(slots[0].text)] == ["client_name"]

    def test_tab_is_boundary(self) -> None:
        p = _docx_paragraph("<w:r><w:t>[a</w:t><w:tab/><w:t>b]</w:t></w:r>")
        slots = docx_slots(p)
        assert BOUNDARY in slots_text(slots)
        assert consolidate(slots) == 0

    def test_deleted_text_is_skipped(self) -> None:
        p = _docx_paragraph("<w:del><w:r><w:delText>[gone]</w:delText></w:r></w:del><w:r><w:t>[kept]</w:t></w:r>")
        assert slots_text(docx_slots(p)) == "[kept]"


class TestOdfSlots:
    def test_split_over_span(self) -> None:
        p = _odf_paragraph('Total: [am<text:span text:style-name="T1">ou</text:span>nt] EUR')
        slots = odf_slots(p)
        assert slots_text(slots) == "Total: [amount] EUR"
        consolidate(slots)
        assert p.text == "Total: [amount]"
        assert "".join(p.itertext()) == "Total: [amount] EUR"

    def test_spaces_element_is_boundary(self) -> None:
        p = _odf_paragraph("[a<text:s/>b]")
        assert find_tokens(slots_text(odf_slots(p))) == []

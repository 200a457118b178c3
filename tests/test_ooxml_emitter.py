"""Tests for the WordprocessingML emitter."""

import logging

import pytest
from docx.oxml import OxmlElement, parse_xml
from docx.oxml.ns import nsdecls, qn

from docmerge.emitters import NumberingRegistry, OoxmlEmitter, xml_safe_text
from docmerge.emitters.ooxml import set_rpr_child
from docmerge.html import HtmlConverter
from docmerge.models import BeginList, ListContext, ListOrdering, Paragraph, Run


@pytest.fixture
def emitter() -> OoxmlEmitter:
    return OoxmlEmitter()


def emit(emitter: OoxmlEmitter, html: str) -> list:
    return emitter.emit(HtmlConverter().convert(html))


class TestParagraphs:
    def test_runs_with_formatting(self, emitter: OoxmlEmitter) -> None:
        (p,) = emit(emitter, "<p>plain <b>bold</b> <i>it</i></p>")
        runs = p.findall(qn("w:r"))
        assert ["".join(t.text for t in r.iter(qn("w:t"))) for r in runs] == ["plain ", "bold", " ", "it"]
        assert runs[1].find(qn("w:rPr")).find(qn("w:b")) is not None
        assert runs[0].find(qn("w:rPr")) is None
        assert runs[0].find(qn("w:t")).get(qn("xml:space")) == "preserve"

    def test_heading(self, emitter: OoxmlEmitter) -> None:
        (p,) = emit(emitter, "<h2>Title</h2>")
        ppr = p.find(qn("w:pPr"))
        assert ppr.find(qn("w:pStyle")).get(qn("w:val")) == "Heading2"
        assert ppr.find(qn("w:outlineLvl")).get(qn("w:val")) == "1"
        assert emitter.headings_used == {2}

    def test_alignment_and_indent(self, emitter: OoxmlEmitter) -> None:
        (p,) = emit(emitter, '<p style="text-align: justify; padding-left: 40px">x</p>')
        ppr = p.find(qn("w:pPr"))
        assert ppr.find(qn("w:jc")).get(qn("w:val")) == "both"
        assert ppr.find(qn("w:ind")).get(qn("w:left")) == "720"

    def test_line_break_and_tab(self, emitter: OoxmlEmitter) -> None:
        (p,) = emitter.emit([Paragraph(), Run(text="a\tb")] + HtmlConverter().convert_plain("c\nd")[1:])
        assert p.find(".//" + qn("w:tab")) is not None
        assert p.find(".//" + qn("w:br")) is not None

    def test_control_characters_are_dropped(self, emitter: OoxmlEmitter) -> None:
        assert xml_safe_text("a\x01b\x0bc") == "abc"
        (p,) = emitter.emit([Paragraph(), Run(text="x\x02y")])
        assert p.find(".//" + qn("w:t")).text == "xy"


class TestLists:
    def test_items_reference_numbering(self, emitter: OoxmlEmitter) -> None:
        blocks = emit(emitter, "<ol type='i'><li>a</li><li>b<ol type='a'><li>c</li></ol></li></ol>")
        assert len(blocks) == 3
        num_ids = [p.find(".//" + qn("w:numId")).get(qn("w:val")) for p in blocks]
        ilvls = [p.find(".//" + qn("w:ilvl")).get(qn("w:val")) for p in blocks]
        assert ilvls == ["0", "0", "1"]
        assert num_ids[0] == num_ids[1] != num_ids[2]

        root = emitter.numbering.root
        formats = {el.get(qn("w:val")) for el in root.iter(qn("w:numFmt"))}
        assert {"lowerRoman", "lowerLetter"} <= formats

    def test_lists_restart_but_share_definitions(self, emitter: OoxmlEmitter) -> None:
        emit(emitter, "<ol><li>a</li></ol>")
        emit(emitter, "<ol><li>b</li></ol>")
        root = emitter.numbering.root
        assert len(root.findall(qn("w:abstractNum"))) == 1
        assert len(root.findall(qn("w:num"))) == 2

    def test_start_override(self, emitter: OoxmlEmitter) -> None:
        emitter.emit([BeginList(context=ListContext(ordering=ListOrdering.DECIMAL, start=4))])
        override = emitter.numbering.root.find(".//" + qn("w:startOverride"))
        assert override.get(qn("w:val")) == "4"

    def test_ids_continue_after_template(self) -> None:
        root = parse_xml(
            f'<w:numbering {nsdecls("w")}>'
            '<w:abstractNum w:abstractNumId="3"/><w:num w:numId="7"><w:abstractNumId w:val="3"/></w:num>'
            "</w:numbering>"
        )
        registry = NumberingRegistry(root)
        assert registry.add_list(ListOrdering.BULLET, 0) == 8
        ids = [el.get(qn("w:abstractNumId")) for el in root.findall(qn("w:abstractNum"))]
        assert ids == ["3", "4"]


class TestTables:
    def test_two_by_two(self, emitter: OoxmlEmitter) -> None:
        (tbl,) = emit(emitter, "<table><tr><th>H1</th><th>H2</th></tr><tr><td>a</td><td>b</td></tr></table>")
        rows = tbl.findall(qn("w:tr"))
        assert len(rows) == 2
        assert rows[0].find(qn("w:trPr")).find(qn("w:tblHeader")) is not None
        for row in rows:
            cells = row.findall(qn("w:tc"))
            assert len(cells) == 2
            assert all(cell[-1].tag == qn("w:p") for cell in cells)
        assert len(tbl.find(qn("w:tblGrid"))) == 2

    def test_short_rows_are_padded(self, emitter: OoxmlEmitter) -> None:
        (tbl,) = emit(emitter, "<table><tr><td>a</td><td>b</td></tr><tr><td>c</td></tr></table>")
        assert [len(row.findall(qn("w:tc"))) for row in tbl.findall(qn("w:tr"))] == [2, 2]

    def test_nested_table_cell_ends_with_paragraph(self, emitter: OoxmlEmitter) -> None:
        (tbl,) = emit(emitter, "<table><tr><td><table><tr><td>x</td></tr></table></td></tr></table>")
        cell = tbl.find(qn("w:tr")).find(qn("w:tc"))
        assert cell.find(qn("w:tbl")) is not None
        assert cell[-1].tag == qn("w:p")


class TestLinksAndInline:
    def test_link_without_part_degrades(self, emitter: OoxmlEmitter, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            (p,) = emit(emitter, '<p><a href="https://example.org">site</a></p>')
        assert p.find(qn("w:hyperlink")) is None
        run = p.find(qn("w:r"))
        assert run.find(qn("w:rPr")).find(qn("w:u")) is not None
        assert "emitting text only" in caplog.text

    def test_internal_anchor(self, emitter: OoxmlEmitter) -> None:
        (p,) = emit(emitter, '<p><a href="#annex">see annex</a></p>')
        link = p.find(qn("w:hyperlink"))
        assert link.get(qn("w:anchor")) == "annex"

    def test_inline_inherits_host_formatting(self, emitter: OoxmlEmitter) -> None:
        base = parse_xml(f'<w:rPr {nsdecls("w")}><w:rFonts w:ascii="Arial"/><w:sz w:val="28"/></w:rPr>')
        nodes = emitter.emit_inline(HtmlConverter().convert("<b>x</b>"), base)
        rpr = nodes[0].find(qn("w:rPr"))
        assert [child.tag for child in rpr] == [qn("w:rFonts"), qn("w:b"), qn("w:sz")]
        assert len(base) == 2

    def test_inline_rejects_blocks(self, emitter: OoxmlEmitter) -> None:
        with pytest.raises(ValueError):
            emitter.emit_inline(HtmlConverter().convert("<ul><li>x</li></ul>"))

    def test_rpr_order_is_kept(self) -> None:
        rpr = OxmlElement("w:rPr")
        set_rpr_child(rpr, OxmlElement("w:u"))
        set_rpr_child(rpr, OxmlElement("w:b"))
        set_rpr_child(rpr, OxmlElement("w:b"))
        assert [child.tag for child in rpr] == [qn("w:b"), qn("w:u")]

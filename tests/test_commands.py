"""
Tests for formatting commands and their fallbacks.
"""
import pytest
from bs4 import BeautifulSoup
from pydantic import ValidationError

from editing.commands import (
    Align,
    Bold,
    Color,
    FontFamily,
    FontSize,
    InsertImage,
    InsertRaw,
    InsertRule,
    InsertTable,
    InsertText,
    Italic,
    List,
    Strike,
    Underline,
    parse_command,
)
from editing.surface import Selection
from editing.utils.markup import ZERO_WIDTH_SPACE, parse_style


def sel(start, end=None, fragment_id="body"):
    return Selection(fragment_id=fragment_id, start_offset=start, end_offset=start if end is None else end)


class TestParseCommand:

    def test_discriminates_on_kind(self):
        assert parse_command({"kind": "font_size", "pt": 14}) == FontSize(pt=14)
        assert parse_command({"kind": "align", "direction": "center"}) == Align(direction="center")
        assert isinstance(parse_command({"kind": "insert_rule"}), InsertRule)

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            parse_command({"kind": "blink"})

    def test_invalid_arguments(self):
        with pytest.raises(ValidationError):
            parse_command({"kind": "font_size", "pt": 0})
        with pytest.raises(ValidationError):
            parse_command({"kind": "color", "rgb": "red"})

    def test_table_size_floor(self):
        assert InsertTable(rows=0, cols=-2) == InsertTable(rows=1, cols=1)
        assert (InsertTable().rows, InsertTable().cols) == (3, 3)


class TestFontSize:

    def test_collapsed_selection_then_typing_inherits_size(self, make_editor):
        surface, controller, executor, _ = make_editor("<p>Hello</p>")
        executor.execute(FontSize(pt=14), sel(5))
        assert ZERO_WIDTH_SPACE in surface.text_content
        assert surface.selection == sel(6)

        surface.type_text("X")
        element = surface.enclosing_element(surface.text_content.index("X") + 1)
        assert element.name == "span"
        assert parse_style(element["style"])["font-size"] == "14pt"
        assert "font-size: 14pt" in controller.authoritative

        controller.handle_blur()
        assert surface.inner_html == '<p>Hello<span style="font-size: 14pt;">X</span></p>'

    def test_collapsed_selection_mid_text(self, make_editor):
        surface, _, executor, _ = make_editor("<p>ab</p>")
        executor.execute(FontSize(pt=9), sel(1))
        assert surface.inner_html == f'<p>a<span style="font-size: 9pt;">{ZERO_WIDTH_SPACE}</span>b</p>'

    def test_range_is_surrounded(self, make_editor):
        surface, _, executor, changes = make_editor("<p>Hello world</p>")
        executor.execute(FontSize(pt=12), sel(0, 5))
        assert surface.inner_html == '<p><span style="font-size: 12pt;">Hello</span> world</p>'
        assert changes == [surface.inner_html]

    def test_overlapping_tags_use_extract_fallback(self, make_editor):
        surface, _, executor, _ = make_editor("<p>ab<b>cd</b>ef</p>")
        executor.execute(FontSize(pt=16), sel(1, 3))
        assert surface.inner_html == '<p>a<span style="font-size: 16pt;">b<b>c</b></span><b>d</b>ef</p>'

    def test_coarse_step_when_extract_fails(self, make_editor, monkeypatch):
        surface, _, executor, _ = make_editor("<p>ab<b>cd</b>ef</p>")

        def broken(*args, **kwargs):
            raise RuntimeError("extract failed")

        monkeypatch.setattr(surface, "wrap_range", broken)
        executor.execute(FontSize(pt=16), sel(1, 3))
        assert surface.inner_html == '<p><font size="3">ab<b>cd</b>ef</font></p>'

    def test_never_raises(self, make_editor, monkeypatch):
        surface, _, executor, _ = make_editor("<p>ab<b>cd</b>ef</p>")

        def broken(*args, **kwargs):
            raise RuntimeError("broken")

        monkeypatch.setattr(surface, "wrap_range", broken)
        monkeypatch.setattr(surface, "block_at", broken)
        executor.execute(FontSize(pt=16), sel(1, 3))
        assert surface.inner_html == "<p>ab<b>cd</b>ef</p>"


class TestInlineToggles:

    @pytest.mark.parametrize("command, tag", [(Bold(), "b"), (Italic(), "i"), (Underline(), "u"), (Strike(), "s")])
    def test_wrap_and_toggle_off(self, make_editor, command, tag):
        surface, _, executor, _ = make_editor("<p>Hello world</p>")
        executor.execute(command, sel(0, 5))
        assert surface.inner_html == f"<p><{tag}>Hello</{tag}> world</p>"
        executor.execute(command, sel(0, 5))
        assert surface.inner_html == "<p>Hello world</p>"

    def test_strong_counts_as_bold(self, make_editor):
        surface, _, executor, _ = make_editor("<p><strong>Hi</strong> there</p>")
        executor.execute(Bold(), sel(0, 2))
        assert surface.inner_html == "<p>Hi there</p>"

    def test_partial_selection_is_not_toggled(self, make_editor):
        surface, _, executor, _ = make_editor("<p><b>Hello</b></p>")
        executor.execute(Bold(), sel(0, 2))
        assert surface.inner_html == "<p><b>Hello</b></p>"
        assert surface.selection == sel(0, 2)

    def test_selection_inside_equivalent_is_left_alone(self, make_editor):
        surface, _, executor, _ = make_editor("<p><strong>abc</strong> d</p>")
        executor.execute(Bold(), sel(1, 2))
        assert surface.inner_html == "<p><strong>abc</strong> d</p>"

    def test_nested_exact_match_toggles_inner(self, make_editor):
        surface, _, executor, _ = make_editor("<p><i>a<i>bc</i></i></p>")
        executor.execute(Italic(), sel(1, 3))
        assert surface.inner_html == "<p><i>abc</i></p>"

    def test_collapsed_inserts_marker(self, make_editor):
        surface, _, executor, _ = make_editor("<p>ab</p>")
        executor.execute(Bold(), sel(1))
        assert surface.inner_html == f"<p>a<b>{ZERO_WIDTH_SPACE}</b>b</p>"

    def test_color_and_font_family(self, make_editor):
        surface, _, executor, _ = make_editor("<p>Hello world</p>")
        executor.execute(Color(rgb="#ff0000"), sel(0, 5))
        executor.execute(FontFamily(name='"Courier New", monospace'), sel(6, 11))
        assert surface.inner_html == (
            '<p><span style="color: #ff0000;">Hello</span> '
            "<span style=\"font-family: 'Courier New', monospace;\">world</span></p>"
        )


class TestAcrossBlocks:

    @pytest.mark.parametrize("markup, expected", [
        (
            "<p>ab</p><p>cd</p>",
            '<p>a<span style="font-size: 14pt;">b</span></p><p><span style="font-size: 14pt;">c</span>d</p>',
        ),
        (
            "<ul><li>ab</li><li>cd</li></ul>",
            '<ul><li>a<span style="font-size: 14pt;">b</span></li>'
            '<li><span style="font-size: 14pt;">c</span>d</li></ul>',
        ),
        (
            "<table><tr><td>ab</td><td>cd</td></tr></table>",
            '<table><tr><td>a<span style="font-size: 14pt;">b</span></td>'
            '<td><span style="font-size: 14pt;">c</span>d</td></tr></table>',
        ),
    ])
    def test_font_size_wraps_each_block(self, make_editor, markup, expected):
        surface, _, executor, _ = make_editor(markup)
        executor.execute(FontSize(pt=14), sel(1, 3))
        assert surface.inner_html == expected
        assert surface.selection == sel(1, 3)

    def test_bold_across_list_items(self, make_editor):
        surface, _, executor, _ = make_editor("<ul><li>ab</li><li>cd</li></ul>")
        executor.execute(Bold(), sel(1, 3))
        assert surface.inner_html == "<ul><li>a<b>b</b></li><li><b>c</b>d</li></ul>"

    def test_color_across_table_cells(self, make_editor):
        surface, _, executor, _ = make_editor("<table><tr><td>a</td><td>b</td><td>c</td><td>d</td></tr></table>")
        executor.execute(Color(rgb="#ff0000"), sel(1, 3))
        soup = BeautifulSoup(surface.inner_html, "html.parser")
        row = soup.find("tr")
        assert [child.name for child in row.children] == ["td", "td", "td", "td"]
        assert [td.get_text() for td in soup.select('td > span[style="color: #ff0000;"]')] == ["b", "c"]

    def test_no_wrapper_holds_a_block(self, make_editor):
        surface, _, executor, _ = make_editor("<p>ab</p><ul><li>cd</li></ul>ef")
        executor.execute(Italic(), sel(1, 5))
        soup = BeautifulSoup(surface.inner_html, "html.parser")
        for wrapper in soup.find_all("i"):
            assert wrapper.find(["p", "ul", "li"]) is None
        assert surface.inner_html == "<p>a<i>b</i></p><ul><li><i>cd</i></li></ul><i>e</i>f"


class TestBlocks:

    def test_align_every_touched_block(self, make_editor):
        surface, _, executor, _ = make_editor("<p>one</p><p>two</p><p>three</p>")
        executor.execute(Align(direction="center"), sel(0, 6))
        assert surface.inner_html == (
            '<p style="text-align: center;">one</p><p style="text-align: center;">two</p><p>three</p>'
        )

    def test_align_keeps_other_styles(self, make_editor):
        surface, _, executor, _ = make_editor('<p style="color: red;">one</p>')
        executor.execute(Align(direction="right"), sel(1))
        assert surface.inner_html == '<p style="color: red; text-align: right;">one</p>'

    def test_align_wraps_loose_text(self, make_editor):
        surface, _, executor, _ = make_editor("loose")
        executor.execute(Align(direction="justify"), sel(0, 5))
        assert surface.inner_html == '<div style="text-align: justify;">loose</div>'

    def test_list_wraps_and_unwraps(self, make_editor):
        surface, _, executor, _ = make_editor("<p>one</p><p>two</p>")
        executor.execute(List(ordered=False), sel(0, 6))
        assert surface.inner_html == "<ul><li>one</li><li>two</li></ul>"
        executor.execute(List(ordered=False), sel(0, 6))
        assert surface.inner_html == "<p>one</p><p>two</p>"

    def test_list_switches_type(self, make_editor):
        surface, _, executor, _ = make_editor("<ul><li>one</li><li>two</li></ul>")
        executor.execute(List(ordered=True), sel(0, 6))
        assert surface.inner_html == "<ol><li>one</li><li>two</li></ol>"


class TestInsertion:

    def test_table(self, make_editor):
        surface, _, executor, _ = make_editor("<p>x</p>")
        executor.execute(InsertTable(rows=2, cols=4))
        soup = BeautifulSoup(surface.inner_html, "html.parser")
        table = soup.find("table")
        assert len(table.select("thead th")) == 4
        assert len(table.select("tbody tr")) == 2
        assert all("border: 1px solid #000" in td["style"] for td in table.find_all("td"))

    def test_minimum_table(self, make_editor):
        surface, _, executor, _ = make_editor("")
        executor.execute(InsertTable(rows=0, cols=0))
        soup = BeautifulSoup(surface.inner_html, "html.parser")
        assert len(soup.select("thead th")) == 1
        assert len(soup.select("tbody tr")) == 1

    def test_rule(self, make_editor):
        surface, _, executor, _ = make_editor("<p>x</p>")
        executor.execute(InsertRule())
        assert '<hr style="border: none; border-top: 1px solid #000; margin: 10px 0;">' in surface.inner_html

    def test_image(self, make_editor):
        surface, _, executor, _ = make_editor("<p>ab</p>")
        executor.execute(InsertImage(src="data:image/png;base64,AAA"), sel(1))
        img = BeautifulSoup(surface.inner_html, "html.parser").find("img")
        assert img["src"] == "data:image/png;base64,AAA"
        assert surface.text_content == "ab"

    def test_raw_replaces_selection(self, make_editor):
        surface, _, executor, _ = make_editor("<p>Hello world</p>")
        executor.execute(InsertRaw(markup="<em>there</em>"), sel(6, 11))
        assert surface.inner_html == "<p>Hello <em>there</em></p>"

    def test_text_at_caret(self, make_editor):
        surface, _, executor, changes = make_editor("<p>Dear ,</p>")
        executor.execute(InsertText(text="{{ $nama }}"), sel(5))
        assert surface.inner_html == "<p>Dear {{ $nama }},</p>"
        assert surface.selection == sel(16)
        assert changes == ["<p>Dear {{ $nama }},</p>"]


class TestExecutor:

    def test_refocuses_surface(self, make_editor):
        surface, _, executor, _ = make_editor("<p>a</p>")
        assert surface.has_focus() is False
        executor.execute(Bold(), sel(0, 1))
        assert surface.has_focus() is True

    def test_selection_for_other_fragment(self, make_editor):
        _, _, executor, _ = make_editor("<p>a</p>")
        with pytest.raises(ValueError):
            executor.execute(Bold(), sel(0, 1, fragment_id="footer"))

    def test_without_selection_uses_end(self, make_editor):
        surface, _, executor, _ = make_editor("<p>ab</p>")
        executor.execute(InsertText(text="c"))
        assert surface.inner_html == "<p>abc</p>"

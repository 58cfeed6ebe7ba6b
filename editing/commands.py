"""
Formatting commands for an editable surface.

Commands are a closed union discriminated on `kind`; CommandExecutor maps each variant to a
handler. Handlers change the surface, then the executor refocuses it and pushes the result
through the controller's input path, the same way typing does.
"""
import logging
from typing import Annotated, Literal, Union

from bs4 import NavigableString, Tag
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from editing.controller import SurfaceController
from editing.surface import Selection, UnwrappableRangeError
from editing.utils.markup import (
    DEFAULT_TABLE_COLS,
    DEFAULT_TABLE_ROWS,
    ZERO_WIDTH_SPACE,
    css_font_family,
    format_style,
    image_markup,
    parse_style,
    rule_markup,
    table_markup,
)

logger = logging.getLogger(__name__)


class _Command(BaseModel):
    model_config = ConfigDict(frozen=True)


class Bold(_Command):
    kind: Literal["bold"] = "bold"


class Italic(_Command):
    kind: Literal["italic"] = "italic"


class Underline(_Command):
    kind: Literal["underline"] = "underline"


class Strike(_Command):
    kind: Literal["strike"] = "strike"


class Align(_Command):
    kind: Literal["align"] = "align"
    direction: Literal["left", "center", "right", "justify"]


class List(_Command):
    kind: Literal["list"] = "list"
    ordered: bool = False


class FontSize(_Command):
    kind: Literal["font_size"] = "font_size"
    pt: float = Field(gt=0)


class FontFamily(_Command):
    kind: Literal["font_family"] = "font_family"
    name: str = Field(min_length=1)


class Color(_Command):
    kind: Literal["color"] = "color"
    rgb: str = Field(pattern=r"^#(?:[0-9A-Fa-f]{3}|[0-9A-Fa-f]{6})$")


class InsertTable(_Command):
    kind: Literal["insert_table"] = "insert_table"
    rows: int = DEFAULT_TABLE_ROWS
    cols: int = DEFAULT_TABLE_COLS

    @field_validator("rows", "cols")
    @classmethod
    def _at_least_one(cls, v: int) -> int:
        return max(1, v)


class InsertRule(_Command):
    kind: Literal["insert_rule"] = "insert_rule"


class InsertRaw(_Command):
    kind: Literal["insert_raw"] = "insert_raw"
    markup: str


class InsertImage(_Command):
    kind: Literal["insert_image"] = "insert_image"
    src: str = Field(min_length=1)
    alt: str = ""


class InsertText(_Command):
    kind: Literal["insert_text"] = "insert_text"
    text: str


Command = Annotated[
    Union[
        Bold, Italic, Underline, Strike, Align, List, FontSize, FontFamily, Color,
        InsertTable, InsertRule, InsertRaw, InsertImage, InsertText,
    ],
    Field(discriminator="kind"),
]

_COMMAND_ADAPTER = TypeAdapter(Command)


def parse_command(data) -> Command:
    """Validate a {"kind": ..., ...} mapping into a command. Raises pydantic.ValidationError."""
    return _COMMAND_ADAPTER.validate_python(data)


def _pt(value: float) -> str:
    return f"{value:g}pt"


class CommandExecutor:
    """Runs commands against the surface owned by one controller."""

    # Equivalent tags an inline toggle recognises as "already applied"
    TOGGLE_TAGS = {
        Bold: ("b", ("b", "strong")),
        Italic: ("i", ("i", "em")),
        Underline: ("u", ("u",)),
        Strike: ("s", ("s", "strike")),
    }

    def __init__(self, controller: SurfaceController):
        self.controller = controller
        self.surface = controller.surface
        self._handlers = {
            Bold: self._toggle_inline,
            Italic: self._toggle_inline,
            Underline: self._toggle_inline,
            Strike: self._toggle_inline,
            Align: self._align,
            List: self._list,
            FontSize: self._font_size,
            FontFamily: self._font_family,
            Color: self._color,
            InsertTable: self._insert_table,
            InsertRule: self._insert_rule,
            InsertRaw: self._insert_raw,
            InsertImage: self._insert_image,
            InsertText: self._insert_text,
        }

    def execute(self, command: Command, selection: Selection | None = None) -> str:
        """Apply command at selection (or the current one), then refocus and propagate. Returns the new markup."""
        if selection is not None:
            if selection.fragment_id != self.surface.fragment_id:
                raise ValueError(
                    f"Selection belongs to {selection.fragment_id!r}, not {self.surface.fragment_id!r}"
                )
            self.surface.select(selection.start_offset, selection.end_offset)
        self._handlers[type(command)](command)
        self.surface.focus()
        self.controller.handle_input()
        return self.surface.inner_html

    # -------------------------------------------------------------------------
    # Inline formatting
    # -------------------------------------------------------------------------

    def _styled_span(self, **props):
        return lambda: self.surface.new_tag("span", style=format_style(props))

    def _apply_inline(self, make_wrapper, coarse_fallback=False) -> None:
        start, end = self.surface.selected_range()
        if start == end:
            # marker element; the caret goes after the marker, inside the element
            wrapper = make_wrapper()
            wrapper.append(NavigableString(ZERO_WIDTH_SPACE))
            self.surface.insert_nodes(start, [wrapper])
            self.surface.set_caret(start + 1)
            return
        if self._wrap(start, end, make_wrapper):
            self.surface.select(start, end)
        elif coarse_fallback:
            self._coarse_size_step(start)

    def _wrap(self, start: int, end: int, make_wrapper) -> bool:
        """Wrap the range, one wrapper per block it crosses. Returns False when nothing could be wrapped."""
        runs = self.surface.block_runs(start, end) or [(start, end)]
        if len(runs) > 1:
            logger.debug("Range %d..%d in %s crosses %d blocks", start, end, self.surface.fragment_id, len(runs))
        return any([self._wrap_run(s, e, make_wrapper) for s, e in runs])

    def _wrap_run(self, start: int, end: int, make_wrapper) -> bool:
        try:
            self.surface.surround_range(start, end, make_wrapper())
            return True
        except UnwrappableRangeError as e:
            logger.debug("Cannot surround %d..%d in %s (%s), extracting instead",
                         start, end, self.surface.fragment_id, e)
        try:
            self.surface.wrap_range(start, end, make_wrapper())
            return True
        except Exception as e:
            logger.warning("Wrapping %d..%d in %s failed: %s", start, end, self.surface.fragment_id, e)
            return False

    def _coarse_size_step(self, offset: int) -> None:
        try:
            block = self.surface.block_at(offset)
            font = self.surface.new_tag("font", size="3")
            for child in list(block.contents):
                font.append(child.extract())
            block.append(font)
        except Exception as e:
            logger.warning("Coarse size step failed in %s, content left unchanged: %s",
                           self.surface.fragment_id, e)

    def _toggle_inline(self, command) -> None:
        tag, equivalents = self.TOGGLE_TAGS[type(command)]
        start, end = self.surface.selected_range()
        if start < end:
            applied = self._applied_around(start, end, equivalents)
            if applied is not None:
                # exact match toggles off; a selection inside a wider element is already formatted
                if self.surface.range_of(applied) == (start, end):
                    applied.unwrap()
                self.surface.select(start, end)
                return
        self._apply_inline(lambda: self.surface.new_tag(tag))

    def _applied_around(self, start: int, end: int, names) -> Tag | None:
        """Innermost element named in names whose text covers all of [start, end)."""
        element = self.surface.enclosing_element(end)
        while element is not None and element is not self.surface.root:
            if element.name in names:
                covered = self.surface.range_of(element)
                if covered is not None and covered[0] <= start and end <= covered[1]:
                    return element
            element = element.parent
        return None

    def _font_size(self, command: FontSize) -> None:
        self._apply_inline(self._styled_span(**{"font-size": _pt(command.pt)}), coarse_fallback=True)

    def _font_family(self, command: FontFamily) -> None:
        self._apply_inline(self._styled_span(**{"font-family": css_font_family(command.name)}))

    def _color(self, command: Color) -> None:
        self._apply_inline(self._styled_span(color=command.rgb))

    # -------------------------------------------------------------------------
    # Blocks
    # -------------------------------------------------------------------------

    def _align(self, command: Align) -> None:
        start, end = self.surface.selected_range()
        for block in self.surface.blocks_in_range(start, end):
            props = parse_style(block.get("style"))
            props["text-align"] = command.direction
            block["style"] = format_style(props)

    def _list(self, command: List) -> None:
        name = "ol" if command.ordered else "ul"
        start, end = self.surface.selected_range()
        tops = self.surface.top_level_blocks_in_range(start, end)
        if not tops:
            return

        if all(top.name == name for top in tops):
            for top in tops:
                for li in top.find_all("li", recursive=False):
                    li.name = "p"
                top.unwrap()
            return

        new_list = self.surface.new_tag(name)
        tops[0].insert_before(new_list)
        for top in tops:
            if top.name in ("ul", "ol"):
                for li in top.find_all("li", recursive=False):
                    new_list.append(li.extract())
                top.decompose()
                continue
            li = self.surface.new_tag("li")
            if top.name in ("p", "div"):
                if top.get("style"):
                    li["style"] = top["style"]
                for child in list(top.contents):
                    li.append(child.extract())
                top.decompose()
            else:
                li.append(top.extract())
            new_list.append(li)

    # -------------------------------------------------------------------------
    # Insertion
    # -------------------------------------------------------------------------

    def _replace_selection(self) -> int:
        start, end = self.surface.selected_range()
        if end > start:
            self.surface.delete_range(start, end)
        return start

    def _insert_markup(self, markup: str) -> None:
        caret = self._replace_selection()
        self.surface.set_caret(self.surface.insert_html(caret, markup))

    def _insert_table(self, command: InsertTable) -> None:
        self._insert_markup(table_markup(command.rows, command.cols))

    def _insert_rule(self, command: InsertRule) -> None:
        self._insert_markup(rule_markup())

    def _insert_raw(self, command: InsertRaw) -> None:
        self._insert_markup(command.markup)

    def _insert_image(self, command: InsertImage) -> None:
        self._insert_markup(image_markup(command.src, command.alt))

    def _insert_text(self, command: InsertText) -> None:
        caret = self._replace_selection()
        self.surface.set_caret(self.surface.insert_text(caret, command.text))

"""
Headless editable surface: a live DOM (BeautifulSoup tree) for one rich-text fragment, plus the
caret/selection and focus state a browser contenteditable would own.

Positions are character offsets into the concatenated text of the surface (`text_content`).
An offset that sits on the boundary of two text nodes is resolved to the node that ends there
when inserting (typed text continues the formatting to its left) and to the node that starts
there when a range begins.
"""
import logging

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.dammit import EntitySubstitution
from bs4.element import PreformattedString
from bs4.formatter import HTMLFormatter
from pydantic import BaseModel, ConfigDict, model_validator

from editing.utils.markup import BLOCK_TAGS, INLINE_WRAPPER_TAGS, ZERO_WIDTH_SPACE

logger = logging.getLogger(__name__)

# innerHTML-like output: <br> not <br/>, only &, <, > escaped in text
_SERIALIZER = HTMLFormatter(
    entity_substitution=EntitySubstitution.substitute_xml,
    void_element_close_prefix=None,
)

# Children of the surface root that are never part of an inline run
_NON_INLINE_TAGS = BLOCK_TAGS | {"ul", "ol", "table", "thead", "tbody", "tr", "hr"}


class UnwrappableRangeError(Exception):
    """The range partially selects an element, so it cannot be surrounded in place."""


class Selection(BaseModel):
    model_config = ConfigDict(frozen=True)

    fragment_id: str
    start_offset: int
    end_offset: int

    @model_validator(mode="after")
    def _check_order(self):
        if self.start_offset < 0 or self.end_offset < self.start_offset:
            raise ValueError("Selection needs 0 <= start_offset <= end_offset")
        return self

    @property
    def collapsed(self) -> bool:
        return self.start_offset == self.end_offset


def _is_text(node) -> bool:
    return isinstance(node, NavigableString) and not isinstance(node, PreformattedString)


def parse_fragment(markup: str) -> list:
    """Parse markup into detached nodes ready to be inserted into a surface."""
    soup = BeautifulSoup(markup or "", "html.parser")
    return [node.extract() for node in list(soup.contents)]


def text_length(nodes) -> int:
    total = 0
    for node in nodes:
        if _is_text(node):
            total += len(node)
        elif isinstance(node, Tag):
            total += sum(len(t) for t in node.descendants if _is_text(t))
    return total


class Surface:
    """
    One editable region. Raw input (`type_text`) and formatting commands change the tree;
    listeners registered with `on_input` are told after each raw input event.
    With focus_reporting=False the surface behaves like a host that cannot say whether it is
    focused: has_focus() returns None.
    """

    def __init__(self, fragment_id: str, markup: str = "", focus_reporting: bool = True):
        self.fragment_id = fragment_id
        self._focus_reporting = focus_reporting
        self._focused = False
        self._selection: Selection | None = None
        self._listeners = []
        self._soup = BeautifulSoup("", "html.parser")
        self._root = self._soup.new_tag("div")
        self._soup.append(self._root)
        self._load(markup)

    # -------------------------------------------------------------------------
    # Content
    # -------------------------------------------------------------------------

    @property
    def inner_html(self) -> str:
        return self._root.decode_contents(formatter=_SERIALIZER)

    @property
    def text_content(self) -> str:
        return "".join(str(t) for t in self._text_nodes())

    def set_inner_html(self, markup: str) -> None:
        """Replace the whole content. Like assigning innerHTML, this drops the selection."""
        self._load(markup)
        self._selection = None

    def _load(self, markup: str) -> None:
        self._root.clear()
        for node in parse_fragment(markup):
            self._root.append(node)

    def _text_nodes(self) -> list:
        return [n for n in self._root.descendants if _is_text(n)]

    def _spans(self):
        """Yield (node, start, end) for every non-empty text node in document order."""
        pos = 0
        for node in self._text_nodes():
            n = len(node)
            if n:
                yield node, pos, pos + n
                pos += n

    # -------------------------------------------------------------------------
    # Focus, selection, input events
    # -------------------------------------------------------------------------

    def focus(self) -> None:
        self._focused = True

    def blur(self) -> None:
        self._focused = False

    def has_focus(self) -> bool | None:
        if not self._focus_reporting:
            return None
        return self._focused

    @property
    def selection(self) -> Selection | None:
        return self._selection

    def select(self, start: int, end: int | None = None) -> Selection:
        end = start if end is None else end
        if start > end:
            start, end = end, start
        length = len(self.text_content)
        if start < 0 or end > length:
            raise ValueError(f"Selection {start}..{end} outside 0..{length}")
        self._selection = Selection(fragment_id=self.fragment_id, start_offset=start, end_offset=end)
        return self._selection

    def set_caret(self, offset: int) -> Selection:
        return self.select(offset, offset)

    def selected_range(self) -> tuple[int, int]:
        """Current selection as (start, end); with no selection the caret is at the end."""
        if self._selection is None:
            end = len(self.text_content)
            return end, end
        return self._selection.start_offset, self._selection.end_offset

    def on_input(self, callback) -> None:
        self._listeners.append(callback)

    def dispatch_input(self) -> None:
        for callback in list(self._listeners):
            callback()

    def type_text(self, text: str) -> None:
        """Raw user typing: replace the selection with text, move the caret, fire an input event."""
        start, end = self.selected_range()
        if end > start:
            self.delete_range(start, end)
        caret = self.insert_text(start, text)
        self.set_caret(caret)
        self.dispatch_input()

    # -------------------------------------------------------------------------
    # Locating positions
    # -------------------------------------------------------------------------

    def _locate(self, offset: int, prefer_end: bool):
        """
        Text node and local offset for a document offset.
        prefer_end=True picks the node ending at a boundary, False the node starting there.
        Returns (None, 0) when the surface has no text.
        """
        spans = list(self._spans())
        if not spans:
            return None, 0
        for node, start, end in spans:
            if prefer_end and start < offset <= end:
                return node, offset - start
            if not prefer_end and start <= offset < end:
                return node, offset - start
        if offset <= 0:
            return spans[0][0], 0
        last = spans[-1][0]
        return last, len(last)

    def enclosing_element(self, offset: int) -> Tag | None:
        """Element holding the character just before offset (what newly typed text would inherit)."""
        node, _local = self._locate(offset, prefer_end=True)
        return node.parent if node is not None else None

    def range_of(self, element: Tag) -> tuple[int, int] | None:
        """Text offsets covered by element, or None when it holds no text."""
        inside = {id(t) for t in element.descendants if _is_text(t)}
        hits = [(s, e) for n, s, e in self._spans() if id(n) in inside]
        if not hits:
            return None
        return hits[0][0], hits[-1][1]

    def _split(self, node, local: int):
        text = str(node)
        left = NavigableString(text[:local])
        right = NavigableString(text[local:])
        node.replace_with(left)
        left.insert_after(right)
        return left, right

    def _isolate(self, start: int, end: int) -> list:
        """Split text nodes at start and end; return the text nodes exactly covering [start, end)."""
        node, local = self._locate(start, prefer_end=False)
        if node is not None and 0 < local < len(node):
            self._split(node, local)
        node, local = self._locate(end, prefer_end=True)
        if node is not None and 0 < local < len(node):
            self._split(node, local)
        return [n for n, s, e in self._spans() if s >= start and e <= end]

    # -------------------------------------------------------------------------
    # Range operations
    # -------------------------------------------------------------------------

    def surround_range(self, start: int, end: int, wrapper: Tag) -> Tag:
        """Move [start, end) into wrapper in place. Raises UnwrappableRangeError when boundaries cross tags."""
        nodes = self._isolate(start, end)
        if not nodes:
            raise UnwrappableRangeError("Empty range")
        first, last = nodes[0], nodes[-1]
        parent = first.parent
        if last.parent is not parent:
            raise UnwrappableRangeError(
                f"Range {start}..{end} starts in <{parent.name}> and ends in <{last.parent.name}>"
            )
        siblings = []
        node = first
        while node is not None:
            siblings.append(node)
            if node is last:
                break
            node = node.next_sibling
        first.insert_before(wrapper)
        for sibling in siblings:
            wrapper.append(sibling.extract())
        return wrapper

    def wrap_range(self, start: int, end: int, wrapper: Tag) -> Tag:
        """Extract [start, end) (cloning partially selected elements), put it in wrapper, reinsert."""
        fragment, marker = self.extract_range(start, end)
        for node in fragment:
            wrapper.append(node)
        marker.replace_with(wrapper)
        return wrapper

    def delete_range(self, start: int, end: int) -> None:
        if end <= start:
            return
        _fragment, marker = self.extract_range(start, end)
        marker.extract()

    def extract_range(self, start: int, end: int):
        """
        Remove [start, end) from the tree.
        Returns (fragment, marker): the detached nodes, with partially selected elements cloned
        around their selected part, and a placeholder tag standing where the content was.
        """
        nodes = self._isolate(start, end)
        if not nodes:
            raise ValueError(f"Nothing to extract in {start}..{end}")
        first, last = nodes[0], nodes[-1]
        selected = {id(n) for n in nodes}
        order = {id(n): i for i, n in enumerate(self._root.descendants)}
        bounds = (order[id(first)], order[id(last)])
        ancestor = self._common_ancestor(first, last)

        start_child = first
        while start_child.parent is not ancestor:
            start_child = start_child.parent
        marker = self._soup.new_tag("span")
        start_child.insert_before(marker)

        fragment = self._extract_from(ancestor, selected, order, bounds, marker)
        if start_child.parent is ancestor:
            marker.extract()
            start_child.insert_after(marker)
        return fragment, marker

    def _extract_from(self, parent: Tag, selected: set, order: dict, bounds: tuple, marker: Tag) -> list:
        lo, hi = bounds
        out = []
        for child in list(parent.contents):
            if child is marker:
                continue
            if _is_text(child):
                if id(child) in selected:
                    out.append(child.extract())
                continue
            if not isinstance(child, Tag):
                if lo < order.get(id(child), -1) < hi:
                    out.append(child.extract())
                continue
            texts = [t for t in child.descendants if _is_text(t) and len(t)]
            inside = [t for t in texts if id(t) in selected]
            if texts and len(inside) == len(texts):
                out.append(child.extract())
            elif inside:
                clone = self._soup.new_tag(child.name, attrs=dict(child.attrs))
                for node in self._extract_from(child, selected, order, bounds, marker):
                    clone.append(node)
                out.append(clone)
            elif not texts and lo < order.get(id(child), -1) < hi:
                out.append(child.extract())
        return out

    def _common_ancestor(self, a, b) -> Tag:
        b_ancestors = set()
        node = b.parent
        while node is not None:
            b_ancestors.add(id(node))
            if node is self._root:
                break
            node = node.parent
        node = a.parent
        while node is not None:
            if id(node) in b_ancestors:
                return node
            if node is self._root:
                break
            node = node.parent
        return self._root

    # -------------------------------------------------------------------------
    # Insertion
    # -------------------------------------------------------------------------

    def new_tag(self, name: str, **attrs) -> Tag:
        return self._soup.new_tag(name, attrs=attrs)

    def _fallback_container(self) -> Tag:
        """Where text goes when the surface has no text node yet: the last block, else the root."""
        blocks = [t for t in self._root.find_all(True) if t.name in BLOCK_TAGS]
        return blocks[-1] if blocks else self._root

    def insert_text(self, offset: int, text: str) -> int:
        """Insert plain text at offset (merging into the text node there). Returns the new caret."""
        node, local = self._locate(offset, prefer_end=True)
        if node is None:
            container = self._fallback_container()
            br = container.find("br", recursive=False)
            if br is not None and not container.get_text():
                br.replace_with(NavigableString(text))
            else:
                container.append(NavigableString(text))
        else:
            value = str(node)
            node.replace_with(NavigableString(value[:local] + text + value[local:]))
        return offset + len(text)

    def insert_nodes(self, offset: int, nodes: list) -> int:
        """Insert detached nodes at offset, splitting the text node there. Returns the new caret."""
        node, local = self._locate(offset, prefer_end=True)
        if node is None:
            container = self._fallback_container()
            for new in nodes:
                container.append(new)
        elif local == 0:
            for new in nodes:
                node.insert_before(new)
        elif local == len(node):
            ref = node
            for new in nodes:
                ref.insert_after(new)
                ref = new
        else:
            _left, right = self._split(node, local)
            for new in nodes:
                right.insert_before(new)
        return offset + text_length(nodes)

    def insert_html(self, offset: int, markup: str) -> int:
        return self.insert_nodes(offset, parse_fragment(markup))

    # -------------------------------------------------------------------------
    # Blocks
    # -------------------------------------------------------------------------

    def _touched_text_nodes(self, start: int, end: int) -> list:
        if start == end:
            node, _local = self._locate(start, prefer_end=True)
            return [node] if node is not None else []
        return [n for n, s, e in self._spans() if s < end and e > start]

    def _block_of(self, node) -> Tag:
        parent = node.parent
        while parent is not None and parent is not self._root:
            if parent.name in BLOCK_TAGS:
                return parent
            parent = parent.parent
        return self._root

    def _top_level(self, node) -> Tag | NavigableString:
        while node.parent is not self._root:
            node = node.parent
        return node

    def _wrap_inline_run(self, top) -> Tag:
        """Wrap the run of inline siblings around a root child into a <div> block."""
        run = [top]
        prev = top.previous_sibling
        while prev is not None and self._is_inline(prev):
            run.insert(0, prev)
            prev = prev.previous_sibling
        nxt = top.next_sibling
        while nxt is not None and self._is_inline(nxt):
            run.append(nxt)
            nxt = nxt.next_sibling
        div = self._soup.new_tag("div")
        run[0].insert_before(div)
        for node in run:
            div.append(node.extract())
        return div

    @staticmethod
    def _is_inline(node) -> bool:
        if isinstance(node, Tag):
            return node.name not in _NON_INLINE_TAGS
        return _is_text(node)

    def blocks_in_range(self, start: int, end: int) -> list[Tag]:
        """Nearest block element of every text node the range touches; top-level inline runs get a <div>."""
        blocks = []
        seen = set()
        for node in self._touched_text_nodes(start, end):
            if node.parent is None:
                # absorbed into a <div> created for an earlier node of the same run
                continue
            block = self._block_of(node)
            if block is self._root:
                block = self._wrap_inline_run(self._top_level(node))
            if id(block) not in seen:
                seen.add(id(block))
                blocks.append(block)
        return blocks

    def top_level_blocks_in_range(self, start: int, end: int) -> list[Tag]:
        tops = []
        seen = set()
        for block in self.blocks_in_range(start, end):
            top = self._top_level(block) if block.parent is not self._root else block
            if id(top) not in seen:
                seen.add(id(top))
                tops.append(top)
        return tops

    def block_at(self, offset: int) -> Tag:
        """Nearest block around offset, or the surface root."""
        node, _local = self._locate(offset, prefer_end=True)
        return self._block_of(node) if node is not None else self._root

    def block_runs(self, start: int, end: int) -> list[tuple[int, int]]:
        """Split [start, end) into consecutive pieces whose text each stays inside one block."""
        runs = []
        owner = None
        for node, s, e in self._spans():
            s, e = max(s, start), min(e, end)
            if s >= e:
                continue
            block = self._block_of(node)
            if runs and block is owner:
                runs[-1] = (runs[-1][0], e)
            else:
                runs.append((s, e))
                owner = block
        return runs

    @property
    def root(self) -> Tag:
        return self._root

    # -------------------------------------------------------------------------
    # Cleanup
    # -------------------------------------------------------------------------

    def strip_zero_width(self) -> bool:
        """Remove zero-width markers and the inline wrappers they leave empty. Returns True if anything changed."""
        changed = False
        emptied = []
        for node in self._text_nodes():
            if ZERO_WIDTH_SPACE not in node:
                continue
            cleaned = str(node).replace(ZERO_WIDTH_SPACE, "")
            if cleaned:
                node.replace_with(NavigableString(cleaned))
            else:
                emptied.append(node.parent)
                node.extract()
            changed = True
        # only wrappers that held nothing but a marker; other empty elements are content
        for tag in emptied:
            while (tag is not None and tag is not self._root and tag.parent is not None
                   and tag.name in INLINE_WRAPPER_TAGS and not tag.contents):
                parent = tag.parent
                tag.decompose()
                tag = parent
        if changed:
            self._selection = None
            logger.debug("Stripped zero-width markers from %s", self.fragment_id)
        return changed

"""
Layout rules shared by preview and export: signature grid placement, header-line stacking
and page sequencing for the attachment.
"""
from dataclasses import dataclass

from lettergen.settings import DocumentSettings, HeaderLine, Signature
from lettergen.units import css_length

DATE_TOKEN = "{{ $tanggal }}"
DATE_VARIABLE = "tanggal"


@dataclass(frozen=True)
class SignaturePlacement:
    signature: Signature
    row: int
    column: int
    span_full: bool = False
    carries_date_line: bool = False
    align: str = "center"


def place_signatures(signatures) -> list[SignaturePlacement]:
    """
    Grid placement for N signatures:
      N == 1     one block, aligned per its own `align` (right when unset)
      N even     two columns, row-major
      N odd > 1  two columns row-major, the last entry spans both columns, centred
    Only the positionally last entry carries the "<city>, <date>" line.
    """
    signatures = tuple(signatures)
    n = len(signatures)
    if n == 0:
        return []
    if n == 1:
        sig = signatures[0]
        return [SignaturePlacement(sig, 0, 0, carries_date_line=True, align=sig.align or "right")]

    placements = []
    for i, sig in enumerate(signatures):
        last = i == n - 1
        span_full = last and n % 2 == 1
        placements.append(SignaturePlacement(
            signature=sig,
            row=i // 2,
            column=0 if span_full else i % 2,
            span_full=span_full,
            carries_date_line=last,
            align="center",
        ))
    return placements


def signature_rows(placements: list[SignaturePlacement]) -> list[list[SignaturePlacement]]:
    rows: dict[int, list[SignaturePlacement]] = {}
    for p in placements:
        rows.setdefault(p.row, []).append(p)
    return [rows[r] for r in sorted(rows)]


def date_line(city: str) -> str:
    return f"{city}, {DATE_TOKEN}"


def header_line_style(line: HeaderLine) -> str:
    """Inline CSS for one ruled divider under the letterhead."""
    return (
        f"border-bottom: {line.width:g}px {line.style} {line.color}; "
        f"margin-top: {line.margin_top:g}px; margin-bottom: {line.margin_bottom:g}px;"
    )


@dataclass(frozen=True)
class PagePlan:
    """What one logical page carries. Pages after the first are preceded by a page break."""
    kind: str
    show_header: bool
    show_footer: bool


def paginate(settings: DocumentSettings) -> list[PagePlan]:
    pages = [PagePlan("letter", show_header=settings.show_header, show_footer=settings.show_footer)]
    if settings.has_attachment:
        pages.append(PagePlan(
            "attachment",
            show_header=settings.attachment_show_header,
            show_footer=settings.show_footer,
        ))
    return pages


def page_css(settings: DocumentSettings) -> str:
    """@page rule: size and margins in the active unit."""
    u = settings.unit
    return (
        "@page { "
        f"size: {css_length(settings.page_width, u)} {css_length(settings.page_height, u)}; "
        f"margin: {css_length(settings.margin_top, u)} {css_length(settings.margin_right, u)} "
        f"{css_length(settings.margin_bottom, u)} {css_length(settings.margin_left, u)}; "
        "}"
    )

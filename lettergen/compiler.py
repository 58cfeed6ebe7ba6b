"""
Document compiler: DocumentSettings -> preview markup and Blade export markup.

Both outputs come from the same assembly. They differ only in how fragments are substituted
(stand-ins vs verbatim tokens) and in how template directives are written: real Blade
directives in the export, the same directives as HTML comments in the preview.
Blocks switched off in the settings are left out of both.
"""
import html

from pydantic import BaseModel, ConfigDict

from lettergen.layout import (
    PagePlan,
    SignaturePlacement,
    date_line,
    header_line_style,
    page_css,
    paginate,
    place_signatures,
    signature_rows,
)
from lettergen.settings import DocumentSettings
from lettergen.substitution import STANDIN_CLASS, SubstitutionMode, substitute
from lettergen.units import css_length
from editing.utils.markup import css_font_family

EXPORT_FILENAME = "template.blade.php"
ATTACHMENT_TITLE = "Lampiran"
QR_PLACEHOLDER = "QR Placeholder"


class CompiledDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    preview_markup: str
    export_markup: str


def compile_document(settings: DocumentSettings) -> CompiledDocument:
    """Pure: the same settings always compile to the same markup."""
    return CompiledDocument(
        preview_markup=render(settings, SubstitutionMode.PREVIEW),
        export_markup=render(settings, SubstitutionMode.EXPORT),
    )


def render(settings: DocumentSettings, mode: SubstitutionMode | str) -> str:
    return _Assembler(settings, SubstitutionMode(mode)).document()


def _text(value: str | None) -> str:
    return html.escape(value or "")


class _Assembler:

    def __init__(self, settings: DocumentSettings, mode: SubstitutionMode):
        self.settings = settings
        self.mode = mode

    # -------------------------------------------------------------------------
    # Directives
    # -------------------------------------------------------------------------

    def _directive(self, text: str) -> str:
        if self.mode is SubstitutionMode.EXPORT:
            return text
        return f"<!-- {text} -->"

    def _gated(self, flag: str, block: str) -> list[str]:
        return [self._directive(f"@if(${flag} ?? true)"), block, self._directive("@endif")]

    def _title(self) -> str:
        if self.mode is SubstitutionMode.EXPORT:
            return "{{ $title ?? 'Document' }}"
        return "Document"

    def _fragment(self, markup: str) -> str:
        return substitute(markup, self.settings.variables, self.mode)

    # -------------------------------------------------------------------------
    # Head
    # -------------------------------------------------------------------------

    def _css(self) -> str:
        s = self.settings
        u = s.unit
        padding = " ".join(css_length(v, u) for v in (s.margin_top, s.margin_right, s.margin_bottom, s.margin_left))
        return "\n".join([
            page_css(s),
            "body { "
            f"font-family: {css_font_family(s.global_font_family)}; "
            f"font-size: {s.font_size:g}pt; line-height: 1.5; color: #000; margin: 0; "
            "}",
            f".page {{ width: {css_length(s.page_width, u)}; min-height: {css_length(s.page_height, u)}; "
            "box-sizing: border-box; }",
            f"@media screen {{ .page {{ padding: {padding}; }} }}",
            ".header { margin-bottom: 8px; }",
            ".header-table { width: 100%; border-collapse: collapse; }",
            ".header-logo { width: 80px; vertical-align: middle; }",
            ".header-logo img { width: 80px; height: auto; }",
            ".header-text { text-align: center; line-height: 1.2; }",
            ".header-lines { width: 100%; clear: both; }",
            ".signature { margin-top: 32px; width: 100%; }",
            ".signature-table { width: 100%; border-collapse: collapse; }",
            ".signature-table td { vertical-align: top; padding: 0 8px 16px 8px; }",
            ".signature-entry { display: inline-block; min-width: 200px; text-align: center; }",
            ".signature-entry p { margin: 0 0 4px 0; }",
            ".signature-space { height: 80px; }",
            ".signature-qr { width: 80px; height: 80px; margin: 0 auto; border: 1px dashed #9ca3af; "
            "font-size: 8pt; line-height: 80px; text-align: center; }",
            ".signature-name { font-weight: bold; text-decoration: underline; }",
            ".footer { margin-top: 32px; padding-top: 8px; border-top: 1px solid #f3f4f6; "
            "font-size: 9pt; text-align: center; color: #6b7280; }",
            ".page-break { page-break-after: always; break-after: page; }",
            ".attachment-title { font-weight: bold; text-decoration: underline; margin: 0 0 16px 0; }",
            f".{STANDIN_CLASS} {{ white-space: nowrap; }}",
        ])

    def _head(self) -> list[str]:
        return [
            "<head>",
            '<meta charset="utf-8">',
            f"<title>{self._title()}</title>",
            "<style>",
            self._css(),
            "</style>",
            "</head>",
        ]

    # -------------------------------------------------------------------------
    # Blocks
    # -------------------------------------------------------------------------

    def _header(self) -> str:
        s = self.settings
        logo = ""
        if s.logo_url:
            logo = f'<td class="header-logo"><img src="{html.escape(s.logo_url, quote=True)}" alt="Logo"></td>'
        lines = "".join(
            f'<div class="header-line" style="{header_line_style(line)}"></div>' for line in s.header_lines
        )
        return (
            '<div class="header">'
            f'<table class="header-table"><tr>{logo}'
            f'<td class="header-text" style="font-family: {css_font_family(s.header_font_family)};">'
            f"{self._fragment(s.header_content)}</td></tr></table>"
            f'<div class="header-lines">{lines}</div>'
            "</div>"
        )

    def _content(self) -> str:
        s = self.settings
        return (
            f'<div class="content" style="font-family: {css_font_family(s.content_font_family)};">'
            f"{self._fragment(s.body_content)}</div>"
        )

    def _signature_entry(self, placement: SignaturePlacement) -> str:
        sig = placement.signature
        parts = [f'<div class="signature-entry" data-signature="{html.escape(sig.id, quote=True)}">']
        if sig.label:
            parts.append(f'<p class="signature-label">{_text(sig.label)}</p>')
        if placement.carries_date_line:
            line = date_line(_text(self.settings.signature_city))
            parts.append(f'<p class="signature-date">{self._fragment(line)}</p>')
        if sig.type == "qr":
            parts.append(f'<div class="signature-qr">{QR_PLACEHOLDER}</div>')
        else:
            parts.append('<div class="signature-space"></div>')
        parts.append(f'<p class="signature-name">{_text(sig.name)}</p>')
        parts.append(f'<p class="signature-title">{_text(sig.title)}</p>')
        parts.append("</div>")
        return "".join(parts)

    def _signature_cell(self, placement: SignaturePlacement, single: bool) -> str:
        entry = self._signature_entry(placement)
        if single:
            return f'<td class="signature-cell" style="text-align: {placement.align};">{entry}</td>'
        if placement.span_full:
            return (
                '<td colspan="2" class="signature-cell signature-span-full" '
                f'style="text-align: center;">{entry}</td>'
            )
        return f'<td class="signature-cell" style="width: 50%; text-align: {placement.align};">{entry}</td>'

    def _signatures(self) -> str:
        placements = place_signatures(self.settings.signatures)
        single = len(placements) == 1
        rows = "".join(
            "<tr>" + "".join(self._signature_cell(p, single) for p in row) + "</tr>"
            for row in signature_rows(placements)
        )
        return f'<div class="signature"><table class="signature-table">{rows}</table></div>'

    def _footer(self) -> str:
        return f'<div class="footer">{self._fragment(self.settings.footer_content)}</div>'

    def _attachment(self) -> str:
        s = self.settings
        return (
            f'<h3 class="attachment-title">{ATTACHMENT_TITLE}</h3>'
            f'<div class="attachment" style="font-family: {css_font_family(s.attachment_font_family)};">'
            f"{self._fragment(s.attachment_content)}</div>"
        )

    # -------------------------------------------------------------------------
    # Pages
    # -------------------------------------------------------------------------

    def _page(self, plan: PagePlan) -> list[str]:
        s = self.settings
        out = []
        if plan.show_header:
            flag = "show_header" if plan.kind == "letter" else "attachment_show_header"
            out += self._gated(flag, self._header())
        if plan.kind == "letter":
            out.append(self._content())
            if s.show_signature and s.signatures:
                out += self._gated("show_signature", self._signatures())
        else:
            out.append(self._attachment())
        if plan.show_footer:
            out += self._gated("show_footer", self._footer())
        return out

    def document(self) -> str:
        out = ["<!DOCTYPE html>", "<html>"]
        out += self._head()
        out.append("<body>")
        for i, plan in enumerate(paginate(self.settings)):
            page = [f'<div class="page {plan.kind}-page">'] + self._page(plan) + ["</div>"]
            if i == 0:
                out += page
            else:
                out += self._gated("has_attachment", "\n".join(['<div class="page-break"></div>'] + page))
        out += ["</body>", "</html>"]
        return "\n".join(out)

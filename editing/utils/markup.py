"""
Literal markup the editor inserts (tables, rules, images) and small helpers for inline styles.
"""
import html

ZERO_WIDTH_SPACE = "\u200b"

BLOCK_TAGS = frozenset({
    "p", "div", "h1", "h2", "h3", "h4", "h5", "h6", "li", "blockquote", "td", "th", "pre",
})
# Inline wrappers left behind empty once their zero-width content is stripped
INLINE_WRAPPER_TAGS = frozenset({"span", "font", "b", "strong", "i", "em", "u", "s", "strike"})

CELL_STYLE = "border: 1px solid #000; padding: 5px;"
HEADER_CELL_STYLE = "border: 1px solid #000; padding: 5px; background: #f0f0f0;"
TABLE_STYLE = "width: 100%; border-collapse: collapse; margin: 10px 0;"
RULE_STYLE = "border: none; border-top: 1px solid #000; margin: 10px 0;"
IMAGE_STYLE = "max-width: 100%; height: auto; margin: 10px 0;"

DEFAULT_TABLE_ROWS = 3
DEFAULT_TABLE_COLS = 3


def table_markup(rows: int = DEFAULT_TABLE_ROWS, cols: int = DEFAULT_TABLE_COLS) -> str:
    """
    Bordered table with a header row and `rows` data rows.
    The first column is numbered ("No"); sizes below 1 are raised to 1.
    """
    rows = max(1, int(rows))
    cols = max(1, int(cols))
    headers = ["No"] + [f"Kolom {c}" for c in range(2, cols + 1)]
    head = "".join(f'<th style="{HEADER_CELL_STYLE}">{h}</th>' for h in headers)
    body_rows = []
    for r in range(1, rows + 1):
        cells = [str(r)] + ["&nbsp;"] * (cols - 1)
        body_rows.append("<tr>" + "".join(f'<td style="{CELL_STYLE}">{c}</td>' for c in cells) + "</tr>")
    return (
        f'<table style="{TABLE_STYLE}">'
        f"<thead><tr>{head}</tr></thead>"
        f"<tbody>{''.join(body_rows)}</tbody>"
        "</table><p><br></p>"
    )


def rule_markup() -> str:
    return f'<hr style="{RULE_STYLE}">'


def image_markup(src: str, alt: str = "") -> str:
    return f'<img src="{html.escape(src, quote=True)}" alt="{html.escape(alt, quote=True)}" style="{IMAGE_STYLE}">'


def parse_style(style: str | None) -> dict[str, str]:
    """'a: 1; b: 2' -> {'a': '1', 'b': '2'} (order kept)."""
    out = {}
    for decl in (style or "").split(";"):
        if ":" not in decl:
            continue
        prop, value = decl.split(":", 1)
        prop = prop.strip().lower()
        if prop:
            out[prop] = value.strip()
    return out


def format_style(props: dict[str, str]) -> str:
    return "; ".join(f"{k}: {v}" for k, v in props.items()) + (";" if props else "")


def css_font_family(family: str) -> str:
    """Font stacks go into double-quoted style attributes, so inner quotes become single quotes."""
    return (family or "").replace('"', "'")

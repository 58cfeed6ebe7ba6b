"""
Document settings: the immutable aggregate the compiler reads.

Every change produces a new DocumentSettings through update_settings(), keyed by a dotted
field path ("margin_top", "signatures.1.name", "header_lines.line-2.color"). A path segment
that is not an integer selects a sequence item by its id.
"""
import uuid
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lettergen import variables as registry
from lettergen.config import SIGNATURE_CITY
from lettergen.units import Unit, convert, from_mm
from lettergen.variables import Variable, new_variable

# Fragment id -> settings field
FRAGMENT_FIELDS = {
    "header": "header_content",
    "body": "body_content",
    "footer": "footer_content",
    "attachment": "attachment_content",
}

LOGO_ASPECT_RATIOS = ("1:1", "3:4", "4:3", "9:16", "16:9")
DEFAULT_LOGO_ASPECT_RATIO = "1:1"


class PageSize(str, Enum):
    A4 = "A4"
    F4 = "F4"
    LETTER = "Letter"
    LEGAL = "Legal"
    CUSTOM = "Custom"


# Width x height in millimetres
PAGE_PRESETS_MM = {
    PageSize.A4: (210.0, 297.0),
    PageSize.F4: (215.0, 330.0),
    PageSize.LETTER: (215.9, 279.4),
    PageSize.LEGAL: (215.9, 355.6),
}

GEOMETRY_FIELDS = ("page_width", "page_height", "margin_top", "margin_right", "margin_bottom", "margin_left")


class HeaderLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    width: float = 1
    style: Literal["solid", "double", "dashed", "dotted"] = "solid"
    color: str = "#000000"
    margin_top: float = 0
    margin_bottom: float = 0


class Signature(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    title: str = ""
    type: Literal["wet", "qr"] = "wet"
    label: str | None = None
    align: Literal["left", "center", "right"] | None = None


class DocumentSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Page setup (values are in `unit`)
    page_size: PageSize = PageSize.A4
    unit: Unit = Unit.CM
    page_width: float = 21.0
    page_height: float = 29.7
    margin_top: float = 4.0
    margin_right: float = 3.0
    margin_bottom: float = 3.0
    margin_left: float = 4.0

    # Typography
    global_font_family: str = '"Times New Roman", serif'
    header_font_family: str = '"Times New Roman", serif'
    content_font_family: str = '"Times New Roman", serif'
    attachment_font_family: str = '"Times New Roman", serif'
    font_size: float = 12

    # Header (kop surat)
    show_header: bool = True
    header_content: str = ""
    header_lines: tuple[HeaderLine, ...] = ()
    logo_url: str = ""
    logo_aspect_ratio: str = DEFAULT_LOGO_ASPECT_RATIO

    # Body
    body_content: str = ""

    # Footer
    show_footer: bool = False
    footer_content: str = ""

    # Attachment (lampiran)
    has_attachment: bool = False
    attachment_show_header: bool = False
    attachment_content: str = ""

    variables: tuple[Variable, ...] = ()

    # Signatures
    show_signature: bool = True
    signatures: tuple[Signature, ...] = ()
    signature_city: str = Field(default_factory=lambda: SIGNATURE_CITY)

    @model_validator(mode="after")
    def _unique_variable_keys(self):
        seen = set()
        for v in self.variables:
            if v.key in seen:
                raise ValueError(f"Variable {v.key!r} is registered twice")
            seen.add(v.key)
        return self

    def fragment(self, fragment_id: str) -> str:
        return getattr(self, FRAGMENT_FIELDS[fragment_id])


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def build_header_content(institution_name: str, institution_address: str) -> str:
    """Letterhead markup from the institution name and address (newlines become <br>)."""
    name = "<br>".join(line.strip() for line in (institution_name or "").splitlines() if line.strip())
    address = "<br>".join(line.strip() for line in (institution_address or "").splitlines() if line.strip())
    parts = []
    if name:
        parts.append(f'<div style="font-size: 14pt; font-weight: bold; text-transform: uppercase;">{name}</div>')
    if address:
        parts.append(f'<div style="font-size: 10pt;">{address}</div>')
    return "".join(parts)


DEFAULT_INSTITUTION_NAME = "UNIVERSITAS ISLAM NEGERI\nSUNAN GUNUNG DJATI BANDUNG"
DEFAULT_INSTITUTION_ADDRESS = (
    "Jl. A.H. Nasution No. 105, Cibiru, Bandung 40614\n"
    "Telp. (022) 7800525 Fax. (022) 7803936 Website: www.uinsgd.ac.id"
)

DEFAULT_BODY = (
    "<p>Nomor: {{ $nomor_surat }}</p>"
    "<p>Perihal: {{ $perihal }}</p>"
    "<p>Kepada Yth.<br>{{ $nama_penerima }}</p>"
    "<p>Dengan hormat,</p>"
    "<p>Isi surat ditulis di sini.</p>"
)


def default_settings() -> DocumentSettings:
    """Built-in starting point for a new editing session."""
    return DocumentSettings(
        header_content=build_header_content(DEFAULT_INSTITUTION_NAME, DEFAULT_INSTITUTION_ADDRESS),
        header_lines=(
            HeaderLine(id="line-1", width=3, style="solid", color="#000000", margin_top=4, margin_bottom=1),
            HeaderLine(id="line-2", width=1, style="solid", color="#000000", margin_top=0, margin_bottom=12),
        ),
        logo_url="https://upload.wikimedia.org/wikipedia/commons/e/ec/Logo_UIN_Sunan_Gunung_Djati_Bandung.png",
        body_content=DEFAULT_BODY,
        variables=(
            Variable(id="var-0", key="nomor_surat", label="Nomor Surat", default_value="001/UN.05/2024"),
            Variable(id="var-1", key="perihal", label="Perihal", default_value="Undangan"),
            Variable(id="var-2", key="nama_penerima", label="Nama Penerima", default_value="Bapak/Ibu"),
            Variable(id="var-3", key="tanggal", label="Tanggal", default_value="1 Januari 2024"),
        ),
        signatures=(
            Signature(
                id="sig-1",
                name="Prof. Dr. H. Rosihon Anwar, M.Ag",
                title="Rektor",
                type="wet",
                label="Hormat Kami,",
            ),
        ),
    )


# -----------------------------------------------------------------------------
# Pure updates
# -----------------------------------------------------------------------------

def _split_path(path) -> list[str]:
    parts = path.split(".") if isinstance(path, str) else [str(p) for p in path]
    if not parts or any(p == "" for p in parts):
        raise KeyError(f"Invalid settings path: {path!r}")
    return parts


def _index_of(items: tuple, segment: str) -> int:
    if segment.lstrip("-").isdigit():
        index = int(segment)
        if not -len(items) <= index < len(items):
            raise IndexError(f"Index {index} out of range")
        return index % len(items)
    for i, item in enumerate(items):
        if getattr(item, "id", None) == segment:
            return i
    raise KeyError(f"No item with id {segment!r}")


def _updated(node, parts: list[str], value):
    head, rest = parts[0], parts[1:]
    if isinstance(node, tuple):
        i = _index_of(node, head)
        child = _updated(node[i], rest, value) if rest else value
        return node[:i] + (child,) + node[i + 1:]
    if isinstance(node, BaseModel):
        if head not in type(node).model_fields:
            raise KeyError(f"Unknown field {head!r} on {type(node).__name__}")
        child = _updated(getattr(node, head), rest, value) if rest else value
        data = dict(node)
        data[head] = child
        return type(node).model_validate(data)
    raise KeyError(f"Cannot descend into {type(node).__name__} with {head!r}")


def update_settings(settings: DocumentSettings, path, value) -> DocumentSettings:
    """
    Return a copy of settings with the field at path set to value (validated).
    Raises KeyError/IndexError for a bad path and pydantic.ValidationError for a bad value.
    """
    return _updated(settings, _split_path(path), value)


def update_many(settings: DocumentSettings, changes: dict) -> DocumentSettings:
    for path, value in changes.items():
        settings = update_settings(settings, path, value)
    return settings


# -----------------------------------------------------------------------------
# Collections
# -----------------------------------------------------------------------------

def add_signature(settings: DocumentSettings, **fields) -> DocumentSettings:
    """Append a signature; the first one greets ("Hormat Kami,"), later ones acknowledge ("Mengetahui,")."""
    data = {
        "id": _new_id("sig"),
        "name": "Nama Penanda Tangan",
        "title": "Jabatan",
        "type": "wet",
        "label": "Hormat Kami," if not settings.signatures else "Mengetahui,",
    }
    data.update(fields)
    return update_settings(settings, "signatures", settings.signatures + (Signature(**data),))


def remove_signature(settings: DocumentSettings, signature_id: str) -> DocumentSettings:
    return update_settings(settings, "signatures", tuple(s for s in settings.signatures if s.id != signature_id))


def add_header_line(settings: DocumentSettings, **fields) -> DocumentSettings:
    data = {"id": _new_id("line"), "width": 1, "style": "solid", "color": "#000000", "margin_top": 2, "margin_bottom": 2}
    data.update(fields)
    return update_settings(settings, "header_lines", settings.header_lines + (HeaderLine(**data),))


def remove_header_line(settings: DocumentSettings, line_id: str) -> DocumentSettings:
    return update_settings(settings, "header_lines", tuple(h for h in settings.header_lines if h.id != line_id))


def register_variable(settings: DocumentSettings, key: str, label: str | None = None,
                      default_value: str | None = None) -> DocumentSettings:
    """Register key if absent; an existing entry keeps its metadata."""
    if registry.get_variable(settings.variables, key) is not None:
        return settings
    return update_settings(settings, "variables",
                           registry.register(settings.variables, new_variable(key, label, default_value)))


def rename_variable(settings: DocumentSettings, old_key: str, new_key: str,
                    update_tokens: bool = True) -> DocumentSettings:
    """
    Rename a variable. With update_tokens, every token in the four fragments follows the rename;
    without it the old tokens stay behind unresolved.
    """
    changes = {"variables": registry.rename_key(settings.variables, old_key, new_key)}
    if update_tokens:
        for field in FRAGMENT_FIELDS.values():
            changes[field] = registry.rewrite_tokens(getattr(settings, field), old_key, new_key)
    return update_many(settings, changes)


def referenced_keys(settings: DocumentSettings) -> list[str]:
    keys = []
    for field in FRAGMENT_FIELDS.values():
        for k in registry.find_tokens(getattr(settings, field)):
            if k not in keys:
                keys.append(k)
    return keys


# -----------------------------------------------------------------------------
# Geometry
# -----------------------------------------------------------------------------

def convert_settings_unit(settings: DocumentSettings, unit: Unit | str) -> DocumentSettings:
    """Switch the active unit, converting page size and margins through millimetres."""
    unit = Unit(unit)
    if unit is settings.unit:
        return settings
    changes = {f: convert(getattr(settings, f), settings.unit, unit) for f in GEOMETRY_FIELDS}
    changes["unit"] = unit
    return update_many(settings, changes)


def apply_page_preset(settings: DocumentSettings, page_size: PageSize | str) -> DocumentSettings:
    """Set page width/height from a named preset, expressed in the active unit. Custom keeps the current size."""
    page_size = PageSize(page_size)
    changes = {"page_size": page_size}
    if page_size in PAGE_PRESETS_MM:
        width_mm, height_mm = PAGE_PRESETS_MM[page_size]
        changes["page_width"] = from_mm(width_mm, settings.unit)
        changes["page_height"] = from_mm(height_mm, settings.unit)
    return update_many(settings, changes)


def coerce_aspect_ratio(aspect_ratio: str | None) -> str:
    return aspect_ratio if aspect_ratio in LOGO_ASPECT_RATIOS else DEFAULT_LOGO_ASPECT_RATIO

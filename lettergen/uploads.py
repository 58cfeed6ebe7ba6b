"""
File input boundary: decide what an uploaded file may be used for, before any state changes.
Analysis takes images and PDFs; inline insertion into the attachment takes images only.
"""
import base64
import mimetypes
from dataclasses import dataclass

from lettergen.errors import UnsupportedInputError

WORD_EXTENSIONS = (".docx", ".doc")
WORD_MIME_MARKERS = ("wordprocessingml", "msword")

WORD_MESSAGE = (
    "For Word (.docx) or Google Docs, please 'File > Save as PDF' first. "
    "The analysis needs the PDF layout to accurately detect margins, logos, and headers."
)
UNSUPPORTED_MESSAGE = "Unsupported file type. Please upload a PDF or an Image (JPG/PNG)."
IMAGE_ONLY_MESSAGE = (
    "Only Images (JPG/PNG) are supported for manual inline insertion. "
    "For text content, please copy-paste."
)
EMPTY_MESSAGE = "No file selected"


@dataclass(frozen=True)
class Upload:
    data: bytes
    mime_type: str
    filename: str = ""

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    @property
    def is_pdf(self) -> bool:
        return self.mime_type == "application/pdf"

    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{base64.b64encode(self.data).decode('ascii')}"


def _resolve_mime(filename: str, mime_type: str | None) -> str:
    mime = (mime_type or "").split(";")[0].strip().lower()
    if not mime or mime == "application/octet-stream":
        guessed, _ = mimetypes.guess_type(filename or "")
        mime = (guessed or "application/octet-stream").lower()
    return mime


def _is_word(filename: str, mime: str) -> bool:
    name = (filename or "").lower()
    return name.endswith(WORD_EXTENSIONS) or any(m in mime for m in WORD_MIME_MARKERS)


def accept_for_analysis(data: bytes, filename: str = "", mime_type: str | None = None) -> Upload:
    """Accept an image or PDF for document analysis. Word files get a 'save as PDF' hint."""
    if not data:
        raise UnsupportedInputError(EMPTY_MESSAGE)
    mime = _resolve_mime(filename, mime_type)
    if _is_word(filename, mime):
        raise UnsupportedInputError(WORD_MESSAGE)
    upload = Upload(data=data, mime_type=mime, filename=filename or "")
    if not (upload.is_image or upload.is_pdf):
        raise UnsupportedInputError(UNSUPPORTED_MESSAGE)
    return upload


def accept_attachment_image(data: bytes, filename: str = "", mime_type: str | None = None) -> Upload:
    """Accept an image for inline insertion into the attachment fragment."""
    if not data:
        raise UnsupportedInputError(EMPTY_MESSAGE)
    upload = Upload(data=data, mime_type=_resolve_mime(filename, mime_type), filename=filename or "")
    if not upload.is_image:
        raise UnsupportedInputError(IMAGE_ONLY_MESSAGE)
    return upload


def attachment_image_markup(upload: Upload) -> str:
    return (
        f'<br><img src="{upload.data_url()}" '
        'style="max-width: 100%; height: auto; margin: 10px 0;"><br>'
    )

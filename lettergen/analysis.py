"""
Document analysis: send a scanned letter (image or PDF) to the model and turn its structured
answer into a fresh DocumentSettings. The service is opaque to the editor; its output only
seeds a new session and is checked for presence, nothing more.
"""
import logging

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from lettergen import variables as registry
from lettergen.errors import AnalysisError
from lettergen.llm_client import LLMClient
from lettergen.settings import (
    DocumentSettings,
    Signature,
    build_header_content,
    default_settings,
    update_many,
)
from lettergen.uploads import Upload
from lettergen.utils import JsonParser
from lettergen.variables import Variable

logger = logging.getLogger(__name__)

ANALYSIS_PROMPT = """Analyze this document, which is likely a formal letter.
Extract its content and structure so it can become a reusable Laravel Blade template.

1. Identify the header (kop surat): institution name and institution address.
2. Extract the MAIN BODY content as HTML.
   - CRITICAL: if there are TABLES, strictly use HTML <table>, <tr>, <td> tags with border styles.
   - Detect dynamic parts (names, dates, numbers, recipients) and replace them with {{ $variable }}
     where variable is lowercase letters, digits and underscores only.
3. CHECK FOR ATTACHMENTS (lampiran):
   - If the document has a second page or a section labeled "Lampiran", extract that content
     separately into attachmentContent. Keep any tables as HTML tables.
4. Identify the signature area: signer name and title.

Return ONLY a JSON object with these keys:
{
  "institutionName": string,
  "institutionAddress": string,
  "htmlContent": string,
  "attachmentContent": string (optional),
  "detectedVariables": [{"key": string, "label": string, "defaultValue": string}],
  "signatureName": string (optional),
  "signatureTitle": string (optional)
}"""


class DetectedVariable(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    key: str
    label: str = ""
    default_value: str = ""


class AnalysisResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    institution_name: str = ""
    institution_address: str = ""
    body_markup: str = Field(default="", validation_alias=AliasChoices("htmlContent", "bodyMarkup", "body_markup"))
    attachment_markup: str | None = Field(
        default=None, validation_alias=AliasChoices("attachmentContent", "attachmentMarkup", "attachment_markup")
    )
    detected_variables: tuple[DetectedVariable, ...] = ()
    signature_name: str | None = None
    signature_title: str | None = None


class DocumentAnalyzer:
    """Wraps the vision model call. Any failure comes out as AnalysisError."""

    def __init__(self, llm_client: LLMClient | None = None):
        self._llm_client = llm_client

    @property
    def _llm(self) -> LLMClient:
        if self._llm_client is None:
            self._llm_client = LLMClient()
        return self._llm_client

    def analyze(self, upload: Upload) -> AnalysisResult:
        try:
            response = self._llm.generate_from_document(
                ANALYSIS_PROMPT, upload.data, upload.mime_type, json_mode=True, temperature=0.1
            )
            data = JsonParser.extract_json_from_llm(response)
        except (RuntimeError, ValueError) as e:
            logger.error("Document analysis failed: %s", e)
            raise AnalysisError() from e
        return parse_analysis(data)


def parse_analysis(data) -> AnalysisResult:
    """Validate the service record; the body markup must be present."""
    if not isinstance(data, dict):
        raise AnalysisError("Analysis returned an unexpected response.")
    try:
        result = AnalysisResult.model_validate(data)
    except ValidationError as e:
        logger.error("Analysis record did not validate: %s", e)
        raise AnalysisError("Analysis returned an unexpected response.") from e
    if not result.body_markup.strip():
        raise AnalysisError("Analysis did not find any letter content.")
    return result


def settings_from_analysis(result: AnalysisResult, base: DocumentSettings | None = None) -> DocumentSettings:
    """
    Seed a new DocumentSettings from an analysis result.
    Page setup, typography and header lines come from base (default settings when omitted);
    header, body, attachment, variables and the first signature come from the result.
    """
    base = base or default_settings()
    changes = {"body_content": result.body_markup}

    if result.institution_name.strip() or result.institution_address.strip():
        changes["header_content"] = build_header_content(result.institution_name, result.institution_address)

    if result.attachment_markup and result.attachment_markup.strip():
        changes["attachment_content"] = result.attachment_markup
        changes["has_attachment"] = True
    else:
        changes["attachment_content"] = ""
        changes["has_attachment"] = False

    found: tuple[Variable, ...] = ()
    for i, detected in enumerate(result.detected_variables):
        key = registry.clean_key(detected.key)
        if not key:
            continue
        found = registry.register(found, Variable(
            id=f"var-{i}",
            key=key,
            label=detected.label or key.replace("_", " "),
            default_value=detected.default_value,
        ))
    changes["variables"] = found

    first = base.signatures[0] if base.signatures else Signature(id="sig-1", label="Hormat Kami,")
    first = first.model_copy(update={
        "name": result.signature_name or first.name,
        "title": result.signature_title or first.title,
    })
    changes["signatures"] = (first,) + tuple(base.signatures[1:])

    return update_many(base, changes)

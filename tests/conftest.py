"""
pytest fixtures shared by the editor and compiler tests.

Usage:
    def test_something(make_editor):
        surface, controller, executor, changes = make_editor("<p>Hello</p>")
"""
import json
import threading

import pytest

from editing.commands import CommandExecutor
from editing.controller import SurfaceController
from editing.surface import Surface
from lettergen.analysis import DocumentAnalyzer
from lettergen.logo import LogoGenerator
from lettergen.session import EditorSession
from lettergen.settings import DocumentSettings, HeaderLine, Signature
from lettergen.variables import Variable

ANALYSIS_RECORD = {
    "institutionName": "PT Maju Jaya\nDivisi Umum",
    "institutionAddress": "Jl. Merdeka No. 1, Jakarta",
    "htmlContent": "<p>Kepada {{ $nama_penerima }}</p><p>Nomor: {{ $nomor }}</p>",
    "attachmentContent": "<table><tr><td>1</td></tr></table>",
    "detectedVariables": [
        {"key": "nama_penerima", "label": "Nama Penerima", "defaultValue": "Budi"},
        {"key": "nomor", "label": "Nomor", "defaultValue": "12/2024"},
        {"key": "nomor", "label": "Duplicate", "defaultValue": "ignored"},
        {"key": "!!", "label": "Empty after cleaning", "defaultValue": ""},
    ],
    "signatureName": "Siti Aminah",
    "signatureTitle": "Direktur",
}

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


class StubLLMClient:
    """Stands in for LLMClient: returns canned text / image bytes and records calls."""

    def __init__(self, response: str = "", image: bytes = PNG_BYTES, error: Exception | None = None):
        self.response = response
        self.image = image
        self.error = error
        self.calls = []

    def generate_from_document(self, prompt, data, mime_type, **kwargs):
        self.calls.append(("document", mime_type, kwargs))
        if self.error:
            raise self.error
        return self.response

    def generate_image(self, prompt, size="1024x1024"):
        self.calls.append(("image", size))
        if self.error:
            raise self.error
        return self.image


class BlockingLLMClient(StubLLMClient):
    """Holds the analysis call open until `release` is set."""

    def __init__(self, response: str):
        super().__init__(response=response)
        self.started = threading.Event()
        self.release = threading.Event()

    def generate_from_document(self, prompt, data, mime_type, **kwargs):
        self.started.set()
        self.release.wait(5)
        return super().generate_from_document(prompt, data, mime_type, **kwargs)


@pytest.fixture
def analysis_json() -> str:
    return json.dumps(ANALYSIS_RECORD)


@pytest.fixture
def stub_llm(analysis_json) -> StubLLMClient:
    return StubLLMClient(response=analysis_json)


@pytest.fixture
def session(stub_llm) -> EditorSession:
    return EditorSession(analyzer=DocumentAnalyzer(stub_llm), logo_generator=LogoGenerator(stub_llm))


@pytest.fixture
def make_editor():
    """Factory: (surface, controller, executor, changes) for one mounted fragment."""

    def _make(markup: str = "", fragment_id: str = "body", focus_reporting: bool = True):
        changes = []
        surface = Surface(fragment_id, focus_reporting=focus_reporting)
        controller = SurfaceController(surface, on_change=changes.append)
        controller.mount(markup)
        return surface, controller, CommandExecutor(controller), changes

    return _make


def make_signatures(n: int) -> tuple[Signature, ...]:
    return tuple(
        Signature(id=f"sig-{i + 1}", name=f"Signer {i + 1}", title=f"Title {i + 1}", label="Mengetahui,")
        for i in range(n)
    )


@pytest.fixture
def scenario_settings() -> DocumentSettings:
    """Two header lines, three signatures, one variable and a body referencing it."""
    return DocumentSettings(
        header_content="<div>ACME</div>",
        header_lines=(
            HeaderLine(id="line-1", width=3, style="solid"),
            HeaderLine(id="line-2", width=1, style="solid"),
        ),
        signatures=make_signatures(3),
        variables=(Variable(id="var-1", key="nama", label="Nama", default_value="Jane"),),
        body_content="Dear {{ $nama }}",
        signature_city="Bandung",
    )


@pytest.fixture
def client(stub_llm):
    from app import app

    app.config.update(
        TESTING=True,
        EDITOR_SESSION_FACTORY=lambda: EditorSession(
            analyzer=DocumentAnalyzer(stub_llm), logo_generator=LogoGenerator(stub_llm)
        ),
    )
    with app.test_client() as c:
        yield c
    app.config.pop("EDITOR_SESSION_FACTORY", None)


@pytest.fixture
def signatures():
    return make_signatures


@pytest.fixture
def blocking_llm(analysis_json) -> BlockingLLMClient:
    return BlockingLLMClient(analysis_json)


@pytest.fixture
def failing_llm() -> StubLLMClient:
    return StubLLMClient(error=RuntimeError("Cannot reach OpenAI/Azure: connection refused"))

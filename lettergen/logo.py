"""
Logo generation for the letterhead. Aspect ratios outside the supported set are coerced to 1:1
before the call; the result is a PNG data URL ready for settings.logo_url.
"""
import base64
import logging

from lettergen.errors import LogoGenerationError
from lettergen.llm_client import LLMClient
from lettergen.settings import coerce_aspect_ratio

logger = logging.getLogger(__name__)

# Aspect ratio -> closest image size the images API accepts
ASPECT_RATIO_SIZES = {
    "1:1": "1024x1024",
    "3:4": "1024x1536",
    "9:16": "1024x1536",
    "4:3": "1536x1024",
    "16:9": "1536x1024",
}

LOGO_PROMPT = (
    "Generate a professional, minimalist, vector-style logo for an institution or company. "
    "Plain white background, no text unless asked for. Description: {description}"
)


class LogoGenerator:

    def __init__(self, llm_client: LLMClient | None = None):
        self._llm_client = llm_client

    @property
    def _llm(self) -> LLMClient:
        if self._llm_client is None:
            self._llm_client = LLMClient()
        return self._llm_client

    def generate(self, prompt: str, aspect_ratio: str | None = None) -> str:
        if not (prompt or "").strip():
            raise LogoGenerationError("Describe the logo you want first.")
        ratio = coerce_aspect_ratio(aspect_ratio)
        size = ASPECT_RATIO_SIZES[ratio]
        try:
            png = self._llm.generate_image(LOGO_PROMPT.format(description=prompt.strip()), size=size)
        except (RuntimeError, ValueError) as e:
            logger.error("Logo generation failed: %s", e)
            raise LogoGenerationError() from e
        return "data:image/png;base64," + base64.b64encode(png).decode("ascii")

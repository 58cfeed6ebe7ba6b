"""
LLM client for OpenAI/Azure. Uses Config and encapsulates client/model in the class.
Vision (document + prompt -> JSON) for template analysis, image generation for logos.
"""
import base64
import logging

from lettergen.config import Config

logger = logging.getLogger(__name__)


class LLMClient:
    """
    Encapsulates OpenAI or Azure OpenAI client and models.
    Client and models are set in __init__ from Config (dependency injection / single source of truth).
    """

    def __init__(self, config: Config | None = None):
        cfg = config or Config()
        if cfg.USE_AZURE_OPENAI:
            from openai import AzureOpenAI
            self._client = AzureOpenAI(
                azure_endpoint=cfg.AZURE_OPENAI_ENDPOINT,
                api_key=cfg.AZURE_OPENAI_API_KEY,
                api_version=cfg.AZURE_OPENAI_API_VERSION,
            )
            self._model = cfg.AZURE_OPENAI_DEPLOYMENT
        else:
            from openai import OpenAI
            self._client = OpenAI(api_key=cfg.OPENAI_API_KEY)
            self._model = cfg.VISION_MODEL
        self._image_model = cfg.IMAGE_MODEL

    @staticmethod
    def _document_part(data: bytes, mime_type: str) -> dict:
        b64 = base64.b64encode(data).decode("ascii")
        data_url = f"data:{mime_type};base64,{b64}"
        if mime_type == "application/pdf":
            return {"type": "file", "file": {"filename": "document.pdf", "file_data": data_url}}
        return {"type": "image_url", "image_url": {"url": data_url}}

    def generate_from_document(
        self,
        prompt: str,
        data: bytes,
        mime_type: str,
        max_tokens: int = 8192,
        json_mode: bool = True,
        temperature: float | None = None,
    ) -> str:
        """Send the document (image or PDF) together with prompt; return the model's text."""
        kwargs = {
            "model": self._model,
            "messages": [{
                "role": "user",
                "content": [self._document_part(data, mime_type), {"type": "text", "text": prompt}],
            }],
            "max_tokens": max_tokens,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        if temperature is not None:
            kwargs["temperature"] = temperature
        try:
            response = self._client.chat.completions.create(**kwargs)
            return response.choices[0].message.content or ""
        except Exception as e:
            self._raise_connection_error(e)
            raise

    def generate_image(self, prompt: str, size: str = "1024x1024") -> bytes:
        """Generate one image and return its PNG bytes."""
        kwargs = {"model": self._image_model, "prompt": prompt, "size": size, "n": 1}
        if self._image_model.startswith("dall-e"):
            kwargs["response_format"] = "b64_json"
        try:
            response = self._client.images.generate(**kwargs)
        except Exception as e:
            self._raise_connection_error(e)
            raise
        b64 = response.data[0].b64_json if response.data else None
        if not b64:
            raise RuntimeError("Image generation returned no image data.")
        return base64.b64decode(b64)

    @staticmethod
    def _raise_connection_error(e: Exception) -> None:
        from openai import APIConnectionError, APIError, APIStatusError
        if isinstance(e, (APIConnectionError, APIError, APIStatusError)):
            msg = str(e).strip() or type(e).__name__
            if "connection" in msg.lower() or "getaddrinfo" in msg.lower():
                msg += " Check AZURE_OPENAI_ENDPOINT (or OPENAI_API_KEY) and network/VPN/DNS."
            logger.warning("OpenAI request failed: %s", msg)
            raise RuntimeError(f"Cannot reach OpenAI/Azure: {msg}") from e

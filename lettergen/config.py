"""
Load env from the project root .env. Used by lettergen and the Flask app.
Encapsulates configuration in a Config class.
"""
import os
from pathlib import Path


class Config:
    """
    Holds OpenAI/Azure and editor configuration loaded from .env.
    Single responsibility: load and expose environment-based settings.
    """

    _project_env = Path(__file__).resolve().parent.parent / ".env"

    def __init__(self):
        self._load_env()
        self._openai_api_key = os.getenv("OPENAI_API_KEY", "").strip()
        self._azure_endpoint = os.getenv("AZURE_OPENAI_ENDPOINT", "").strip()
        self._azure_api_key = os.getenv("AZURE_OPENAI_API_KEY", "").strip()
        self._azure_api_version = os.getenv("AZURE_OPENAI_API_VERSION", "2024-12-01-preview").strip()
        self._azure_deployment = os.getenv("AZURE_OPENAI_DEPLOYMENT", "gpt-4o-mini").strip()
        self._use_azure_openai = bool(self._azure_endpoint and self._azure_api_key)
        self._vision_model = os.getenv("LETTERGEN_VISION_MODEL", "gpt-4o-mini").strip()
        self._image_model = os.getenv("LETTERGEN_IMAGE_MODEL", "gpt-image-1").strip()
        self._signature_city = os.getenv("LETTERGEN_SIGNATURE_CITY", "Bandung").strip()
        self._session_ttl_sec = int(os.getenv("LETTERGEN_SESSION_TTL_SEC", "3600"))
        self._max_upload_mb = int(os.getenv("LETTERGEN_MAX_UPLOAD_MB", "16"))
        self._log_level = os.getenv("LETTERGEN_LOG_LEVEL", "INFO").strip().upper()

    def _load_env(self) -> None:
        if self._project_env.exists():
            from dotenv import load_dotenv
            load_dotenv(self._project_env)

    @property
    def OPENAI_API_KEY(self) -> str:
        return self._openai_api_key

    @property
    def AZURE_OPENAI_ENDPOINT(self) -> str:
        return self._azure_endpoint

    @property
    def AZURE_OPENAI_API_KEY(self) -> str:
        return self._azure_api_key

    @property
    def AZURE_OPENAI_API_VERSION(self) -> str:
        return self._azure_api_version

    @property
    def AZURE_OPENAI_DEPLOYMENT(self) -> str:
        return self._azure_deployment

    @property
    def USE_AZURE_OPENAI(self) -> bool:
        return self._use_azure_openai

    @property
    def VISION_MODEL(self) -> str:
        return self._vision_model

    @property
    def IMAGE_MODEL(self) -> str:
        return self._image_model

    @property
    def SIGNATURE_CITY(self) -> str:
        return self._signature_city

    @property
    def SESSION_TTL_SEC(self) -> int:
        return self._session_ttl_sec

    @property
    def MAX_UPLOAD_MB(self) -> int:
        return self._max_upload_mb

    @property
    def LOG_LEVEL(self) -> str:
        return self._log_level


# Singleton-like default instance for module-level access
_default_config = Config()

USE_AZURE_OPENAI = _default_config.USE_AZURE_OPENAI
SIGNATURE_CITY = _default_config.SIGNATURE_CITY
SESSION_TTL_SEC = _default_config.SESSION_TTL_SEC
MAX_UPLOAD_MB = _default_config.MAX_UPLOAD_MB
LOG_LEVEL = _default_config.LOG_LEVEL

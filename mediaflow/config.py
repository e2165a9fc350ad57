"""
Runtime configuration for mediaflow.

Values come from the environment (optionally a local .env file) and are
read once at import time.
"""

import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class MediaflowConfig:
    """Service endpoints, execution tuning and health thresholds."""

    # External AI services
    ASR_API_URL: str = os.getenv("MEDIAFLOW_ASR_API_URL", "http://localhost:8002")
    TTS_API_URL: str = os.getenv("MEDIAFLOW_TTS_API_URL", "http://localhost:8000")
    HTTP_TIMEOUT: float = _float_env("MEDIAFLOW_HTTP_TIMEOUT", 120.0)

    # Handler execution
    DEFAULT_HANDLER: str = "executeGenericProcessor"
    DEFAULT_TIMEOUT: float = 30.0
    RETRY_BACKOFF_SECONDS: float = _float_env("MEDIAFLOW_RETRY_BACKOFF_SECONDS", 0.5)

    # Batch execution
    BATCH_STAGGER_SECONDS: float = _float_env("MEDIAFLOW_BATCH_STAGGER_SECONDS", 0.0)

    # Health thresholds (error rate, percent)
    HEALTH_WARNING_ERROR_RATE: float = _float_env("MEDIAFLOW_HEALTH_WARNING_ERROR_RATE", 10.0)
    HEALTH_CRITICAL_ERROR_RATE: float = _float_env("MEDIAFLOW_HEALTH_CRITICAL_ERROR_RATE", 20.0)

    LOG_LEVEL: str = os.getenv("MEDIAFLOW_LOG_LEVEL", "INFO")

    @classmethod
    def get_asr_url(cls, override: Optional[str] = None) -> str:
        """Base URL of the transcription service, without trailing slash."""
        return (override or cls.ASR_API_URL).rstrip("/")

    @classmethod
    def get_tts_url(cls, override: Optional[str] = None) -> str:
        """Base URL of the speech synthesis service, without trailing slash."""
        return (override or cls.TTS_API_URL).rstrip("/")

    @classmethod
    def retry_delay(cls, attempt: int) -> float:
        """Exponential backoff delay before retry number ``attempt`` (0-based)."""
        return cls.RETRY_BACKOFF_SECONDS * (2 ** attempt)

"""
Application configuration
Environment variables (optionally from .env) validated into one Settings model
"""
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    """Every tunable of the summarization service"""

    # Worker pool
    concurrency: int = Field(default=3, ge=1, le=32, description="Simultaneous chunk calls")
    max_retries: int = Field(default=3, ge=1, le=10, description="Attempts per chunk")
    base_delay: float = Field(default=1.0, ge=0.0, le=60.0, description="Backoff base in seconds")
    attempt_timeout: float = Field(default=55.0, gt=0.0, le=600.0, description="Per-attempt timeout in seconds")
    pipeline_timeout: float = Field(default=110.0, gt=0.0, le=3600.0, description="Overall budget in seconds")
    fallback_sentences: int = Field(default=3, ge=1, le=20)

    # Segmentation
    target_chunk_ms: int = Field(default=300_000, ge=1000, description="Target duration per chunk")
    min_chunks: int = Field(default=3, ge=1, le=50)
    max_chunks: int = Field(default=10, ge=1, le=50)

    # Normalizer
    max_transcript_length: int = Field(default=100_000, ge=1, description="Character budget")

    # Assembler
    key_point_count: int = Field(default=5, ge=0, le=50)
    key_point_scorer: str = Field(default="tf", description="tf or tfidf")

    # Cache
    result_ttl: int = Field(default=3600, ge=1)
    usage_ttl: int = Field(default=86400, ge=1)
    redis_url: Optional[str] = None

    # Providers
    provider: str = Field(default="openai", description="openai or huggingface")
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    huggingface_api_key: Optional[str] = None
    hf_model: str = "facebook/bart-large-cnn"
    summary_min_length: int = Field(default=30, ge=1)
    summary_max_length: int = Field(default=150, ge=1)
    languages: List[str] = Field(default_factory=lambda: ["en"])
    include_metadata: bool = True
    metadata_timeout: float = Field(default=15.0, gt=0.0)

    # Process
    debug: bool = False
    log_level: str = "INFO"
    port: int = 5000

    @classmethod
    def from_env(cls, **overrides) -> "Settings":
        """Read settings from the environment; explicit overrides win"""
        env = {
            "concurrency": os.getenv("CONCURRENCY"),
            "max_retries": os.getenv("MAX_RETRIES"),
            "base_delay": os.getenv("RETRY_BASE_DELAY"),
            "attempt_timeout": os.getenv("ATTEMPT_TIMEOUT"),
            "pipeline_timeout": os.getenv("PIPELINE_TIMEOUT"),
            "fallback_sentences": os.getenv("FALLBACK_SENTENCES"),
            "target_chunk_ms": os.getenv("TARGET_CHUNK_MS"),
            "min_chunks": os.getenv("MIN_CHUNKS"),
            "max_chunks": os.getenv("MAX_CHUNKS"),
            "max_transcript_length": os.getenv("MAX_TRANSCRIPT_LENGTH"),
            "key_point_count": os.getenv("KEY_POINT_COUNT"),
            "key_point_scorer": os.getenv("KEY_POINT_SCORER"),
            "result_ttl": os.getenv("RESULT_CACHE_TTL"),
            "usage_ttl": os.getenv("USAGE_CACHE_TTL"),
            "redis_url": os.getenv("REDIS_URL"),
            "provider": os.getenv("SUMMARIZER_PROVIDER"),
            "openai_api_key": os.getenv("OPENAI_API_KEY"),
            "openai_model": os.getenv("OPENAI_MODEL"),
            "huggingface_api_key": os.getenv("HUGGINGFACE_API_KEY"),
            "hf_model": os.getenv("HF_MODEL"),
            "summary_min_length": os.getenv("SUMMARY_MIN_LENGTH"),
            "summary_max_length": os.getenv("SUMMARY_MAX_LENGTH"),
            "include_metadata": _flag(os.getenv("INCLUDE_METADATA")),
            "metadata_timeout": os.getenv("METADATA_TIMEOUT"),
            "debug": _flag(os.getenv("DEBUG")),
            "log_level": os.getenv("LOG_LEVEL"),
            "port": os.getenv("PORT"),
        }
        languages = os.getenv("CAPTION_LANGUAGES")
        if languages:
            env["languages"] = [lang.strip() for lang in languages.split(",") if lang.strip()]

        values = {k: v for k, v in env.items() if v not in (None, "")}
        values.update(overrides)
        settings = cls(**values)

        if settings.max_chunks < settings.min_chunks:
            raise ValueError("MAX_CHUNKS must be >= MIN_CHUNKS")
        return settings


def _flag(value: Optional[str]) -> Optional[bool]:
    if value is None or value == "":
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")

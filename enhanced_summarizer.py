"""
Text generation providers
Async chunk summarizers for OpenAI and the Hugging Face Inference API
"""
import asyncio
import logging
import os
from typing import Optional

import openai
import requests
from openai import AsyncOpenAI

from services.captions_format import format_timestamp
from services.captions_types import SummaryRequest
from services.errors import (
    UpstreamRateLimitError,
    UpstreamRejectedError,
    UpstreamServiceError,
    UpstreamTimeoutError,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You summarize sections of video transcripts. Write plain prose without headings "
    "or bullet points. Only use information present in the transcript section."
)

HF_BASE_URL = "https://router.huggingface.co/hf-inference/models"


def build_user_prompt(request: SummaryRequest, min_length: int, max_length: int) -> str:
    """Chunk-scoped prompt: the section text plus where it sits in the video"""
    with_hours = request.end_ms >= 3_600_000
    start = format_timestamp(request.start_ms, with_hours)
    end = format_timestamp(request.end_ms, with_hours)
    return (
        f"This is section {request.index + 1} of {request.total_chunks} of a video transcript, "
        f"covering {start} to {end}.\n"
        f"Summarize it in {min_length} to {max_length} words.\n\n"
        f"Transcript:\n{request.text}"
    )


class OpenAISummarizer:
    """Chat-completions summarizer; the SDK's own retries are disabled, ResilientCall retries"""

    name = "openai"

    def __init__(self,
                 api_key: Optional[str] = None,
                 model: str = "gpt-4o-mini",
                 min_length: int = 30,
                 max_length: int = 150,
                 client: Optional[AsyncOpenAI] = None):
        if client is None:
            api_key = api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ValueError(
                    "OpenAI API key required. Set OPENAI_API_KEY environment variable "
                    "or pass api_key parameter."
                )
            client = AsyncOpenAI(api_key=api_key, max_retries=0)
        self.client = client
        self.model = model
        self.min_length = min_length
        self.max_length = max_length

    async def summarize(self, request: SummaryRequest) -> str:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_user_prompt(request, self.min_length, self.max_length)},
        ]
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=0.3,
                max_tokens=self.max_length * 2,
            )
        except openai.RateLimitError as e:
            raise UpstreamRateLimitError(f"OpenAI rate limit: {e}", retry_after=_retry_after(e.response))
        except openai.APITimeoutError as e:
            raise UpstreamTimeoutError(f"OpenAI timeout: {e}")
        except (openai.BadRequestError, openai.AuthenticationError,
                openai.PermissionDeniedError, openai.NotFoundError) as e:
            raise UpstreamRejectedError(f"OpenAI rejected request: {e}")
        except openai.APIError as e:
            raise UpstreamServiceError(f"OpenAI error: {e}")

        return (response.choices[0].message.content or "").strip()


class HuggingFaceSummarizer:
    """Abstractive summarization models (bart-large-cnn, pegasus, t5) over HTTP"""

    name = "huggingface"

    def __init__(self,
                 api_key: Optional[str] = None,
                 model: str = "facebook/bart-large-cnn",
                 min_length: int = 30,
                 max_length: int = 150,
                 request_timeout: float = 55.0,
                 max_input_chars: int = 3500,
                 base_url: str = HF_BASE_URL,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key or os.getenv("HUGGINGFACE_API_KEY")
        if not self.api_key:
            raise ValueError("Hugging Face API key required. Set HUGGINGFACE_API_KEY environment variable.")
        self.model = model
        self.min_length = min_length
        self.max_length = max_length
        self.request_timeout = request_timeout
        self.max_input_chars = max_input_chars
        self.url = f"{base_url.rstrip('/')}/{model}"
        self.session = session or requests.Session()

    async def summarize(self, request: SummaryRequest) -> str:
        return await asyncio.to_thread(self._post, request.text[:self.max_input_chars])

    def _post(self, text: str) -> str:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        data = {
            "inputs": text,
            "parameters": {
                "min_length": self.min_length,
                "max_length": self.max_length,
                "do_sample": False,
            },
        }
        try:
            response = self.session.post(self.url, headers=headers, json=data, timeout=self.request_timeout)
        except requests.exceptions.Timeout as e:
            raise UpstreamTimeoutError(f"Hugging Face timeout: {e}")
        except requests.exceptions.RequestException as e:
            raise UpstreamServiceError(f"Hugging Face API error: {e}")

        if response.status_code == 429:
            raise UpstreamRateLimitError("Hugging Face rate limit", retry_after=_retry_after(response))
        if response.status_code == 503:
            # model still loading
            raise UpstreamServiceError(f"Hugging Face model unavailable: {response.text[:200]}")
        if response.status_code >= 500:
            raise UpstreamServiceError(f"Hugging Face error {response.status_code}")
        if response.status_code >= 400:
            raise UpstreamRejectedError(f"Hugging Face rejected request ({response.status_code}): {response.text[:200]}")

        try:
            result = response.json()
            return result[0]["summary_text"].strip()
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise UpstreamServiceError(f"Hugging Face response format error: {e}")


def create_text_generator(settings):
    """Provider selected by SUMMARIZER_PROVIDER"""
    if settings.provider == "openai":
        return OpenAISummarizer(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            min_length=settings.summary_min_length,
            max_length=settings.summary_max_length,
        )
    if settings.provider == "huggingface":
        return HuggingFaceSummarizer(
            api_key=settings.huggingface_api_key,
            model=settings.hf_model,
            min_length=settings.summary_min_length,
            max_length=settings.summary_max_length,
            request_timeout=settings.attempt_timeout,
        )
    raise ValueError(f"Unknown summarizer provider '{settings.provider}'")


def _retry_after(response) -> Optional[float]:
    if response is None:
        return None
    try:
        value = response.headers.get("retry-after")
        return float(value) if value else None
    except (TypeError, ValueError):
        return None

import asyncio
from types import SimpleNamespace

import openai
import pytest
import requests
import yt_dlp
from youtube_transcript_api._errors import CouldNotRetrieveTranscript, TranscriptsDisabled

import youtube_metadata
from config import Settings
from enhanced_summarizer import (HuggingFaceSummarizer, OpenAISummarizer, build_user_prompt,
                                 create_text_generator)
from services.captions_fetcher import CaptionFetcher, TimeoutSession
from services.captions_types import SummaryRequest
from services.errors import (EmptyTranscriptError, TranscriptFetchError, UpstreamRateLimitError,
                             UpstreamRejectedError, UpstreamServiceError, UpstreamTimeoutError)
from youtube_metadata import YouTubeMetadata

REQUEST = SummaryRequest(index=1, text="Some words about testing.", start_ms=300_000, end_ms=600_000, total_chunks=3)


class FakeResponse:
    """Just enough of an HTTP response for the SDK error types and requests callers"""

    def __init__(self, status_code=200, payload=None, headers=None, text=""):
        self.status_code = status_code
        self.payload = payload
        self.headers = headers or {}
        self.text = text
        self.request = None

    def json(self):
        if self.payload is None:
            raise ValueError("no json")
        return self.payload


def openai_client(result=None, error=None):
    calls = []

    async def create(**kwargs):
        calls.append(kwargs)
        if error:
            raise error
        message = SimpleNamespace(content=result)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return client, calls


# ---------- prompts ----------

def test_prompt_is_chunk_scoped():
    prompt = build_user_prompt(REQUEST, 30, 150)
    assert "section 2 of 3" in prompt
    assert "05:00 to 10:00" in prompt
    assert prompt.endswith("Some words about testing.")


# ---------- OpenAI ----------

def test_openai_returns_stripped_text():
    client, calls = openai_client("  A short summary.  ")
    summarizer = OpenAISummarizer(model="gpt-4o-mini", max_length=100, client=client)

    assert asyncio.run(summarizer.summarize(REQUEST)) == "A short summary."
    assert calls[0]["model"] == "gpt-4o-mini"
    assert calls[0]["max_tokens"] == 200
    assert calls[0]["messages"][0]["role"] == "system"


@pytest.mark.parametrize("error,expected", [
    (openai.RateLimitError("slow down", response=FakeResponse(429, headers={"retry-after": "3"}), body=None),
     UpstreamRateLimitError),
    (openai.BadRequestError("bad", response=FakeResponse(400), body=None), UpstreamRejectedError),
    (openai.AuthenticationError("no key", response=FakeResponse(401), body=None), UpstreamRejectedError),
    (openai.InternalServerError("oops", response=FakeResponse(500), body=None), UpstreamServiceError),
    (openai.APITimeoutError(request=None), UpstreamTimeoutError),
])
def test_openai_error_mapping(error, expected):
    client, _ = openai_client(error=error)
    summarizer = OpenAISummarizer(client=client)

    with pytest.raises(expected) as exc:
        asyncio.run(summarizer.summarize(REQUEST))
    assert type(exc.value) is expected


def test_openai_rate_limit_carries_retry_after():
    error = openai.RateLimitError("slow down", response=FakeResponse(429, headers={"retry-after": "3"}), body=None)
    client, _ = openai_client(error=error)

    with pytest.raises(UpstreamRateLimitError) as exc:
        asyncio.run(OpenAISummarizer(client=client).summarize(REQUEST))
    assert exc.value.retry_after == 3.0


def test_openai_requires_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ValueError):
        OpenAISummarizer()


# ---------- Hugging Face ----------

class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response


def hf(session, **kwargs):
    return HuggingFaceSummarizer(api_key="hf_test", session=session, **kwargs)


def test_huggingface_parses_summary_text():
    session = FakeSession(FakeResponse(200, [{"summary_text": " Testing matters. "}]))
    summarizer = hf(session, max_input_chars=10)

    assert asyncio.run(summarizer.summarize(REQUEST)) == "Testing matters."
    call = session.calls[0]
    assert call["url"].endswith("/facebook/bart-large-cnn")
    assert call["headers"]["Authorization"] == "Bearer hf_test"
    assert call["json"]["inputs"] == "Some words"
    assert call["json"]["parameters"]["min_length"] == 30


@pytest.mark.parametrize("response,expected", [
    (FakeResponse(429, headers={"retry-after": "10"}), UpstreamRateLimitError),
    (FakeResponse(503, text="loading"), UpstreamServiceError),
    (FakeResponse(500), UpstreamServiceError),
    (FakeResponse(400, text="bad input"), UpstreamRejectedError),
    (FakeResponse(200, {"unexpected": True}), UpstreamServiceError),
    (FakeResponse(200, None), UpstreamServiceError),
])
def test_huggingface_status_mapping(response, expected):
    with pytest.raises(expected) as exc:
        asyncio.run(hf(FakeSession(response)).summarize(REQUEST))
    assert type(exc.value) is expected


@pytest.mark.parametrize("error,expected", [
    (requests.exceptions.Timeout("read timed out"), UpstreamTimeoutError),
    (requests.exceptions.ConnectionError("refused"), UpstreamServiceError),
])
def test_huggingface_transport_errors(error, expected):
    with pytest.raises(expected):
        asyncio.run(hf(FakeSession(error=error)).summarize(REQUEST))


def test_create_text_generator_selects_provider():
    generator = create_text_generator(Settings(provider="huggingface", huggingface_api_key="hf_test"))
    assert generator.name == "huggingface"

    generator = create_text_generator(Settings(provider="openai", openai_api_key="sk-test"))
    assert generator.name == "openai"

    with pytest.raises(ValueError):
        create_text_generator(Settings(provider="ollama"))


# ---------- captions ----------

class FakeTranscriptApi:
    def __init__(self, snippets=None, error=None):
        self.snippets = snippets or []
        self.error = error
        self.calls = []

    def fetch(self, video_id, languages=None):
        self.calls.append((video_id, languages))
        if self.error:
            raise self.error
        return self.snippets


def test_fetcher_converts_seconds_to_milliseconds():
    api = FakeTranscriptApi([SimpleNamespace(text="hi", start=1.5, duration=2.25)])
    fragments = CaptionFetcher(["de", "en"], api=api).fetch("dQw4w9WgXcQ")

    assert fragments == [{"text": "hi", "offset": 1500, "duration": 2250}]
    assert api.calls == [("dQw4w9WgXcQ", ["de", "en"])]


def test_fetcher_maps_missing_captions_to_empty():
    api = FakeTranscriptApi(error=TranscriptsDisabled("dQw4w9WgXcQ"))
    with pytest.raises(EmptyTranscriptError):
        CaptionFetcher(api=api).fetch("dQw4w9WgXcQ")


def test_fetcher_maps_provider_failures():
    with pytest.raises(TranscriptFetchError):
        CaptionFetcher(api=FakeTranscriptApi(error=CouldNotRetrieveTranscript("dQw4w9WgXcQ"))).fetch("dQw4w9WgXcQ")
    with pytest.raises(TranscriptFetchError):
        CaptionFetcher(api=FakeTranscriptApi(error=ConnectionError("offline"))).fetch("dQw4w9WgXcQ")


# ---------- metadata ----------

class FakeYoutubeDL:
    info = {}
    error = None

    def __init__(self, opts):
        self.opts = opts

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False

    def extract_info(self, url, download=False):
        if self.error:
            raise self.error
        return self.info


def test_metadata_formats_fields(monkeypatch):
    FakeYoutubeDL.info = {"title": "A talk", "upload_date": "20240102", "duration": 3725, "channel": "Chan"}
    monkeypatch.setattr(youtube_metadata.yt_dlp, "YoutubeDL", FakeYoutubeDL)

    info = YouTubeMetadata().get_video_info("dQw4w9WgXcQ")

    assert info["title"] == "A talk"
    assert info["publishDate"] == "2024-01-02"
    assert info["uploader"] == "Chan"
    assert info["durationFormatted"] == "01:02:05"


def test_metadata_failure_gives_placeholder(monkeypatch):
    class Broken(FakeYoutubeDL):
        error = yt_dlp.utils.DownloadError("private video")

    monkeypatch.setattr(youtube_metadata.yt_dlp, "YoutubeDL", Broken)

    info = YouTubeMetadata().get_video_info("dQw4w9WgXcQ")
    assert info["videoId"] == "dQw4w9WgXcQ"
    assert "private video" in info["error"]


def test_metadata_unexpected_error_gives_placeholder(monkeypatch):
    class Broken(FakeYoutubeDL):
        error = KeyError("formats")

    monkeypatch.setattr(youtube_metadata.yt_dlp, "YoutubeDL", Broken)

    info = YouTubeMetadata().get_video_info("dQw4w9WgXcQ")
    assert info["videoId"] == "dQw4w9WgXcQ"
    assert "formats" in info["error"]


def test_metadata_bad_duration_gives_placeholder(monkeypatch):
    FakeYoutubeDL.info = {"title": "A talk", "duration": "live"}
    monkeypatch.setattr(youtube_metadata.yt_dlp, "YoutubeDL", FakeYoutubeDL)

    info = YouTubeMetadata().get_video_info("dQw4w9WgXcQ")
    assert set(info) == {"videoId", "error"}


def test_metadata_socket_timeout_is_passed_to_yt_dlp(monkeypatch):
    seen = []

    class Recording(FakeYoutubeDL):
        def __init__(self, opts):
            super().__init__(opts)
            seen.append(opts)

    FakeYoutubeDL.info = {"title": "A talk"}
    monkeypatch.setattr(youtube_metadata.yt_dlp, "YoutubeDL", Recording)

    YouTubeMetadata(socket_timeout=7.0).get_video_info("dQw4w9WgXcQ")
    assert seen[0]["socket_timeout"] == 7.0


def test_caption_session_applies_default_timeout(monkeypatch):
    seen = []

    def request(self, method, url, **kwargs):
        seen.append(kwargs.get("timeout"))
        return FakeResponse(200)

    monkeypatch.setattr(requests.Session, "request", request)
    session = TimeoutSession(4.0)

    session.get("https://www.youtube.com/watch?v=dQw4w9WgXcQ")
    session.get("https://www.youtube.com/watch?v=dQw4w9WgXcQ", timeout=1.0)

    assert seen == [4.0, 1.0]

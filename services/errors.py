"""
Summarizer error taxonomy
Every error that can reach a caller carries a stable kind and an HTTP status
"""
from typing import Any, Dict, Optional


class SummarizerError(Exception):
    """Base class for all errors surfaced by the summarization service"""

    kind = "InternalError"
    status_code = 500
    retryable = True

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail or self.kind

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": self.detail}


class InvalidIdentifierError(SummarizerError):
    kind = "InvalidIdentifierError"
    status_code = 400


class EmptyTranscriptError(SummarizerError):
    kind = "EmptyTranscriptError"
    status_code = 404


class TranscriptFetchError(SummarizerError):
    kind = "TranscriptFetchError"
    status_code = 404


class TranscriptTooLongError(SummarizerError):
    kind = "TranscriptTooLongError"
    status_code = 413

    def __init__(self, length: int, limit: int):
        super().__init__(f"Transcript has {length} characters, limit is {limit}")
        self.length = length
        self.limit = limit

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"length": self.length, "limit": self.limit})
        return data


class UpstreamRateLimitError(SummarizerError):
    kind = "UpstreamRateLimitError"
    status_code = 429

    def __init__(self, detail: str = "", retry_after: Optional[float] = None):
        super().__init__(detail)
        self.retry_after = retry_after


class UpstreamTimeoutError(SummarizerError):
    kind = "UpstreamTimeoutError"
    status_code = 504


class UpstreamServiceError(SummarizerError):
    """Transport failure or 5xx from the text-generation provider"""

    kind = "UpstreamServiceError"
    status_code = 502


class UpstreamRejectedError(UpstreamServiceError):
    """The provider refused the request itself; retrying will not help"""

    kind = "UpstreamRejectedError"
    retryable = False


class InternalError(SummarizerError):
    kind = "InternalError"
    status_code = 500

"""
Caption fetcher
Pulls timed caption fragments for a video from YouTube
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

import requests
from youtube_transcript_api import YouTubeTranscriptApi
from youtube_transcript_api._errors import (
    CouldNotRetrieveTranscript,
    NoTranscriptFound,
    TranscriptsDisabled,
    VideoUnavailable,
)

from .errors import EmptyTranscriptError, TranscriptFetchError

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 30.0


class TimeoutSession(requests.Session):
    """requests.Session with a default timeout on every request"""

    def __init__(self, timeout: float = DEFAULT_REQUEST_TIMEOUT):
        super().__init__()
        self.timeout = timeout

    def request(self, method, url, **kwargs):
        kwargs.setdefault("timeout", self.timeout)
        return super().request(method, url, **kwargs)


class CaptionFetcher:
    """
    Caption provider adapter
    Returns raw fragments as {"text", "offset", "duration"} with times in milliseconds
    """

    def __init__(self,
                 languages: Sequence[str] = ("en",),
                 api: Optional[YouTubeTranscriptApi] = None,
                 request_timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self.languages = list(languages)
        self.api = api or YouTubeTranscriptApi(http_client=TimeoutSession(request_timeout))

    def fetch(self, video_id: str) -> List[Dict[str, Any]]:
        logger.info(f"[FETCH] Fetching captions for {video_id} (lang: {','.join(self.languages)})")

        try:
            transcript = self.api.fetch(video_id, languages=self.languages)
        except (TranscriptsDisabled, NoTranscriptFound, VideoUnavailable) as e:
            raise EmptyTranscriptError(f"No captions available for {video_id}: {type(e).__name__}")
        except CouldNotRetrieveTranscript as e:
            raise TranscriptFetchError(f"Caption provider failed for {video_id}: {type(e).__name__}")
        except Exception as e:
            raise TranscriptFetchError(f"Caption provider unreachable: {e}")

        fragments = [
            {
                "text": snippet.text,
                "offset": int(round(snippet.start * 1000)),
                "duration": int(round(snippet.duration * 1000)),
            }
            for snippet in transcript
        ]
        logger.info(f"[FETCH] {len(fragments)} caption fragments for {video_id}")
        return fragments

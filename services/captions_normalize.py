"""
Caption normalizer
Validates raw caption provider output and flattens it to CaptionFragment format
"""
import logging
import re
from typing import Any, Iterable, List, Optional

from .captions_types import CaptionFragment
from .errors import EmptyTranscriptError, TranscriptTooLongError

logger = logging.getLogger(__name__)

# Escape sequences seen in caption tracks
ESCAPES = {
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#34;": '"',
    "&#39;": "'",
    "&#x27;": "'",
    "&apos;": "'",
    "&nbsp;": " ",
}

ESCAPE_PATTERN = re.compile("|".join(re.escape(k) for k in ESCAPES))
WHITESPACE = re.compile(r"\s+")


def decode_escapes(text: str) -> str:
    """Decode the known escape table in one pass; unknown sequences stay as-is"""
    return ESCAPE_PATTERN.sub(lambda m: ESCAPES[m.group(0)], text)


def normalize_fragments(raw: Optional[Iterable[Any]], max_length: int) -> List[CaptionFragment]:
    """
    Turn provider output into fragments
    Raises EmptyTranscriptError for a missing/empty list and
    TranscriptTooLongError when the character budget is exceeded
    """
    if not raw:
        raise EmptyTranscriptError("No captions available for this video")

    fragments: List[CaptionFragment] = []
    total_chars = 0

    for item in raw:
        text = _field(item, "text")
        if not isinstance(text, str):
            continue

        text = WHITESPACE.sub(" ", decode_escapes(text)).strip()
        if not text:
            continue

        start_ms = _as_ms(_field(item, "offset", "start_ms"))
        duration_ms = _as_ms(_field(item, "duration", "duration_ms"))

        fragments.append(CaptionFragment(text, start_ms, duration_ms))
        total_chars += len(text)

    if not fragments:
        raise EmptyTranscriptError("Caption track contains no text")

    if total_chars > max_length:
        logger.warning(f"[NORMALIZE] Rejecting transcript: {total_chars} > {max_length} chars")
        raise TranscriptTooLongError(total_chars, max_length)

    logger.debug(f"[NORMALIZE] {len(fragments)} fragments, {total_chars} chars")
    return fragments


def _field(item: Any, *names: str) -> Any:
    for name in names:
        if isinstance(item, dict):
            if name in item:
                return item[name]
        elif hasattr(item, name):
            return getattr(item, name)
    return None


def _as_ms(value: Any) -> int:
    try:
        return max(0, int(round(float(value))))
    except (TypeError, ValueError, OverflowError):
        return 0

"""
Text formatting helpers
Timestamps, sentence splitting and the extractive fallback summary
"""
import re
from typing import List

FALLBACK_MAX_SENTENCES = 3
FALLBACK_MAX_CHARS     = 600
EMPTY_SECTION_TEXT     = "[No speech in this section]"

SENTENCE_SPLIT = re.compile(r"(?<=[.!?])[\"')\]”’]*\s+")


def format_timestamp(ms: int, with_hours: bool = False) -> str:
    """Zero padded MM:SS, or HH:MM:SS when asked or at one hour and beyond"""
    total_seconds = max(0, int(ms)) // 1000
    h, rem = divmod(total_seconds, 3600)
    m, s = divmod(rem, 60)
    if with_hours or h:
        return f"{h:02d}:{m:02d}:{s:02d}"
    return f"{m:02d}:{s:02d}"


def split_sentences(text: str) -> List[str]:
    """Split text after sentence marks; a trailing piece without one counts too"""
    text = " ".join(text.split())
    if not text:
        return []
    return [p.strip() for p in SENTENCE_SPLIT.split(text) if p.strip()]


def extractive_summary(text: str,
                       max_sentences: int = FALLBACK_MAX_SENTENCES,
                       max_chars: int = FALLBACK_MAX_CHARS) -> str:
    """
    Deterministic non-AI summary: the first sentences of the text
    Always returns non-empty text
    """
    sentences = split_sentences(text)[:max(1, max_sentences)]
    summary = " ".join(sentences)

    if len(summary) > max_chars:
        cut = summary[:max_chars].rsplit(" ", 1)[0] or summary[:max_chars]
        summary = cut.rstrip(" ,;:") + "..."

    return summary or EMPTY_SECTION_TEXT

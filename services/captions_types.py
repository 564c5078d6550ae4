"""
Caption data types and models
Shared types for the segmentation and summarization pipeline
"""
from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class CaptionFragment:
    text: str
    start_ms: int
    duration_ms: int

    @property
    def end_ms(self) -> int:
        """End of the fragment in milliseconds"""
        return self.start_ms + self.duration_ms


@dataclass
class Chunk:
    index: int
    fragments: Tuple[CaptionFragment, ...]
    start_ms: int
    end_ms: int

    @property
    def text(self) -> str:
        """Concatenated fragment text"""
        return " ".join(f.text for f in self.fragments)

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms


@dataclass
class ChunkResult:
    index: int
    text: str
    is_fallback: bool = False
    attempts: int = 0
    error_kind: Optional[str] = None
    rate_limited: bool = False


@dataclass
class SummaryRequest:
    """Chunk-scoped input handed to a text-generation provider"""
    index: int
    text: str
    start_ms: int
    end_ms: int
    total_chunks: int = 1


@dataclass
class Chapter:
    chapter_number: int
    start_ms: int
    end_ms: int
    text: str
    is_fallback: bool = False

    def to_dict(self) -> dict:
        return {
            "chapterNumber": self.chapter_number,
            "startMs": self.start_ms,
            "endMs": self.end_ms,
            "text": self.text,
            "isFallback": self.is_fallback,
        }


@dataclass
class AssembledSummary:
    chapters: List[Chapter]
    text: str
    key_points: List[str] = field(default_factory=list)

    @property
    def fallback_count(self) -> int:
        return sum(1 for c in self.chapters if c.is_fallback)

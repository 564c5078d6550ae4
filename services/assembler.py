"""
Result assembler
Restores chunk order and renders timestamped chapters
"""
import logging
from typing import Iterable, List, Optional

from .captions_format import format_timestamp
from .captions_types import AssembledSummary, Chapter, Chunk, ChunkResult
from .errors import InternalError
from .key_points import SentenceScorer, extract_key_points

logger = logging.getLogger(__name__)

ONE_HOUR_MS = 3_600_000


def render_chapter(chapter: Chapter, with_hours: bool = False) -> str:
    start = format_timestamp(chapter.start_ms, with_hours)
    end = format_timestamp(chapter.end_ms, with_hours)
    return f"Chapter {chapter.chapter_number} [{start}–{end}]: {chapter.text}"


class ResultAssembler:
    def __init__(self, key_point_count: int = 5, scorer: Optional[SentenceScorer] = None):
        self.key_point_count = key_point_count
        self.scorer = scorer

    def assemble(self, chunks: List[Chunk], results: Iterable[ChunkResult]) -> AssembledSummary:
        by_index = {}
        for result in results:
            if result.index in by_index:
                raise InternalError(f"Duplicate result for chunk {result.index}")
            by_index[result.index] = result

        missing = [c.index for c in chunks if c.index not in by_index]
        if missing or len(by_index) != len(chunks):
            raise InternalError(f"Chunk results do not match chunks (missing {missing})")

        chapters = []
        for chunk in sorted(chunks, key=lambda c: c.index):
            result = by_index[chunk.index]
            chapters.append(Chapter(
                chapter_number=chunk.index + 1,
                start_ms=chunk.start_ms,
                end_ms=chunk.end_ms,
                text=result.text,
                is_fallback=result.is_fallback,
            ))

        with_hours = bool(chapters) and chapters[-1].end_ms >= ONE_HOUR_MS
        text = "\n\n".join(render_chapter(c, with_hours) for c in chapters)

        key_points = extract_key_points(
            " ".join(c.text for c in chapters), self.key_point_count, self.scorer
        )

        logger.debug(f"[ASSEMBLE] {len(chapters)} chapters, {len(key_points)} key points")
        return AssembledSummary(chapters=chapters, text=text, key_points=key_points)

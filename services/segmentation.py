"""
Segmentation engine
Splits an ordered caption stream into a bounded number of sentence-aligned chunks
"""
import logging
import re
from itertools import accumulate
from typing import List, Sequence, Tuple

from .captions_types import CaptionFragment, Chunk

logger = logging.getLogger(__name__)

# Parameters (adjustable)
TARGET_CHUNK_MS = 300_000   # ~5 minutes of speech per chunk
MIN_CHUNKS      = 3
MAX_CHUNKS      = 10

# sentence mark, optionally followed by closing quotes/brackets
SENTENCE_END = re.compile(r"[.!?][\"')\]”’]*$")

Bounds = List[Tuple[int, int]]


def ends_sentence(text: str) -> bool:
    """True when the text ends with a sentence-terminal character"""
    return bool(SENTENCE_END.search(text.rstrip()))


class SegmentationEngine:
    """
    Duration-driven chunker

    Workflow:
    1. Pick a chunk count from the total duration (clamped to min/max)
    2. Scan fragments, cutting each time the running duration passes a multiple of the target
    3. Pull every cut back to the nearest sentence end since the previous cut
    4. Split the largest chunks if the scan produced too few
    """

    def __init__(self,
                 target_chunk_ms: int = TARGET_CHUNK_MS,
                 min_chunks: int = MIN_CHUNKS,
                 max_chunks: int = MAX_CHUNKS):
        if target_chunk_ms <= 0:
            raise ValueError("target_chunk_ms must be positive")
        if min_chunks < 1 or max_chunks < min_chunks:
            raise ValueError("expected 1 <= min_chunks <= max_chunks")
        self.target_chunk_ms = target_chunk_ms
        self.min_chunks = min_chunks
        self.max_chunks = max_chunks

    def target_chunk_count(self, total_ms: int) -> int:
        return max(self.min_chunks, min(self.max_chunks, total_ms // self.target_chunk_ms))

    def segment(self, fragments: Sequence[CaptionFragment]) -> List[Chunk]:
        frags = list(fragments)
        if not frags:
            return []

        total_ms = sum(f.duration_ms for f in frags)

        if total_ms == 0:
            bounds = [(0, len(frags))]
        elif len(frags) <= self.min_chunks:
            bounds = [(i, i + 1) for i in range(len(frags))]
        else:
            count = self.target_chunk_count(total_ms)
            bounds = self._scan(frags, total_ms / count, count)
            bounds = self._ensure_minimum(frags, bounds)

        chunks = self._build(frags, bounds)
        logger.info(f"[SEGMENT] {len(frags)} fragments ({total_ms} ms) -> {len(chunks)} chunks")
        return chunks

    # --------- Helpers ----------

    def _scan(self, frags: List[CaptionFragment], target_ms: float, count: int) -> Bounds:
        """Cut whenever the running duration passes the next multiple of target_ms"""
        cuts: List[int] = []
        start = 0
        mark = 1
        last = len(frags) - 1
        running = list(accumulate(f.duration_ms for f in frags))

        def commit(end: int):
            nonlocal start, mark
            cuts.append(end)
            start = end
            # marks already passed (oversized fragments) are skipped
            mark = max(mark + 1, int(running[end - 1] // target_ms) + 1)

        for i, frag in enumerate(frags):
            if len(cuts) >= count - 1:
                break

            # an oversized fragment gets a chunk of its own
            if frag.duration_ms >= target_ms:
                if i > start:
                    commit(i)
                    if len(cuts) >= count - 1:
                        break
                if i < last:
                    commit(i + 1)
                continue

            if running[i] >= mark * target_ms and i < last:
                commit(self._find_cut(frags, start, i))

        edges = [0] + cuts + [len(frags)]
        return list(zip(edges[:-1], edges[1:]))

    def _find_cut(self, frags: List[CaptionFragment], start: int, current: int) -> int:
        """Exclusive end index: just after the last sentence end in frags[start..current]"""
        for j in range(current, start - 1, -1):
            if ends_sentence(frags[j].text):
                return j + 1
        logger.debug(f"[SEGMENT] No sentence end in [{start}, {current}], forced cut")
        return current + 1

    def _ensure_minimum(self, frags: List[CaptionFragment], bounds: Bounds) -> Bounds:
        needed = min(self.min_chunks, len(frags))
        while len(bounds) < needed:
            k = max(range(len(bounds)), key=lambda n: bounds[n][1] - bounds[n][0])
            s, e = bounds[k]
            mid = self._split_point(frags, s, e)
            bounds[k:k + 1] = [(s, mid), (mid, e)]
        return bounds

    def _split_point(self, frags: List[CaptionFragment], s: int, e: int) -> int:
        middle = (s + e) // 2
        candidates = [j + 1 for j in range(s, e - 1) if ends_sentence(frags[j].text)]
        if not candidates:
            return middle
        return min(candidates, key=lambda c: abs(c - middle))

    def _build(self, frags: List[CaptionFragment], bounds: Bounds) -> List[Chunk]:
        chunks = []
        for index, (s, e) in enumerate(bounds):
            part = tuple(frags[s:e])
            start_ms = part[0].start_ms
            end_ms = max(f.end_ms for f in part)
            chunks.append(Chunk(index, part, start_ms, end_ms))

        # captions may overlap in time; chunk ranges must not
        for cur, nxt in zip(chunks, chunks[1:]):
            cur.end_ms = max(cur.start_ms, min(cur.end_ms, nxt.start_ms))

        return chunks

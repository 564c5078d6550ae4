"""
End-to-end summarization pipeline
Orchestrates the complete workflow: fetch → normalize → segment → summarize → assemble
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .assembler import ResultAssembler
from .captions_normalize import normalize_fragments
from .captions_types import AssembledSummary, CaptionFragment, Chunk, ChunkResult
from .errors import UpstreamRateLimitError, UpstreamTimeoutError
from .resilience import Deadline
from .segmentation import SegmentationEngine
from .worker_pool import SummarizationWorkerPool

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Dict[str, Any]], None]

DEFAULT_MAX_TRANSCRIPT_LENGTH = 100_000
DEFAULT_PIPELINE_TIMEOUT = 110.0


@dataclass
class PipelineResult:
    """Complete pipeline result with all stages"""
    video_id: str
    fragments: List[CaptionFragment]
    chunks: List[Chunk]
    results: List[ChunkResult]
    summary: AssembledSummary

    @property
    def transcript(self) -> str:
        return " ".join(f.text for f in self.fragments)

    @property
    def fallback_count(self) -> int:
        return self.summary.fallback_count


class SummarizationPipeline:
    """
    Complete caption summarization pipeline

    Workflow:
    1. Fetch caption fragments (bounded by the shared deadline)
    2. Normalize and enforce the character budget
    3. Segment into sentence-aligned chunks
    4. Summarize chunks through the worker pool
    5. Assemble timestamped chapters and key points
    """

    def __init__(self,
                 fetcher,
                 pool: SummarizationWorkerPool,
                 segmenter: Optional[SegmentationEngine] = None,
                 assembler: Optional[ResultAssembler] = None,
                 max_transcript_length: int = DEFAULT_MAX_TRANSCRIPT_LENGTH,
                 timeout: Optional[float] = DEFAULT_PIPELINE_TIMEOUT,
                 surface_rate_limit: bool = True):
        self.fetcher = fetcher
        self.pool = pool
        self.segmenter = segmenter or SegmentationEngine()
        self.assembler = assembler or ResultAssembler()
        self.max_transcript_length = max_transcript_length
        self.timeout = timeout
        self.surface_rate_limit = surface_rate_limit

    async def run(self,
                  video_id: str,
                  on_progress: Optional[ProgressCallback] = None,
                  deadline: Optional[Deadline] = None) -> PipelineResult:
        deadline = deadline or Deadline(self.timeout)

        def emit(update: Dict[str, Any]):
            if on_progress:
                on_progress(update)

        logger.info(f"[PIPELINE] Starting summarization for {video_id}")

        # Stage 1: Fetch captions
        emit({"type": "status", "message": "Fetching captions...", "progress": 5})
        raw = await self._fetch(video_id, deadline)

        # Stage 2: Normalize (cheap rejection happens here)
        fragments = normalize_fragments(raw, self.max_transcript_length)

        # Stage 3: Segment
        emit({"type": "status", "message": "Segmenting transcript...", "progress": 15})
        chunks = self.segmenter.segment(fragments)

        # Stage 4: Summarize
        emit({"type": "status", "message": f"Summarizing {len(chunks)} chapters...", "progress": 20})

        def chunk_done(result: ChunkResult, done: int, total: int):
            emit({
                "type": "chunk_complete",
                "index": result.index,
                "isFallback": result.is_fallback,
                "progress": 20 + int(70 * done / total),
            })

        results = await self.pool.run(chunks, deadline, on_result=chunk_done)

        if self.surface_rate_limit and results and all(r.rate_limited for r in results):
            logger.error(f"[PIPELINE] Every chunk of {video_id} was rate limited")
            raise UpstreamRateLimitError("Text generation quota exhausted, try again later")

        # Stage 5: Assemble
        summary = self.assembler.assemble(chunks, results)
        emit({"type": "status", "message": "Summary complete", "progress": 100})

        logger.info(f"[PIPELINE] Completed {video_id}: {len(chunks)} chapters, "
                    f"{summary.fallback_count} fallback")

        return PipelineResult(video_id, fragments, chunks, results, summary)

    async def _fetch(self, video_id: str, deadline: Deadline):
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.fetcher.fetch, video_id),
                timeout=deadline.remaining(),
            )
        except asyncio.TimeoutError:
            raise UpstreamTimeoutError(f"Caption fetch for {video_id} exceeded the request deadline")

"""
Summarization worker pool
Bounded fan-out of chunk summaries with retry, fallback and a shared deadline
"""
import asyncio
import logging
from typing import Callable, Dict, List, Optional, Protocol

from .captions_format import FALLBACK_MAX_CHARS, FALLBACK_MAX_SENTENCES, extractive_summary
from .captions_types import Chunk, ChunkResult, SummaryRequest
from .errors import UpstreamServiceError, UpstreamTimeoutError
from .resilience import CallOutcome, Deadline, ResilientCall

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 3

ResultCallback = Callable[[ChunkResult, int, int], None]


class TextGenerator(Protocol):
    """Anything that turns one chunk into summary text"""

    name: str

    async def summarize(self, request: SummaryRequest) -> str:
        ...


class SummarizationWorkerPool:
    """
    Maps every chunk to exactly one ChunkResult

    - at most `concurrency` chunk calls are in flight (semaphore admission gate)
    - each call goes through the ResilientCall wrapper
    - chunks left unfinished at the deadline get their fallback immediately
    """

    def __init__(self,
                 generator: TextGenerator,
                 concurrency: int = DEFAULT_CONCURRENCY,
                 call: Optional[ResilientCall] = None,
                 fallback_sentences: int = FALLBACK_MAX_SENTENCES,
                 fallback_max_chars: int = FALLBACK_MAX_CHARS):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.generator = generator
        self.concurrency = concurrency
        self.call = call or ResilientCall()
        self.fallback_sentences = fallback_sentences
        self.fallback_max_chars = fallback_max_chars

    async def run(self,
                  chunks: List[Chunk],
                  deadline: Optional[Deadline] = None,
                  on_result: Optional[ResultCallback] = None) -> List[ChunkResult]:
        """Results come back in completion order; each carries its chunk index"""
        if not chunks:
            return []

        total = len(chunks)
        gate = asyncio.Semaphore(self.concurrency)
        completed: List[ChunkResult] = []

        def record(result: ChunkResult):
            completed.append(result)
            if on_result:
                on_result(result, len(completed), total)

        logger.info(f"[POOL] Summarizing {total} chunks with {self.generator.name} (max {self.concurrency} concurrent)")

        tasks: Dict[asyncio.Future, Chunk] = {
            asyncio.ensure_future(self._summarize(chunk, gate, total, record)): chunk
            for chunk in chunks
        }

        try:
            timeout = deadline.remaining() if deadline else None
            done, pending = await asyncio.wait(tasks, timeout=timeout)

            for task in done:
                # surfaces programming errors; chunk failures never raise
                task.result()

            if pending:
                logger.warning(f"[POOL] Deadline reached with {len(pending)} chunks unfinished, abandoning them")
                await _cancel_all(pending)
                for task in pending:
                    record(self._abandoned(tasks[task]))
        finally:
            await _cancel_all([t for t in tasks if not t.done()])

        fallbacks = sum(1 for r in completed if r.is_fallback)
        logger.info(f"[POOL] {total} chunks done, {fallbacks} fallback")
        return completed

    async def _summarize(self, chunk: Chunk, gate: asyncio.Semaphore, total: int,
                         record: Callable[[ChunkResult], None]) -> None:
        request = SummaryRequest(chunk.index, chunk.text, chunk.start_ms, chunk.end_ms, total)

        async def attempt() -> str:
            text = await self.generator.summarize(request)
            if not text or not text.strip():
                raise UpstreamServiceError("Provider returned an empty summary")
            return text.strip()

        async with gate:
            outcome = await self.call(
                attempt,
                fallback=lambda: self.fallback_text(chunk),
                label=f"chunk {chunk.index + 1}/{total}",
            )

        record(self._to_result(chunk, outcome))

    def fallback_text(self, chunk: Chunk) -> str:
        return extractive_summary(chunk.text, self.fallback_sentences, self.fallback_max_chars)

    def _to_result(self, chunk: Chunk, outcome: CallOutcome) -> ChunkResult:
        last = outcome.last_error
        return ChunkResult(
            index=chunk.index,
            text=outcome.value,
            is_fallback=outcome.is_fallback,
            attempts=outcome.attempts,
            error_kind=last.kind if last else None,
            rate_limited=outcome.is_fallback and outcome.rate_limited,
        )

    def _abandoned(self, chunk: Chunk) -> ChunkResult:
        return ChunkResult(
            index=chunk.index,
            text=self.fallback_text(chunk),
            is_fallback=True,
            error_kind=UpstreamTimeoutError.kind,
        )


async def _cancel_all(tasks) -> None:
    tasks = list(tasks)
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)

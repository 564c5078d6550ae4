"""
Summary Service
Business logic around the pipeline: identifier parsing, caching, usage, metadata
"""
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from cache_manager import ResultCache, UsageCounter, create_store
from transcript_extractor import TranscriptExtractor

from .assembler import ResultAssembler
from .captions_fetcher import CaptionFetcher
from .captions_pipeline import PipelineResult, SummarizationPipeline
from .key_points import get_scorer
from .resilience import ResilientCall, exponential_backoff
from .segmentation import SegmentationEngine
from .worker_pool import SummarizationWorkerPool

logger = logging.getLogger(__name__)


class SummaryService:
    """Service for the summarize operation"""

    def __init__(self,
                 pipeline: SummarizationPipeline,
                 result_cache: ResultCache,
                 usage_counter: UsageCounter,
                 metadata=None,
                 extractor: Optional[TranscriptExtractor] = None,
                 metadata_timeout: float = 15.0,
                 include_key_points: bool = True):
        self.pipeline = pipeline
        self.result_cache = result_cache
        self.usage_counter = usage_counter
        self.metadata = metadata
        self.extractor = extractor or TranscriptExtractor()
        self.metadata_timeout = metadata_timeout
        self.include_key_points = include_key_points

    def summarize(self, url: str, on_progress: Optional[Callable[[Dict[str, Any]], None]] = None) -> Dict[str, Any]:
        """
        Blocking entry point used by the HTTP layer

        Runs on a private loop with its own worker threads. Teardown does not join
        those threads: provider calls abandoned at the deadline finish in the
        background, bounded by their client timeouts.
        """
        loop = asyncio.new_event_loop()
        executor = ThreadPoolExecutor(thread_name_prefix="summarizer-io")
        loop.set_default_executor(executor)
        asyncio.set_event_loop(loop)
        try:
            return loop.run_until_complete(self.summarize_async(url, on_progress))
        finally:
            _cancel_remaining(loop)
            executor.shutdown(wait=False, cancel_futures=True)
            asyncio.set_event_loop(None)
            loop.close()

    async def summarize_async(self, url: str, on_progress=None) -> Dict[str, Any]:
        video_id = self.extractor.extract_video_id(url)

        cached = self.result_cache.get(video_id)
        if cached is not None:
            logger.info(f"[SERVICE] Cache hit for {video_id}")
            self.usage_counter.increment(video_id)
            return self._response(cached, "Summary served from cache", cached=True)

        metadata_task = None
        if self.metadata is not None:
            metadata_task = asyncio.ensure_future(self._fetch_metadata(video_id))

        try:
            result = await self.pipeline.run(video_id, on_progress)
        except BaseException:
            if metadata_task is not None:
                metadata_task.cancel()
                await asyncio.gather(metadata_task, return_exceptions=True)
            raise

        metadata = await metadata_task if metadata_task is not None else None
        payload = self._payload(result, metadata)

        # a degraded result is not cached so the next request can retry
        if result.fallback_count == 0:
            self.result_cache.put(video_id, payload)
        self.usage_counter.increment(video_id)

        if result.fallback_count:
            message = (f"Summary generated; {result.fallback_count} of {len(result.chunks)} "
                       f"chapters use an extractive fallback")
        else:
            message = "Summary generated successfully"
        return self._response(payload, message, cached=False)

    def top_videos(self, limit: int = 10) -> List[Dict[str, Any]]:
        return self.usage_counter.top(limit)

    async def _fetch_metadata(self, video_id: str) -> Dict[str, Any]:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.metadata.get_video_info, video_id),
                timeout=self.metadata_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"[SERVICE] Metadata lookup for {video_id} timed out")
            return self.metadata.placeholder(video_id, "Metadata lookup timed out")
        except Exception as e:
            # metadata is optional enrichment
            logger.warning(f"[SERVICE] Metadata lookup for {video_id} failed: {e}")
            return self.metadata.placeholder(video_id, str(e))

    def _payload(self, result: PipelineResult, metadata: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        payload = {
            "videoId": result.video_id,
            "transcript": result.transcript,
            "summary": result.summary.text,
            "chapters": [c.to_dict() for c in result.summary.chapters],
        }
        if self.include_key_points:
            payload["keyPoints"] = result.summary.key_points
        if metadata is not None:
            payload["metadata"] = metadata
        return payload

    def _response(self, payload: Dict[str, Any], message: str, cached: bool) -> Dict[str, Any]:
        response = dict(payload)
        response.update({
            "message": message,
            "cached": cached,
            "timestamp": datetime.now().isoformat(),
        })
        return response


def _cancel_remaining(loop: asyncio.AbstractEventLoop) -> None:
    pending = [task for task in asyncio.all_tasks(loop) if not task.done()]
    for task in pending:
        task.cancel()
    if pending:
        loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))


def create_summary_service(settings, generator=None, fetcher=None, metadata=None, store=None) -> SummaryService:
    """Wire the service from Settings; collaborators can be injected"""
    if generator is None:
        from enhanced_summarizer import create_text_generator
        generator = create_text_generator(settings)

    if metadata is None and settings.include_metadata:
        from youtube_metadata import YouTubeMetadata
        metadata = YouTubeMetadata(socket_timeout=settings.metadata_timeout)

    call = ResilientCall(
        max_attempts=settings.max_retries,
        backoff=exponential_backoff(settings.base_delay),
        attempt_timeout=settings.attempt_timeout,
    )
    pool = SummarizationWorkerPool(
        generator,
        concurrency=settings.concurrency,
        call=call,
        fallback_sentences=settings.fallback_sentences,
    )
    pipeline = SummarizationPipeline(
        fetcher=fetcher or CaptionFetcher(settings.languages, request_timeout=settings.attempt_timeout),
        pool=pool,
        segmenter=SegmentationEngine(settings.target_chunk_ms, settings.min_chunks, settings.max_chunks),
        assembler=ResultAssembler(settings.key_point_count, get_scorer(settings.key_point_scorer)),
        max_transcript_length=settings.max_transcript_length,
        timeout=settings.pipeline_timeout,
    )

    store = store or create_store(settings.redis_url)
    return SummaryService(
        pipeline=pipeline,
        result_cache=ResultCache(store, settings.result_ttl),
        usage_counter=UsageCounter(store, settings.usage_ttl),
        metadata=metadata,
        metadata_timeout=settings.metadata_timeout,
        include_key_points=settings.key_point_count > 0,
    )

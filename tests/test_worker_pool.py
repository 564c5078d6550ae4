import asyncio

import pytest

from services.errors import UpstreamRateLimitError
from services.resilience import Deadline, ResilientCall
from services.segmentation import SegmentationEngine
from services.worker_pool import SummarizationWorkerPool
from fakes import FakeGenerator, make_fragments, no_sleep


def make_chunks(count):
    # one fragment per chunk keeps the numbers easy to read
    engine = SegmentationEngine(target_chunk_ms=2000, min_chunks=1, max_chunks=count)
    return engine.segment(make_fragments(count, 2000, terminal_every=1))


def make_pool(generator, concurrency=3, max_attempts=3, attempt_timeout=5.0):
    call = ResilientCall(max_attempts=max_attempts, attempt_timeout=attempt_timeout, sleep=no_sleep)
    return SummarizationWorkerPool(generator, concurrency=concurrency, call=call)


@pytest.mark.parametrize("count", [1, 3, 7, 10])
def test_one_result_per_chunk(count):
    chunks = make_chunks(count)
    results = asyncio.run(make_pool(FakeGenerator()).run(chunks))

    assert len(results) == count
    assert sorted(r.index for r in results) == list(range(count))
    assert not any(r.is_fallback for r in results)


def test_concurrency_ceiling_is_respected():
    generator = FakeGenerator(delay=0.02)
    asyncio.run(make_pool(generator, concurrency=3).run(make_chunks(10)))

    assert generator.max_in_flight == 3
    assert sorted(generator.calls) == list(range(10))


def test_results_keep_index_regardless_of_completion_order():
    # chunk 0 is the slowest, so it completes last
    generator = FakeGenerator(delays={0: 0.05})
    results = asyncio.run(make_pool(generator).run(make_chunks(3)))

    assert results[-1].index == 0
    assert {r.index: r.text for r in results}[0] == "Summary of section 1."


def test_failing_chunk_falls_back_without_affecting_siblings():
    chunks = make_chunks(4)
    generator = FakeGenerator(fail_indices={2})
    pool = make_pool(generator)
    results = {r.index: r for r in asyncio.run(pool.run(chunks))}

    assert results[2].is_fallback
    assert results[2].text == pool.fallback_text(chunks[2]) == "word 2."
    assert results[2].attempts == 3
    assert results[2].error_kind == "UpstreamServiceError"
    assert generator.calls.count(2) == 3
    assert all(not results[i].is_fallback for i in (0, 1, 3))


def test_always_failing_capability_gives_nonempty_fallbacks():
    chunks = make_chunks(5)
    results = asyncio.run(make_pool(FakeGenerator(fail_all=True)).run(chunks))

    assert len(results) == 5
    assert all(r.is_fallback and r.text.strip() for r in results)


def test_rate_limited_chunks_are_flagged():
    generator = FakeGenerator(fail_all=True, error=UpstreamRateLimitError)
    results = asyncio.run(make_pool(generator).run(make_chunks(3)))

    assert all(r.rate_limited for r in results)
    assert all(r.error_kind == "UpstreamRateLimitError" for r in results)


def test_empty_response_counts_as_failure():
    class Silent(FakeGenerator):
        async def summarize(self, request):
            await super().summarize(request)
            return "   "

    results = asyncio.run(make_pool(Silent(), max_attempts=2).run(make_chunks(1)))

    assert results[0].is_fallback
    assert results[0].attempts == 2


def test_deadline_abandons_unfinished_chunks():
    generator = FakeGenerator(delays={1: 5.0, 2: 5.0})
    pool = make_pool(generator, attempt_timeout=10.0)

    async def run():
        return await pool.run(make_chunks(3), deadline=Deadline(0.1))

    results = {r.index: r for r in asyncio.run(run())}

    assert len(results) == 3
    assert not results[0].is_fallback
    assert results[1].is_fallback and results[2].is_fallback
    assert results[1].error_kind == "UpstreamTimeoutError"
    assert generator.in_flight == 0


def test_progress_callback_sees_every_chunk():
    seen = []
    asyncio.run(make_pool(FakeGenerator()).run(
        make_chunks(4), on_result=lambda result, done, total: seen.append((done, total))
    ))

    assert seen == [(1, 4), (2, 4), (3, 4), (4, 4)]


def test_caller_cancellation_stops_chunk_tasks():
    generator = FakeGenerator(delay=5.0)
    pool = make_pool(generator, attempt_timeout=10.0)

    async def run():
        task = asyncio.ensure_future(pool.run(make_chunks(3)))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(run())
    assert generator.in_flight == 0


def test_no_chunks():
    assert asyncio.run(make_pool(FakeGenerator()).run([])) == []


def test_invalid_concurrency():
    with pytest.raises(ValueError):
        SummarizationWorkerPool(FakeGenerator(), concurrency=0)

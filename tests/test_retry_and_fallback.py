import pytest

from portfolio_engine.errors import SourceUnavailable, UpstreamError, UpstreamRateLimited
from portfolio_engine.orchestrator.fallback import FallbackFetcher
from portfolio_engine.orchestrator.retry import Failure, Success, backoff_delay, with_retry


def scripted(*outcomes):
    calls = []

    async def op():
        calls.append(1)
        return outcomes[len(calls) - 1]

    return op, calls


# ── with_retry ─────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_success_first_try(fake_sleep):
    op, calls = scripted(Success("ok"))
    assert await with_retry(op, sleep=fake_sleep) == "ok"
    assert len(calls) == 1
    assert fake_sleep.calls == []


@pytest.mark.asyncio
async def test_rate_limited_then_success_uses_retry_after(fake_sleep):
    op, calls = scripted(
        Failure(UpstreamRateLimited("slow down", 30), rate_limited=True, retry_after=30),
        Success("done"),
    )
    assert await with_retry(op, sleep=fake_sleep) == "done"
    assert len(calls) == 2
    assert fake_sleep.calls == [30]


@pytest.mark.asyncio
async def test_non_rate_limit_failure_is_not_retried(fake_sleep):
    op, calls = scripted(Failure(UpstreamError("boom")), Success("never"))
    with pytest.raises(UpstreamError):
        await with_retry(op, sleep=fake_sleep)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts(fake_sleep):
    limited = Failure(UpstreamRateLimited("429"), rate_limited=True)
    op, calls = scripted(limited, limited, limited, Success("too late"))
    with pytest.raises(UpstreamRateLimited):
        await with_retry(op, max_attempts=3, base_delay=2.0, sleep=fake_sleep)
    assert len(calls) == 3
    assert fake_sleep.calls == [2.0, 4.0]


@pytest.mark.asyncio
async def test_max_attempts_must_be_positive(fake_sleep):
    op, _ = scripted(Success(1))
    with pytest.raises(ValueError):
        await with_retry(op, max_attempts=0, sleep=fake_sleep)


def test_backoff_delay_is_capped():
    assert backoff_delay(0, base_delay=2.0, max_delay=60.0) == 2.0
    assert backoff_delay(3, base_delay=2.0, max_delay=60.0) == 16.0
    assert backoff_delay(10, base_delay=2.0, max_delay=60.0) == 60.0
    assert backoff_delay(0, retry_after=500, max_delay=60.0) == 60.0


# ── FallbackFetcher ────────────────────────────────────────────

@pytest.mark.asyncio
async def test_first_usable_variant_wins_in_order():
    tried = []

    async def fetch(variant):
        tried.append(variant)
        if variant == "A":
            raise UpstreamError("A down")
        if variant == "B":
            return None
        return f"data from {variant}"

    fetcher = FallbackFetcher(["A", "B", "C", "D"], fetch)
    assert await fetcher.run("MSFT") == "data from C"
    assert tried == ["A", "B", "C"]


@pytest.mark.asyncio
async def test_unusable_results_fall_through():
    async def fetch(variant):
        return [] if variant == "empty" else ["headline"]

    fetcher = FallbackFetcher(["empty", "full"], fetch, is_usable=lambda r: len(r) > 0)
    assert await fetcher.run("AAPL") == ["headline"]


@pytest.mark.asyncio
async def test_all_variants_failing_raises_with_last_error():
    async def fetch(variant):
        raise UpstreamError(f"{variant} failed")

    fetcher = FallbackFetcher(["A", "B"], fetch)
    with pytest.raises(SourceUnavailable) as exc:
        await fetcher.run("ZZZZ")
    assert exc.value.ticker == "ZZZZ"
    assert str(exc.value.last_error) == "B failed"


def test_empty_variant_list_rejected():
    async def fetch(variant):
        return variant

    with pytest.raises(ValueError):
        FallbackFetcher([], fetch)

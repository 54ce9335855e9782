"""Unit tests for the retrying caller."""

import httpx
import pytest

from admissions_voice.exceptions import (
    PermanentUpstreamError,
    TransientExhaustedError,
    TransientUpstreamError,
)
from admissions_voice.upstream import (
    RetryingCaller,
    RetryPolicy,
    UpstreamOperation,
    compute_backoff_delay,
)

URL = "https://api.example.test/v1/op"


def make_operation() -> UpstreamOperation:
    return UpstreamOperation(name="op", method="POST", url=URL, json={})


class TestComputeBackoffDelay:
    """Tests for the pure backoff function."""

    def test_default_schedule_without_jitter(self):
        """Delays double from the 350 ms base."""
        policy = RetryPolicy()
        delays = [compute_backoff_delay(n, policy, lambda a, b: 0.0) for n in (1, 2, 3)]

        assert delays == pytest.approx([0.35, 0.7, 1.4])

    def test_strictly_increasing(self):
        """Ignoring jitter, every delay is larger than the previous one."""
        policy = RetryPolicy(max_attempts=8, base_delay_ms=100, jitter_ms=0)
        delays = [compute_backoff_delay(n, policy) for n in range(1, 8)]

        assert all(b > a for a, b in zip(delays, delays[1:]))

    def test_jitter_is_added_within_bounds(self):
        """Jitter is drawn from [0, jitter_ms] and added on top."""
        policy = RetryPolicy(base_delay_ms=350, jitter_ms=120)
        seen = []

        def jitter(a, b):
            seen.append((a, b))
            return b

        assert compute_backoff_delay(1, policy, jitter) == pytest.approx(0.47)
        assert seen == [(0, 120)]

    def test_worst_case_total_under_three_seconds(self):
        """Default policy waits less than ~3 s in total."""
        policy = RetryPolicy()
        total = sum(
            compute_backoff_delay(n, policy, lambda a, b: b)
            for n in range(1, policy.max_attempts)
        )

        assert total < 3.0


class TestRetryingCaller:
    """Tests for RetryingCaller.call."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, upstream, caller, sleep):
        """Success returns immediately without sleeping."""
        upstream.add("POST", URL, httpx.Response(200, json={"ok": True}))

        result = await caller.call(make_operation())

        assert result.json() == {"ok": True}
        assert len(upstream.calls(URL)) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, upstream, caller, sleep):
        """503 three times then 200 succeeds with 350/700/1400 ms waits."""
        upstream.add(
            "POST",
            URL,
            httpx.Response(503),
            httpx.Response(503),
            httpx.Response(503),
            httpx.Response(200, json={"ok": True}),
        )

        result = await caller.call(make_operation())

        assert result.ok
        assert len(upstream.calls(URL)) == 4
        assert sleep.delays == pytest.approx([0.35, 0.7, 1.4])

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    @pytest.mark.asyncio
    async def test_transient_exhausts_after_max_attempts(self, upstream, caller, sleep, status):
        """Persistent transient failures are attempted max_attempts times."""
        upstream.add("POST", URL, httpx.Response(status, json={"error": {"message": "busy"}}))

        with pytest.raises(TransientExhaustedError) as exc_info:
            await caller.call(make_operation())

        error = exc_info.value
        assert isinstance(error, TransientUpstreamError)
        assert error.status_code == status
        assert error.attempts == 4
        assert "busy" in error.message
        assert len(upstream.calls(URL)) == 4
        assert len(sleep.delays) == 3

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    @pytest.mark.asyncio
    async def test_permanent_failure_not_retried(self, upstream, caller, sleep, status):
        """4xx other than 429 is attempted exactly once."""
        upstream.add(
            "POST",
            URL,
            httpx.Response(status, json={"error": {"message": "Invalid API key"}}),
        )

        with pytest.raises(PermanentUpstreamError) as exc_info:
            await caller.call(make_operation())

        assert exc_info.value.status_code == status
        assert exc_info.value.message == "Invalid API key"
        assert len(upstream.calls(URL)) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_permanent_after_transient_stops(self, upstream, caller):
        """A permanent failure after a transient one stops retrying."""
        upstream.add("POST", URL, httpx.Response(500), httpx.Response(401))

        with pytest.raises(PermanentUpstreamError):
            await caller.call(make_operation())

        assert len(upstream.calls(URL)) == 2

    @pytest.mark.asyncio
    async def test_transport_fault_is_retried(self, upstream, caller):
        """Transport faults are retried like transient failures."""
        upstream.add(
            "POST",
            URL,
            httpx.ConnectError("refused"),
            httpx.Response(200, json={"ok": True}),
        )

        result = await caller.call(make_operation())

        assert result.ok
        assert len(upstream.calls(URL)) == 2

    @pytest.mark.asyncio
    async def test_transport_faults_exhaust_with_default_status(self, upstream, caller):
        """With no status ever observed, exhaustion reports 429."""
        upstream.add("POST", URL, httpx.ConnectTimeout("timed out"))

        with pytest.raises(TransientExhaustedError) as exc_info:
            await caller.call(make_operation())

        assert exc_info.value.status_code == 429
        assert exc_info.value.attempts == 4

    @pytest.mark.asyncio
    async def test_exhaustion_keeps_last_observed_status(self, upstream, caller):
        """The last HTTP status seen is kept even if later attempts fault."""
        upstream.add(
            "POST",
            URL,
            httpx.Response(502),
            httpx.ConnectError("refused"),
        )

        with pytest.raises(TransientExhaustedError) as exc_info:
            await caller.call(make_operation())

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_single_attempt_policy(self, upstream, upstream_client, sleep):
        """max_attempts=1 never sleeps."""
        caller = RetryingCaller(upstream_client, RetryPolicy(max_attempts=1), sleep=sleep)
        upstream.add("POST", URL, httpx.Response(503))

        with pytest.raises(TransientExhaustedError):
            await caller.call(make_operation())

        assert sleep.delays == []

"""
Tests for RetryPolicy.

Sleep is injected so no test actually waits.
"""
import asyncio
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from app.core.errors import FatalProviderError, TransientProviderError
from app.services.retry import AttemptState, RetryPolicy


class _RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class _FlakyOperation:
    """Fails with the given errors in order, then returns "ok"."""

    def __init__(self, errors):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


class _AlwaysFails:
    def __init__(self, error_factory):
        self.error_factory = error_factory
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        raise self.error_factory()


@pytest.mark.parametrize("k", [0, 1, 2, 3])
def test_succeeds_after_k_transient_failures(k):
    sleep = _RecordingSleep()
    op = _FlakyOperation([TransientProviderError("429")] * k)
    policy = RetryPolicy(max_retries=3, initial_delay=1.0, sleep=sleep)

    assert asyncio.run(policy.run(op)) == "ok"
    assert op.calls == k + 1
    assert len(sleep.delays) == k
    assert all(b > a for a, b in zip(sleep.delays, sleep.delays[1:]))


def test_delays_double_from_initial():
    sleep = _RecordingSleep()
    op = _FlakyOperation([TransientProviderError("503")] * 3)
    asyncio.run(RetryPolicy(max_retries=3, initial_delay=0.5, sleep=sleep).run(op))
    assert sleep.delays == [0.5, 1.0, 2.0]


def test_exhaustion_makes_max_retries_plus_one_attempts():
    sleep = _RecordingSleep()
    op = _AlwaysFails(lambda: TransientProviderError("rate limited"))
    policy = RetryPolicy(max_retries=3, initial_delay=1.0, sleep=sleep)

    with pytest.raises(TransientProviderError):
        asyncio.run(policy.run(op))
    assert op.calls == 4
    assert len(sleep.delays) == 3


def test_exhaustion_propagates_the_last_error_unchanged():
    errors = [TransientProviderError(f"attempt {i}") for i in range(1, 4)]
    op = _FlakyOperation(errors)
    policy = RetryPolicy(max_retries=2, initial_delay=1.0, sleep=_RecordingSleep())

    with pytest.raises(TransientProviderError) as exc:
        asyncio.run(policy.run(op))
    assert str(exc.value) == "attempt 3"


def test_fatal_error_is_not_retried():
    sleep = _RecordingSleep()
    op = _AlwaysFails(lambda: FatalProviderError("401 unauthorized"))
    policy = RetryPolicy(max_retries=3, initial_delay=1.0, sleep=sleep)

    with pytest.raises(FatalProviderError):
        asyncio.run(policy.run(op))
    assert op.calls == 1
    assert sleep.delays == []


def test_unexpected_error_is_not_retried():
    sleep = _RecordingSleep()
    op = _AlwaysFails(lambda: RuntimeError("boom"))
    with pytest.raises(RuntimeError):
        asyncio.run(RetryPolicy(sleep=sleep).run(op))
    assert op.calls == 1
    assert sleep.delays == []


def test_zero_retries_means_single_attempt():
    op = _AlwaysFails(lambda: TransientProviderError("503"))
    with pytest.raises(TransientProviderError):
        asyncio.run(RetryPolicy(max_retries=0, sleep=_RecordingSleep()).run(op))
    assert op.calls == 1


def test_negative_max_retries_rejected():
    with pytest.raises(ValueError):
        RetryPolicy(max_retries=-1)


class TestStateTransitions:
    def _run(self, op, max_retries=3):
        transitions = []
        policy = RetryPolicy(
            max_retries=max_retries,
            sleep=_RecordingSleep(),
            on_transition=lambda old, new: transitions.append((old, new)),
        )
        try:
            asyncio.run(policy.run(op))
        except Exception:
            pass
        return transitions

    def test_success_path(self):
        assert self._run(_FlakyOperation([])) == [
            (AttemptState.IDLE, AttemptState.SENDING),
            (AttemptState.SENDING, AttemptState.SUCCEEDED),
        ]

    def test_retry_path(self):
        assert self._run(_FlakyOperation([TransientProviderError("429")])) == [
            (AttemptState.IDLE, AttemptState.SENDING),
            (AttemptState.SENDING, AttemptState.RETRY_PENDING),
            (AttemptState.RETRY_PENDING, AttemptState.SENDING),
            (AttemptState.SENDING, AttemptState.SUCCEEDED),
        ]

    def test_fatal_path(self):
        assert self._run(_AlwaysFails(lambda: FatalProviderError("403"))) == [
            (AttemptState.IDLE, AttemptState.SENDING),
            (AttemptState.SENDING, AttemptState.FAILED),
        ]

    def test_exhausted_path_ends_failed(self):
        transitions = self._run(_AlwaysFails(lambda: TransientProviderError("503")), max_retries=1)
        assert transitions[-1] == (AttemptState.SENDING, AttemptState.FAILED)
        assert sum(1 for _, new in transitions if new == AttemptState.SENDING) == 2

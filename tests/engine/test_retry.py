# tests/engine/test_retry.py
"""Tests for RetryPolicy."""

import random

import pytest

from claimcheck.contracts.errors import MaxRetriesExceeded, StoreError
from claimcheck.core.config import RetrySettings
from claimcheck.engine.retry import RetryConfig, RetryPolicy
from tests.conftest import SleepRecorder


def make_policy(sleep: SleepRecorder, **config: float) -> RetryPolicy:
    return RetryPolicy(RetryConfig(**config), sleep=sleep, rng=random.Random(42))  # type: ignore[arg-type]


class TestRetryConfig:
    def test_from_settings_converts_millis(self) -> None:
        config = RetryConfig.from_settings(
            RetrySettings(max_attempts=4, backoff_millis=250, backoff_multiplier=3.0, max_backoff_millis=5000)
        )

        assert config == RetryConfig(max_attempts=4, initial_backoff=0.25, multiplier=3.0, max_backoff=5.0)

    def test_no_retry(self) -> None:
        assert RetryConfig.no_retry().max_attempts == 1

    @pytest.mark.parametrize(
        "kwargs,match",
        [
            ({"max_attempts": 0}, "max_attempts"),
            ({"max_attempts": -3}, "max_attempts"),
            ({"multiplier": 0.5}, "multiplier"),
            ({"initial_backoff": -1.0}, "backoff"),
            ({"max_backoff": -1.0}, "backoff"),
        ],
    )
    def test_invalid_values_rejected(self, kwargs: dict[str, float], match: str) -> None:
        with pytest.raises(ValueError, match=match):
            RetryConfig(**kwargs)  # type: ignore[arg-type]


class TestExecute:
    def test_success_first_try_does_not_sleep(self, sleep_recorder: SleepRecorder) -> None:
        policy = make_policy(sleep_recorder)

        assert policy.execute(lambda: "ok") == "ok"
        assert sleep_recorder.delays == []

    def test_recovers_after_transient_failures(self, sleep_recorder: SleepRecorder) -> None:
        policy = make_policy(sleep_recorder, max_attempts=3)
        calls = 0

        def flaky() -> str:
            nonlocal calls
            calls += 1
            if calls < 3:
                raise StoreError("throttled")
            return "stored"

        assert policy.execute(flaky) == "stored"
        assert calls == 3
        assert len(sleep_recorder.delays) == 2

    def test_every_exception_type_is_retried(self, sleep_recorder: SleepRecorder) -> None:
        policy = make_policy(sleep_recorder, max_attempts=2)
        errors = [TypeError("not transient"), None]

        def operation() -> str:
            error = errors.pop(0)
            if error is not None:
                raise error
            return "ok"

        assert policy.execute(operation) == "ok"

    def test_exhaustion_raises_max_retries_exceeded(self, sleep_recorder: SleepRecorder) -> None:
        policy = make_policy(sleep_recorder, max_attempts=3)
        last = StoreError("still down")

        def always_fails() -> None:
            raise last

        with pytest.raises(MaxRetriesExceeded) as exc_info:
            policy.execute(always_fails)

        assert exc_info.value.attempts == 3
        assert exc_info.value.last_error is last
        assert exc_info.value.__cause__ is last
        assert len(sleep_recorder.delays) == 2

    def test_single_attempt_never_sleeps(self, sleep_recorder: SleepRecorder) -> None:
        policy = make_policy(sleep_recorder, max_attempts=1)

        with pytest.raises(MaxRetriesExceeded) as exc_info:
            policy.execute(lambda: 1 / 0)

        assert exc_info.value.attempts == 1
        assert sleep_recorder.delays == []

    def test_keyboard_interrupt_not_retried(self, sleep_recorder: SleepRecorder) -> None:
        policy = make_policy(sleep_recorder, max_attempts=5)
        calls = 0

        def interrupted() -> None:
            nonlocal calls
            calls += 1
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            policy.execute(interrupted)
        assert calls == 1

    def test_interrupt_during_backoff_aborts(self) -> None:
        def interrupting_sleep(seconds: float) -> None:
            raise KeyboardInterrupt

        policy = RetryPolicy(RetryConfig(max_attempts=5), sleep=interrupting_sleep)
        calls = 0

        def failing() -> None:
            nonlocal calls
            calls += 1
            raise StoreError("down")

        with pytest.raises(KeyboardInterrupt):
            policy.execute(failing)
        assert calls == 1


class TestBackoffDelay:
    def test_exponential_growth_within_jitter(self) -> None:
        policy = RetryPolicy(RetryConfig(initial_backoff=1.0, multiplier=2.0, max_backoff=100.0), rng=random.Random(7))

        for attempt, base in [(1, 1.0), (2, 2.0), (3, 4.0), (4, 8.0)]:
            delay = policy.backoff_delay(attempt)
            assert base * 0.75 <= delay <= base * 1.25

    def test_capped_at_max_backoff(self) -> None:
        policy = RetryPolicy(RetryConfig(initial_backoff=1.0, multiplier=10.0, max_backoff=5.0), rng=random.Random(7))

        assert policy.backoff_delay(10) <= 5.0 * 1.25

    def test_huge_attempt_does_not_overflow(self) -> None:
        policy = RetryPolicy(RetryConfig(initial_backoff=1.0, multiplier=10.0, max_backoff=5.0))

        assert policy.backoff_delay(10_000) <= 5.0 * 1.25

    def test_zero_backoff(self) -> None:
        policy = RetryPolicy(RetryConfig(initial_backoff=0.0, max_backoff=0.0))

        assert policy.backoff_delay(3) == 0.0

    def test_sleeps_use_computed_delays(self, sleep_recorder: SleepRecorder) -> None:
        config = RetryConfig(max_attempts=3, initial_backoff=1.0, multiplier=2.0, max_backoff=30.0)
        policy = RetryPolicy(config, sleep=sleep_recorder, rng=random.Random(99))
        expected = RetryPolicy(config, rng=random.Random(99))

        with pytest.raises(MaxRetriesExceeded):
            policy.execute(lambda: 1 / 0)

        assert sleep_recorder.delays == [expected.backoff_delay(1), expected.backoff_delay(2)]

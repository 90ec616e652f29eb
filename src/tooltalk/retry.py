"""Retry with exponential backoff for backend exchanges.

RetryPolicy wraps exactly one adapter exchange. It uses tenacity.Retrying
programmatically so that every session can carry its own RetryConfig and
its own sleep function. The session passes a sleep that waits on its close
signal, which makes cancellation interrupt a backoff wait.

Only transient failures are retried:

- RateLimitedError (429)
- BackendUnavailableError (5xx, connection failures)
- BadRequestError, when ``RetryConfig.retry_bad_request`` is set

Everything else propagates on the first occurrence.

An optional deadline bounds the whole exchange: no attempt starts, and no
backoff sleep begins, once it would run past the deadline.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

import tenacity

from tooltalk.exceptions import (
    BadRequestError,
    RateLimitedError,
    RetryExhaustedError,
    TransientBackendError,
)
from tooltalk.models.config import RetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryState:
    """Snapshot passed to ``on_retry`` before each backoff sleep.

    Attributes:
        attempt: The attempt that just failed (1-based).
        next_delay: Seconds the policy is about to sleep.
        error: The exception that caused the retry.
    """

    attempt: int
    next_delay: float
    error: BaseException | None


class _BackoffWait(tenacity.wait.wait_base):
    """``min(base * multiplier**k, cap)`` plus optional jitter.

    A Retry-After hint on a RateLimitedError raises the delay up to the cap.
    """

    def __init__(self, config: RetryConfig, rng: random.Random | None = None) -> None:
        self._config = config
        self._rng = rng or random.Random()

    def __call__(self, retry_state: tenacity.RetryCallState) -> float:
        cfg = self._config
        delay = cfg.delay_for(retry_state.attempt_number - 1)
        outcome = retry_state.outcome
        if outcome is not None and outcome.failed:
            exc = outcome.exception()
            if isinstance(exc, RateLimitedError) and exc.retry_after is not None:
                delay = max(delay, min(exc.retry_after, cfg.max_delay))
        if cfg.jitter > 0:
            delay += self._rng.uniform(0, cfg.jitter)
        return delay


class _Budget:
    """Wall-clock budget for one exchange, measured from construction."""

    def __init__(self, seconds: float, clock: Callable[[], float]) -> None:
        self.seconds = seconds
        self._clock = clock
        self._start = clock()

    def remaining(self) -> float:
        return self.seconds - (self._clock() - self._start)


class _BudgetStop(tenacity.stop.stop_base):
    """Stops retrying once the budget is spent."""

    def __init__(self, budget: _Budget) -> None:
        self._budget = budget

    def __call__(self, retry_state: tenacity.RetryCallState) -> bool:
        return self._budget.remaining() <= 0


class _BudgetSpent(Exception):
    def __init__(self, retry_state: tenacity.RetryCallState) -> None:
        super().__init__("retry budget spent")
        self.retry_state = retry_state


class RetryPolicy:
    """Retries one backend exchange on transient failure.

    Args:
        config: Backoff settings.
        sleep: Sleep function called with the delay in seconds. Defaults to
            time.sleep. Tests inject a recorder; sessions inject a
            close-aware wait.
        on_retry: Optional hook receiving a RetryState before each sleep.
        deadline: Seconds the whole exchange may take, retries and backoff
            included. None means only ``config.max_attempts`` limits it.
        clock: Monotonic clock used for the deadline.

    Example::

        policy = RetryPolicy(RetryConfig(max_attempts=3), deadline=3600)
        reply = policy.call(adapter.submit, transcript, tools, params)
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        sleep: Callable[[float], None] | None = None,
        on_retry: Callable[[RetryState], None] | None = None,
        deadline: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or RetryConfig()
        self.deadline = deadline
        self._sleep = sleep or time.sleep
        self._on_retry = on_retry
        self._clock = clock
        self._log_before_sleep = tenacity.before_sleep_log(logger, logging.WARNING)

    def is_retryable(self, exc: BaseException) -> bool:
        """Whether ``exc`` should trigger another attempt."""
        if isinstance(exc, TransientBackendError):
            return True
        return self.config.retry_bad_request and isinstance(exc, BadRequestError)

    def _before_sleep(
        self, retry_state: tenacity.RetryCallState, budget: _Budget | None
    ) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        if budget is not None and delay >= budget.remaining():
            raise _BudgetSpent(retry_state)
        self._log_before_sleep(retry_state)
        if self._on_retry is not None:
            outcome = retry_state.outcome
            self._on_retry(RetryState(
                attempt=retry_state.attempt_number,
                next_delay=delay,
                error=outcome.exception() if outcome is not None else None,
            ))

    def _exhausted(self, last: tenacity.Future, budget_spent: bool) -> RetryExhaustedError:
        return RetryExhaustedError(
            attempts=last.attempt_number,
            last_error=last.exception(),
            deadline=self.deadline if budget_spent else None,
        )

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Invoke ``fn`` until it succeeds, or the attempts or deadline run out.

        Raises:
            RetryExhaustedError: Every attempt failed with a retryable error,
                or the deadline left no room for another attempt.
            Exception: Any non-retryable error, unchanged, on first sight.
        """
        budget = _Budget(self.deadline, self._clock) if self.deadline is not None else None
        stop = tenacity.stop_after_attempt(self.config.max_attempts)
        if budget is not None:
            stop = stop | _BudgetStop(budget)
        retryer = tenacity.Retrying(
            retry=tenacity.retry_if_exception(self.is_retryable),
            wait=_BackoffWait(self.config),
            stop=stop,
            sleep=self._sleep,
            before_sleep=lambda state: self._before_sleep(state, budget),
            reraise=False,
        )
        try:
            return retryer(fn, *args, **kwargs)
        except tenacity.RetryError as exc:
            spent = budget is not None and budget.remaining() <= 0
            error = self._exhausted(exc.last_attempt, spent)
            raise error from error.last_error
        except _BudgetSpent as exc:
            logger.warning(
                "Retry deadline of %ss reached after %d attempts",
                self.deadline, exc.retry_state.attempt_number,
            )
            error = self._exhausted(exc.retry_state.outcome, True)
            raise error from error.last_error

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, StrEnum

from tenacity import RetryCallState

from fantasy_ingest.ingestion.config import ProviderConfig
from fantasy_ingest.ingestion.providers.base.errors import ProviderError, ProviderRequestError
from fantasy_ingest.ingestion.providers.base.types import RequestDescriptor


class Disposition(Enum):
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass(frozen=True)
class RetryController:
    """
    Decides whether and when a failed call is re-admitted.

    It never runs the call: the orchestrator plugs `retry_strategy`,
    `wait_strategy` and `stop_strategy` into tenacity, which in turn hands
    each attempt back to the rate limiter.
    """

    ceiling: int = 3
    base_s: float = 0.3

    @classmethod
    def from_config(cls, cfg: ProviderConfig) -> RetryController:
        return cls(ceiling=cfg.retry_ceiling, base_s=cfg.backoff_base_s)

    def classify(self, error: BaseException) -> Disposition:
        if not isinstance(error, Exception):
            # Cancellation and interpreter shutdown.
            return Disposition.FATAL

        if isinstance(error, ProviderRequestError):
            status = error.status_code
            if status is None:
                # No response at all.
                return Disposition.RETRYABLE
            if status == 429 or 500 <= status <= 599:
                return Disposition.RETRYABLE
            if 400 <= status <= 499:
                return Disposition.FATAL
            return Disposition.RETRYABLE

        if isinstance(error, ProviderError):
            return Disposition.RETRYABLE if error.retryable else Disposition.FATAL

        # Unclassifiable failures lean toward retry; the ceiling still bounds them.
        return Disposition.RETRYABLE

    def next_delay(self, attempt: int) -> float:
        """Backoff before retry number `attempt` (0 for the first retry)."""
        if attempt < 0:
            raise ValueError(f"attempt must be >= 0, got {attempt}")
        return self.base_s * (2**attempt)

    def should_retry(self, error: BaseException, retries_done: int) -> bool:
        if retries_done >= self.ceiling:
            return False
        return self.classify(error) is Disposition.RETRYABLE

    # -----------------------------
    # tenacity strategies
    # -----------------------------

    def retry_strategy(self, retry_state: RetryCallState) -> bool:
        outcome = retry_state.outcome
        if outcome is None or not outcome.failed:
            return False
        error = outcome.exception()
        return self.should_retry(error, retry_state.attempt_number - 1)

    def wait_strategy(self, retry_state: RetryCallState) -> float:
        return self.next_delay(retry_state.attempt_number - 1)

    def stop_strategy(self, retry_state: RetryCallState) -> bool:
        return retry_state.attempt_number > self.ceiling


class QueueState(StrEnum):
    QUEUED = "queued"
    ADMITTED = "admitted"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    RETRY_SCHEDULED = "retry_scheduled"
    FAILED = "failed"


_TRANSITIONS: dict[QueueState, frozenset[QueueState]] = {
    QueueState.QUEUED: frozenset({QueueState.ADMITTED, QueueState.FAILED}),
    QueueState.ADMITTED: frozenset({QueueState.EXECUTING}),
    QueueState.EXECUTING: frozenset(
        {QueueState.SUCCEEDED, QueueState.RETRY_SCHEDULED, QueueState.FAILED}
    ),
    QueueState.RETRY_SCHEDULED: frozenset({QueueState.QUEUED}),
    QueueState.SUCCEEDED: frozenset(),
    QueueState.FAILED: frozenset(),
}


class InvalidTransition(RuntimeError):
    pass


@dataclass
class QueueItem:
    """Lifecycle record for one logical request while it is being driven to a terminal state."""

    descriptor: RequestDescriptor
    max_attempts: int
    state: QueueState = QueueState.QUEUED
    attempts: int = 0
    last_error: BaseException | None = field(default=None, repr=False)

    @property
    def retries(self) -> int:
        return max(0, self.attempts - 1)

    @property
    def done(self) -> bool:
        return self.state in (QueueState.SUCCEEDED, QueueState.FAILED)

    def transition(self, new_state: QueueState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTransition(
                f"{self.state} -> {new_state} for {self.descriptor.cache_key()}"
            )
        self.state = new_state

    def admitted(self) -> None:
        self.transition(QueueState.ADMITTED)

    def executing(self) -> None:
        if self.attempts >= self.max_attempts:
            raise InvalidTransition(
                f"attempt ceiling {self.max_attempts} reached for {self.descriptor.cache_key()}"
            )
        self.transition(QueueState.EXECUTING)
        self.attempts += 1

    def succeeded(self) -> None:
        self.transition(QueueState.SUCCEEDED)

    def retry_scheduled(self, error: BaseException) -> None:
        self.last_error = error
        self.transition(QueueState.RETRY_SCHEDULED)

    def requeued(self) -> None:
        self.transition(QueueState.QUEUED)

    def failed(self, error: BaseException) -> None:
        self.last_error = error
        self.transition(QueueState.FAILED)

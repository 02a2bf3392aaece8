"""Background jobs scheduled on the running event loop with a retry policy."""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from app.core.config import settings
from app.core.errors import AppError

logger = logging.getLogger(__name__)

JobFactory = Callable[[], Awaitable[Any]]

_running_jobs: set[asyncio.Task] = set()


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    min_timeout: float = 1.0
    factor: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)."""
        return self.min_timeout * (self.factor ** (attempt - 1))

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.JOB_MAX_ATTEMPTS,
            min_timeout=settings.JOB_MIN_TIMEOUT_SECONDS,
            factor=settings.JOB_BACKOFF_FACTOR,
        )


def _is_retryable(error: Exception) -> bool:
    # Client errors will fail the same way again.
    return not (isinstance(error, AppError) and error.status_code < 500)


async def run_with_retries(
    job_name: str,
    job_factory: JobFactory,
    policy: RetryPolicy | None = None,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Any:
    policy = policy or RetryPolicy.from_settings()
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await job_factory()
        except Exception as exc:
            if attempt >= policy.max_attempts or not _is_retryable(exc):
                logger.error(
                    "Job %s failed after %s attempt(s): %s", job_name, attempt, exc, exc_info=True
                )
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "Job %s failed on attempt %s/%s: %s. Retrying in %.1fs...",
                job_name,
                attempt,
                policy.max_attempts,
                exc,
                delay,
            )
            await sleep(delay)
    raise RuntimeError(f"Job {job_name} exhausted retries without a captured error")


async def _run_logged(job_name: str, job_factory: JobFactory, policy: RetryPolicy | None) -> None:
    try:
        await run_with_retries(job_name, job_factory, policy)
    except Exception:
        # Already logged; the job has no caller left to report to.
        pass


def enqueue(job_name: str, job_factory: JobFactory, policy: RetryPolicy | None = None) -> asyncio.Task:
    """Schedule a job on the running loop; failures are logged, never raised to the caller."""
    task = asyncio.create_task(_run_logged(job_name, job_factory, policy), name=job_name)
    _running_jobs.add(task)
    task.add_done_callback(_running_jobs.discard)
    logger.info("Enqueued job %s", job_name)
    return task


async def drain_jobs() -> None:
    """Wait for scheduled jobs, used on shutdown."""
    if _running_jobs:
        await asyncio.gather(*list(_running_jobs), return_exceptions=True)

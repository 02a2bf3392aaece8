import asyncio
from unittest.mock import AsyncMock

import pytest

from app.core.errors import NotFoundError
from app.worker import RetryPolicy, drain_jobs, enqueue, run_with_retries


def test_retry_policy_backoff():
    policy = RetryPolicy(max_attempts=3, min_timeout=1.0, factor=2.0)
    assert [policy.delay_for(attempt) for attempt in (1, 2, 3)] == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_job_is_retried_until_it_succeeds():
    job = AsyncMock(side_effect=[RuntimeError("flaky"), RuntimeError("flaky"), "done"])
    sleep = AsyncMock()

    result = await run_with_retries("flaky", job, RetryPolicy(max_attempts=3), sleep=sleep)

    assert result == "done"
    assert job.await_count == 3
    assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0]


@pytest.mark.asyncio
async def test_job_raises_after_last_attempt():
    job = AsyncMock(side_effect=RuntimeError("down"))
    sleep = AsyncMock()

    with pytest.raises(RuntimeError):
        await run_with_retries("down", job, RetryPolicy(max_attempts=2), sleep=sleep)

    assert job.await_count == 2
    sleep.assert_awaited_once()


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    job = AsyncMock(side_effect=NotFoundError("Content not found"))
    sleep = AsyncMock()

    with pytest.raises(NotFoundError):
        await run_with_retries("missing", job, RetryPolicy(max_attempts=3), sleep=sleep)

    assert job.await_count == 1
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_enqueued_failures_do_not_escape():
    finished = asyncio.Event()

    async def job():
        finished.set()
        raise NotFoundError("gone")

    task = enqueue("background", job)
    await drain_jobs()

    assert finished.is_set()
    assert task.done()
    assert task.exception() is None

# SPDX-License-Identifier: Apache-2.0
"""Asynchronous task tracking."""
from __future__ import annotations

import asyncio
import threading

import pytest

from fleet_agent.actions import RunOutcome
from fleet_agent.tasks import TaskLimitError, TaskService, TaskState, UnknownTaskError


def _blocking(release: threading.Event):
    def call() -> RunOutcome:
        release.wait(5)
        return RunOutcome("late", None)

    return call


@pytest.mark.asyncio
async def test_task_records_value_when_done(tasks):
    task = tasks.start("apply", lambda: RunOutcome({"applied": True}, None))

    assert task.state is TaskState.RUNNING
    finished = await tasks.wait(task.task_id)

    assert finished.state is TaskState.DONE
    assert finished.value == {"applied": True}
    assert finished.finished_at is not None
    assert tasks.running == 0


@pytest.mark.asyncio
async def test_task_records_handler_error(tasks):
    task = tasks.start("apply", lambda: RunOutcome(None, RuntimeError("disk full")))

    finished = await tasks.wait(task.task_id)

    assert finished.state is TaskState.FAILED
    assert finished.to_dict() == {
        "agent_task_id": task.task_id,
        "state": "failed",
        "exception": {"message": "disk full"},
    }


@pytest.mark.asyncio
async def test_task_records_raised_exception(tasks):
    def explode() -> RunOutcome:
        raise ValueError("bad")

    task = tasks.start("apply", explode)

    finished = await tasks.wait(task.task_id)

    assert finished.state is TaskState.FAILED
    assert finished.error == "bad"


@pytest.mark.asyncio
async def test_task_limit_is_enforced():
    tasks = TaskService(max_tasks=1)
    release = threading.Event()
    first = tasks.start("drain", _blocking(release))
    try:
        with pytest.raises(TaskLimitError):
            tasks.start("drain", _blocking(release))
    finally:
        release.set()
    await tasks.wait(first.task_id)

    second = tasks.start("drain", lambda: RunOutcome("ok", None))
    assert (await tasks.wait(second.task_id)).value == "ok"


@pytest.mark.asyncio
async def test_cancel_marks_task_cancelled(tasks):
    release = threading.Event()
    task = tasks.start("drain", _blocking(release))

    cancelled = tasks.cancel(task.task_id)
    assert cancelled.state is TaskState.CANCELLING
    assert cancelled.to_dict()["state"] == "cancelling"
    release.set()
    await tasks.wait(task.task_id)

    assert cancelled.state is TaskState.CANCELLED
    assert tasks.get(task.task_id).value is None


@pytest.mark.asyncio
async def test_cancelled_task_holds_its_slot_until_handler_returns():
    tasks = TaskService(max_tasks=1)
    release = threading.Event()
    first = tasks.start("drain", _blocking(release))
    tasks.cancel(first.task_id)
    try:
        assert tasks.running == 1
        with pytest.raises(TaskLimitError):
            tasks.start("drain", _blocking(release))
    finally:
        release.set()
    await tasks.wait(first.task_id)

    assert first.state is TaskState.CANCELLED
    assert tasks.running == 0
    second = tasks.start("drain", lambda: RunOutcome("ok", None))
    assert (await tasks.wait(second.task_id)).value == "ok"


@pytest.mark.asyncio
async def test_cancel_of_finished_task_keeps_outcome(tasks):
    task = tasks.start("apply", lambda: RunOutcome("applied", None))
    await tasks.wait(task.task_id)

    assert tasks.cancel(task.task_id).state is TaskState.DONE
    assert tasks.get(task.task_id).value == "applied"


@pytest.mark.asyncio
async def test_finished_tasks_beyond_retention_are_forgotten():
    tasks = TaskService(max_tasks=4, retain_tasks=1)
    first = tasks.start("apply", lambda: RunOutcome(1, None))
    await tasks.wait(first.task_id)
    second = tasks.start("apply", lambda: RunOutcome(2, None))
    await tasks.wait(second.task_id)

    assert [t.task_id for t in tasks.list()] == [second.task_id]
    with pytest.raises(UnknownTaskError):
        tasks.get(first.task_id)


@pytest.mark.asyncio
async def test_retention_never_forgets_running_tasks():
    tasks = TaskService(max_tasks=4, retain_tasks=0)
    release = threading.Event()
    running = tasks.start("drain", _blocking(release))
    done = tasks.start("apply", lambda: RunOutcome("x", None))
    try:
        await asyncio.gather(tasks.wait(done.task_id), return_exceptions=True)
        assert [t.task_id for t in tasks.list()] == [running.task_id]
    finally:
        release.set()
    await asyncio.gather(tasks.wait(running.task_id), return_exceptions=True)
    assert tasks.list() == []


@pytest.mark.asyncio
async def test_list_and_close(tasks):
    release = threading.Event()
    running = tasks.start("drain", _blocking(release))
    done = tasks.start("ping", lambda: RunOutcome("pong", None))
    await tasks.wait(done.task_id)

    assert {t.task_id for t in tasks.list()} == {running.task_id, done.task_id}

    await tasks.close()
    release.set()
    assert tasks.get(running.task_id).state is TaskState.CANCELLED


def test_get_unknown_task(tasks):
    with pytest.raises(UnknownTaskError) as excinfo:
        tasks.get("missing")

    assert str(excinfo.value) == "unknown task missing"

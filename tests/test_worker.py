from __future__ import annotations

import asyncio
import logging

import pytest

from quizstats import worker
from quizstats.services.progress_service import ProgressService
from tests.conftest import FakeClock, make_event


def test_sweep_once_reports_users_rolled_forward(
    service: ProgressService, clock: FakeClock, caplog: pytest.LogCaptureFixture
) -> None:
    asyncio.run(service.ingest("u1", make_event()))
    clock.advance(days=1)

    with caplog.at_level(logging.INFO, logger="worker"):
        assert asyncio.run(worker.sweep_once(service)) == (1, 1)
    assert "users=1 updated=1" in caplog.text


def test_run_worker_once_exits_after_one_pass(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[ProgressService] = []

    async def fake_sweep(service: ProgressService) -> tuple[int, int]:
        calls.append(service)
        return 0, 0

    monkeypatch.setattr(worker, "sweep_once", fake_sweep)
    asyncio.run(worker.run_worker(interval=0, once=True))
    assert calls == [worker.progress_service]


def test_failed_pass_is_logged_not_raised(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    async def broken_sweep(service: ProgressService) -> tuple[int, int]:
        raise RuntimeError("store down")

    monkeypatch.setattr(worker, "sweep_once", broken_sweep)
    with caplog.at_level(logging.ERROR, logger="worker"):
        asyncio.run(worker.run_worker(interval=0, once=True))
    assert "Rollup sweep aborted" in caplog.text

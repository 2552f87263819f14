from __future__ import annotations

import asyncio

import pytest

from openapi_ts_sync.core.domain.models import RunState, SyncState
from openapi_ts_sync.core.errors import FetchError
from openapi_ts_sync.core.services.coordinator import RegenerationCoordinator
from openapi_ts_sync.core.services.pipeline import TypesPipeline
from tests.shared.fakes import SPEC_DOCUMENT, FakeGenerator, FakeSpecSource


def build(tmp_path, source, generator) -> tuple[RegenerationCoordinator, SyncState]:
    pipeline = TypesPipeline(
        source=source,
        generator=generator,
        spec_url="http://x/spec.json",
        output_path=tmp_path / "types.ts",
        temp_dir=tmp_path,
    )
    state = SyncState()
    return RegenerationCoordinator(pipeline, state), state


@pytest.mark.asyncio
async def test_requests_while_busy_are_dropped(tmp_path):
    gate = asyncio.Event()
    generator = FakeGenerator(gate=gate)
    coordinator, state = build(tmp_path, FakeSpecSource([SPEC_DOCUMENT]), generator)

    assert coordinator.request_regeneration() is True
    await asyncio.sleep(0)
    assert coordinator.request_regeneration() is False
    assert coordinator.request_regeneration() is False
    assert state.is_running is True

    gate.set()
    assert await coordinator.wait_idle(timeout=5)

    assert generator.calls == 1
    assert generator.max_active == 1
    assert state.runs_started == 1
    assert state.dropped_requests == 2
    assert state.is_running is False


@pytest.mark.asyncio
async def test_concurrent_pipeline_entries_never_exceed_one(tmp_path):
    gate = asyncio.Event()
    generator = FakeGenerator(gate=gate)
    coordinator, state = build(tmp_path, FakeSpecSource([SPEC_DOCUMENT]), generator)

    for _ in range(3):
        for _ in range(5):
            coordinator.request_regeneration()
            await asyncio.sleep(0)
        gate.set()
        await coordinator.wait_idle(timeout=5)
        gate.clear()

    assert generator.max_active == 1
    assert generator.calls == 3
    assert state.runs_succeeded == 3


@pytest.mark.asyncio
async def test_failed_run_clears_busy_flag_and_next_request_runs(tmp_path, caplog):
    source = FakeSpecSource([FetchError("Request failed with status code 500", status=500, body="oops"), SPEC_DOCUMENT])
    coordinator, state = build(tmp_path, source, FakeGenerator())

    coordinator.request_regeneration()
    await coordinator.wait_idle(timeout=5)

    assert state.is_running is False
    assert state.runs_failed == 1
    assert state.last_run is not None and state.last_run.state is RunState.FAILED
    messages = [r.getMessage() for r in caplog.records]
    assert any("Status: 500, Data: oops" in m for m in messages)

    coordinator.request_regeneration()
    await coordinator.wait_idle(timeout=5)

    assert state.runs_succeeded == 1
    assert state.last_run.state is RunState.SUCCEEDED
    assert (tmp_path / "types.ts").exists()


@pytest.mark.asyncio
async def test_unexpected_errors_are_contained(tmp_path, caplog):
    coordinator, state = build(tmp_path, FakeSpecSource([RuntimeError("kaboom")]), FakeGenerator())

    coordinator.request_regeneration()
    await coordinator.wait_idle(timeout=5)

    assert state.is_running is False
    assert state.runs_failed == 1
    assert state.last_run.state is RunState.FAILED
    assert any("Unexpected error updating types" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_wait_idle_times_out_while_run_is_blocked(tmp_path):
    gate = asyncio.Event()
    coordinator, _ = build(tmp_path, FakeSpecSource([SPEC_DOCUMENT]), FakeGenerator(gate=gate))

    coordinator.request_regeneration()
    assert await coordinator.wait_idle(timeout=0.05) is False

    gate.set()
    assert await coordinator.wait_idle(timeout=5) is True


@pytest.mark.asyncio
async def test_wait_idle_without_runs_returns_immediately(tmp_path):
    coordinator, _ = build(tmp_path, FakeSpecSource([SPEC_DOCUMENT]), FakeGenerator())
    assert await coordinator.wait_idle(timeout=0) is True

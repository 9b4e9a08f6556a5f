from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import pytest

from queuecancel.runtime.cancellation import NONE, CancellationToken
from queuecancel.runtime.dispatch import dispatch_invocation
from queuecancel.runtime.lifecycle import HostLifetime
from queuecancel.runtime.work import (
    CancellableUnitOfWork,
    Invocation,
    WorkEvent,
    WorkState,
)

WORK_LOGGER = "queuecancel.runtime.work"


class FakeSleep:
    """Records each suspension and runs a hook with the 1-based call number."""

    def __init__(self, on_call: Callable[[int], None] | None = None) -> None:
        self.calls: list[float] = []
        self._on_call = on_call

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        if self._on_call is not None:
            self._on_call(len(self.calls))


def _messages(caplog: pytest.LogCaptureFixture, text: str) -> list[str]:
    return [r.getMessage() for r in caplog.records if r.getMessage() == text]


@pytest.mark.asyncio
async def test_cancelled_before_first_step_stops_after_one_cycle(
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO, logger=WORK_LOGGER)
    token = CancellationToken()
    token.cancel()
    sleep = FakeSleep()
    work = CancellableUnitOfWork(max_steps=3, sleep=sleep, notify=lambda _: None)

    result = await work.run(Invocation(payload="hello", token=token))

    assert result.state is WorkState.CANCELLED
    assert result.steps == 1
    assert len(sleep.calls) == 1
    assert len(_messages(caplog, "Cancellation requested!")) == 1
    assert _messages(caplog, "Cancellation not requested.") == []


@pytest.mark.asyncio
async def test_never_cancelled_runs_every_step(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger=WORK_LOGGER)
    sleep = FakeSleep()
    work = CancellableUnitOfWork(max_steps=3, step_interval=1.0, sleep=sleep)

    result = await work.run(Invocation(payload="hello", token=CancellationToken()))

    assert result.state is WorkState.COMPLETED
    assert result.steps == 3
    assert sleep.calls == [1.0, 1.0, 1.0]
    assert len(_messages(caplog, "Cancellation not requested.")) == 3
    assert _messages(caplog, "Cancellation requested!") == []


@pytest.mark.asyncio
async def test_cancelled_between_steps_is_seen_at_next_boundary(
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO, logger=WORK_LOGGER)
    token = CancellationToken()

    def cancel_during_fourth_wait(call: int) -> None:
        if call == 4:
            token.cancel()

    sleep = FakeSleep(cancel_during_fourth_wait)
    work = CancellableUnitOfWork(max_steps=5, sleep=sleep, notify=lambda _: None)

    result = await work.run(Invocation(payload="hello", token=token))

    assert result.state is WorkState.CANCELLED
    assert result.steps == 4
    assert len(sleep.calls) == 4
    assert len(_messages(caplog, "Cancellation not requested.")) == 3
    assert len(_messages(caplog, "Cancellation requested!")) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("k", [0, 1, 6, 9])
async def test_cancel_at_check_k_runs_k_plus_one_cycles(k: int) -> None:
    token = CancellationToken()

    def cancel_at(call: int) -> None:
        if call == k + 1:
            token.cancel()

    sleep = FakeSleep(cancel_at)
    work = CancellableUnitOfWork(max_steps=10, sleep=sleep, notify=lambda _: None)

    result = await work.run(Invocation(payload="p", token=token))

    assert result.state is WorkState.CANCELLED
    assert result.steps == k + 1
    assert len(sleep.calls) == k + 1


@pytest.mark.asyncio
async def test_secondary_only_fires_its_own_callback() -> None:
    primary = CancellationToken()
    secondary = CancellationToken()
    notes: list[str] = []

    def cancel_secondary(call: int) -> None:
        if call == 1:
            secondary.cancel()

    work = CancellableUnitOfWork(
        max_steps=3, sleep=FakeSleep(cancel_secondary), notify=notes.append
    )

    result = await work.run(Invocation(payload="p", token=primary, secondary=secondary))

    assert notes == ["Secondary CancellationToken register callback invoked."]
    assert not primary.is_cancelled()
    assert result.state is WorkState.COMPLETED
    assert result.steps == 3


@pytest.mark.asyncio
async def test_primary_callback_fires_once_and_records_reason() -> None:
    token = CancellationToken()
    notes: list[str] = []

    def cancel_twice(call: int) -> None:
        token.cancel(reason="killed")
        token.cancel(reason="again")

    work = CancellableUnitOfWork(max_steps=5, sleep=FakeSleep(cancel_twice), notify=notes.append)

    result = await work.run(Invocation(payload="p", token=token))

    assert notes == ["CancellationToken register callback invoked."]
    assert result.reason == "killed"


@pytest.mark.asyncio
async def test_callbacks_released_when_run_returns() -> None:
    token = CancellationToken()
    notes: list[str] = []
    work = CancellableUnitOfWork(max_steps=2, sleep=FakeSleep(), notify=notes.append)

    result = await work.run(Invocation(payload="p", token=token))
    token.cancel()

    assert result.state is WorkState.COMPLETED
    assert notes == []


@pytest.mark.asyncio
async def test_same_handle_as_secondary_notifies_for_both_registrations(
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO, logger=WORK_LOGGER)
    token = CancellationToken()
    token.cancel()
    notes: list[str] = []
    work = CancellableUnitOfWork(max_steps=1, sleep=FakeSleep(), notify=notes.append)

    await work.run(Invocation(payload="p", token=token, secondary=token))

    assert notes == [
        "CancellationToken register callback invoked.",
        "Secondary CancellationToken register callback invoked.",
    ]
    assert "secondary token is token? True" in caplog.messages


@pytest.mark.asyncio
async def test_same_handle_cancelled_mid_run_notifies_twice() -> None:
    token = CancellationToken()
    notes: list[str] = []

    def cancel_first(call: int) -> None:
        if call == 1:
            token.cancel()

    work = CancellableUnitOfWork(max_steps=3, sleep=FakeSleep(cancel_first), notify=notes.append)

    result = await work.run(Invocation(payload="p", token=token, secondary=token))

    assert result.state is WorkState.CANCELLED
    assert len(notes) == 2


@pytest.mark.asyncio
async def test_failed_registration_releases_earlier_callbacks() -> None:
    primary = CancellationToken()
    secondary = CancellationToken()
    secondary.cancel()
    notes: list[str] = []

    def notify(message: str) -> None:
        if message.startswith("Secondary"):
            raise RuntimeError("console unavailable")
        notes.append(message)

    work = CancellableUnitOfWork(max_steps=3, sleep=FakeSleep(), notify=notify)

    with pytest.raises(RuntimeError, match="console unavailable"):
        await work.run(Invocation(payload="p", token=primary, secondary=secondary))

    primary.cancel()
    assert notes == []


@pytest.mark.asyncio
async def test_logs_identity_comparisons(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger=WORK_LOGGER)
    host = HostLifetime()
    work = CancellableUnitOfWork(max_steps=1, sleep=FakeSleep())

    await work.run(
        Invocation(payload="hello", token=host.stopping, secondary=CancellationToken()),
        host=host,
    )

    assert caplog.messages[:5] == [
        "Queue trigger processed message: hello",
        "token is NONE? False",
        "secondary token is NONE? False",
        "secondary token is token? False",
        "host stopping token is token? True",
    ]


@pytest.mark.asyncio
async def test_default_token_is_none_and_host_absent(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger=WORK_LOGGER)
    work = CancellableUnitOfWork(max_steps=1, sleep=FakeSleep())

    invocation = Invocation(payload="hello")
    result = await work.run(invocation)

    assert invocation.token is NONE
    assert result.state is WorkState.COMPLETED
    assert "token is NONE? True" in caplog.messages
    assert "host lifetime is absent" in caplog.messages


@pytest.mark.asyncio
async def test_events_trace_phase_transitions() -> None:
    token = CancellationToken()
    events: list[WorkEvent] = []

    async def on_event(event: WorkEvent) -> None:
        events.append(event)

    def cancel_on_second(call: int) -> None:
        if call == 2:
            token.cancel()

    work = CancellableUnitOfWork(
        max_steps=5, sleep=FakeSleep(cancel_on_second), notify=lambda _: None, on_event=on_event
    )

    await work.run(Invocation(payload="p", token=token, invocation_id="inv-1"))

    assert [(e.type, e.step) for e in events] == [
        ("started", None),
        ("step", 0),
        ("cancelled", 1),
    ]
    assert {e.invocation_id for e in events} == {"inv-1"}


@pytest.mark.asyncio
async def test_sync_event_handler_and_completion_event() -> None:
    events: list[str] = []
    work = CancellableUnitOfWork(
        max_steps=2, sleep=FakeSleep(), on_event=lambda e: events.append(e.type)
    )

    await work.run(Invocation(payload="p", token=CancellationToken()))

    assert events == ["started", "step", "step", "completed"]


@pytest.mark.asyncio
async def test_sleep_failure_propagates() -> None:
    async def broken_sleep(delay: float) -> None:
        raise OSError("timer failed")

    token = CancellationToken()
    notes: list[str] = []
    work = CancellableUnitOfWork(max_steps=3, sleep=broken_sleep, notify=notes.append)

    with pytest.raises(OSError, match="timer failed"):
        await work.run(Invocation(payload="p", token=token))

    token.cancel()
    assert notes == []


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"max_steps": 0}, "max_steps"),
        ({"step_interval": -1.0}, "step_interval"),
    ],
)
def test_rejects_invalid_limits(kwargs: dict[str, float], message: str) -> None:
    with pytest.raises(ValueError, match=message):
        CancellableUnitOfWork(**kwargs)


@pytest.mark.asyncio
async def test_dispatch_handle_cancels_cooperatively() -> None:
    work = CancellableUnitOfWork(max_steps=1000, step_interval=0, notify=lambda _: None)
    handle = dispatch_invocation(work, Invocation(payload="p", token=CancellationToken()))

    assert handle.status == "running"
    handle.cancel(reason="stop")
    result = await handle.wait()

    assert handle.done()
    assert result.state is WorkState.CANCELLED
    assert result.steps == 1
    assert result.reason == "stop"
    assert handle.status == "cancelled"


@pytest.mark.asyncio
async def test_concurrent_invocations_do_not_share_state() -> None:
    work = CancellableUnitOfWork(max_steps=5, step_interval=0, notify=lambda _: None)
    first = dispatch_invocation(work, Invocation(payload="a", token=CancellationToken()))
    second = dispatch_invocation(work, Invocation(payload="b", token=CancellationToken()))

    first.cancel()
    results = await asyncio.gather(first.wait(), second.wait())

    assert [r.state for r in results] == [WorkState.CANCELLED, WorkState.COMPLETED]
    assert second.status == "completed"


@pytest.mark.asyncio
async def test_dispatch_cancel_without_token_warns(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="queuecancel.runtime.dispatch")
    work = CancellableUnitOfWork(max_steps=2, step_interval=0)
    handle = dispatch_invocation(work, Invocation(payload="p", invocation_id="abc12345-x"))

    handle.cancel(reason="stop")
    result = await handle.wait()

    assert result.state is WorkState.COMPLETED
    assert "Invocation abc12345 has no cancellable token; cancel('stop') has no effect" in (
        caplog.messages
    )

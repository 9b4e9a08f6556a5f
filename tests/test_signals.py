from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from queuecancel.runtime.cancellation import CancellationToken
from queuecancel.signals import KILL_REASON, InvocationInfo, SignalManager, watch_for_cancel


def _register(
    sm: SignalManager, invocation_id: str, pid: int = 12345, started_at: datetime | None = None
) -> None:
    sm.register(
        InvocationInfo(
            invocation_id=invocation_id,
            pid=pid,
            queue="test-queue",
            payload_preview="hello",
            started_at=(started_at or datetime.now(timezone.utc)).isoformat(),
        )
    )


def test_cancel_requires_running_invocation(tmp_path) -> None:
    sm = SignalManager(signal_dir=tmp_path)

    assert not sm.cancel("missing")

    _register(sm, "abc12345")
    assert sm.cancel("abc12345")
    assert sm.is_cancelled("abc12345")


def test_cancel_by_prefix(tmp_path) -> None:
    sm = SignalManager(signal_dir=tmp_path)
    _register(sm, "abc11111")
    _register(sm, "abc22222")
    _register(sm, "def33333")

    cancelled = sm.cancel_by_prefix("abc")

    assert sorted(cancelled) == ["abc11111", "abc22222"]
    assert not sm.is_cancelled("def33333")


def test_cancel_all_and_deregister(tmp_path) -> None:
    sm = SignalManager(signal_dir=tmp_path)
    _register(sm, "abc11111")
    _register(sm, "def22222")

    assert sorted(sm.cancel_all()) == ["abc11111", "def22222"]

    sm.deregister("abc11111")
    sm.deregister("abc11111")

    assert [info.invocation_id for info in sm.list_running()] == ["def22222"]
    assert not sm.is_cancelled("abc11111")


def test_list_running_newest_first_and_skips_corrupt_files(tmp_path) -> None:
    sm = SignalManager(signal_dir=tmp_path)
    now = datetime.now(timezone.utc)
    _register(sm, "older", started_at=now - timedelta(minutes=5))
    _register(sm, "newer", started_at=now)
    (tmp_path / "broken.running").write_text("{not json", encoding="utf-8")

    assert [info.invocation_id for info in sm.list_running()] == ["newer", "older"]


def test_cleanup_stale_removes_dead_pids(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("queuecancel.signals._pid_alive", lambda pid: pid == 1)
    sm = SignalManager(signal_dir=tmp_path)
    _register(sm, "alive", pid=1)
    _register(sm, "dead", pid=2)

    assert sm.cleanup_stale() == ["dead"]
    assert [info.invocation_id for info in sm.list_running()] == ["alive"]


def test_signal_dir_from_environment(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("QUEUECANCEL_SIGNAL_DIR", str(tmp_path / "signals"))
    sm = SignalManager()
    _register(sm, "abc12345")

    assert (tmp_path / "signals" / "abc12345.running").exists()


@pytest.mark.asyncio
async def test_watch_for_cancel_cancels_token_on_kill_file(tmp_path) -> None:
    sm = SignalManager(signal_dir=tmp_path)
    _register(sm, "abc12345")
    sm.cancel("abc12345")
    token = CancellationToken()

    await watch_for_cancel(sm, "abc12345", token, interval=0)

    assert token.is_cancelled()
    assert token.reason == KILL_REASON


@pytest.mark.asyncio
async def test_watch_for_cancel_returns_when_token_already_cancelled(tmp_path) -> None:
    sm = SignalManager(signal_dir=tmp_path)
    token = CancellationToken()
    token.cancel(reason="shutdown")

    await watch_for_cancel(sm, "abc12345", token, interval=0)

    assert token.reason == "shutdown"

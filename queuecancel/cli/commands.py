"""Worker commands: run, worker, enqueue."""

from __future__ import annotations

import asyncio
import platform
import signal
from pathlib import Path
from typing import Annotated

import typer

from ..config import WorkerConfig
from ..errors import ConfigError
from ..queue import DirectoryQueue
from ..runtime.cancellation import CancellationToken
from ..runtime.lifecycle import HostLifetime
from ..runtime.work import CancellableUnitOfWork, WorkResult
from ..ui.theme import THEME
from ..worker import QueueWorker
from .formatting import _format_result, _markup
from .state import app, configure_logging, console


def _load_config(
    config_path: str | None,
    *,
    max_steps: int | None = None,
    interval: float | None = None,
    queue: str | None = None,
) -> WorkerConfig:
    """Resolve config from file/env, apply CLI overrides, exit 1 on errors."""
    try:
        config = WorkerConfig.from_file(config_path) if config_path else WorkerConfig()
        if max_steps is not None:
            config.max_steps = max_steps
        if interval is not None:
            config.step_interval = interval
        if queue is not None:
            config.queue = queue
        return config.validate()
    except ConfigError as exc:
        console.print(_markup(str(exc), THEME.error))
        raise typer.Exit(1) from exc


def _build_worker(config: WorkerConfig, host: HostLifetime) -> QueueWorker:
    work = CancellableUnitOfWork(max_steps=config.max_steps, step_interval=config.step_interval)
    queue = DirectoryQueue(config.queue, Path(config.queue_dir).expanduser())
    return QueueWorker(queue, work, host=host, poll_interval=config.poll_interval)


async def _run_one(config: WorkerConfig, payload: str) -> WorkResult:
    """Run a single payload in the foreground.

    Ctrl+C cancels this invocation only; SIGTERM stops the host.
    """
    loop = asyncio.get_running_loop()
    host = HostLifetime()
    interrupt = CancellationToken()

    def on_cancel():
        console.print(f"\n{_markup('Cancelling...', THEME.warning)}")
        interrupt.cancel(reason="interrupted")

    host.install_signal_handlers(loop)
    if platform.system() != "Windows":
        loop.add_signal_handler(signal.SIGINT, on_cancel)
    try:
        return await _build_worker(config, host).invoke(payload, interrupt=interrupt)
    finally:
        if platform.system() != "Windows":
            loop.remove_signal_handler(signal.SIGINT)
        host.remove_signal_handlers()


async def _run_worker(config: WorkerConfig, *, drain: bool) -> list[WorkResult]:
    """Consume the queue until SIGINT/SIGTERM (or until empty when draining)."""
    loop = asyncio.get_running_loop()
    host = HostLifetime()
    host.install_signal_handlers(loop, (signal.SIGTERM, signal.SIGINT))
    try:
        return await _build_worker(config, host).run(drain=drain)
    finally:
        host.remove_signal_handlers()


@app.command()
def run(
    payload: Annotated[str, typer.Argument(help="Message text to process")],
    max_steps: Annotated[
        int | None,
        typer.Option("--max-steps", "-n", help="Maximum loop steps (default 1000)"),
    ] = None,
    interval: Annotated[
        float | None,
        typer.Option("--interval", "-i", help="Seconds between cancellation checks"),
    ] = None,
    config_path: Annotated[
        str | None,
        typer.Option("--config", "-c", help="YAML worker config file"),
    ] = None,
) -> None:
    """Process one payload in the foreground (Ctrl+C cancels it)."""
    config = _load_config(config_path, max_steps=max_steps, interval=interval)
    configure_logging(config.level)
    result = asyncio.run(_run_one(config, payload))
    console.print(_format_result(result))


@app.command()
def worker(
    queue: Annotated[
        str | None,
        typer.Option("--queue", "-q", help="Queue name (default test-queue)"),
    ] = None,
    drain: Annotated[
        bool,
        typer.Option("--drain", help="Exit once the queue is empty"),
    ] = False,
    config_path: Annotated[
        str | None,
        typer.Option("--config", "-c", help="YAML worker config file"),
    ] = None,
) -> None:
    """Consume queued messages one at a time until stopped."""
    config = _load_config(config_path, queue=queue)
    configure_logging(config.level)
    console.print(_markup(f"Listening on {config.queue}", THEME.muted))
    results = asyncio.run(_run_worker(config, drain=drain))
    for result in results:
        console.print(f"  {_markup(result.invocation_id[:8], THEME.accent)}  {_format_result(result)}")
    console.print(_markup(f"Processed {len(results)} messages", THEME.success))


@app.command()
def enqueue(
    payload: Annotated[str, typer.Argument(help="Message text to enqueue")],
    queue: Annotated[
        str | None,
        typer.Option("--queue", "-q", help="Queue name (default test-queue)"),
    ] = None,
    config_path: Annotated[
        str | None,
        typer.Option("--config", "-c", help="YAML worker config file"),
    ] = None,
) -> None:
    """Add a message to the queue."""
    config = _load_config(config_path, queue=queue)
    message_id = DirectoryQueue(config.queue, Path(config.queue_dir).expanduser()).send(payload)
    console.print(_markup(f"Enqueued {message_id[:8]} on {config.queue}", THEME.success))

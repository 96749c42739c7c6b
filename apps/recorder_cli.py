from __future__ import annotations

import logging
import signal
import threading
from pathlib import Path
from typing import List, Optional, Tuple

import typer

from config.paths import Paths
from core.bus import Bus
from core.errors import InvalidConfig, RecorderError, StorageUnavailable
from core.executor import ExecutionContext
from core.timing.reset_ticker import ResetTicker
from data_collection.capture_session import CaptureSession
from data_collection.session_manager import SessionController
from sdk import SDK_CONFIG, RecordingConfig, load_recording_config
from sdk.logs import configure_logging

logger = logging.getLogger("bag_recorder")

app = typer.Typer(add_completion=False)


def build_recorder(cfg: RecordingConfig, threads: int = 4) -> Tuple[ExecutionContext, Bus, SessionController]:
    """Wire the execution context, bus and controller the way the CLI runs them."""

    context = ExecutionContext(num_threads=threads)
    bus = Bus(context)
    controller = SessionController(cfg, CaptureSession(context, bus))
    context.add_unit(controller)
    controller.attach(bus)
    return context, bus, controller


@app.command()
def main(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="JSON parameter file"),
    data_folder: Optional[str] = typer.Option(None, "--data-folder", help="Base directory for Bag_* folders"),
    file_duration: Optional[int] = typer.Option(None, "--file-duration", help="Seconds per bag file"),
    topic: Optional[List[str]] = typer.Option(
        None, "--topic", "-t", help="Topic to record (repeatable); '*' records every topic"
    ),
    storage_id: Optional[str] = typer.Option(None, "--storage-id", help="Writer format, e.g. mcap or jsonl"),
    threads: int = typer.Option(SDK_CONFIG.executor_threads, help="Worker threads in the execution context"),
    log_level: str = typer.Option("info", help="debug, info, warning, error or critical"),
    log_file: Optional[Path] = typer.Option(None, help="Also write logs to this file"),
    log_to_file: bool = typer.Option(False, "--log-to-file", help="Also write logs under BAGREC_LOGS_ROOT"),
    api_port: Optional[int] = typer.Option(None, help="Serve the HTTP control API on this port"),
    api_host: str = typer.Option("127.0.0.1", help="Bind address for the HTTP control API"),
) -> None:
    """Record topics to rotating bags; /bag_control turns recording on and off."""

    if log_file is None and log_to_file:
        log_file = Paths.from_env().recorder_log
    try:
        configure_logging(log_level, log_file)
    except ValueError as exc:
        typer.echo(f"[bagrec] invalid configuration: {exc}", err=True)
        raise typer.Exit(code=2)
    try:
        cfg = load_recording_config(
            config,
            data_folder=data_folder,
            file_duration=file_duration,
            logged_topics=topic or None,
            storage_id=storage_id,
        )
    except InvalidConfig as exc:
        typer.echo(f"[bagrec] invalid configuration: {exc}", err=True)
        raise typer.Exit(code=2)

    paths = Paths.for_data_folder(cfg.data_folder)
    try:
        paths.verify_writeable()
    except OSError as exc:
        logger.warning("%s", exc)

    context, bus, controller = build_recorder(cfg, threads)

    # Recording starts without waiting for a control signal.
    try:
        controller.start()
    except StorageUnavailable as exc:
        logger.error("Initial recording failed, waiting for a control signal: %s", exc)
    except InvalidConfig as exc:
        context.shutdown()
        typer.echo(f"[bagrec] invalid configuration: {exc}", err=True)
        raise typer.Exit(code=2)

    ticker: Optional[ResetTicker] = None
    if cfg.reset_interval:
        ticker = ResetTicker(controller.request_reset, cfg.reset_interval)
        ticker.start()

    server = None
    if api_port is not None:
        from apps.ui_api.main import bind
        from sdk.server import serve_in_thread

        bind(controller, bus, paths)
        server = serve_in_thread(api_host, api_port)

    # Graceful shutdown
    stop_event = threading.Event()

    def _stop(*_object: object) -> None:
        stop_event.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)

    t_spin = threading.Thread(target=context.spin, name="bagrec-spin", daemon=True)
    t_spin.start()
    typer.echo(f"[bagrec] Listening for control messages on {cfg.control_topic}")
    typer.echo("Press Ctrl+C to stop.")

    exit_code = 0
    try:
        while not stop_event.is_set():
            stop_event.wait(0.25)
    finally:
        if ticker:
            ticker.stop()
        if server is not None:
            server.should_exit = True
        try:
            controller.close()
        except RecorderError as exc:
            logger.error("Recording did not stop cleanly: %s", exc)
            exit_code = 1
        context.shutdown()
        t_spin.join(timeout=2.0)
    typer.echo("[bagrec] stopped")
    raise typer.Exit(code=exit_code)


if __name__ == "__main__":
    app()

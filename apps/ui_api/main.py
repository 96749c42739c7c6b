
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from config.paths import Paths
from core.bus import Bus
from core.events import ControlSignal
from data_collection.event_writer import METADATA_FILE, read_metadata
from data_collection.session_manager import SessionController

app = FastAPI(title="Bag Recorder API")


@dataclass
class Runtime:
    controller: SessionController
    bus: Bus
    paths: Paths


_runtime: Optional[Runtime] = None


def bind(controller: SessionController, bus: Bus, paths: Optional[Paths] = None) -> None:
    """Attach the API to a running controller (called by the recorder CLI)."""
    global _runtime
    _runtime = Runtime(controller, bus, paths or Paths.for_data_folder(controller.cfg.data_folder))


def unbind() -> None:
    global _runtime
    _runtime = None


def _not_running() -> JSONResponse:
    return JSONResponse(status_code=503, content={"error": "recorder not running"})


@app.get("/recording")
def get_recording():
    if _runtime is None:
        return _not_running()
    ctl = _runtime.controller
    handle = ctl.get_active_handle()
    return {
        "state": ctl.state.value,
        "pending_signals": ctl.pending_signals,
        "session": handle.describe() if handle else None,
    }


@app.post("/bag_control")
def post_bag_control(signal: ControlSignal):
    if _runtime is None:
        return _not_running()
    # same path as any other publisher on the control topic
    delivered = _runtime.bus.publish(_runtime.controller.cfg.control_topic, signal)
    return {"queued": delivered > 0, "enable_recording": signal.enable_recording}


@app.post("/recording/reset")
def post_reset():
    if _runtime is None:
        return _not_running()
    _runtime.controller.request_reset()
    return {"queued": True}


@app.get("/bags")
def list_bags():
    if _runtime is None:
        return _not_running()
    items = []
    for p in _runtime.paths.bag_dirs():
        item = {"name": p.name, "path": str(p), "closed": (p / METADATA_FILE).exists()}
        if item["closed"]:
            meta = read_metadata(p)
            item["files"] = [Path(f.path).name for f in meta.files]
            item["message_counts"] = meta.message_counts
        items.append(item)
    return {"bags": items}

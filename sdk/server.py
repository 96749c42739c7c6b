# sdk/server.py
"""
Server shim that exposes the FastAPI app for uvicorn.
This imports the real app from apps.ui_api.main to provide a stable import path:
    uvicorn sdk.server:app
The recorder CLI serves it in-process through serve_in_thread().
"""

from importlib import import_module
import logging
import os
import threading

import uvicorn

logger = logging.getLogger(__name__)

# Keep this dynamic so the main module path can be changed with an env var.
UI_API_MODULE = os.environ.get("BAGREC_UI_MODULE", "apps.ui_api.main")

try:
    mod = import_module(UI_API_MODULE)
    # Expect the FastAPI instance to be named `app` in the module.
    app = getattr(mod, "app")
except (ImportError, AttributeError) as exc:
    raise RuntimeError(
        f"Failed to import FastAPI app from '{UI_API_MODULE}'. "
        "Make sure the module exists and exports `app` (FastAPI instance)."
    ) from exc


def serve_in_thread(host: str, port: int, log_level: str = "warning") -> uvicorn.Server:
    """Run the API on a daemon thread; stop it with ``server.should_exit = True``."""
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level=log_level))
    thread = threading.Thread(target=server.run, name="bagrec-api", daemon=True)
    thread.start()
    logger.info("Control API listening on http://%s:%d", host, port)
    return server

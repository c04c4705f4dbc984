"""Serve the timeline API with uvicorn."""

from __future__ import annotations

import logging
import threading
import webbrowser
from pathlib import Path
from typing import Optional

import uvicorn

from .config import TimelineSettings
from .paths import get_db_path, get_preferences_path
from .webapp import create_app

logger = logging.getLogger(__name__)

BROWSER_DELAY_SECONDS = 1.0


def run_dashboard(
    *,
    host: str = "127.0.0.1",
    port: int = 8765,
    db_path: Optional[Path] = None,
    preferences_path: Optional[Path] = None,
    settings: Optional[TimelineSettings] = None,
    open_browser: bool = True,
    log_level: str = "info",
) -> None:
    """Block serving the API; optionally open the interactive docs once it is up."""
    resolved_db = Path(db_path or get_db_path())
    app = create_app(
        db_path=resolved_db,
        preferences_path=preferences_path or get_preferences_path(),
        settings=settings or TimelineSettings(),
    )

    docs_url = f"http://{host}:{port}/docs"
    logger.info("Timeline API for %s at %s", resolved_db, docs_url)
    if open_browser:
        timer = threading.Timer(BROWSER_DELAY_SECONDS, _open_docs, args=(docs_url,))
        timer.daemon = True
        timer.start()

    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def _open_docs(url: str) -> None:
    try:
        webbrowser.open(url)
    except webbrowser.Error:
        logger.exception("Failed to launch browser for %s", url)

"""Best-effort screenshot and HTML dump sinks for failure paths."""

from __future__ import annotations

import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from stockscout.logging_config import get_logger

LOGGER = get_logger(__name__)

_LABEL_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]+")


def diagnostics_dir() -> Path:
    path = Path(os.getenv("STOCKSCOUT_DIAGNOSTICS_DIR", "diagnostics"))
    path.mkdir(parents=True, exist_ok=True)
    return path


def _artifact_path(label: str, suffix: str) -> Path:
    safe_label = _LABEL_UNSAFE.sub("_", label).strip("_") or "page"
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
    return diagnostics_dir() / f"{safe_label}_{stamp}{suffix}"


async def capture_screenshot(page: Any, label: str) -> Path | None:
    """Save a full-page screenshot keyed by *label*; never raises."""

    try:
        path = _artifact_path(label, ".png")
        await page.screenshot(path=str(path), full_page=True)
    except Exception as exc:
        LOGGER.warning("Screenshot capture failed | label=%s | error=%s", label, exc)
        return None
    LOGGER.info("Saved screenshot %s", path)
    return path


async def dump_html(page: Any, label: str) -> Path | None:
    """Write the current page HTML keyed by *label*; never raises."""

    try:
        html = await page.content()
        path = _artifact_path(label, ".html")
        path.write_text(html, encoding="utf-8")
    except Exception as exc:
        LOGGER.warning("HTML dump failed | label=%s | error=%s", label, exc)
        return None
    LOGGER.info("Saved page HTML %s", path)
    return path


async def capture_failure(page: Any, label: str) -> list[Path]:
    """Capture both a screenshot and the page HTML; return what was written."""

    captured: list[Path] = []
    for sink in (capture_screenshot, dump_html):
        path = await sink(page, label)
        if path is not None:
            captured.append(path)
    return captured

import os
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
sys.path.insert(0, str(Path(__file__).resolve().parent))

os.environ.setdefault("STOCKSCOUT_LOG_DIR", str(Path(__file__).resolve().parent / ".logs"))


@pytest.fixture(autouse=True)
def _fast_waits(monkeypatch, tmp_path):
    monkeypatch.setenv("STOCKSCOUT_WAIT_MIN_MS", "0")
    monkeypatch.setenv("STOCKSCOUT_WAIT_MAX_MS", "0")
    monkeypatch.setenv("STOCKSCOUT_DIAGNOSTICS_DIR", str(tmp_path / "diagnostics"))


@pytest.fixture
def fast_policy():
    from stockscout.playwright_env import ScrapePolicy

    return ScrapePolicy(
        location_poll_attempts=2,
        location_poll_interval_s=0,
        confirm_poll_attempts=2,
        confirm_poll_interval_s=0,
        search_results_timeout_ms=10,
        reveal_timeout_ms=10,
        navigation_timeout_ms=10,
        grid_timeout_ms=10,
        navigation_attempts=1,
        scroll_pause_ms=0,
        scroll_max_steps=3,
    )

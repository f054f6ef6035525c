"""Pytest configuration for issuecanon tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install (`pip install -e .`).
"""

from __future__ import annotations

import logging
import os
import sys
import time
from pathlib import Path

import pytest

_TEST_START_TIMES: dict[str, float] = {}
_TEST_DURATIONS: list[tuple[str, float]] = []

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import issuecanon.logging as canon_logging  # noqa: E402

# No backoff sleeps when a test exercises a transient failure
os.environ.setdefault("ISSUECANON_RETRY_BASE", "0")
os.environ.setdefault("ISSUECANON_RETRY_MAX_SLEEP", "0")

pytest_plugins = ["pytest_asyncio"]


@pytest.fixture(autouse=True)
def _fresh_logger():
    """Drop the global logger so its handler never outlives a captured stdout."""
    yield
    canon_logging._GLOBAL = None
    logging.getLogger("issuecanon").handlers.clear()


def pytest_runtest_setup(item):  # type: ignore
    _TEST_START_TIMES[item.nodeid] = time.perf_counter()


def pytest_runtest_teardown(item):  # type: ignore
    start = _TEST_START_TIMES.pop(item.nodeid, None)
    if start is not None:
        _TEST_DURATIONS.append((item.nodeid, time.perf_counter() - start))


def pytest_sessionfinish(session, exitstatus):  # type: ignore
    if not _TEST_DURATIONS:
        return
    slow = sorted(_TEST_DURATIONS, key=lambda x: x[1], reverse=True)[:10]
    print("\n=== Slowest Tests (top 10) ===")
    for nodeid, secs in slow:
        print(f"{secs:0.3f}s  {nodeid}")
    total_time = sum(d for _, d in _TEST_DURATIONS)
    print(f"Total recorded test time: {total_time:0.3f}s over {len(_TEST_DURATIONS)} tests")

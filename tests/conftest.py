"""Pytest configuration for test isolation.

The import engine reads its settings (PDF feature flag, match threshold,
upload size limit, log level) from ``FINANCIAL_IMPORT_*`` environment
variables at call time. A developer's shell or a ``.env`` loaded by an
earlier CLI test could leak into later tests, so every test starts from a
clean environment via an autouse fixture.
"""

from __future__ import annotations

import os

import pytest


@pytest.fixture(autouse=True)
def _isolate_import_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove ``FINANCIAL_IMPORT_*`` variables so defaults apply per test."""

    for name in list(os.environ):
        if name.startswith("FINANCIAL_IMPORT_"):
            monkeypatch.delenv(name, raising=False)

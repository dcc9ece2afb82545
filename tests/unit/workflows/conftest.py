"""Fixtures for workflow tests."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from freezegun import freeze_time


@pytest.fixture(autouse=True)
def frozen_clock() -> Iterator[None]:
    """Pin snapshot timestamps and month tokens to 2025-01-15 10:30."""
    with freeze_time("2025-01-15 10:30:00"):
        yield

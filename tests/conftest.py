from __future__ import annotations

from collections.abc import Iterator

import pytest
import structlog


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """CLI runs point structlog at a captured stream; restore defaults afterwards."""

    yield
    structlog.reset_defaults()

from __future__ import annotations

import pytest

from src.app.deps import limiter


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield
    limiter.reset()

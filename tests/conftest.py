from __future__ import annotations

from collections.abc import Iterator

import pytest

from hydration.config import configure_settings
from hydration.hydratable import clear_hydrator_cache


@pytest.fixture(autouse=True)
def _reset_hydration_state() -> Iterator[None]:
    configure_settings(None)
    clear_hydrator_cache()
    yield
    configure_settings(None)
    clear_hydrator_cache()

import os

# Loggers read their settings at import time.
os.environ.setdefault("TILERACE_LOG_TO_FILE", "0")
os.environ.setdefault("TILERACE_LOG_LEVEL", "WARNING")

from typing import Callable, Iterable, Optional

import pytest

from core.race.board import BoardHazards
from core.race.store import RaceStateStore
from tests.helpers import FakeClock, FixedDice


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_store(clock) -> Callable[..., RaceStateStore]:
    """Factory fixture: a store with scripted dice and the shared fake clock."""

    def _builder(
        rolls: Iterable[int] = (),
        hazards: Optional[BoardHazards] = None,
        **kwargs,
    ) -> RaceStateStore:
        kwargs.setdefault("clock", clock)
        return RaceStateStore(hazards, dice=FixedDice(rolls), **kwargs)

    return _builder

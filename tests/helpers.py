from typing import Iterable

from core.race.board import Dice


class FixedDice(Dice):
    """Replays a scripted sequence of die values."""

    def __init__(self, values: Iterable[int]):
        super().__init__()
        self._values = list(values)

    def roll(self) -> int:
        if not self._values:
            raise AssertionError("FixedDice ran out of scripted values")
        return self._values.pop(0)

    def extend(self, values: Iterable[int]) -> None:
        self._values.extend(values)


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class RecordingLogAdapter:
    """Stands in for DiscordLogAdapter; records log_command calls."""

    def __init__(self):
        self.commands = []

    def log_command(self, **kwargs):
        self.commands.append(kwargs)

"""
Board rules for the tile race.

Pure functions only: no state, no I/O. The store draws the die value and
hands it to resolve_roll() together with the active hazard configuration.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from core.race.errors import InvalidHazardConfig, OutOfRange

BOARD_START = 1
BOARD_SIZE = 100
DIE_FACES = 6


class HazardKind(str, Enum):
    STOP = "stop"
    CHUTE = "chute"
    LADDER = "ladder"


def _check_tile(field_name: str, tile: int) -> int:
    if isinstance(tile, bool) or not isinstance(tile, int):
        raise OutOfRange(field_name, tile, f"{field_name} must be an integer, got {tile!r}")
    if not BOARD_START <= tile <= BOARD_SIZE:
        raise OutOfRange(
            field_name,
            tile,
            f"{field_name} must be between {BOARD_START} and {BOARD_SIZE}, got {tile}",
        )
    return tile


def check_position(position: int) -> int:
    """Validate a board position, raising OutOfRange when it is off the board."""
    return _check_tile("position", position)


def _freeze_distances(kind: HazardKind, raw: Mapping[int, int]) -> Mapping[int, int]:
    frozen = {}
    for tile, distance in raw.items():
        _check_tile(f"{kind.value} position", tile)
        if isinstance(distance, bool) or not isinstance(distance, int) or distance < 1:
            raise OutOfRange(
                f"{kind.value} distance",
                distance,
                f"{kind.value} at tile {tile} needs a positive distance, got {distance!r}",
            )
        frozen[tile] = distance
    return MappingProxyType(frozen)


@dataclass(frozen=True)
class BoardHazards:
    """
    Position-indexed hazard configuration.

    A tile may appear in at most one of stops, chutes and ladders; overlapping
    configuration is rejected at construction time.
    """

    stops: frozenset = field(default_factory=frozenset)
    chutes: Mapping[int, int] = field(default_factory=dict)
    ladders: Mapping[int, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        stops = frozenset(_check_tile("stop position", tile) for tile in self.stops)
        chutes = _freeze_distances(HazardKind.CHUTE, self.chutes)
        ladders = _freeze_distances(HazardKind.LADDER, self.ladders)

        overlap = (
            (stops & chutes.keys())
            | (stops & ladders.keys())
            | (chutes.keys() & ladders.keys())
        )
        if overlap:
            raise InvalidHazardConfig(
                f"Tiles configured with more than one hazard: {sorted(overlap)}"
            )

        object.__setattr__(self, "stops", stops)
        object.__setattr__(self, "chutes", chutes)
        object.__setattr__(self, "ladders", ladders)

    @classmethod
    def empty(cls) -> "BoardHazards":
        return cls()

    def hazard_at(self, tile: int) -> Optional[HazardKind]:
        if tile in self.ladders:
            return HazardKind.LADDER
        if tile in self.chutes:
            return HazardKind.CHUTE
        if tile in self.stops:
            return HazardKind.STOP
        return None

    def to_document(self) -> dict:
        return {
            "stops": sorted(self.stops),
            "chutes": [
                {"position": tile, "distance": dist}
                for tile, dist in sorted(self.chutes.items())
            ],
            "ladders": [
                {"position": tile, "distance": dist}
                for tile, dist in sorted(self.ladders.items())
            ],
        }


@dataclass(frozen=True)
class RollOutcome:
    """What a single die roll does to a team's position."""

    position: int
    tentative: int
    hazard: Optional[HazardKind] = None
    finished: bool = False


def resolve_roll(current_position: int, die_value: int, hazards: BoardHazards | None = None) -> RollOutcome:
    """
    Resolve a die roll into a final position.

    The tentative position is capped at the last tile (an overshoot finishes,
    it never bounces back). At most one hazard is applied, based on the
    tentative tile: ladders climb (capped), chutes slide (floored at the first
    tile), stops are reported without moving the team.
    """
    check_position(current_position)
    if isinstance(die_value, bool) or not isinstance(die_value, int) or not 1 <= die_value <= DIE_FACES:
        raise OutOfRange("die value", die_value, f"die value must be between 1 and {DIE_FACES}, got {die_value!r}")

    hazards = hazards or BoardHazards.empty()
    tentative = min(BOARD_SIZE, current_position + die_value)
    hazard = hazards.hazard_at(tentative)

    if hazard is HazardKind.LADDER:
        final = min(BOARD_SIZE, tentative + hazards.ladders[tentative])
    elif hazard is HazardKind.CHUTE:
        final = max(BOARD_START, tentative - hazards.chutes[tentative])
    else:
        final = tentative

    return RollOutcome(
        position=final,
        tentative=tentative,
        hazard=hazard,
        finished=final == BOARD_SIZE,
    )


class Dice:
    """Uniform six-sided die. Pass a seeded Random for reproducible draws."""

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.SystemRandom()

    def roll(self) -> int:
        return self._rng.randint(1, DIE_FACES)


def hazards_from_lists(
    stops: Iterable[int] = (),
    chutes: Iterable[tuple[int, int]] = (),
    ladders: Iterable[tuple[int, int]] = (),
) -> BoardHazards:
    """
    Build BoardHazards from (position, distance) pairs, rejecting duplicates
    within a single structure.
    """
    def _to_map(kind: HazardKind, pairs: Iterable[tuple[int, int]]) -> dict:
        result: dict = {}
        for tile, distance in pairs:
            if tile in result:
                raise InvalidHazardConfig(f"Duplicate {kind.value} at tile {tile}")
            result[tile] = distance
        return result

    stop_list = list(stops)
    if len(set(stop_list)) != len(stop_list):
        raise InvalidHazardConfig("Duplicate stop positions in configuration")

    return BoardHazards(
        stops=frozenset(stop_list),
        chutes=_to_map(HazardKind.CHUTE, chutes),
        ladders=_to_map(HazardKind.LADDER, ladders),
    )

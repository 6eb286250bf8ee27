import random

import pytest

from core.race.board import (
    BoardHazards,
    Dice,
    HazardKind,
    hazards_from_lists,
    resolve_roll,
)
from core.race.errors import InvalidHazardConfig, OutOfRange


def test_no_hazards_moves_by_die_capped_at_100():
    for position in range(1, 101):
        for die in range(1, 7):
            outcome = resolve_roll(position, die)
            assert outcome.position == min(100, position + die)
            assert outcome.tentative == outcome.position
            assert outcome.hazard is None
            assert outcome.finished == (outcome.position == 100)


def test_overshoot_finishes_instead_of_bouncing():
    outcome = resolve_roll(95, 6)
    assert outcome.position == 100
    assert outcome.finished


def test_ladder_climbs_from_tentative_tile():
    hazards = BoardHazards(ladders={8: 20})
    outcome = resolve_roll(5, 3, hazards)
    assert outcome.tentative == 8
    assert outcome.position == 28
    assert outcome.hazard is HazardKind.LADDER


def test_ladder_is_capped_at_last_tile():
    hazards = BoardHazards(ladders={97: 10})
    outcome = resolve_roll(95, 2, hazards)
    assert outcome.position == 100
    assert outcome.finished


def test_chute_slides_and_floors_at_first_tile():
    assert resolve_roll(45, 5, BoardHazards(chutes={50: 10})).position == 40
    assert resolve_roll(1, 2, BoardHazards(chutes={3: 50})).position == 1


def test_stop_is_reported_without_moving():
    outcome = resolve_roll(10, 2, BoardHazards(stops=frozenset({12})))
    assert outcome.position == 12
    assert outcome.hazard is HazardKind.STOP


def test_hazards_do_not_chain():
    # Ladder lands on a chute tile; the chute is not applied.
    hazards = BoardHazards(ladders={8: 42}, chutes={50: 10})
    outcome = resolve_roll(5, 3, hazards)
    assert outcome.position == 50
    assert outcome.hazard is HazardKind.LADDER


def test_hazard_on_tile_passed_over_is_ignored():
    hazards = BoardHazards(chutes={7: 5})
    assert resolve_roll(5, 4, hazards).position == 9


@pytest.mark.parametrize("die", [0, 7, -1, True])
def test_invalid_die_value_rejected(die):
    with pytest.raises(OutOfRange):
        resolve_roll(10, die)


@pytest.mark.parametrize("position", [0, 101])
def test_invalid_position_rejected(position):
    with pytest.raises(OutOfRange):
        resolve_roll(position, 3)


def test_overlapping_hazards_rejected():
    with pytest.raises(InvalidHazardConfig):
        BoardHazards(stops=frozenset({12}), chutes={12: 3})
    with pytest.raises(InvalidHazardConfig):
        BoardHazards(chutes={30: 3}, ladders={30: 3})


def test_hazard_ranges_validated():
    with pytest.raises(OutOfRange):
        BoardHazards(ladders={101: 3})
    with pytest.raises(OutOfRange):
        BoardHazards(chutes={50: 0})


def test_hazards_are_read_only():
    hazards = BoardHazards(chutes={50: 10})
    with pytest.raises(TypeError):
        hazards.chutes[60] = 5


def test_hazards_from_lists_rejects_duplicates():
    with pytest.raises(InvalidHazardConfig):
        hazards_from_lists(chutes=[(50, 10), (50, 5)])
    with pytest.raises(InvalidHazardConfig):
        hazards_from_lists(stops=[4, 4])


def test_to_document_lists_sorted_hazards():
    hazards = hazards_from_lists(stops=[40, 12], ladders=[(8, 20)], chutes=[(50, 10)])
    assert hazards.to_document() == {
        "stops": [12, 40],
        "chutes": [{"position": 50, "distance": 10}],
        "ladders": [{"position": 8, "distance": 20}],
    }


def test_dice_draws_in_range():
    dice = Dice(random.Random(7))
    values = {dice.roll() for _ in range(500)}
    assert values == {1, 2, 3, 4, 5, 6}

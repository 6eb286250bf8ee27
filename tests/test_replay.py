import pytest

from core.race.board import BoardHazards
from core.race.errors import RaceStateCorrupt
from core.race.event_log import EventLog, load_journal
from core.race.events import TeamRolled
from core.race.store import RaceStateStore


HAZARDS = BoardHazards(
    stops=frozenset({20}),
    chutes={12: 6},
    ladders={10: 30},
)


def _play(store, clock):
    store.create_team("Red", actor="alice", origin="red")
    store.create_team("Blue")
    for _ in range(4):
        clock.advance(7)
        store.roll_for_team("Red")
        clock.advance(3)
        store.roll_for_team("Blue")
    store.set_position("Blue", 99)
    store.rename_team("Red", "Crimson", position=42)
    store.create_team("Green")
    store.delete_team("Green")


def test_replay_reproduces_live_state(make_store, clock):
    live = make_store(rolls=[3, 5, 6, 2, 1, 4, 6, 6], hazards=HAZARDS)
    _play(live, clock)

    hazards = [e.hazard for e in live.events if isinstance(e, TeamRolled)]
    assert "ladder" in hazards and "chute" in hazards

    replayed = RaceStateStore.replay(live.events, HAZARDS, clock=clock)
    assert replayed.snapshot().state_key() == live.snapshot().state_key()


def test_replay_prefix_matches_intermediate_snapshot(make_store, clock):
    live = make_store(rolls=[3, 5, 6, 2, 1, 4, 6, 6], hazards=HAZARDS)
    live.create_team("Red")
    live.roll_for_team("Red")
    midway = live.snapshot()
    live.roll_for_team("Red")

    prefix = live.events.since(0, limit=midway.cursor)
    replayed = RaceStateStore.replay(prefix, HAZARDS, clock=clock)
    assert replayed.snapshot().state_key() == midway.state_key()


def test_journal_round_trip(make_store, clock, tmp_path):
    path = tmp_path / "events.jsonl"
    live = make_store(
        rolls=[3, 5, 6, 2, 1, 4, 6, 6],
        hazards=HAZARDS,
        event_log=EventLog(path),
    )
    _play(live, clock)

    replayed = RaceStateStore.replay(load_journal(path), HAZARDS, clock=clock)
    assert replayed.snapshot().state_key() == live.snapshot().state_key()


def test_from_snapshot_accepts_following_events(make_store, clock):
    live = make_store(rolls=[2, 2])
    live.create_team("Red")
    live.roll_for_team("Red")
    snap = live.snapshot()

    replica = RaceStateStore.from_snapshot(snap)
    assert replica.snapshot().state_key() == snap.state_key()

    live.roll_for_team("Red")
    replica.apply(live.events.since(snap.cursor)[0])
    assert replica.snapshot().state_key() == live.snapshot().state_key()


def test_apply_rejects_out_of_order_and_impossible_events(make_store):
    live = make_store(rolls=[2])
    live.create_team("Red")
    live.roll_for_team("Red")
    created, rolled = list(live.events)

    fresh = RaceStateStore()
    with pytest.raises(RaceStateCorrupt):
        fresh.apply(rolled)

    fresh = RaceStateStore()
    fresh.apply(created)
    bogus = TeamRolled(
        seq=2, ts=rolled.ts, team_id="Red", roll=2,
        old_position=50, tentative=52, new_position=52,
    )
    with pytest.raises(RaceStateCorrupt):
        fresh.apply(bogus)


def test_corrupt_store_refuses_further_mutations(make_store):
    store = make_store()
    store.create_team("Red")
    bogus = TeamRolled(
        seq=2, ts=0.0, team_id="Red", roll=2,
        old_position=50, tentative=52, new_position=52,
    )
    with pytest.raises(RaceStateCorrupt):
        store.apply(bogus)
    with pytest.raises(RaceStateCorrupt):
        store.create_team("Blue")

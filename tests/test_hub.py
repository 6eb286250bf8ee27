import asyncio
import threading

from core.race.hub import BroadcastHub
from core.race.wire import (
    SNAPSHOT,
    TEAM_FINISH,
    TEAM_ROLL,
    TEAM_TILE_START_TIME,
    TEAM_TILE_TIME,
    TEAMS_UPDATE,
)


def _types(messages):
    return [m["type"] for m in messages]


def test_new_observer_gets_snapshot_first(make_store):
    store = make_store(rolls=[4])
    store.create_team("Red")
    hub = BroadcastHub(store)
    hub.publish()

    channel = hub.register("dash")
    first = channel.drain()
    assert _types(first) == [SNAPSHOT]
    assert first[0]["cursor"] == 1
    assert first[0]["data"]["teams"] == [["Red", 1]]

    event = store.roll_for_team("Red")
    assert hub.publish(event) == 1
    assert _types(channel.drain()) == [TEAM_ROLL, TEAM_TILE_TIME, TEAM_TILE_START_TIME, TEAMS_UPDATE]


def test_event_covered_by_snapshot_is_not_repeated(make_store):
    store = make_store()
    hub = BroadcastHub(store)

    event = store.create_team("Red")
    # Registered after the mutation but before it was published.
    channel = hub.register("late")
    hub.publish(event)

    messages = channel.drain()
    assert _types(messages) == [SNAPSHOT]
    assert messages[0]["data"]["teams"] == [["Red", 1]]


def test_observers_see_identical_streams(make_store):
    store = make_store(rolls=[3, 6, 2])
    hub = BroadcastHub(store)
    a = hub.register("a")
    b = hub.register("b")

    for mutate in (
        lambda: store.create_team("Red"),
        lambda: store.roll_for_team("Red"),
        lambda: store.create_team("Blue"),
        lambda: store.roll_for_team("Blue"),
        lambda: store.rename_team("Red", "Crimson", position=50),
        lambda: store.roll_for_team("Crimson"),
        lambda: store.delete_team("Blue"),
    ):
        hub.publish(mutate())

    stream_a, stream_b = a.drain(), b.drain()
    assert stream_a == stream_b
    cursors = [m["cursor"] for m in stream_a]
    assert cursors == sorted(cursors)
    assert stream_a[-1]["data"]["teams"] == [["Crimson", 52]]


def test_publish_order_does_not_change_delivery_order(make_store):
    store = make_store()
    hub = BroadcastHub(store)
    channel = hub.register("dash")
    channel.drain()

    first = store.create_team("Red")
    second = store.create_team("Blue")
    assert hub.publish(second) == 2
    assert hub.publish(first) == 0

    updates = [m for m in channel.drain() if m["type"] == TEAMS_UPDATE]
    assert [m["cursor"] for m in updates] == [1, 2]


def test_team_finish_sent_exactly_once(make_store):
    store = make_store(rolls=[6])
    hub = BroadcastHub(store)
    channel = hub.register("dash")

    hub.publish(store.create_team("Red"))
    hub.publish(store.set_position("Red", 95))
    hub.publish(store.roll_for_team("Red"))
    hub.publish(store.set_position("Red", 100))

    finishes = [m for m in channel.drain() if m["type"] == TEAM_FINISH]
    assert finishes == [{"type": TEAM_FINISH, "cursor": 3, "data": {"id": "Red"}}]


def test_slow_observer_is_resynced_with_snapshot(make_store):
    store = make_store(rolls=[1, 1, 1])
    hub = BroadcastHub(store, max_pending=6)
    hub.publish(store.create_team("Red"))
    channel = hub.register("slow")

    # Never drained: the snapshot plus the first roll fit, the second does not.
    for _ in range(3):
        hub.publish(store.roll_for_team("Red"))

    messages = channel.drain()
    assert _types(messages)[0] == SNAPSHOT
    assert messages[0]["data"]["teams"] == [["Red", 3]]
    assert _types(messages)[1:] == [TEAM_ROLL, TEAM_TILE_TIME, TEAM_TILE_START_TIME, TEAMS_UPDATE]
    assert messages[-1]["cursor"] == store.events.cursor
    assert messages[-1]["data"]["teams"] == [["Red", 4]]
    assert channel.resyncs == 1
    assert hub.get_metrics()["resyncs"] == 1


def test_drained_observer_gets_large_batch_without_resync(make_store):
    store = make_store(rolls=[5])
    hub = BroadcastHub(store, max_pending=4)
    channel = hub.register("dash")

    hub.publish(store.create_team("Red"))
    hub.publish(store.set_position("Red", 95))
    channel.drain()

    hub.publish(store.roll_for_team("Red"))
    messages = channel.drain()
    assert _types(messages) == [
        TEAM_ROLL,
        TEAM_TILE_TIME,
        TEAM_TILE_START_TIME,
        TEAM_FINISH,
        TEAMS_UPDATE,
    ]
    assert channel.resyncs == 0


def test_failing_observer_does_not_affect_others(make_store, monkeypatch):
    store = make_store()
    hub = BroadcastHub(store)
    bad = hub.register("bad")
    good = hub.register("good")
    good.drain()

    def _explode(seq, messages):
        raise RuntimeError("socket gone")

    monkeypatch.setattr(bad, "offer", _explode)

    hub.publish(store.create_team("Red"))
    assert TEAMS_UPDATE in _types(good.drain())
    assert hub.get_metrics()["delivery_failures"] == 1


def test_request_teams_reflects_delivered_cursor(make_store):
    store = make_store()
    hub = BroadcastHub(store)
    channel = hub.register("dash")
    channel.drain()

    store.create_team("Red")  # not yet published
    hub.request_teams(channel)

    messages = channel.drain()
    assert messages[-1]["type"] == TEAMS_UPDATE
    assert messages[-1]["cursor"] == 1
    assert messages[-1]["data"] == {"teams": [["Red", 1]], "displayNames": {"Red": "Red"}}


def test_reregistering_replaces_channel(make_store):
    store = make_store()
    hub = BroadcastHub(store)
    old = hub.register("dash")
    new = hub.register("dash")

    assert old.closed
    assert hub.observer_count == 1
    hub.unregister(old)
    assert hub.observer_count == 1
    hub.unregister(new)
    assert hub.observer_count == 0


def test_receive_wakes_for_events_from_another_thread(make_store):
    store = make_store(rolls=[2])
    store.create_team("Red")
    hub = BroadcastHub(store)

    async def _observe():
        channel = hub.register("async")
        first = await asyncio.wait_for(channel.receive(), timeout=2)
        assert _types(first) == [SNAPSHOT]

        producer = threading.Thread(target=lambda: hub.publish(store.roll_for_team("Red")))
        producer.start()

        received = []
        while TEAMS_UPDATE not in _types(received):
            received.extend(await asyncio.wait_for(channel.receive(), timeout=2))
        producer.join()

        hub.unregister(channel)
        assert await asyncio.wait_for(channel.receive(), timeout=2) == []
        return received

    received = asyncio.run(_observe())
    assert received[0]["type"] == TEAM_ROLL
    assert received[0]["data"]["newPosition"] == 3


def _final_teams(messages):
    carrying = [m for m in messages if m["type"] in (SNAPSHOT, TEAMS_UPDATE)]
    return carrying[-1]["cursor"], carrying[-1]["data"]["teams"]


def test_observers_joining_mid_burst_converge(make_store):
    store = make_store(rolls=[3, 6, 2, 5, 4])
    hub = BroadcastHub(store)
    hub.publish(store.create_team("Red"))
    hub.publish(store.create_team("Blue"))

    channels = [hub.register("early")]
    for i, team in enumerate(["Red", "Blue", "Red", "Blue", "Red"]):
        event = store.roll_for_team(team)
        if i == 1:
            # Joins after the mutation was accepted but before it is published.
            channels.append(hub.register("middle"))
        hub.publish(event)
        if i == 3:
            channels.append(hub.register("late"))

    snapshot = store.snapshot()
    expected = (snapshot.cursor, [list(p) for p in snapshot.positions])
    for channel in channels:
        messages = channel.drain()
        assert messages[0]["type"] == SNAPSHOT
        cursors = [m["cursor"] for m in messages]
        assert cursors == sorted(cursors)
        assert _final_teams(messages) == expected


def test_repeated_set_position_reaches_observers_twice(make_store):
    store = make_store()
    hub = BroadcastHub(store)
    channel = hub.register("dash")

    hub.publish(store.create_team("Red"))
    channel.drain()

    hub.publish(store.set_position("Red", 40))
    hub.publish(store.set_position("Red", 40))

    updates = [m for m in channel.drain() if m["type"] == TEAMS_UPDATE]
    assert [m["cursor"] for m in updates] == [2, 3]
    assert all(m["data"]["teams"] == [["Red", 40]] for m in updates)

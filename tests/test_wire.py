from core.race.board import BoardHazards
from core.race.models import TileDwell
from core.race.wire import (
    TEAM_FINISH,
    TEAM_NAME,
    TEAM_ROLL,
    TEAM_TILE_START_TIME,
    TEAM_TILE_TIME,
    TEAMS_UPDATE,
    event_messages,
    snapshot_message,
)


def test_snapshot_message_shape(make_store, clock):
    store = make_store(rolls=[3], hazards=BoardHazards(ladders={4: 10}))
    store.create_team("Red", display_name="Red Team")
    store.create_team("Blue")
    clock.advance(20)
    store.roll_for_team("Red")

    message = snapshot_message(store.snapshot())
    assert message["type"] == "snapshot"
    assert message["cursor"] == 3
    data = message["data"]
    assert data["teams"] == [["Red", 14], ["Blue", 1]]
    assert data["displayNames"] == {"Red": "Red Team", "Blue": "Blue"}
    assert data["finishedTeams"] == []
    assert data["rolls"] == {"Red": [3], "Blue": []}
    assert data["tileTimes"] == {"Red": {"1": 20.0}, "Blue": {}}
    assert data["tileStartTimes"]["Red"] == clock()


def test_roll_messages_in_order(make_store):
    store = make_store(rolls=[6])
    store.create_team("Red")
    store.set_position("Red", 94)
    event = store.roll_for_team("Red")
    dwell = TileDwell(team_id="Red", tile=94, duration=3.0)

    messages = event_messages(event, dwell, store.standings())
    assert [m["type"] for m in messages] == [
        TEAM_ROLL,
        TEAM_TILE_TIME,
        TEAM_TILE_START_TIME,
        TEAM_FINISH,
        TEAMS_UPDATE,
    ]
    assert all(m["cursor"] == event.seq for m in messages)
    assert messages[0]["data"] == {
        "id": "Red",
        "roll": 6,
        "oldPosition": 94,
        "newPosition": 100,
        "tentative": 100,
        "hazard": None,
    }
    assert messages[2]["data"] == {"id": "Red", "tile": 100, "startedAt": event.ts}


def test_create_announces_tile_start(make_store):
    store = make_store()
    event = store.create_team("Red")
    messages = event_messages(event, None, store.standings())
    assert [m["type"] for m in messages] == [TEAM_TILE_START_TIME, TEAMS_UPDATE]
    assert messages[0]["data"]["tile"] == 1


def test_rename_uses_new_id_after_name_message(make_store):
    store = make_store()
    store.create_team("Red")
    event = store.rename_team("Red", "Crimson", position=10)
    dwell = TileDwell(team_id="Crimson", tile=1, duration=0.0)

    messages = event_messages(event, dwell, store.standings())
    assert messages[0] == {
        "type": TEAM_NAME,
        "cursor": event.seq,
        "data": {"id": "Red", "newId": "Crimson", "newDisplayName": "Crimson"},
    }
    assert messages[1]["data"]["id"] == "Crimson"
    assert messages[-1]["data"]["teams"] == [["Crimson", 10]]

import json

import pytest

from core.race.errors import EventLogStorageError, RaceStateCorrupt
from core.race.event_log import EventLog, load_journal
from core.race.events import TeamCreated, TeamDeleted, event_from_document


def _created(seq, team_id="Red"):
    return TeamCreated(seq=seq, ts=100.0 + seq, team_id=team_id, display_name=team_id)


def test_append_and_read_since():
    events = EventLog()
    for seq in range(1, 6):
        events.append(_created(seq, f"t{seq}"))

    assert events.cursor == 5
    assert events.next_seq == 6
    assert [e.seq for e in events.since(2)] == [3, 4, 5]
    assert [e.seq for e in events.since(2, limit=2)] == [3, 4]
    assert events.since(5) == []
    assert events.since(99) == []


def test_append_rejects_gaps_and_repeats():
    events = EventLog()
    events.append(_created(1))
    with pytest.raises(RaceStateCorrupt):
        events.append(_created(3))
    with pytest.raises(RaceStateCorrupt):
        events.append(_created(1))
    assert events.cursor == 1


def test_base_cursor_log_starts_mid_history():
    events = EventLog(base_cursor=10)
    assert events.cursor == 10
    events.append(_created(11))
    assert [e.seq for e in events.since(0)] == [11]
    assert events.since(11) == []


def test_journal_written_and_loaded(tmp_path):
    path = tmp_path / "state" / "events.jsonl"
    events = EventLog(path)
    events.append(_created(1))
    events.append(TeamDeleted(seq=2, ts=5.0, team_id="Red", last_position=1, actor="alice"))

    lines = path.read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[0])["type"] == "team_created"

    loaded = load_journal(path)
    assert loaded == list(events)


def test_journal_write_failure_is_storage_error(tmp_path):
    # A directory where the journal file should be makes open() fail.
    path = tmp_path / "events.jsonl"
    path.mkdir()
    events = EventLog(path)

    with pytest.raises(EventLogStorageError):
        events.append(_created(1))
    assert events.cursor == 0


def test_load_journal_rejects_malformed_lines(tmp_path):
    path = tmp_path / "events.jsonl"
    path.write_text('{"type": "team_created"\n', encoding="utf-8")
    with pytest.raises(RaceStateCorrupt):
        load_journal(path)


def test_event_from_document_rejects_unknown_type():
    with pytest.raises(RaceStateCorrupt):
        event_from_document({"type": "team_exploded", "seq": 1, "ts": 0, "team_id": "x"})
    with pytest.raises(RaceStateCorrupt):
        event_from_document({"type": "team_created", "seq": 1})

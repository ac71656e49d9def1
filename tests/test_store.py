import json
import os
import sqlite3
import tempfile

import pytest

from romlauncher.models import REJECTED_PLAY_EVENT, ROM_PLAY_LOG_ERROR
from romlauncher.store import EventStore


@pytest.fixture
def store():
    with tempfile.TemporaryDirectory() as tmp:
        s = EventStore(os.path.join(tmp, 'events.sqlite'))
        s.initialize()
        yield s
        s.close()


def _stat_map(store):
    result = store.get_play_stats()
    assert result.ok
    return {stat.rom_name: stat for stat in result.value}


def test_append_play_event_returns_row_id(store):
    first = store.append_play_event('Pokemon Emerald.gba')
    second = store.append_play_event('Pokemon Emerald.gba')
    assert first.ok and second.ok
    assert second.value > first.value


def test_stats_count_and_order(store):
    for _ in range(3):
        store.append_play_event('Zelda.gba')
    for _ in range(3):
        store.append_play_event('Advance Wars.gba')
    store.append_play_event('Metroid.gba')

    result = store.get_play_stats()
    assert result.ok
    ordered = [(s.rom_name, s.play_count) for s in result.value]
    # ties fall back to ascending name
    assert ordered == [('Advance Wars.gba', 3), ('Zelda.gba', 3), ('Metroid.gba', 1)]
    assert all(s.last_played for s in result.value)


def test_n_plays_rank_above_fewer(store):
    for _ in range(5):
        store.append_play_event('a.gba')
    store.append_play_event('b.gba')

    stats = _stat_map(store)
    assert stats['a.gba'].play_count == 5
    names = [s.rom_name for s in store.get_play_stats().value]
    assert names.index('a.gba') < names.index('b.gba')


def test_stats_empty_when_no_plays(store):
    result = store.get_play_stats()
    assert result.ok
    assert result.value == []


def test_invalid_name_is_refused_and_audited(store):
    result = store.append_play_event('../../etc/passwd')
    assert not result.ok
    assert result.error == 'path_traversal'
    assert store.get_play_stats().value == []

    events = store.recent_security_events().value
    assert [e.event_type for e in events] == [REJECTED_PLAY_EVENT]
    assert events[0].details == 'path_traversal'


def test_security_events_are_sanitized_and_newest_first(store):
    store.append_security_event('first', '<script>alert(1)</script>payload')
    store.append_security_event('second')

    events = store.recent_security_events(limit=10).value
    assert [e.event_type for e in events] == ['second', 'first']
    assert events[0].details is None
    assert events[1].details == 'payload'
    assert events[1].created_at


def test_structured_details_stay_valid_json(store):
    long_path = '/api/' + 'x' * 2000
    store.append_security_event('http_error', {
        'statusCode': 404,
        'path': long_path,
        'message': '<img onerror=alert(1)> not found',
    })

    details = json.loads(store.recent_security_events().value[0].details)
    assert details['statusCode'] == 404
    assert details['path'] == long_path[:512]
    assert 'onerror' not in details['message']


def test_recent_play_events(store):
    store.append_play_event('one.gba')
    store.append_play_event('two.gba')
    events = store.recent_play_events(limit=1).value
    assert len(events) == 1
    assert events[0].rom_name == 'two.gba'
    assert events[0].to_dict()['rom_name'] == 'two.gba'


def test_closed_store_reports_failures_without_raising():
    with tempfile.TemporaryDirectory() as tmp:
        s = EventStore(os.path.join(tmp, 'events.sqlite'))
        s.initialize()
        s.close()
        s.close()

        assert not s.is_open
        assert not s.append_play_event('game.gba').ok
        s.append_security_event('anything', 'ignored')
        assert not s.get_play_stats().ok
        assert not s.recent_security_events().ok


def test_write_failure_is_soft_and_logged_as_security_event(store):
    # drop the play table out from under the store to force an insert error
    store._connection().execute('DROP TABLE rom_plays')

    result = store.append_play_event('game.gba')

    assert not result.ok
    events = store.recent_security_events().value
    assert events[0].event_type == ROM_PLAY_LOG_ERROR
    assert 'game.gba' in events[0].details


def test_data_survives_reopen():
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, 'events.sqlite')
        s = EventStore(path)
        s.initialize()
        s.append_play_event('persist.gba')
        s.close()

        reopened = EventStore(path)
        reopened.initialize()
        try:
            assert _stat_map(reopened)['persist.gba'].play_count == 1
        finally:
            reopened.close()


def test_journal_mode_is_wal(store):
    mode = store._connection().execute('PRAGMA journal_mode').fetchone()[0]
    assert mode.lower() == 'wal'


def test_initialize_on_unwritable_path_raises():
    with tempfile.TemporaryDirectory() as tmp:
        s = EventStore(os.path.join(tmp, 'missing', 'dir', 'events.sqlite'))
        with pytest.raises(sqlite3.Error):
            s.initialize()

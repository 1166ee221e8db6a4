from unittest import mock

import pytest
from mysql.connector import Error, errorcode

from config import TestingConfig
from database import DatabaseManager
from exceptions import Conflict
from models import EventSelection, Member, RegistrationStatus


@pytest.fixture
def connection():
    conn = mock.MagicMock()
    conn.is_connected.return_value = True
    return conn


@pytest.fixture
def manager(connection):
    db_manager = DatabaseManager(TestingConfig)
    with mock.patch.object(DatabaseManager, '_connect', return_value=connection):
        yield db_manager


def test_transaction_commits_on_success(manager, connection):
    with manager.transaction() as conn:
        assert conn is connection

    connection.commit.assert_called_once()
    connection.rollback.assert_not_called()
    connection.close.assert_called_once()


def test_transaction_rolls_back_on_error(manager, connection):
    with pytest.raises(ValueError):
        with manager.transaction():
            raise ValueError('boom')

    connection.rollback.assert_called()
    connection.commit.assert_not_called()
    connection.close.assert_called_once()


def test_cursor_is_wrapped_with_timing(manager, connection):
    raw_cursor = connection.cursor.return_value
    with manager.get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute('SELECT 1')

    raw_cursor.execute.assert_called_once_with('SELECT 1', None, False)


def test_replace_selections_deletes_then_inserts():
    db_manager = DatabaseManager(TestingConfig)
    conn = mock.MagicMock()
    cursor = conn.cursor.return_value

    db_manager.replace_selections_with_conn(conn, 5, [EventSelection(1), EventSelection(2, 9)])

    delete_sql, delete_params = cursor.execute.call_args[0]
    assert delete_sql.startswith('DELETE FROM competition_registration_events')
    assert delete_params == (5,)
    insert_sql, rows = cursor.executemany.call_args[0]
    assert 'INSERT INTO competition_registration_events' in insert_sql
    assert rows == [(5, 1, None), (5, 2, 9)]


def test_replace_selections_with_empty_list_only_deletes():
    db_manager = DatabaseManager(TestingConfig)
    conn = mock.MagicMock()

    db_manager.replace_selections_with_conn(conn, 5, [])

    conn.cursor.return_value.executemany.assert_not_called()


def test_update_fields_ignores_unknown_columns():
    db_manager = DatabaseManager(TestingConfig)
    conn = mock.MagicMock()
    cursor = conn.cursor.return_value
    cursor.rowcount = 1

    updated = db_manager.update_registration_fields_with_conn(
        conn, 8, {'status': RegistrationStatus.APPROVED, 'user_id': 99}
    )

    assert updated is True
    sql, params = cursor.execute.call_args[0]
    assert 'status = %s' in sql and 'user_id' not in sql
    assert params == ('approved', 8)


def test_update_fields_without_known_columns_is_noop():
    db_manager = DatabaseManager(TestingConfig)
    conn = mock.MagicMock()

    assert db_manager.update_registration_fields_with_conn(conn, 8, {'team_id': 1}) is False
    conn.cursor.assert_not_called()


def test_slow_query_is_logged(caplog):
    from database import TimedCursorWrapper

    cursor = TimedCursorWrapper(mock.MagicMock(), slow_threshold_ms=0)
    with caplog.at_level('WARNING', logger='database'):
        cursor.executemany('INSERT INTO t VALUES (%s)', [(1,), (2,)])

    assert 'rows=2' in caplog.text


TEAM_ROW = {
    'id': 3, 'name': '飞人队', 'contact_phone': '13800138000',
    'members': '[]', 'user_id': 7, 'created_at': None,
}


def mock_conn():
    conn = mock.MagicMock()
    return conn, conn.cursor.return_value


def executed_sql(cursor):
    return [c[0][0] for c in cursor.execute.call_args_list]


def test_team_lookup_for_update_locks_row():
    conn, cursor = mock_conn()
    cursor.fetchone.return_value = TEAM_ROW

    team = DatabaseManager(TestingConfig).get_team_by_owner_with_conn(conn, 7, for_update=True)

    assert team.team_id == 3
    assert executed_sql(cursor)[0].rstrip().endswith('FOR UPDATE')


def test_plain_team_lookup_does_not_lock():
    conn, cursor = mock_conn()
    cursor.fetchone.return_value = None

    DatabaseManager(TestingConfig).get_team_by_owner_with_conn(conn, 7)

    assert 'FOR UPDATE' not in executed_sql(cursor)[0]


def test_team_registrations_are_locked():
    conn, cursor = mock_conn()
    cursor.fetchall.return_value = []

    DatabaseManager(TestingConfig).get_team_registrations_with_conn(conn, 1, 3)

    sql = executed_sql(cursor)[0]
    assert 'FOR UPDATE' in sql
    assert cursor.execute.call_args[0][1] == (1, 3)


def test_ensure_team_reads_existing_row_under_lock():
    conn, cursor = mock_conn()
    cursor.fetchone.return_value = TEAM_ROW

    team = DatabaseManager(TestingConfig).ensure_team_with_conn(conn, 7)

    assert team.name == '飞人队'
    assert len(executed_sql(cursor)) == 1
    assert 'FOR UPDATE' in executed_sql(cursor)[0]


def test_ensure_team_creates_default_team():
    conn, cursor = mock_conn()
    cursor.fetchone.side_effect = [None, {'phone': '13800138000', 'display_name': None}]
    cursor.lastrowid = 11

    team = DatabaseManager(TestingConfig).ensure_team_with_conn(conn, 7)

    assert (team.team_id, team.name) == (11, '13800138000')
    assert 'INSERT INTO teams' in executed_sql(cursor)[-1]


def test_ensure_team_rereads_row_after_concurrent_insert():
    conn, cursor = mock_conn()
    cursor.fetchone.side_effect = [None, {'phone': None, 'display_name': '飞人队'}, TEAM_ROW]
    cursor.execute.side_effect = [None, None, Error(errno=errorcode.ER_DUP_ENTRY), None]

    team = DatabaseManager(TestingConfig).ensure_team_with_conn(conn, 7)

    assert team.team_id == 3
    assert 'FOR UPDATE' in executed_sql(cursor)[-1]


def test_ensure_team_duplicate_without_row_is_conflict():
    conn, cursor = mock_conn()
    cursor.fetchone.side_effect = [None, {}, None]
    cursor.execute.side_effect = [None, None, Error(errno=errorcode.ER_DUP_ENTRY), None]

    with pytest.raises(Conflict):
        DatabaseManager(TestingConfig).ensure_team_with_conn(conn, 7)


def test_ensure_team_propagates_other_errors():
    conn, cursor = mock_conn()
    cursor.fetchone.side_effect = [None, {}]
    cursor.execute.side_effect = [None, None, Error(errno=errorcode.ER_BAD_FIELD_ERROR)]

    with pytest.raises(Error):
        DatabaseManager(TestingConfig).ensure_team_with_conn(conn, 7)


def test_upsert_team_returns_existing_id_on_duplicate_owner():
    conn, cursor = mock_conn()
    cursor.lastrowid = 3

    team_id = DatabaseManager(TestingConfig).upsert_team_with_conn(
        conn, 7, '新星队', '13900000000', [Member(name='李四')]
    )

    assert team_id == 3
    sql, params = cursor.execute.call_args[0]
    assert 'ON DUPLICATE KEY UPDATE' in sql
    assert 'id = LAST_INSERT_ID(id)' in sql
    assert params[0] == '新星队' and params[3] == 7
    assert '"name": "李四"' in params[2]

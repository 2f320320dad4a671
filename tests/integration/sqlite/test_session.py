"""
Integration tests running the execution layer against SQLite.
"""
import dbexec
import numpy as np
import pytest
import sqlalchemy as sa
from dbexec import BindError, ExecuteError, ExecutionError, PrepareError
from dbexec.session import SQLAlchemySession, create_url_from_options


def test_connect_returns_session(sqlite_session):
    """Test connect builds a SQLAlchemy session"""
    assert isinstance(sqlite_session, SQLAlchemySession)
    assert isinstance(sqlite_session, dbexec.Session)
    assert sqlite_session.dialect == 'sqlite'
    assert sqlite_session.calls >= 2


def test_raw_select(sqlite_session):
    """Test raw text select returns rows in order"""
    rows = dbexec.execute(sqlite_session, 'SELECT name, value FROM test_table ORDER BY value')
    assert rows == [
        {'name': 'Alice', 'value': 10},
        {'name': 'Bob', 'value': 20},
        {'name': 'Charlie', 'value': 30},
    ]
    assert rows[0].name == 'Alice'


def test_structured_select(sqlite_session):
    """Test structured queries compile to valid SQLite"""
    rows = dbexec.execute(sqlite_session,
                          {'select': 'test_table', 'columns': ['name'],
                           'where': {'value': ('>=', 20)}, 'order_by': ['value']},
                          string_keys=True)
    assert rows == [{'name': 'Bob'}, {'name': 'Charlie'}]


def test_prepare_bind_insert(sqlite_session):
    """Test a prepared insert with NumPy values"""
    handle = dbexec.prepare(sqlite_session, 'INSERT INTO test_table (name, value) VALUES (?, ?)')
    assert handle.param_count == 2

    assert dbexec.execute(sqlite_session, handle, values=['Dana', np.int64(40)]) == []

    rows = dbexec.execute(sqlite_session, {'select': 'test_table', 'where': {'name': 'Dana'}})
    assert rows[0].value == 40


def test_prepare_structured_placeholder(sqlite_session):
    """Test preparing a structured query with a bind marker"""
    handle = dbexec.prepare(sqlite_session,
                            {'select': 'test_table', 'where': {'name': dbexec.PLACEHOLDER}})
    rows = dbexec.execute(sqlite_session, handle, values=['Bob'])
    assert [r.value for r in rows] == [20]


def test_prepare_invalid_text(sqlite_session):
    """Test invalid SQL fails to prepare with the exact text"""
    text = 'SELEC * FROM test_table'
    with pytest.raises(PrepareError) as exc_info:
        dbexec.prepare(sqlite_session, text)
    assert exc_info.value.query == text
    assert isinstance(exc_info.value.cause, sa.exc.DBAPIError)


def test_prepare_unknown_table(sqlite_session):
    """Test preparing against a missing table fails"""
    with pytest.raises(PrepareError):
        dbexec.prepare(sqlite_session, 'SELECT * FROM missing_table WHERE id = ?')


def test_bind_arity(sqlite_session):
    """Test arity mismatch fails with BindError before execution"""
    handle = dbexec.prepare(sqlite_session, 'SELECT * FROM test_table WHERE id = ?')
    calls = sqlite_session.calls
    with pytest.raises(BindError) as exc_info:
        dbexec.execute(sqlite_session, handle, values=[1, 2])
    assert exc_info.value.statement is handle
    assert sqlite_session.calls == calls


def test_constraint_violation(sqlite_session):
    """Test driver errors are wrapped as ExecuteError"""
    with pytest.raises(ExecuteError) as exc_info:
        dbexec.execute(sqlite_session, "INSERT INTO test_table (name, value) VALUES ('Alice', 1)")
    assert isinstance(exc_info.value.cause, sa.exc.IntegrityError)
    assert isinstance(exc_info.value.cause, dbexec.DriverError)


def test_execute_async_callbacks(sqlite_session):
    """Test callback execution against a real session"""
    received = []
    handle = dbexec.execute_async(sqlite_session, 'SELECT COUNT(*) AS n FROM test_table',
                                  success=received.append)
    rows = handle.result(timeout=10)
    assert rows[0].n == 3
    assert received == [rows]


def test_execute_async_failure(sqlite_session):
    """Test async failures reach the error callback"""
    errors = []
    handle = dbexec.execute_async(sqlite_session, 'SELECT * FROM missing_table',
                                  error=errors.append)
    err = handle.exception(timeout=10)
    assert isinstance(err, ExecuteError)
    assert errors == [err]


def test_execute_chan(sqlite_session):
    """Test channel execution against a real session"""
    ok = dbexec.execute_chan(sqlite_session, 'SELECT name FROM test_table ORDER BY name')
    assert [r.name for r in ok.take(timeout=10)] == ['Alice', 'Bob', 'Charlie']

    failed = dbexec.execute_chan(sqlite_session, 'SELECT * FROM missing_table')
    assert isinstance(failed.take(timeout=10), ExecutionError)


def test_fetch_size_returns_all_rows(sqlite_file_session):
    """Test fetching in partitions still returns every row"""
    rows = dbexec.execute(sqlite_file_session, 'SELECT x FROM items ORDER BY x', fetch_size=2)
    assert [r.x for r in rows] == list(range(1, 8))


def test_lazy_query_keyset_pages(sqlite_file_session):
    """Test keyset pagination over a table"""
    first = {'select': 'items', 'columns': ['x'], 'order_by': ['x'], 'limit': 3}

    def continuation(query, chunk):
        if len(chunk) < 3:
            return None
        return {**query, 'where': {'x': ('>', chunk[-1].x)}}

    rows = list(dbexec.lazy_query(sqlite_file_session, first, continuation))
    assert [r.x for r in rows] == list(range(1, 8))


def test_tracing_logged(sqlite_session, caplog):
    """Test tracing logs the statement and timing"""
    with caplog.at_level('INFO', logger='dbexec.session'):
        dbexec.execute(sqlite_session, 'SELECT 1 AS one', tracing=True)
    assert 'Trace: SELECT 1 AS one' in caplog.text


def test_closed_session_rejects_work(sqlite_session):
    """Test executing on a closed session fails as ExecuteError"""
    sqlite_session.close()
    with pytest.raises(ExecuteError):
        dbexec.execute(sqlite_session, 'SELECT 1')


def test_postgres_url():
    """Test PostgreSQL URL uses psycopg and the application name"""
    options = dbexec.SessionOptions(hostname='db', username='u', password='p',
                                    database='app', port=5432, timeout=5, appname='svc')
    url = create_url_from_options(options)
    assert url.drivername == 'postgresql+psycopg'
    assert url.host == 'db'
    assert url.query['application_name'] == 'svc'
    assert url.query['connect_timeout'] == '5'


if __name__ == '__main__':
    __import__('pytest').main([__file__])

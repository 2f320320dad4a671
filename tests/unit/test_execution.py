"""
Tests for blocking, callback and channel execution.
"""
import threading
from concurrent.futures import ThreadPoolExecutor

import dbexec
import pytest
from dbexec import BindError, Consistency, ExecuteError, ExecutionError, Keyword
from dbexec import ResultSet, execute, execute_async, execute_chan, prepare
from dbexec.statement import BoundStatement, PreparedStatement

from tests.fixtures.stubs import StubDriverError

QUERY = 'SELECT * FROM t'


@pytest.fixture
def session(stub_session, two_rows):
    """Stub session answering QUERY with two rows"""
    return stub_session({QUERY: two_rows})


@pytest.fixture
def failing_session(stub_session):
    """Stub session failing every execution"""
    return stub_session(fail=StubDriverError('node down'))


@pytest.fixture
def worker_pool():
    pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix='test-worker')
    yield pool
    pool.shutdown(wait=True)


class Recorder:
    """Collects callback invocations"""

    def __init__(self):
        self.successes = []
        self.errors = []
        self.threads = []

    def success(self, rows):
        self.threads.append(threading.current_thread().name)
        self.successes.append(rows)

    def error(self, err):
        self.threads.append(threading.current_thread().name)
        self.errors.append(err)


class TestBlocking:
    """Blocking execution"""

    def test_select_returns_rows(self, session):
        """Test two stub rows come back with no options applied"""
        rows = execute(session, QUERY)
        assert rows == [{'id': 1, 'name': 'alice'}, {'id': 2, 'name': 'bob'}]
        assert all(isinstance(k, Keyword) for k in rows[0])
        statement = session.executed[0]
        assert statement.consistency is None
        assert statement.fetch_size is None
        assert statement.tracing is False

    def test_string_keys(self, session):
        """Test string_keys renders plain string keys"""
        rows = execute(session, QUERY, string_keys=True)
        assert all(type(k) is str for k in rows[0])

    def test_options_applied(self, session):
        """Test options reach the statement handed to the driver"""
        execute(session, QUERY, {'consistency': 'quorum', 'fetch_size': 500},
                tracing=True, routing_key=b'\x00\x01')
        statement = session.executed[0]
        assert statement.consistency is Consistency.QUORUM
        assert statement.fetch_size == 500
        assert statement.tracing is True
        assert statement.routing_key == b'\x00\x01'

    def test_prepared_insert_acknowledged(self, stub_session):
        """Test prepare, bind and execute of a write returns no rows"""
        session = stub_session()
        handle = prepare(session, 'INSERT INTO t (id) VALUES (?)')
        assert execute(session, handle, values=[1]) == []

        statement = session.executed[0]
        assert isinstance(statement, BoundStatement)
        assert statement.values == (1,)

    def test_structured_query(self, stub_session, two_rows):
        """Test structured queries execute through the compiled text"""
        session = stub_session({'SELECT * FROM "t" WHERE "id" = 1': two_rows})
        assert len(execute(session, {'select': 't', 'where': {'id': 1}})) == 2

    def test_driver_failure_raises(self, failing_session):
        """Test driver failures raise ExecuteError with context"""
        with pytest.raises(ExecuteError) as exc_info:
            execute(failing_session, QUERY, values=['ignored'])

        err = exc_info.value
        assert isinstance(err.cause, StubDriverError)
        assert err.statement is failing_session.executed[0]
        assert err.query == QUERY
        assert err.values == ['ignored']

    def test_bind_failure_never_reaches_driver(self, session):
        """Test bind errors raise before any execution"""
        handle = PreparedStatement('SELECT * FROM t WHERE id = ?', 1)
        with pytest.raises(BindError):
            execute(session, handle, values=[])
        assert session.executed == []

    def test_decode_failure_is_execute_error(self, stub_session):
        """Test a malformed driver result surfaces as ExecuteError"""
        session = stub_session({QUERY: object()})
        with pytest.raises(ExecuteError, match='Result decoding failed'):
            execute(session, QUERY)


class TestCallback:
    """Callback-style execution"""

    def test_success_callback(self, session, worker_pool):
        """Test success runs once on the supplied pool with decoded rows"""
        recorder = Recorder()
        handle = execute_async(session, QUERY, success=recorder.success,
                               error=recorder.error, executor=worker_pool)

        rows = handle.result(timeout=5)

        assert recorder.successes == [rows]
        assert recorder.errors == []
        assert len(rows) == 2
        assert recorder.threads[0].startswith('test-worker')

    def test_error_callback(self, failing_session, worker_pool):
        """Test a driver failure calls error once and never success"""
        recorder = Recorder()
        handle = execute_async(failing_session, QUERY, success=recorder.success,
                               error=recorder.error, executor=worker_pool)

        err = handle.exception(timeout=5)

        assert isinstance(err, ExecuteError)
        assert recorder.errors == [err]
        assert recorder.successes == []
        assert isinstance(err.cause, StubDriverError)

    def test_default_pool_used(self, session):
        """Test callbacks run on the shared default pool without an executor"""
        recorder = Recorder()
        handle = execute_async(session, QUERY, success=recorder.success)
        handle.result(timeout=5)
        assert recorder.threads[0].startswith('dbexec-callback')

    def test_bind_failure_synchronous(self, session, mocker):
        """Test resolution failures take the error path before returning"""
        recorder = Recorder()
        executor = mocker.Mock()
        spy = mocker.spy(session, 'execute_async')
        handle = execute_async(session, PreparedStatement('SELECT ?', 1), values=[],
                               success=recorder.success, error=recorder.error,
                               executor=executor)

        assert len(recorder.errors) == 1
        assert isinstance(recorder.errors[0], BindError)
        assert recorder.successes == []
        assert handle.done()
        assert handle.exception() is recorder.errors[0]
        executor.submit.assert_not_called()
        spy.assert_not_called()

    def test_submission_failure_synchronous(self, session, mocker):
        """Test a driver refusing submission takes the error path immediately"""
        recorder = Recorder()
        mocker.patch.object(session, 'execute_async', side_effect=StubDriverError('busy'))
        handle = execute_async(session, QUERY, error=recorder.error)
        assert handle.done()
        assert isinstance(recorder.errors[0], ExecuteError)

    def test_callback_exception_logged(self, session, caplog):
        """Test a raising success callback is logged and the handle still completes"""
        def bad_success(rows):
            raise RuntimeError('callback blew up')

        with caplog.at_level('ERROR', logger='dbexec.execution'):
            handle = execute_async(session, QUERY, success=bad_success)
            assert len(handle.result(timeout=5)) == 2
        assert 'Error in success callback' in caplog.text

    def test_no_callbacks(self, session):
        """Test the handle alone is enough"""
        assert len(execute_async(session, QUERY).result(timeout=5)) == 2

    def test_rejecting_executor_runs_inline(self, session, mocker):
        """Test completions still fire when the pool refuses work"""
        executor = mocker.Mock()
        executor.submit.side_effect = RuntimeError('cannot schedule new futures after shutdown')
        recorder = Recorder()
        handle = execute_async(session, QUERY, success=recorder.success, executor=executor)
        assert len(handle.result(timeout=5)) == 2
        assert len(recorder.successes) == 1

    def test_cancelled_handle_skips_callbacks(self, stub_session, two_rows):
        """Test cancelling the handle before completion runs neither callback"""
        gate = threading.Event()

        def slow(statement):
            gate.wait(5)
            return two_rows

        session = stub_session({QUERY: slow})
        recorder = Recorder()
        pool = ThreadPoolExecutor(max_workers=1)
        handle = execute_async(session, QUERY, success=recorder.success,
                               error=recorder.error, executor=pool)

        assert handle.cancel()
        gate.set()
        session.close()
        pool.shutdown(wait=True)

        assert handle.cancelled()
        assert recorder.successes == []
        assert recorder.errors == []


class TestChannel:
    """Channel-style execution"""

    def test_rows_delivered(self, session):
        """Test the channel receives the rows and closes"""
        channel = execute_chan(session, QUERY)
        rows = channel.take(timeout=5)
        assert len(rows) == 2
        assert channel.closed
        assert channel.take() is None

    def test_error_delivered_as_value(self, failing_session):
        """Test failures arrive as the ExecutionError value"""
        value = execute_chan(failing_session, QUERY).take(timeout=5)
        assert isinstance(value, ExecutionError)
        assert value.kind is dbexec.ErrorKind.EXECUTE

    def test_bind_failure_delivered_immediately(self, session):
        """Test resolution failures are on the channel before it is returned"""
        channel = execute_chan(session, PreparedStatement('SELECT ?', 1), values=[1, 2])
        assert channel.closed
        assert isinstance(channel.poll(), BindError)
        assert session.executed == []

    def test_supplied_executor(self, session, worker_pool, mocker):
        """Test the channel completion runs on the supplied pool"""
        spy = mocker.spy(worker_pool, 'submit')
        assert len(execute_chan(session, QUERY, executor=worker_pool).take(timeout=5)) == 2
        assert spy.call_count == 1


def test_styles_equivalent(session, worker_pool):
    """Test all three styles decode identical rows"""
    blocking = execute(session, QUERY)
    callback = execute_async(session, QUERY, executor=worker_pool).result(timeout=5)
    channel = execute_chan(session, QUERY, executor=worker_pool).take(timeout=5)
    assert blocking == callback == channel


def test_concurrent_executions_independent(stub_session):
    """Test many concurrent submissions each complete exactly once"""
    responses = {f'SELECT {i}': ResultSet(('i',), [(i,)]) for i in range(20)}
    session = stub_session(responses)
    counts = {}
    lock = threading.Lock()

    def success(rows):
        with lock:
            counts[rows[0]['i']] = counts.get(rows[0]['i'], 0) + 1

    handles = [execute_async(session, f'SELECT {i}', success=success) for i in range(20)]
    results = [h.result(timeout=5) for h in handles]

    assert [r[0]['i'] for r in results] == list(range(20))
    assert counts == {i: 1 for i in range(20)}


if __name__ == '__main__':
    __import__('pytest').main([__file__])

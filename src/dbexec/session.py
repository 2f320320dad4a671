"""
Driver session over SQLAlchemy.

This module provides:
1. The `connect()` function creating a session from SessionOptions
2. The `SQLAlchemySession` class implementing the driver session protocol
3. Engine creation and management through a thread-safe registry

Statements use ``?`` placeholders; they are rewritten for drivers using the
pyformat style. Consistency, routing key and retry policy have no meaning
for SQL backends and are only logged.
"""
import atexit
import logging
import sqlite3
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import fields
from typing import Any, Self

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool, StaticPool

from dbexec.driver import ResultSet
from dbexec.options import SessionOptions
from dbexec.sql import count_placeholders, to_pyformat
from dbexec.statement import PreparedStatement, Statement

from libb import load_options

__all__ = [
    'SQLAlchemySession',
    'connect',
    'shutdown',
    'create_url_from_options',
    'get_engine_for_options',
    'dispose_all_engines',
]

logger = logging.getLogger(__name__)

_engine_registry: dict[str, Engine] = {}
_engine_registry_lock = threading.RLock()


def create_url_from_options(options: SessionOptions,
                            url_creator: Callable[..., sa.URL] = sa.URL.create) -> sa.URL:
    """Convert SessionOptions to SQLAlchemy URL.
    """
    if options.drivername == 'sqlite':
        return url_creator(
            drivername='sqlite',
            database=options.database
        )

    elif options.drivername == 'postgresql':
        query = {'application_name': options.appname}
        if options.timeout:
            query['connect_timeout'] = str(options.timeout)

        return url_creator(
            drivername='postgresql+psycopg',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port or None,
            database=options.database,
            query=query
        )

    raise ValueError(f'Unsupported database type: {options.drivername}')


def get_engine_for_options(options: SessionOptions,
                           engine_factory: Callable[..., Engine] = sa.create_engine,
                           **kwargs: Any) -> Engine:
    """Get or create a SQLAlchemy engine for the given options.
    """
    key = str(options)

    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug(f'Using existing engine for {options.drivername}')
            return _engine_registry[key]

        url = create_url_from_options(options)

        engine_kwargs: dict[str, Any] = {'echo': False}

        if options.drivername == 'sqlite':
            engine_kwargs['connect_args'] = {
                'detect_types': sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
                'check_same_thread': False,
            }
            if options.database == ':memory:':
                # one shared connection, or every checkout sees an empty database
                engine_kwargs['poolclass'] = StaticPool
        if 'poolclass' not in engine_kwargs:
            if not options.use_pool:
                engine_kwargs['poolclass'] = NullPool
            else:
                engine_kwargs['pool_size'] = options.pool_max_connections
                engine_kwargs['pool_recycle'] = options.pool_max_idle_time
                engine_kwargs['pool_timeout'] = options.pool_wait_timeout
                engine_kwargs['max_overflow'] = 10
                engine_kwargs['pool_pre_ping'] = True
                engine_kwargs['pool_reset_on_return'] = 'rollback'

        engine_kwargs.update(kwargs)

        engine = engine_factory(url, **engine_kwargs)

        _engine_registry[key] = engine
        logger.debug(f'Created new engine for {options.drivername}')

        return engine


def dispose_all_engines() -> None:
    """Dispose all engines in the registry.
    """
    with _engine_registry_lock:
        for engine in list(_engine_registry.values()):
            engine.dispose()
        _engine_registry.clear()
        logger.debug('All database engines disposed')


atexit.register(dispose_all_engines)


class SQLAlchemySession:
    """Driver session backed by a SQLAlchemy engine.

    Tracks call counts and execution time like a connection wrapper, and
    runs `execute_async` on its own I/O pool.
    """

    def __init__(self, engine: Engine, options: SessionOptions | None = None) -> None:
        self.engine = engine
        self.options = options
        self.dialect = engine.dialect.name
        self.calls = 0
        self.time = 0.0
        self._stats_lock = threading.Lock()
        self._io = ThreadPoolExecutor(
            max_workers=options.io_threads if options else 4,
            thread_name_prefix='dbexec-io')
        self._closed = False
        # sqlite connections are not safe for concurrent use
        self._serialize = threading.RLock() if self.dialect == 'sqlite' else None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        with self._stats_lock:
            self.time += elapsed
            self.calls += 1

    def _driver_sql(self, text: str, has_params: bool) -> str:
        # psycopg only interprets %s and %% when parameters are passed
        if self.dialect == 'postgresql' and has_params:
            return to_pyformat(text)
        return text

    def _run(self, func: Callable[[sa.Connection], Any]) -> Any:
        if self._closed:
            raise sa.exc.InvalidRequestError('Session is closed')
        if self._serialize is None:
            with self.engine.connect() as conn:
                return func(conn)
        with self._serialize, self.engine.connect() as conn:
            return func(conn)

    def prepare(self, text: str) -> PreparedStatement:
        """Parse placeholders and validate the statement where the backend allows.

        SQLite compiles the statement through EXPLAIN with NULL parameters,
        so syntax errors and unknown tables fail here. Other backends report
        such errors on execution.
        """
        param_count = count_placeholders(text)
        if self.dialect == 'sqlite':
            def explain(conn: sa.Connection) -> None:
                sql = f'EXPLAIN {text}'
                if param_count:
                    conn.exec_driver_sql(sql, (None,) * param_count)
                else:
                    conn.exec_driver_sql(sql)
                conn.rollback()
            self._run(explain)
        logger.debug(f'Prepared {param_count} parameter statement: {text[:60]}')
        return PreparedStatement(text, param_count, driver_handle=self._driver_sql(text, param_count > 0))

    def execute(self, statement: Statement) -> ResultSet:
        """Execute a statement and return its rows in server order."""
        text = self._driver_sql(statement.query_string, bool(statement.parameters))
        if statement.consistency or statement.serial_consistency or statement.retry_policy \
                or statement.routing_key:
            logger.debug(f'Ignoring consistency={statement.consistency}, '
                         f'serial_consistency={statement.serial_consistency}, '
                         f'retry_policy={statement.retry_policy!r}, routing_key set='
                         f'{statement.routing_key is not None} for {self.dialect}')

        def run(conn: sa.Connection) -> ResultSet:
            params = statement.parameters
            result = conn.exec_driver_sql(text, params) if params else conn.exec_driver_sql(text)
            if not result.returns_rows:
                conn.commit()
                return ResultSet()
            columns = tuple(result.keys())
            if statement.fetch_size:
                rows = [tuple(row) for part in result.partitions(statement.fetch_size) for row in part]
            else:
                rows = [tuple(row) for row in result.fetchall()]
            conn.commit()
            return ResultSet(columns, rows)

        start = time.time()
        try:
            return self._run(run)
        finally:
            elapsed = time.time() - start
            self.addcall(elapsed)
            if statement.tracing:
                logger.info(f'Trace: {text} params={statement.parameters} elapsed={elapsed:.4f}s')

    def execute_async(self, statement: Statement) -> Future:
        """Submit `execute` to the session's I/O pool."""
        return self._io.submit(self.execute, statement)

    def close(self) -> None:
        """Stop accepting work and release pooled connections."""
        if self._closed:
            return
        self._closed = True
        self._io.shutdown(wait=True)
        logger.debug(f'Session closed: {self.calls} queries in {self.time:.2f}s '
                     f'(avg: {self.time/max(1, self.calls):.3f}s per query)')


@load_options(cls=SessionOptions)
def connect(options: SessionOptions | dict[str, Any] | str,
            config: Any | None = None, **kw: Any) -> SQLAlchemySession:
    """Open a driver session using SQLAlchemy for connection management

    Args:
        options: Can be:
                - SessionOptions object
                - String path to configuration
                - Dictionary of options
                - Options specified as keyword arguments
        config: Configuration object (for loading from config files)
        **kw: Additional keyword arguments to override options

    Returns
        SQLAlchemySession ready for `dbexec.execute`
    """
    if isinstance(options, SessionOptions):
        for field in fields(options):
            kw.pop(field.name, None)
    else:
        options_func = load_options(cls=SessionOptions)(lambda o, c: o)
        options = options_func(options, config, **kw)

    engine = get_engine_for_options(options)
    logger.debug(f'Connected {options.drivername} session for {options.database}')
    return SQLAlchemySession(engine, options)


def shutdown(session: SQLAlchemySession) -> None:
    """Close a session and dispose its engine's pooled connections."""
    session.close()
    session.engine.dispose()

"""
Query execution layer over a driver session.

Accepts raw text, structured queries, prepared statements or built
statements; resolves them to one executable statement, applies per-call
options, runs it blocking, with callbacks, or onto a channel, and decodes
the rows.

    session = dbexec.connect({'drivername': 'sqlite', 'database': ':memory:'})
    dbexec.execute(session, 'SELECT * FROM t')
    dbexec.execute(session, {'select': 't', 'where': {'id': 1}}, string_keys=True)
    handle = dbexec.prepare(session, 'INSERT INTO t (id) VALUES (?)')
    dbexec.execute(session, handle, values=[1])
"""
__version__ = '0.1.0'

from dbexec.cache import QueryCache
from dbexec.channel import ResultChannel
from dbexec.codec import Keyword
from dbexec.compiler import PLACEHOLDER, compile_query
from dbexec.consistency import Consistency
from dbexec.context import ExecutionContext, get_default_context
from dbexec.context import set_default_context, set_query_compiler
from dbexec.driver import ResultSet, Session
from dbexec.exceptions import BindError, DatabaseError, DriverError, ErrorKind
from dbexec.exceptions import ExecuteError, ExecutionError, PrepareError
from dbexec.execution import execute, execute_async, execute_chan
from dbexec.options import ExecutionOptions, SessionOptions
from dbexec.pagination import lazy_query
from dbexec.resolver import bind, prepare, resolve, try_bind, try_prepare
from dbexec.resolver import try_resolve
from dbexec.result import Result
from dbexec.session import SQLAlchemySession, connect, shutdown
from dbexec.statement import BoundStatement, PreparedStatement
from dbexec.statement import SimpleStatement, Statement, set_statement_options

__all__ = [
    'connect',
    'shutdown',
    'execute',
    'execute_async',
    'execute_chan',
    'lazy_query',
    'prepare',
    'bind',
    'resolve',
    'try_prepare',
    'try_bind',
    'try_resolve',
    'set_statement_options',
    'compile_query',
    'PLACEHOLDER',
    'ExecutionContext',
    'get_default_context',
    'set_default_context',
    'set_query_compiler',
    'QueryCache',
    'ExecutionOptions',
    'SessionOptions',
    'Consistency',
    'Keyword',
    'Result',
    'ResultChannel',
    'ResultSet',
    'Session',
    'SQLAlchemySession',
    'Statement',
    'SimpleStatement',
    'PreparedStatement',
    'BoundStatement',
    'DatabaseError',
    'DriverError',
    'ErrorKind',
    'ExecutionError',
    'PrepareError',
    'BindError',
    'ExecuteError',
]

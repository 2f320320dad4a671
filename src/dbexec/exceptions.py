"""
Execution-layer exception classes.

Every failure surfaced by prepare, bind or execute is an `ExecutionError`
carrying the same context regardless of where it happened.
"""
import enum
import logging
import sqlite3
from typing import Any

import psycopg
import sqlalchemy.exc

logger = logging.getLogger(__name__)


class ErrorKind(enum.Enum):
    """Failure stage tag."""
    PREPARE = 'prepare'
    BIND = 'bind'
    EXECUTE = 'execute'


DEFAULT_MESSAGES = {
    ErrorKind.PREPARE: 'Query prepare failed',
    ErrorKind.BIND: 'Query binding failed',
    ErrorKind.EXECUTE: 'Query execution failed',
}


class DatabaseError(Exception):
    """Base class for all dbexec errors.
    """


class ExecutionError(DatabaseError):
    """Uniform tagged failure for prepare, bind and execute.

    Attributes
        kind: ErrorKind of the failing stage
        cause: Underlying exception, also chained as ``__cause__``
        statement: Statement (or prepared handle) involved, if any
        query: Raw query text or structured query, if known
        values: Parameter values attempted, if any
        message: Human-readable message
    """

    kind: ErrorKind = ErrorKind.EXECUTE

    def __init__(self, message: str | None = None, cause: BaseException | None = None,
                 statement: Any = None, query: Any = None, values: Any = None) -> None:
        self.message = message or DEFAULT_MESSAGES[self.kind]
        self.cause = cause
        self.statement = statement
        self.query = query
        self.values = values
        super().__init__(self.message)
        self.__cause__ = cause

    @property
    def context(self) -> dict[str, Any]:
        """Available diagnostic context, without empty entries."""
        context = {'statement': self.statement, 'query': self.query, 'values': self.values}
        return {k: v for k, v in context.items() if v is not None}

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f'{self.message}: {self.cause}'

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.message!r}, cause={self.cause!r})'


class PrepareError(ExecutionError):
    """Query text failed to prepare against the driver.
    """
    kind = ErrorKind.PREPARE


class BindError(ExecutionError):
    """Parameter encoding or arity mismatch during bind.
    """
    kind = ErrorKind.BIND


class ExecuteError(ExecutionError):
    """Resolved statement failed during submission or execution.
    """
    kind = ErrorKind.EXECUTE


_ERROR_CLASSES = {
    ErrorKind.PREPARE: PrepareError,
    ErrorKind.BIND: BindError,
    ErrorKind.EXECUTE: ExecuteError,
}


def wrap_error(cause: BaseException, context: dict[str, Any] | None = None,
               kind: ErrorKind = ErrorKind.EXECUTE,
               message: str | None = None) -> ExecutionError:
    """Wrap an underlying failure into the ExecutionError for `kind`.

    Args:
        cause: The exception raised by the driver, codec or compiler
        context: Any of ``statement``, ``query`` and ``values``
        kind: Failing stage
        message: Overrides the per-kind default message

    Returns
        PrepareError, BindError or ExecuteError instance (not raised)
    """
    context = context or {}
    error = _ERROR_CLASSES[kind](
        message,
        cause=cause,
        statement=context.get('statement'),
        query=context.get('query'),
        values=context.get('values'),
        )
    logger.error(f'{error.message}: {cause!r}')
    return error


DriverError = (
    sqlalchemy.exc.DBAPIError,
    sqlalchemy.exc.StatementError,
    sqlite3.Error,
    psycopg.Error,
    )

"""
Statement resolution: turns any query descriptor into an executable
statement.

Descriptors are one of:
- str: raw query text, wrapped in a SimpleStatement
- Mapping: structured query, compiled through the context's cache
- PreparedStatement: bound with the given values
- Statement: already executable, returned as is

The ``try_`` functions return a `Result`; the plain names raise the
carried `ExecutionError`.
"""
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from dbexec.codec import encode_values
from dbexec.context import ExecutionContext, resolve_context
from dbexec.exceptions import ErrorKind, wrap_error
from dbexec.result import Result
from dbexec.statement import PreparedStatement, SimpleStatement, Statement

__all__ = [
    'try_prepare',
    'prepare',
    'try_bind',
    'bind',
    'try_resolve',
    'resolve',
]

logger = logging.getLogger(__name__)


def _compile(query: Mapping[str, Any], context: ExecutionContext) -> Result:
    """Compile a structured query; compiler failures are prepare failures."""
    try:
        return Result.success(context.compile(query))
    except Exception as exc:
        return Result.failure(wrap_error(exc, {'query': query}, ErrorKind.PREPARE,
                                         'Structured query compilation failed'))


def try_prepare(session: Any, query: str | Mapping[str, Any],
                context: ExecutionContext | None = None) -> Result:
    """Prepare raw or structured query text against the driver session."""
    if isinstance(query, Mapping):
        compiled = _compile(query, resolve_context(context))
        if not compiled.ok:
            return compiled
        text = compiled.value
    elif isinstance(query, str):
        text = query
    else:
        raise TypeError(f'Cannot prepare query of type {type(query).__name__}')

    try:
        prepared = session.prepare(text)
    except Exception as exc:
        return Result.failure(wrap_error(exc, {'query': text}, ErrorKind.PREPARE))
    logger.debug(f'Prepared statement with {prepared.param_count} parameter(s): {text[:60]}')
    return Result.success(prepared)


def prepare(session: Any, query: str | Mapping[str, Any],
            context: ExecutionContext | None = None) -> PreparedStatement:
    """Prepare a query, raising PrepareError on failure.

    Structured queries are compiled first, so `PLACEHOLDER` markers become
    bind markers:

        handle = prepare(session, {'select': 'items', 'where': {'id': PLACEHOLDER}})
    """
    return try_prepare(session, query, context).unwrap()


def try_bind(prepared: PreparedStatement, values: Sequence[Any] | None) -> Result:
    """Encode `values` in order and bind them to a prepared statement."""
    try:
        bound = prepared.bind(encode_values(values))
    except Exception as exc:
        return Result.failure(wrap_error(exc, {'statement': prepared,
                                               'query': prepared.text,
                                               'values': values}, ErrorKind.BIND))
    return Result.success(bound)


def bind(prepared: PreparedStatement, values: Sequence[Any] | None) -> Statement:
    """Bind values to a prepared statement, raising BindError on failure."""
    return try_bind(prepared, values).unwrap()


def try_resolve(query: Any, values: Sequence[Any] | None = None,
                context: ExecutionContext | None = None) -> Result:
    """Resolve any query descriptor into an executable statement.

    `values` is only used for prepared statements.
    """
    if isinstance(query, Statement):
        return Result.success(query)
    if isinstance(query, PreparedStatement):
        return try_bind(query, values)
    if isinstance(query, str):
        return Result.success(SimpleStatement(query))
    if isinstance(query, Mapping):
        return _compile(query, resolve_context(context)).then(
            lambda text: try_resolve(text, None, context))
    raise TypeError(f'Unsupported query descriptor: {type(query).__name__}')


def resolve(query: Any, values: Sequence[Any] | None = None,
            context: ExecutionContext | None = None) -> Statement:
    """Resolve a query descriptor, raising on bind or compile failure."""
    return try_resolve(query, values, context).unwrap()

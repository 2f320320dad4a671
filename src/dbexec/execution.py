"""
Execution coordinator.

One pipeline (resolve, apply options, submit, decode) behind three
completion styles:

- `execute`: blocks and returns rows, raising ExecutionError on failure
- `execute_async`: returns a Future; ``success`` or ``error`` runs
  exactly once
- `execute_chan`: returns a ResultChannel receiving either the rows or the
  ExecutionError itself as its single value

Rows are dicts keyed by column name; see `dbexec.codec.decode_row`.
"""
import logging
from collections.abc import Callable, Mapping
from concurrent.futures import Executor, Future
from typing import Any

from dbexec.channel import ResultChannel
from dbexec.codec import decode_result_set
from dbexec.context import ExecutionContext, resolve_context
from dbexec.exceptions import ErrorKind, wrap_error
from dbexec.options import ExecutionOptions
from dbexec.resolver import try_resolve
from dbexec.result import Result
from dbexec.statement import Statement, set_statement_options

__all__ = [
    'execute',
    'execute_async',
    'execute_chan',
]

logger = logging.getLogger(__name__)

Row = dict[str, Any]


def _error_context(statement: Statement, options: ExecutionOptions) -> dict[str, Any]:
    return {'statement': statement, 'query': statement.query_string, 'values': options.values}


def _prepare_statement(query: Any, options: ExecutionOptions,
                       context: ExecutionContext) -> Result:
    """Resolve the descriptor and apply the per-call options."""
    return try_resolve(query, options.values, context).then(
        lambda statement: Result.success(set_statement_options(statement, options)))


def _decode(result_set: Any, statement: Statement, options: ExecutionOptions) -> Result:
    try:
        return Result.success(decode_result_set(result_set, options.string_keys))
    except Exception as exc:
        return Result.failure(wrap_error(exc, _error_context(statement, options),
                                         ErrorKind.EXECUTE, 'Result decoding failed'))


def _run(session: Any, statement: Statement, options: ExecutionOptions) -> Result:
    """Execute synchronously on the driver and decode."""
    logger.debug(f'Executing {type(statement).__name__}: {statement.query_string[:60]}')
    try:
        result_set = session.execute(statement)
    except Exception as exc:
        return Result.failure(wrap_error(exc, _error_context(statement, options)))
    return _decode(result_set, statement, options)


def _submit(session: Any, statement: Statement, options: ExecutionOptions) -> Result:
    """Hand the statement to the driver's async path."""
    logger.debug(f'Submitting {type(statement).__name__}: {statement.query_string[:60]}')
    try:
        return Result.success(session.execute_async(statement))
    except Exception as exc:
        return Result.failure(wrap_error(exc, _error_context(statement, options)))


def _settle(driver_future: Future, statement: Statement, options: ExecutionOptions) -> Result:
    """Turn a completed driver future into decoded rows or an ExecuteError."""
    try:
        result_set = driver_future.result()
    except Exception as exc:
        return Result.failure(wrap_error(exc, _error_context(statement, options)))
    return _decode(result_set, statement, options)


def _dispatch(executor: Executor, func: Callable[[], Any]) -> None:
    """Run `func` on the executor, inline if the executor no longer accepts work."""
    try:
        executor.submit(func)
    except RuntimeError as exc:
        logger.warning(f'Executor rejected completion ({exc}), running inline')
        func()


def _on_completion(session: Any, query: Any, options: ExecutionOptions,
                   context: ExecutionContext,
                   complete: Callable[[Result], Any]) -> None:
    """Shared async pipeline: calls `complete` exactly once with the outcome.

    Resolution and submission failures complete synchronously on the calling
    thread; driver completions are dispatched to the worker pool.
    """
    resolved = _prepare_statement(query, options, context)
    if not resolved.ok:
        complete(resolved)
        return
    statement = resolved.value

    submitted = _submit(session, statement, options)
    if not submitted.ok:
        complete(submitted)
        return

    executor = options.executor or context.executor

    def on_done(driver_future: Future) -> None:
        _dispatch(executor, lambda: complete(_settle(driver_future, statement, options)))

    submitted.value.add_done_callback(on_done)


def execute(session: Any, query: Any,
            options: ExecutionOptions | Mapping[str, Any] | None = None, *,
            context: ExecutionContext | None = None, **kw: Any) -> list[Row]:
    """Execute a query and return its rows.

    The query can be raw text, a structured query, a PreparedStatement
    (bound with ``values``) or an already built Statement.

    Raises
        PrepareError: structured query failed to compile
        BindError: values could not be bound
        ExecuteError: the driver failed the statement
    """
    options = ExecutionOptions.coerce(options, **kw)
    context = resolve_context(context)
    statement = _prepare_statement(query, options, context).unwrap()
    rows = _run(session, statement, options).unwrap()
    logger.debug(f'Query returned {len(rows)} row(s)')
    return rows


def execute_async(session: Any, query: Any,
                  options: ExecutionOptions | Mapping[str, Any] | None = None, *,
                  context: ExecutionContext | None = None, **kw: Any) -> Future:
    """Same as `execute`, but returns a Future immediately.

    ``success`` receives the rows, ``error`` the ExecutionError; exactly one
    of them is called, once, on ``executor`` (the shared default pool when
    not given). Both run before the returned Future completes. Cancelling
    the Future before it completes skips both callbacks.
    """
    options = ExecutionOptions.coerce(options, **kw)
    context = resolve_context(context)
    handle: Future = Future()

    def complete(result: Result) -> None:
        if not handle.set_running_or_notify_cancel():
            logger.debug('Execution handle cancelled before completion')
            return
        callback = options.success if result.ok else options.error
        if callback is not None:
            try:
                callback(result.payload())
            except Exception:
                logger.exception(f'Error in {"success" if result.ok else "error"} callback')
        if result.ok:
            handle.set_result(result.value)
        else:
            handle.set_exception(result.error)

    _on_completion(session, query, options, context, complete)
    return handle


def execute_chan(session: Any, query: Any,
                 options: ExecutionOptions | Mapping[str, Any] | None = None, *,
                 context: ExecutionContext | None = None, **kw: Any) -> ResultChannel:
    """Same as `execute`, but returns a single-value ResultChannel.

    Failures are delivered on the channel as the ExecutionError value;
    consumers check ``isinstance(value, ExecutionError)``.
    """
    options = ExecutionOptions.coerce(options, **kw)
    context = resolve_context(context)
    channel = ResultChannel()
    _on_completion(session, query, options, context,
                   lambda result: channel.put(result.payload()))
    return channel

"""
Execution context: the structured-query compiler, its cache and the worker
pool used for async completions.

A process-wide default context exists for convenience; pass an explicit
`ExecutionContext` to isolate caches (tests, multi-tenant services).
"""
import atexit
import logging
import threading
from collections.abc import Callable, Mapping
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any

from dbexec.cache import DEFAULT_CACHE_SIZE, QueryCache
from dbexec.compiler import compile_query

__all__ = [
    'ExecutionContext',
    'get_default_context',
    'set_default_context',
    'set_query_compiler',
    'default_executor',
    'shutdown_default_executor',
]

logger = logging.getLogger(__name__)

_default_executor: ThreadPoolExecutor | None = None
_default_context: 'ExecutionContext | None' = None
_lock = threading.RLock()


def default_executor() -> ThreadPoolExecutor:
    """Shared worker pool for async completions, created on first use."""
    global _default_executor
    if _default_executor is None:
        with _lock:
            if _default_executor is None:
                _default_executor = ThreadPoolExecutor(thread_name_prefix='dbexec-callback')
                logger.debug('Created default callback executor')
    return _default_executor


def shutdown_default_executor(wait: bool = True) -> None:
    """Shut down the shared worker pool; the next use creates a new one."""
    global _default_executor
    with _lock:
        executor, _default_executor = _default_executor, None
    if executor is not None:
        executor.shutdown(wait=wait)
        logger.debug('Default callback executor shut down')


atexit.register(shutdown_default_executor)


class ExecutionContext:
    """Owns the compiler and its compilation cache.

    Args:
        compiler: Pure function from structured query to text
        cache: QueryCache to use; a fresh one of `cache_size` if None
        cache_size: Capacity for the fresh cache
        executor: Worker pool for async completions; the shared default if None
    """

    def __init__(self, compiler: Callable[[Mapping[str, Any]], str] = compile_query,
                 cache: QueryCache | None = None, cache_size: int = DEFAULT_CACHE_SIZE,
                 executor: Executor | None = None) -> None:
        self.compiler = compiler
        self.cache = cache if cache is not None else QueryCache(cache_size)
        self._executor = executor

    @property
    def executor(self) -> Executor:
        return self._executor or default_executor()

    def compile(self, query: Mapping[str, Any]) -> str:
        """Compiled text for a structured query, through the cache."""
        return self.cache.get_or_compile(query, self.compiler)


def get_default_context() -> ExecutionContext:
    """The process-wide context, created on first use."""
    global _default_context
    if _default_context is None:
        with _lock:
            if _default_context is None:
                _default_context = ExecutionContext()
    return _default_context


def set_default_context(context: ExecutionContext | None) -> None:
    """Replace the process-wide context; None resets it to a fresh default.

    This is global: it affects every thread.
    """
    global _default_context
    with _lock:
        _default_context = context


def set_query_compiler(compiler: Callable[[Mapping[str, Any]], str],
                       cache_size: int = DEFAULT_CACHE_SIZE) -> ExecutionContext:
    """Swap the default context's compiler, starting a fresh cache.

    This is global: it affects every thread.
    """
    context = ExecutionContext(compiler=compiler, cache_size=cache_size)
    set_default_context(context)
    logger.debug(f'Default query compiler set to {getattr(compiler, "__name__", compiler)!r}')
    return context


def resolve_context(context: ExecutionContext | None) -> ExecutionContext:
    return context if context is not None else get_default_context()

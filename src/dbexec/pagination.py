"""Lazily paginated queries."""
import logging
from collections.abc import Callable, Iterator, Mapping
from typing import Any

from dbexec.context import ExecutionContext
from dbexec.execution import execute
from dbexec.options import ExecutionOptions

logger = logging.getLogger(__name__)


def lazy_query(session: Any, query: Any,
               continuation: Callable[[Any, list[dict[str, Any]]], Any],
               options: ExecutionOptions | Mapping[str, Any] | None = None, *,
               context: ExecutionContext | None = None, **kw: Any) -> Iterator[dict[str, Any]]:
    """Lazy iterator over the rows of successive queries.

    The first chunk is the result of `query`. Each later query is
    ``continuation(last_query, last_chunk)``; returning None ends the
    sequence. A page is only executed once the consumer iterates past the
    rows already fetched. Each call starts a fresh, single-pass sequence.

        lazy_query(session,
                   {'select': 'items', 'limit': 2, 'where': {'x': 1}},
                   lambda q, chunk: {**q, 'where': {'x': ('>', chunk[-1]['x'])}}
                                    if chunk else None,
                   consistency='quorum')
    """
    options = ExecutionOptions.coerce(options, **kw)

    def pages() -> Iterator[dict[str, Any]]:
        current = query
        page = 0
        while current is not None:
            page += 1
            chunk = execute(session, current, options, context=context)
            logger.debug(f'Fetched page {page} with {len(chunk)} row(s)')
            yield from chunk
            current = continuation(current, chunk)

    return pages()

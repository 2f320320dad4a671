"""
Default compiler from data-shaped queries to query text.

A structured query is a plain mapping naming one statement kind:

    {'select': 'items', 'columns': ['id', 'x'], 'where': {'x': ('>', 1)},
     'order_by': [('x', 'desc')], 'limit': 10}
    {'insert': 'items', 'values': {'id': 1, 'x': 2}}
    {'update': 'items', 'set': {'x': 3}, 'where': {'id': 1}}
    {'delete': 'items', 'where': {'id': 1}}

Use `PLACEHOLDER` wherever a bind marker is wanted, e.g. when preparing.
"""
import datetime
import decimal
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from dbexec.sql import quote_identifier, quote_literal

__all__ = ['compile_query', 'freeze', 'PLACEHOLDER']

QUERY_KINDS = ('select', 'insert', 'update', 'delete')

OPERATORS = {
    '=': '=', '==': '=', '!=': '!=', '<>': '!=',
    '<': '<', '<=': '<=', '>': '>', '>=': '>=',
    'in': 'IN', 'like': 'LIKE',
    }


class _Placeholder:
    """Bind marker rendered as ``?``."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'PLACEHOLDER'

    def __reduce__(self):
        return _Placeholder, ()


PLACEHOLDER = _Placeholder()


def freeze(query: Any) -> Any:
    """Deep hashable form of a structured query.

    Structurally equal queries freeze to equal keys regardless of mapping
    order or container identity. Scalars and sequences keep their type:
    ``1`` and ``True`` or a tuple and a list freeze to different keys.

    >>> freeze({'select': 'a', 'where': {'id': 1}}) == freeze({'where': {'id': 1}, 'select': 'a'})
    True
    """
    if isinstance(query, Mapping):
        return ('map', frozenset((freeze(k), freeze(v)) for k, v in query.items()))
    if isinstance(query, (set, frozenset)):
        return ('set', frozenset(freeze(v) for v in query))
    if isinstance(query, list):
        return ('list', tuple(freeze(v) for v in query))
    if isinstance(query, tuple):
        return ('tuple', tuple(freeze(v) for v in query))
    return (type(query), query)


def render_value(value: Any) -> str:
    """Render a literal value.

    >>> render_value("o'neil"), render_value(None), render_value(True), render_value(1.5)
    ("'o''neil'", 'NULL', 'TRUE', '1.5')
    """
    if value is PLACEHOLDER:
        return '?'
    if value is None:
        return 'NULL'
    if isinstance(value, bool):
        return 'TRUE' if value else 'FALSE'
    if isinstance(value, (int, float, decimal.Decimal)):
        return str(value)
    if isinstance(value, str):
        return quote_literal(value)
    if isinstance(value, (datetime.date, datetime.time, uuid.UUID)):
        return quote_literal(str(value))
    if isinstance(value, (list, tuple, set, frozenset)):
        return '(' + ', '.join(render_value(v) for v in value) + ')'
    raise ValueError(f'Cannot render literal of type {type(value).__name__}')


def _render_condition(column: str, condition: Any) -> str:
    col = quote_identifier(column)
    if isinstance(condition, tuple) and len(condition) == 2 and isinstance(condition[0], str):
        op, value = condition
        sql_op = OPERATORS.get(op.lower())
        if sql_op is None:
            raise ValueError(f'Unknown operator: {op!r}')
        if sql_op == 'IN' and value is not PLACEHOLDER and not isinstance(value, (list, tuple, set, frozenset)):
            raise ValueError(f'IN requires a collection for column {column!r}')
        return f'{col} {sql_op} {render_value(value)}'
    if condition is None:
        return f'{col} IS NULL'
    return f'{col} = {render_value(condition)}'


def _where(where: Mapping[str, Any] | None) -> str:
    if not where:
        return ''
    return ' WHERE ' + ' AND '.join(_render_condition(k, v) for k, v in where.items())


def _order_by(order_by: Sequence[Any] | None) -> str:
    if not order_by:
        return ''
    parts = []
    for item in order_by:
        if isinstance(item, str):
            parts.append(quote_identifier(item))
            continue
        column, direction = item
        direction = direction.upper()
        if direction not in {'ASC', 'DESC'}:
            raise ValueError(f'Unknown sort direction: {direction!r}')
        parts.append(f'{quote_identifier(column)} {direction}')
    return ' ORDER BY ' + ', '.join(parts)


def _compile_select(query: Mapping[str, Any]) -> str:
    columns = query.get('columns')
    if columns:
        select_clause = 'SELECT ' + ', '.join(quote_identifier(c) for c in columns)
    else:
        select_clause = 'SELECT *'
    sql = f"{select_clause} FROM {quote_identifier(query['select'])}"
    sql += _where(query.get('where'))
    sql += _order_by(query.get('order_by'))
    if query.get('limit') is not None:
        sql += f" LIMIT {int(query['limit'])}"
    if query.get('allow_filtering'):
        sql += ' ALLOW FILTERING'
    return sql


def _compile_insert(query: Mapping[str, Any]) -> str:
    values = query.get('values')
    if not values:
        raise ValueError('insert requires values')
    columns = ', '.join(quote_identifier(c) for c in values)
    rendered = ', '.join(render_value(v) for v in values.values())
    return f"INSERT INTO {quote_identifier(query['insert'])} ({columns}) VALUES ({rendered})"


def _compile_update(query: Mapping[str, Any]) -> str:
    assignments = query.get('set')
    if not assignments:
        raise ValueError('update requires set')
    set_clause = ', '.join(f'{quote_identifier(k)} = {render_value(v)}' for k, v in assignments.items())
    return f"UPDATE {quote_identifier(query['update'])} SET {set_clause}" + _where(query.get('where'))


def _compile_delete(query: Mapping[str, Any]) -> str:
    return f"DELETE FROM {quote_identifier(query['delete'])}" + _where(query.get('where'))


_COMPILERS = {
    'select': _compile_select,
    'insert': _compile_insert,
    'update': _compile_update,
    'delete': _compile_delete,
    }


def compile_query(query: Mapping[str, Any]) -> str:
    """Compile a structured query to text.

    >>> compile_query({'select': 'items', 'where': {'id': 1}})
    'SELECT * FROM "items" WHERE "id" = 1'
    >>> compile_query({'insert': 't', 'values': {'id': PLACEHOLDER}})
    'INSERT INTO "t" ("id") VALUES (?)'
    """
    kinds = [k for k in QUERY_KINDS if k in query]
    if len(kinds) != 1:
        raise ValueError(f'Structured query must name exactly one of {list(QUERY_KINDS)}, got {sorted(query)}')
    return _COMPILERS[kinds[0]](query)


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)

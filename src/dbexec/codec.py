"""
Value codec between call-site values and driver-transportable values.

Encoding (Python -> driver):
- Native scalars (None, bool, int, float, str, bytes, Decimal, date/time,
  UUID) pass through unchanged
- NumPy and Pandas scalars are unwrapped to their Python equivalents, with
  NaN/NaT/NA becoming None
- Enum members encode as their value, Keyword as a plain str
- Lists, tuples, sets and dicts are encoded element-wise
- Anything else raises TypeError, which fails the enclosing bind

Decoding (driver -> Python) turns buffers into bytes, decodes containers
element-wise, and renders column names either as plain strings or as
interned Keyword instances depending on ``string_keys``.
"""
import datetime
import decimal
import enum
import logging
import math
import threading
import uuid
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import numpy as np
import pandas as pd

from libb import attrdict

logger = logging.getLogger(__name__)

NATIVE_TYPES = (
    bool, int, float, str, bytes, decimal.Decimal,
    datetime.datetime, datetime.date, datetime.time, datetime.timedelta,
    uuid.UUID,
    )


class Keyword(str):
    """Interned symbolic column name.

    Compares and hashes like the plain string it names, so rows keyed by
    Keyword still answer ``row['id']``; identical names share one instance.

    >>> Keyword('id') is Keyword('id')
    True
    >>> Keyword('id') == 'id'
    True
    >>> Keyword('id')
    :id
    """

    __slots__ = ()
    _interned: dict[str, 'Keyword'] = {}
    _lock = threading.Lock()

    def __new__(cls, name: str) -> 'Keyword':
        name = str(name)
        kw = cls._interned.get(name)
        if kw is None:
            with cls._lock:
                kw = cls._interned.get(name)
                if kw is None:
                    kw = super().__new__(cls, name)
                    cls._interned[name] = kw
        return kw

    @property
    def name(self) -> str:
        return str.__str__(self)

    def __repr__(self) -> str:
        return f':{self.name}'

    def __reduce__(self):
        return Keyword, (self.name,)


def _encode_numpy(value: Any) -> Any:
    """Unwrap a NumPy scalar."""
    if isinstance(value, np.floating) and np.isnan(value):
        return None
    if isinstance(value, np.datetime64):
        if np.isnat(value):
            return None
        return pd.Timestamp(value).to_pydatetime()
    if isinstance(value, np.timedelta64):
        if np.isnat(value):
            return None
        return pd.Timedelta(value).to_pytimedelta()
    return value.item()


def _encode_pandas(value: Any) -> Any:
    """Unwrap a Pandas scalar."""
    if value is pd.NaT or value is pd.NA:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, pd.Timedelta):
        return value.to_pytimedelta()
    return value


def encode(value: Any) -> Any:
    """Encode a call-site value into a driver-transportable value.

    >>> encode(np.int64(3))
    3
    >>> encode(float('nan')) is None
    True
    >>> encode([np.float32(1.5), 'a'])
    [1.5, 'a']
    """
    if value is None:
        return None
    if isinstance(value, Keyword):
        return value.name
    # numpy, pandas and enum scalars may subclass native types
    if isinstance(value, np.generic):
        return _encode_numpy(value)
    if value is pd.NaT or value is pd.NA or isinstance(value, (pd.Timestamp, pd.Timedelta)):
        return _encode_pandas(value)
    if isinstance(value, enum.Enum):
        return encode(value.value)
    if isinstance(value, float):
        return None if math.isnan(value) else value
    if isinstance(value, NATIVE_TYPES):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, Mapping):
        return {encode(k): encode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [encode(v) for v in value]
    if isinstance(value, tuple):
        return tuple(encode(v) for v in value)
    if isinstance(value, frozenset):
        return frozenset(encode(v) for v in value)
    if isinstance(value, set):
        return {encode(v) for v in value}
    if isinstance(value, np.ndarray):
        return [encode(v) for v in value.tolist()]
    raise TypeError(f'Cannot encode value of type {type(value).__name__}: {value!r}')


def encode_values(values: Iterable[Any] | None) -> list[Any]:
    """Encode parameter values in caller order."""
    if values is None:
        return []
    return [encode(v) for v in values]


def decode_value(value: Any) -> Any:
    """Decode one column value returned by the driver."""
    if value is None or isinstance(value, NATIVE_TYPES):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, Mapping):
        return {decode_value(k): decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    if isinstance(value, tuple):
        return tuple(decode_value(v) for v in value)
    if isinstance(value, frozenset):
        return frozenset(decode_value(v) for v in value)
    if isinstance(value, set):
        return {decode_value(v) for v in value}
    return value


def decode_key(name: str, string_keys: bool = False) -> str:
    """Render a column name as a plain string or a Keyword."""
    if string_keys:
        return str(name)
    return Keyword(name)


def decode(name: str, value: Any, string_keys: bool = False) -> tuple[str, Any]:
    """Decode one column into a ``(key, value)`` row entry.

    >>> decode('id', memoryview(b'ab'), string_keys=True)
    ('id', b'ab')
    >>> decode('id', 1)
    (:id, 1)
    """
    return decode_key(name, string_keys), decode_value(value)


def decode_row(columns: Sequence[str], values: Sequence[Any],
               string_keys: bool = False) -> dict[str, Any]:
    """Build a Row from one returned record.

    String-keyed rows are plain dicts; symbolic rows are attrdicts keyed by
    Keyword so columns read as attributes too.
    """
    entries = (decode(name, value, string_keys) for name, value in zip(columns, values))
    if string_keys:
        return dict(entries)
    return attrdict(entries)


def decode_result_set(result_set: Any, string_keys: bool = False) -> list[dict[str, Any]]:
    """Decode every record of a driver ResultSet, keeping server order."""
    columns = list(result_set.columns)
    rows = [decode_row(columns, record, string_keys) for record in result_set.rows]
    logger.debug(f'Decoded {len(rows)} row(s) with {len(columns)} column(s)')
    return rows


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)

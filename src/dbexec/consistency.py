"""Consistency levels forwarded to the driver."""
import enum
from typing import Any


class Consistency(enum.Enum):
    ANY = 'ANY'
    ONE = 'ONE'
    TWO = 'TWO'
    THREE = 'THREE'
    QUORUM = 'QUORUM'
    ALL = 'ALL'
    LOCAL_QUORUM = 'LOCAL_QUORUM'
    EACH_QUORUM = 'EACH_QUORUM'
    SERIAL = 'SERIAL'
    LOCAL_SERIAL = 'LOCAL_SERIAL'
    LOCAL_ONE = 'LOCAL_ONE'


SERIAL_LEVELS = frozenset({Consistency.SERIAL, Consistency.LOCAL_SERIAL})


def consistency_level(value: Any) -> Consistency:
    """Resolve a Consistency member from itself or its name.

    >>> consistency_level('local-quorum')
    <Consistency.LOCAL_QUORUM: 'LOCAL_QUORUM'>
    >>> consistency_level(Consistency.ONE)
    <Consistency.ONE: 'ONE'>
    """
    if isinstance(value, Consistency):
        return value
    if isinstance(value, str):
        name = value.strip().upper().replace('-', '_')
        if name in Consistency.__members__:
            return Consistency[name]
    available = [c.name.lower() for c in Consistency]
    raise ValueError(f'Unknown consistency level: {value!r}. Available: {available}')


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)

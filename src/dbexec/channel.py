"""
Single-slot completion channel.

Exactly one value is written, after which the channel is closed. Readers
block until the value arrives; the value is handed out once and later
reads return None, like taking from a closed, drained channel.
"""
import threading
from typing import Any

_EMPTY = object()


class ResultChannel:
    """Thread-safe single-slot, close-after-write channel.

    >>> ch = ResultChannel()
    >>> ch.put([1, 2])
    True
    >>> ch.put([3])
    False
    >>> ch.take()
    [1, 2]
    >>> ch.take() is None
    True
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._value: Any = _EMPTY
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def put(self, value: Any) -> bool:
        """Write the single value and close; False if already closed."""
        with self._cond:
            if self._closed:
                return False
            self._value = value
            self._closed = True
            self._cond.notify_all()
            return True

    def take(self, timeout: float | None = None) -> Any:
        """Block until the value arrives and return it.

        Raises
            TimeoutError: if `timeout` elapses first
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._closed, timeout):
                raise TimeoutError('No value delivered on channel')
            return self._drain()

    def poll(self) -> Any:
        """Non-blocking take; None when nothing is available."""
        with self._cond:
            if not self._closed:
                return None
            return self._drain()

    def _drain(self) -> Any:
        value, self._value = self._value, None
        return None if value is _EMPTY else value

    def __repr__(self) -> str:
        return f'<ResultChannel closed={self._closed}>'


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)

"""
Per-call execution options and driver session options.
"""
import dataclasses
from collections.abc import Callable, Mapping
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Any

from dbexec.consistency import SERIAL_LEVELS, Consistency, consistency_level

from libb import ConfigOptions, scriptname

__all__ = [
    'ExecutionOptions',
    'SessionOptions',
]

SUPPORTED_DRIVERS = ('sqlite', 'postgresql')


@dataclass
class ExecutionOptions(ConfigOptions):
    """Options applied to one execute call.

    Every field defaults to "leave the driver default alone".

    - consistency / serial_consistency: Consistency member or its name
    - routing_key: bytes used by token-aware routing
    - retry_policy: opaque policy object forwarded to the driver
    - tracing: enable query tracing
    - fetch_size: page size requested from the driver
    - string_keys: row keys as plain strings instead of Keyword
    - values: parameters bound to a prepared statement
    - executor: worker pool running async completions
    - success / error: callbacks for `execute_async`
    """
    consistency: Consistency | str | None = None
    serial_consistency: Consistency | str | None = None
    routing_key: bytes | None = None
    retry_policy: Any = None
    tracing: bool = False
    fetch_size: int | None = None
    string_keys: bool = False
    values: Any = None
    executor: Executor | None = None
    success: Callable[[list], Any] | None = None
    error: Callable[[Exception], Any] | None = None

    def __post_init__(self):
        if self.consistency is not None:
            self.consistency = consistency_level(self.consistency)
        if self.serial_consistency is not None:
            self.serial_consistency = consistency_level(self.serial_consistency)
            if self.serial_consistency not in SERIAL_LEVELS:
                raise ValueError(f'serial_consistency must be one of: '
                                 f'{sorted(c.name.lower() for c in SERIAL_LEVELS)}')
        if self.fetch_size is not None:
            if isinstance(self.fetch_size, bool) or not isinstance(self.fetch_size, int) \
                    or self.fetch_size <= 0:
                raise ValueError(f'fetch_size must be a positive integer, got {self.fetch_size!r}')
        if self.routing_key is not None and not isinstance(self.routing_key, (bytes, bytearray)):
            raise ValueError('routing_key must be bytes')

    @classmethod
    def coerce(cls, options: 'ExecutionOptions | Mapping[str, Any] | None' = None,
               **kw: Any) -> 'ExecutionOptions':
        """Build options from an instance, a mapping or None, with overrides.

        >>> ExecutionOptions.coerce({'fetch_size': 10}, tracing=True).fetch_size
        10
        """
        if options is None:
            return cls(**kw)
        if isinstance(options, cls):
            return dataclasses.replace(options, **kw) if kw else options
        if isinstance(options, Mapping):
            return cls(**{**options, **kw})
        raise TypeError(f'Unsupported options type: {type(options).__name__}')


@dataclass
class SessionOptions(ConfigOptions):
    """Options for the SQLAlchemy driver session.

    supported driver names: `postgresql`, `sqlite`

    Connection pooling options:
    - use_pool: Whether to use connection pooling (default: False)
    - pool_max_connections: Maximum connections in pool (default: 5)
    - pool_max_idle_time: Maximum seconds a connection can be idle (default: 300)
    - pool_wait_timeout: Maximum seconds to wait for a connection (default: 30)

    io_threads sizes the session's own pool running `execute_async`.
    """
    drivername: str = 'postgresql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    appname: str = None
    use_pool: bool = False
    pool_max_connections: int = 5
    pool_max_idle_time: int = 300
    pool_wait_timeout: int = 30
    io_threads: int = 4

    def __post_init__(self):
        if self.drivername not in SUPPORTED_DRIVERS:
            raise ValueError(f'drivername must be one of: {list(SUPPORTED_DRIVERS)}')
        self.appname = self.appname or scriptname() or 'python_console'
        if not self.database:
            raise ValueError('database is required')
        if self.drivername == 'postgresql' and not self.hostname:
            raise ValueError('hostname is required for postgresql')
        if self.io_threads < 1:
            raise ValueError('io_threads must be at least 1')


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)

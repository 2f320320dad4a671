"""
Statement objects handed to the driver session.

- SimpleStatement: raw query text, no parameters
- PreparedStatement: driver-issued handle with a fixed parameter count
- BoundStatement: a PreparedStatement paired with encoded values

Each statement carries the per-call settings applied by
`set_statement_options`; a value of None means "driver default".
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from dbexec.consistency import Consistency, consistency_level

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Statement(ABC):
    """Base executable statement with per-call settings."""
    consistency: Consistency | None = field(default=None, kw_only=True)
    serial_consistency: Consistency | None = field(default=None, kw_only=True)
    routing_key: bytes | None = field(default=None, kw_only=True)
    retry_policy: Any = field(default=None, kw_only=True)
    tracing: bool = field(default=False, kw_only=True)
    fetch_size: int | None = field(default=None, kw_only=True)

    @property
    @abstractmethod
    def query_string(self) -> str:
        pass

    @property
    def parameters(self) -> tuple:
        return ()

    def enable_tracing(self) -> None:
        self.tracing = True


@dataclass(eq=False)
class SimpleStatement(Statement):
    """Raw query text."""
    text: str

    @property
    def query_string(self) -> str:
        return self.text


@dataclass(eq=False, frozen=True)
class PreparedStatement:
    """Handle for a statement precompiled by the driver.

    ``driver_handle`` is whatever token the driver needs to execute it;
    this layer never inspects it.
    """
    text: str
    param_count: int
    driver_handle: Any = None

    def bind(self, values: list[Any]) -> 'BoundStatement':
        """Pair this handle with already-encoded values."""
        if len(values) != self.param_count:
            raise ValueError(
                f'Parameter count mismatch: statement needs {self.param_count} '
                f'but {len(values)} were provided'
            )
        return BoundStatement(self, tuple(values))


@dataclass(eq=False)
class BoundStatement(Statement):
    """Prepared statement with its encoded values."""
    prepared: PreparedStatement
    values: tuple = ()

    @property
    def query_string(self) -> str:
        return self.prepared.text

    @property
    def parameters(self) -> tuple:
        return self.values


def set_statement_options(statement: Statement, options: Any) -> Statement:
    """Apply per-call settings to a statement in place.

    Only settings present on ``options`` are written; every other field keeps
    the statement's prior value. Each setting targets its own field, so the
    order of application is irrelevant and re-applying is a no-op.

    Returns
        The same statement, for chaining
    """
    if options.routing_key is not None:
        statement.routing_key = options.routing_key
    if options.retry_policy is not None:
        statement.retry_policy = options.retry_policy
    if options.tracing:
        statement.enable_tracing()
    if options.fetch_size is not None:
        statement.fetch_size = options.fetch_size
    if options.serial_consistency is not None:
        statement.serial_consistency = consistency_level(options.serial_consistency)
    if options.consistency is not None:
        statement.consistency = consistency_level(options.consistency)
    logger.debug(f'Applied options to {type(statement).__name__}: '
                 f'consistency={statement.consistency}, fetch_size={statement.fetch_size}, '
                 f'tracing={statement.tracing}')
    return statement

"""
Driver session protocol consumed by the execution layer.

Any object providing `prepare`, `execute` and `execute_async` with these
shapes can back `dbexec.execute` and friends; `dbexec.session` ships one
over SQLAlchemy.
"""
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from dbexec.statement import PreparedStatement, Statement


@dataclass(frozen=True)
class ResultSet:
    """Rows as returned by the driver, in server order."""
    columns: tuple[str, ...] = ()
    rows: list[tuple[Any, ...]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


@runtime_checkable
class Session(Protocol):
    """Driver session."""

    def prepare(self, text: str) -> PreparedStatement:
        ...

    def execute(self, statement: Statement) -> ResultSet:
        ...

    def execute_async(self, statement: Statement) -> Future:
        ...

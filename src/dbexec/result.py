"""
Explicit success-or-error value passed through the execution pipeline.
"""
from dataclasses import dataclass
from typing import Any

from dbexec.exceptions import ExecutionError


@dataclass(frozen=True, slots=True)
class Result:
    """Outcome of prepare, bind, resolve or execute.

    Exactly one of ``value`` and ``error`` is meaningful; ``ok`` tells which.
    """
    value: Any = None
    error: ExecutionError | None = None

    @classmethod
    def success(cls, value: Any) -> 'Result':
        return cls(value=value)

    @classmethod
    def failure(cls, error: ExecutionError) -> 'Result':
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """Return the value, or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value

    def then(self, func) -> 'Result':
        """Chain a Result-returning function on success."""
        if self.error is not None:
            return self
        return func(self.value)

    def payload(self) -> Any:
        """Value on success, the error itself on failure."""
        return self.value if self.error is None else self.error

# Sync Vault - Result Type
#
# Vault operations never raise across the public boundary. They return a
# Success or a Failure so the caller can render a "re-enter passphrase"
# prompt instead of crashing.

from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Success(Generic[T]):
    """Successful outcome.

    ``warning`` carries a non-fatal error, e.g. a MigrationError raised
    while the read itself still succeeded.
    """

    value: T
    warning: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """Failed outcome holding the error that caused it."""

    error: Exception

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return str(self.error)


Result = Union[Success[T], Failure]


def is_success(result: "Result[Any]") -> bool:
    return isinstance(result, Success)


def is_failure(result: "Result[Any]") -> bool:
    return isinstance(result, Failure)


def map_result(result: "Result[T]", fn: Callable[[T], U]) -> "Result[U]":
    """Apply ``fn`` to a Success value; pass a Failure through unchanged."""
    if isinstance(result, Success):
        return Success(fn(result.value), warning=result.warning)
    return result


def map_error(result: "Result[T]", fn: Callable[[Exception], Exception]) -> "Result[T]":
    """Apply ``fn`` to a Failure's error; pass a Success through unchanged."""
    if isinstance(result, Failure):
        return Failure(fn(result.error))
    return result


def chain(result: "Result[T]", fn: Callable[[T], "Result[U]"]) -> "Result[U]":
    """Feed a Success value into a Result-returning ``fn`` (flat map)."""
    if isinstance(result, Success):
        return fn(result.value)
    return result


def unwrap_or(result: "Result[T]", default: T) -> T:
    if isinstance(result, Success):
        return result.value
    return default


def unwrap(result: "Result[T]") -> T:
    """Return the Success value or raise the Failure's error."""
    if isinstance(result, Success):
        return result.value
    raise result.error

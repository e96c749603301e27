from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from loguru import logger

from console_rental.core.exceptions import ConsoleRentalException

T = TypeVar("T")


@dataclass
class Outcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[ConsoleRentalException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_kind(self) -> Optional[str]:
        return type(self.error).__name__ if self.error else None


def capture(fn: Callable[..., T], *args: Any, **kwargs: Any) -> Outcome[T]:
    """Run an engine operation and hand back its result or its error."""
    try:
        return Outcome(value=fn(*args, **kwargs))
    except ConsoleRentalException as e:
        logger.debug(f"{fn.__name__} failed: {type(e).__name__}: {e.message}")
        return Outcome(error=e)

"""Logging filters that attach machine context to records."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, TypeVar

_current_machine_id: ContextVar[str | None] = ContextVar(
    "dockyard_machine_id", default=None
)

F = TypeVar("F", bound=Callable[..., Any])


@contextmanager
def machine_context(machine_id: str) -> Iterator[None]:
    """Tag every record logged inside the block with ``machine_id``."""
    token = _current_machine_id.set(machine_id)
    try:
        yield
    finally:
        _current_machine_id.reset(token)


def current_machine_id() -> str | None:
    return _current_machine_id.get()


def with_machine_context(method: F) -> F:
    """Run a driver method inside ``machine_context(self.config.machine_id)``."""

    @functools.wraps(method)
    def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
        with machine_context(self.config.machine_id):
            return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


class MachineContextFilter(logging.Filter):
    """Inject ``machine_id`` into records emitted during a driver operation.

    Attach to handlers; records outside any operation get ``None``.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "machine_id"):
            record.machine_id = _current_machine_id.get()
        return True

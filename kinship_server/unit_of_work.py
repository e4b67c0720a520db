"""Step recorder for multi-record relationship updates."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from .errors import KinshipError, PartialPropagationFailure

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Runs the store writes of one operation and records which ones landed.

    There is no rollback. If a step raises after at least one earlier step was
    applied, the failure is re-raised as PartialPropagationFailure so callers
    can tell a half-updated graph apart from a clean rejection.
    """

    def __init__(self, operation: str):
        self.operation = operation
        self.completed: list[str] = []

    def step(self, description: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            if not self.completed:
                raise
            logger.error(
                f"{self.operation}: step '{description}' failed after "
                f"{len(self.completed)} completed step(s)"
            )
            raise PartialPropagationFailure(self.operation, self.completed, description, e) from e
        self.completed.append(description)
        return result

    def __enter__(self) -> UnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            logger.debug(f"{self.operation}: {len(self.completed)} step(s) applied")
        elif self.completed and issubclass(exc_type, KinshipError) and not isinstance(
            exc, PartialPropagationFailure
        ):
            logger.warning(
                f"{self.operation}: {exc_type.__name__} raised after "
                f"{len(self.completed)} applied step(s)"
            )
        return False

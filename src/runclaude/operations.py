# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Operation tracking and progress reporting.

Long-running session operations (image resolution, container launch,
cleanup) are wrapped with :func:`operation`.  The decorator injects an
:class:`OperationReporter` as the first positional argument after
``self`` so that steps can report progress without knowing where the
messages end up.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import Any, Concatenate, ParamSpec, TypeVar

from .output import Output, out

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


class OperationError(Exception):
    """An operation failed in a way the user has to act on."""

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.hint = hint


class OperationReporter:
    """Progress reporter for a single operation."""

    def __init__(self, operation_id: str, description: str, output: Output | None = None):
        self.operation_id = operation_id
        self.description = description
        self._out = output or out
        self.messages: list[tuple[str, str]] = []

    def _record(self, level: str, msg: str) -> None:
        self.messages.append((level, msg))
        logger.debug("[%s] %s: %s", self.operation_id, level, msg)

    def info(self, msg: str) -> None:
        self._record("info", msg)
        self._out.info(msg)

    def dim(self, msg: str) -> None:
        self._record("dim", msg)
        self._out.dim(msg)

    def detail(self, msg: str) -> None:
        self._record("detail", msg)
        self._out.detail(msg)

    def warning(self, msg: str) -> None:
        self._record("warning", msg)
        self._out.warning(msg)

    def success(self, msg: str) -> None:
        self._record("success", msg)
        self._out.success(msg)


def operation(
    operation_type: str,
    description: str,
) -> Callable[
    [Callable[Concatenate[Any, OperationReporter, P], R]],
    Callable[Concatenate[Any, P], R],
]:
    """Decorator that runs a method as a tracked operation.

    *description* is formatted with the method's keyword arguments, e.g.
    ``"Building image: {image}"``.  The wrapped method receives a fresh
    :class:`OperationReporter` after ``self``; callers never pass it.
    """

    def decorator(
        fn: Callable[Concatenate[Any, OperationReporter, P], R],
    ) -> Callable[Concatenate[Any, P], R]:
        @functools.wraps(fn)
        def wrapper(self: Any, *args: P.args, **kwargs: P.kwargs) -> R:
            try:
                text = description.format(**kwargs)
            except (KeyError, IndexError):
                text = description
            progress = OperationReporter(operation_type, text)
            logger.debug("operation %s started: %s", operation_type, text)
            try:
                result = fn(self, progress, *args, **kwargs)
            except OperationError as e:
                logger.debug("operation %s failed: %s", operation_type, e)
                raise
            logger.debug("operation %s finished", operation_type)
            return result

        return wrapper

    return decorator

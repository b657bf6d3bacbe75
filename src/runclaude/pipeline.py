# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Ordered registry of synchronous step functions.

Rule modules share one :class:`Pipeline` and register into it with
``@pipeline.step``; importing a module is enough to add its steps.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar, overload

logger = logging.getLogger(__name__)

_Ctx = TypeVar("_Ctx")

StepFn = Callable[[_Ctx], None]

DEFAULT_ORDER = 500


@dataclass(frozen=True)
class _Entry(Generic[_Ctx]):
    order: int
    seq: int
    fn: StepFn[_Ctx]

    @property
    def label(self) -> str:
        return f"{self.fn.__name__}({self.order})"


class Pipeline(Generic[_Ctx]):
    """Steps sorted by ``order``, then by registration.

    Lower orders run first.  Ties keep decoration order, so two steps in
    one module with the same order run top to bottom.  Orders are spaced
    by 100 (or 10 within a group) to leave room for later steps.

    Example::

        mounts = Pipeline[MountContext]("mounts")

        @mounts.step(order=400)
        def mount_ssh_keys(ctx: MountContext) -> None: ...
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._entries: list[_Entry[_Ctx]] = []

    @overload
    def step(self, fn: StepFn[_Ctx]) -> StepFn[_Ctx]: ...
    @overload
    def step(self, *, order: int) -> Callable[[StepFn[_Ctx]], StepFn[_Ctx]]: ...

    def step(
        self,
        fn: StepFn[_Ctx] | None = None,
        *,
        order: int = DEFAULT_ORDER,
    ) -> StepFn[_Ctx] | Callable[[StepFn[_Ctx]], StepFn[_Ctx]]:
        """Register a step, bare (``@p.step``) or with ``@p.step(order=N)``."""
        def register(f: StepFn[_Ctx]) -> StepFn[_Ctx]:
            self._entries.append(_Entry(order, len(self._entries), f))
            return f

        return register if fn is None else register(fn)

    def _ordered(self) -> list[_Entry[_Ctx]]:
        return sorted(self._entries, key=lambda e: (e.order, e.seq))

    @property
    def steps(self) -> list[StepFn[_Ctx]]:
        return [e.fn for e in self._ordered()]

    def run(self, ctx: _Ctx) -> None:
        """Call each step with *ctx*; the first exception stops the run."""
        for entry in self._ordered():
            logger.debug("%s: %s", self.name, entry.label)
            entry.fn(ctx)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        labels = ", ".join(e.label for e in self._ordered())
        return f"Pipeline({self.name!r}, [{labels}])"

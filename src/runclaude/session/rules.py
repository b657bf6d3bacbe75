# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Entry point of the mount/environment rule engine."""

from __future__ import annotations

from ..config import SessionConfig
from ..operations import OperationReporter
from .contexts import HostFacts, MountContext, RuntimeParameters
from .mounts import mount_pipeline


def evaluate_rules(
    config: SessionConfig,
    host: HostFacts,
    progress: OperationReporter | None = None,
) -> RuntimeParameters:
    """Run every mount/environment rule against *host*.

    Only filesystem probes happen here; the container runtime is never
    called.  Evaluating twice against an unchanged host gives the same
    result.

    Raises:
        ConfigurationError: If the workspace is missing or collides with
            another mount.
    """
    ctx = MountContext(config=config, host=host, progress=progress)
    mount_pipeline.run(ctx)
    return ctx.result()

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Environment rules: fixed session variables and forwarded host variables."""

from __future__ import annotations

from collections.abc import Mapping

from ...config import SessionConfig
from ..constants import AUX_SERVICE_PORT_VAR, NODE_OPTIONS
from ..contexts import EnvSpec, MountContext
from . import mount_pipeline


def forwarded_environment(config: SessionConfig, environ: Mapping[str, str]) -> list[EnvSpec]:
    """Forwarded variables that have a non-empty value on the host.

    Used for ``docker run`` and again for ``docker exec`` into an
    existing container.
    """
    names = [*config.forward_variables, AUX_SERVICE_PORT_VAR]
    specs: list[EnvSpec] = []
    seen: set[str] = set()
    for name in names:
        if name in seen or not environ.get(name):
            continue
        seen.add(name)
        specs.append(EnvSpec(name))
    return specs


@mount_pipeline.step(order=50)
def session_environment(ctx: MountContext) -> None:
    config = ctx.config
    ctx.add_env("NODE_OPTIONS", NODE_OPTIONS)
    ctx.add_env("WORKSPACE_PATH", config.container_workspace)
    ctx.add_env("CLAUDE_CONFIG_PATH", config.container_config_dir)
    ctx.add_env("CONTAINER_USER", config.username)

    if config.dangerous:
        ctx.add_env("CLAUDE_DANGEROUS_MODE", "1")
        ctx.add_env("ANTHROPIC_DANGEROUS_MODE", "1")

    if config.verbose:
        ctx.add_env("RUN_CLAUDE_VERBOSE", "1")


@mount_pipeline.step(order=700)
def forward_variables(ctx: MountContext) -> None:
    for spec in forwarded_environment(ctx.config, ctx.host.environ):
        ctx.add_env(spec.name, spec.value)

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Mount rule: the agent config directory, selective or full."""

from ...config import ConfigMountMode
from ..contexts import MountContext
from . import mount_pipeline


@mount_pipeline.step(order=300)
def mount_claude_config(ctx: MountContext) -> None:
    """Mount the config directory according to the config-mount mode.

    Selective mode shares only ``settings.json`` and ``rules/`` (both
    read-only): the rest of the directory holds absolute host paths
    (plugins, projects) that don't exist inside the container.
    """
    config_dir = ctx.config.config_dir
    target = ctx.config.container_config_dir

    if not config_dir.is_dir():
        ctx.detail(f"Claude config path does not exist: {config_dir}")
        return

    if ctx.config.config_mount is ConfigMountMode.SELECTIVE:
        ctx.detail("Using selective Claude mount mode")
        settings = config_dir / "settings.json"
        if settings.is_file():
            ctx.add_mount(settings, f"{target}/settings.json", read_only=True, rule="claude_config")
        rules = config_dir / "rules"
        if rules.is_dir():
            ctx.add_mount(rules, f"{target}/rules", read_only=True, rule="claude_config")
        return

    ctx.detail("Using full Claude mount mode")
    ctx.add_mount(config_dir, target, rule="claude_config")

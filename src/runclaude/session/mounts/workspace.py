# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Mount rule: the workspace directory (always, read-write)."""

from ...config import ConfigurationError
from ..contexts import MountContext
from . import mount_pipeline


@mount_pipeline.step(order=100)
def mount_workspace(ctx: MountContext) -> None:
    """Mount the workspace at ``/home/<user>/<basename>``."""
    workspace = ctx.config.workspace
    if not workspace.is_dir():
        raise ConfigurationError(f"Workspace path does not exist: {workspace}")

    ctx.add_mount(workspace, ctx.config.container_workspace, rule="workspace")

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Mount rule: the host's ~/.claude.json as a read-only shadow copy."""

from ..constants import HOST_SHADOW_CONFIG
from ..contexts import MountContext
from . import mount_pipeline


@mount_pipeline.step(order=200)
def mount_host_config(ctx: MountContext) -> None:
    """Mount ``~/.claude.json`` so the entrypoint can merge it.

    The container keeps its own ``~/.claude.json``; the host file is
    only a source for the allow-listed identity fields.
    """
    host_file = ctx.host.home / ".claude.json"
    if not host_file.is_file():
        ctx.detail("No host ~/.claude.json; skipping config merge source")
        return

    ctx.detail("Host Claude config detected and will be mounted for merging")
    ctx.add_mount(
        host_file,
        f"{ctx.container_home}/{HOST_SHADOW_CONFIG}",
        read_only=True,
        rule="host_config",
    )

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Mount rule: read-only mounts contributed by integration toggles."""

from ..contexts import MountContext
from . import mount_pipeline


@mount_pipeline.step(order=600)
def mount_integrations(ctx: MountContext) -> None:
    for mount in ctx.config.extra_mounts:
        if not mount.host_path.exists():
            ctx.detail(f"{mount.host_path} not found; not mounting")
            continue
        ctx.add_mount(mount.host_path, mount.container_path, read_only=mount.read_only, rule="integration")

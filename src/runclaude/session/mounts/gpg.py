# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Mount rule: GPG home and agent extra socket (best effort)."""

from ..constants import GPG_EXTRA_SOCKET
from ..contexts import MountContext
from . import mount_pipeline


@mount_pipeline.step(order=500)
def forward_gpg(ctx: MountContext) -> None:
    """Mount ``~/.gnupg`` read-write and forward the agent extra socket.

    The directory is writable because the agent talks through it.  The
    extra socket is only forwarded if gpgconf reports one and it is a
    live socket; nothing here ever fails the run.
    """
    if not ctx.config.gpg:
        return

    gnupg = ctx.host.home / ".gnupg"
    if not gnupg.is_dir():
        ctx.detail("No ~/.gnupg; GPG forwarding skipped")
        return

    ctx.add_mount(gnupg, f"{ctx.container_home}/.gnupg", rule="gpg")
    ctx.detail("GPG directory detected and will be mounted to container")

    extra_socket = ctx.host.gpg_dir("agent-extra-socket")
    if extra_socket and ctx.host.is_socket(extra_socket):
        ctx.add_mount(extra_socket, GPG_EXTRA_SOCKET, rule="gpg")
        ctx.detail("GPG agent socket detected and will be forwarded to container")

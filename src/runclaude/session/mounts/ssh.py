# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Mount rules: SSH keys, git config and the SSH agent socket."""

import os

from ..constants import SSH_AGENT_SOCKET
from ..contexts import MountContext
from . import mount_pipeline


@mount_pipeline.step(order=400)
def mount_ssh_keys(ctx: MountContext) -> None:
    """Mount ``~/.ssh`` and ``~/.gitconfig`` read-only when present."""
    ssh_dir = ctx.host.home / ".ssh"
    if ssh_dir.is_dir():
        ctx.add_mount(ssh_dir, f"{ctx.container_home}/.ssh", read_only=True, rule="ssh")

    gitconfig = ctx.host.home / ".gitconfig"
    if gitconfig.is_file():
        ctx.add_mount(gitconfig, f"{ctx.container_home}/.gitconfig", read_only=True, rule="ssh")


@mount_pipeline.step(order=410)
def forward_ssh_agent(ctx: MountContext) -> None:
    """Forward a live SSH agent socket.

    Agent sockets are often symlinks (launchd, keyring daemons), so the
    canonical path is what gets mounted.
    """
    sock = ctx.host.env("SSH_AUTH_SOCK")
    if not sock or not ctx.host.is_socket(sock):
        ctx.detail("No live SSH agent socket; not forwarding")
        return

    ctx.detail("SSH agent socket detected and will be forwarded to container")
    ctx.add_mount(os.path.realpath(sock), SSH_AGENT_SOCKET, rule="ssh_agent")
    ctx.add_env("SSH_AUTH_SOCK", SSH_AGENT_SOCKET)

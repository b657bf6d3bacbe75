# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Removal of managed containers."""

from __future__ import annotations

import shlex
from collections.abc import Callable, Sequence

from rich.table import Table

from ..docker_client import ContainerInfo, DockerClient, DockerError
from ..operations import OperationReporter
from ..output import out
from .constants import MANAGED_FILTER


def containers_table(containers: Sequence[ContainerInfo]) -> Table:
    table = Table(title="Claude Code Containers")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Workspace", style="dim")

    for c in containers:
        status_style = "green" if c.is_running else "red"
        table.add_row(c.name, f"[{status_style}]{c.status}[/{status_style}]", c.workspace)
    return table


def remove_stopped_containers(
    docker: DockerClient,
    progress: OperationReporter,
    *,
    dry_run: bool = False,
) -> list[str]:
    """Remove every stopped managed container; leave running ones alone.

    Returns:
        Names of the containers that were (or, in dry-run, would be) removed.
    """
    containers = docker.list_containers(MANAGED_FILTER)
    if not containers:
        progress.warning("No Claude Code containers found.")
        return []

    out.console.print(containers_table(containers))

    running = [c for c in containers if c.is_running]
    stopped = [c.name for c in containers if not c.is_running]

    if running:
        progress.warning("Active containers (not removed):")
        for c in running:
            progress.dim(f"  {c.name}: docker stop {c.name} && docker rm {c.name}")

    if not stopped:
        progress.warning("No stopped containers to remove.")
        return []

    if dry_run:
        progress.info(f"Would execute: {shlex.join(['docker', 'rm', *stopped])}")
        return stopped

    docker.remove_containers(stopped)
    progress.success("Stopped Claude Code containers have been removed.")
    return stopped


def force_remove_all_containers(
    docker: DockerClient,
    progress: OperationReporter,
    confirm: Callable[[], bool],
    *,
    dry_run: bool = False,
) -> list[str]:
    """Stop and remove every managed container after confirmation.

    Declining the confirmation removes nothing and is not an error.
    """
    containers = docker.list_containers(MANAGED_FILTER)
    if not containers:
        progress.warning("No Claude Code containers found.")
        return []

    progress.warning("This will STOP and DELETE all Claude Code containers, including active ones.")
    out.console.print(containers_table(containers))

    if not confirm():
        progress.warning("Operation cancelled.")
        return []

    names = [c.name for c in containers]
    if dry_run:
        progress.info(f"Would execute: {shlex.join(['docker', 'stop', *names])}")
        progress.info(f"Would execute: {shlex.join(['docker', 'rm', *names])}")
        return names

    stuck: list[str] = []
    for c in containers:
        if not c.is_running:
            continue
        try:
            docker.stop_container(c.name)
        except DockerError as e:
            progress.warning(f"Failed to stop {c.name}, forcing removal: {e}")
            stuck.append(c.name)

    docker.remove_containers([n for n in names if n not in stuck])
    docker.remove_containers(stuck, force=True)
    progress.success("All Claude Code containers have been force removed.")
    return names

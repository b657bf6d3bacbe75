# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Session service: orchestrates image, rules and lifecycle.

Every public method is an :func:`~runclaude.operations.operation`; the
CLI calls exactly one of them per invocation.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from ..build.dockerfile import build_command_hint
from ..config import SessionConfig
from ..docker_client import DockerClient, DockerError
from ..operations import OperationError, OperationReporter, operation
from ..output import Output, out
from .cleanup import force_remove_all_containers, remove_stopped_containers
from .contexts import HostFacts
from .image import ImageResolver, ImageState, generate_dockerfile
from .lifecycle import (
    ContainerState,
    DockerCall,
    LaunchPlan,
    check_version,
    conflict_error,
    observe_state,
    plan_launch,
)
from .mounts.environment import forwarded_environment
from .rules import evaluate_rules

logger = logging.getLogger(__name__)


def remedy(call: DockerCall, config: SessionConfig) -> str | None:
    """Command the user can run after *call* failed."""
    op = call.args[0]
    if op == "run":
        return "If this is an architecture mismatch (e.g. arm64), build a local image: run-claude --build"
    if op == "start":
        return "Recreate the container: run-claude --recreate"
    if op == "rm":
        return f"Remove it by hand, then retry: docker rm -f {config.container_name}"
    if op == "exec":
        return "Clean up and start fresh: run-claude --remove-containers && run-claude"
    return None


class SessionService:
    """Runs sessions and maintenance tasks against one runtime."""

    def __init__(
        self,
        docker: DockerClient,
        host: HostFacts | None = None,
        *,
        output: Output | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._docker = docker
        self._host = host or HostFacts.current()
        self._out = output or out
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    @operation("run", "Starting session: {config.container_name}")
    def run_session(self, progress: OperationReporter, config: SessionConfig) -> LaunchPlan:
        """Resolve the image and start (or re-enter) the session container.

        On success the final call replaces this process, so in normal use
        this only returns in dry-run mode or under a fake runtime.
        """
        # Rules first: a missing workspace fails before any runtime call
        params = evaluate_rules(config, self._host, progress)

        if not config.config_dir.is_dir():
            progress.warning(f"Claude config path does not exist: {config.config_dir}")
            progress.warning("You may need to run 'claude auth' first")

        # Conflicts are rejected before the image is touched
        state, record = observe_state(self._docker, config.container_name)
        if config.ephemeral and state is not ContainerState.MISSING and not config.recreate:
            raise conflict_error(config)

        ImageResolver(self._docker, config, progress).resolve()

        state, record = observe_state(self._docker, config.container_name)
        if record is not None and not config.recreate:
            progress.info(f"Container {config.container_name} already exists ({state.value}).")
            check_version(record, progress)

        forwarded = forwarded_environment(config, self._host.environ)
        plan = plan_launch(config, state, params, forwarded, now=self._clock())

        progress.detail(f"Container name: {config.container_name}")
        progress.detail(f"Workspace: {config.workspace}")
        self._execute(plan, config, progress)
        return plan

    def _execute(self, plan: LaunchPlan, config: SessionConfig, progress: OperationReporter) -> None:
        for call in plan.calls:
            if config.verbose or config.dry_run:
                self._describe(call, dry_run=config.dry_run)
            if config.dry_run:
                continue
            self._invoke(call, config, progress)

        if config.dry_run:
            progress.success("Dry run complete - no container was started.")

    def _describe(self, call: DockerCall, *, dry_run: bool) -> None:
        argv = ["docker", *call.args]
        if call.args[:1] == ("run",):
            self._out.info("Would execute:" if dry_run else "Running Claude Code container:")
            self._out.command(argv)
        else:
            prefix = "Would execute" if dry_run else "Executing"
            self._out.info(f"{prefix}: {' '.join(argv)}")

    def _invoke(self, call: DockerCall, config: SessionConfig, progress: OperationReporter) -> None:
        try:
            if call.replace_process:
                self._docker.replace_process(call.args)
            else:
                self._docker.call(call.args, check=call.check, quiet=call.quiet)
        except DockerError as e:
            if not call.check:
                progress.detail(str(e))
                return
            if call.args[:1] == ("run",):
                raise OperationError(f"Failed to run Docker container: {e}", hint=remedy(call, config)) from e
            raise OperationError(str(e), hint=remedy(call, config)) from e

    # -------------------------------------------------------------------------
    # Images
    # -------------------------------------------------------------------------

    @operation("build", "Building image: {config.image}")
    def build_image(self, progress: OperationReporter, config: SessionConfig) -> ImageState:
        """Build (``--build``) or purge-and-rebuild (``--rebuild``) only."""
        resolver = ImageResolver(self._docker, config, progress)
        if config.force_rebuild:
            resolver.purge()
            state = resolver.build(no_cache=True)
        else:
            state = resolver.build()
        progress.info("Build complete.")
        return state

    @operation("export", "Exporting Dockerfile: {path}")
    def export_dockerfile(self, progress: OperationReporter, config: SessionConfig, path: Path) -> Path:
        progress.info(f"Exporting Dockerfile to: {path}")
        try:
            path.write_text(generate_dockerfile(config, progress), encoding="utf-8")
        except OSError as e:
            raise OperationError(f"Failed to write {path}: {e}") from e
        progress.success("Dockerfile exported successfully!")
        progress.warning("To build with your user's UID/GID (recommended):")
        progress.dim(f"  {build_command_hint()}")
        return path

    @operation("push", "Pushing image to {repository}")
    def push_image(self, progress: OperationReporter, config: SessionConfig, repository: str) -> None:
        """Tag the local image as *repository* and push it.

        A missing local image is obtained first (pull, falling back to build).
        """
        resolver = ImageResolver(self._docker, config, progress)
        if resolver.observe() is ImageState.ABSENT:
            progress.warning(f"Local image {config.image} not found. Getting it first...")
            resolver.pull()

        if config.dry_run:
            progress.info(f"Would execute: docker tag {config.image} {repository}")
            progress.info(f"Would execute: docker push {repository}")
            return

        progress.info(f"Tagging image {config.image} as {repository}...")
        try:
            self._docker.tag_image(config.image, repository)
        except DockerError as e:
            raise OperationError(f"Failed to tag image: {e}") from e

        progress.info(f"Pushing {repository} to registry...")
        try:
            self._docker.push_image(repository)
        except DockerError as e:
            raise OperationError(
                f"Failed to push image: {e}",
                hint="Make sure you are logged in: docker login",
            ) from e
        progress.success(f"Image is now available at: {repository}")

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    @operation("remove", "Removing stopped containers")
    def remove_stopped(self, progress: OperationReporter, dry_run: bool = False) -> list[str]:
        return remove_stopped_containers(self._docker, progress, dry_run=dry_run)

    @operation("remove-all", "Force removing all containers")
    def force_remove_all(
        self,
        progress: OperationReporter,
        confirm: Callable[[], bool],
        dry_run: bool = False,
    ) -> list[str]:
        return force_remove_all_containers(self._docker, progress, confirm, dry_run=dry_run)

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Image resolution: make sure the session image exists locally.

State machine::

    absent ──pull──▶ pulled        (pull failure falls back to build)
       └────build──▶ built
    present                         (nothing to do)

``--pull`` and ``--rebuild`` short-circuit to pull/build regardless of
what is present; ``--rebuild`` first purges stopped managed containers
and the existing tag so the build starts clean.  Build is the fallback
of last resort: if it fails, resolution fails.
"""

from __future__ import annotations

import logging
import shlex
import tempfile
from enum import Enum
from pathlib import Path

from ..build.dockerfile import render_dockerfile
from ..build.plugins import read_enabled_plugins
from ..config import SessionConfig
from ..docker_client import DockerClient, DockerError
from ..operations import OperationError, OperationReporter
from .cleanup import remove_stopped_containers

logger = logging.getLogger(__name__)


class ImageState(str, Enum):
    ABSENT = "absent"
    PRESENT = "present"
    PULLED = "pulled"
    BUILT = "built"


class ImageResolutionError(OperationError):
    """Pull and build both failed, or a build was requested and failed."""


def generate_dockerfile(config: SessionConfig, progress: OperationReporter | None = None) -> str:
    """Render the Dockerfile for *config*, with host plugins when enabled."""
    plugins: list[str] = []
    if config.install_plugins:
        plugins = read_enabled_plugins(config.config_dir)
        if plugins and progress:
            progress.detail(f"Detected plugins from host: {' '.join(plugins)}")
    return render_dockerfile(config.packages, plugins)


class ImageResolver:
    """Ensures ``config.image`` exists, pulling or building as needed."""

    def __init__(self, docker: DockerClient, config: SessionConfig, progress: OperationReporter):
        self._docker = docker
        self._config = config
        self._progress = progress

    def observe(self) -> ImageState:
        return ImageState.PRESENT if self._docker.image_exists(self._config.image) else ImageState.ABSENT

    def resolve(self) -> ImageState:
        config = self._config
        if config.force_pull:
            self._progress.warning("Force pull requested - pulling latest image...")
            return self.pull()
        if config.force_rebuild:
            self._progress.warning("Force rebuild requested - cleaning up first...")
            self.purge()
            return self.build(no_cache=True)
        if config.build_only:
            return self.build()

        state = self.observe()
        if state is ImageState.PRESENT:
            return state

        self._progress.warning(f"Docker image {config.image} not found. Building image locally...")
        return self.build()

    def purge(self) -> None:
        """Remove stopped managed containers and the current image tag."""
        remove_stopped_containers(self._docker, self._progress, dry_run=self._config.dry_run)
        if self.observe() is ImageState.ABSENT:
            return
        if self._config.dry_run:
            self._progress.info(f"Would execute: docker rmi {self._config.image}")
            return
        self._progress.warning(f"Removing existing image {self._config.image}...")
        try:
            self._docker.remove_image(self._config.image)
        except DockerError as e:
            raise ImageResolutionError(
                f"Failed to remove image {self._config.image}: {e}",
                hint="A running container may still use it; stop it or use --remove-containers",
            ) from e

    def pull(self) -> ImageState:
        """Pull the remote image and tag it locally, building on any failure."""
        remote, image = self._config.remote_image, self._config.image
        if self._config.dry_run:
            self._progress.info(f"Would execute: docker pull {remote}")
            self._progress.info(f"Would execute: docker tag {remote} {image}")
            return ImageState.PULLED

        self._progress.info(f"Pulling remote image {remote}...")
        try:
            self._docker.pull_image(remote)
        except DockerError as e:
            logger.debug("pull failed: %s", e)
            self._progress.warning("Failed to pull remote image. Building from source...")
            return self.build()

        try:
            self._docker.tag_image(remote, image)
        except DockerError as e:
            logger.debug("tag failed: %s", e)
            self._progress.warning("Failed to tag remote image. Falling back to building from source...")
            return self.build()

        self._progress.info(f"Successfully tagged as {image}")
        return ImageState.PULLED

    def build(self, *, no_cache: bool = False) -> ImageState:
        """Build the image from a generated context.

        The invoking identity's username, UID and GID are passed as build
        arguments so files in bind mounts keep their host ownership.
        """
        config = self._config
        build_args = config.build_args
        dockerfile = generate_dockerfile(config, self._progress)

        if config.dry_run:
            args = ["docker", "build"]
            for key, value in build_args.items():
                args += ["--build-arg", f"{key}={value}"]
            if no_cache:
                args.append("--no-cache")
            args += ["-t", config.image, "<context>"]
            self._progress.info(f"Would execute: {shlex.join(args)}")
            return ImageState.BUILT

        self._progress.info(f"Building Docker image {config.image}...")
        self._progress.detail(f"Building with UID={config.uid} GID={config.gid}")
        with tempfile.TemporaryDirectory(prefix="run-claude-") as context_dir:
            (Path(context_dir) / "Dockerfile").write_text(dockerfile, encoding="utf-8")
            try:
                self._docker.build_image(context_dir, config.image, build_args, no_cache=no_cache)
            except DockerError as e:
                raise ImageResolutionError(f"Failed to build Docker image: {e}") from e

        self._progress.success(f"Successfully built {config.image}")
        return ImageState.BUILT

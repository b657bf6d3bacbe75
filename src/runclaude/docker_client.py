"""Docker CLI client.

This module is the only place that talks to the container runtime.  It
shells out to the ``docker`` binary and parses ``inspect`` output into
typed models, so the rest of the code never sees raw CLI text.
"""

from __future__ import annotations

import json
import logging
import os
import shlex
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import NoReturn

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class DockerError(Exception):
    """Error from the docker CLI."""

    def __init__(self, message: str, code: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.code = code
        self.stderr = stderr


class ContainerStateModel(BaseModel):
    """The ``State`` block of ``docker container inspect``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    status: str = Field(default="", alias="Status")
    running: bool = Field(default=False, alias="Running")
    paused: bool = Field(default=False, alias="Paused")


class ContainerConfigModel(BaseModel):
    """The ``Config`` block of ``docker container inspect``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    image: str = Field(default="", alias="Image")
    labels: dict[str, str] | None = Field(default=None, alias="Labels")


class ContainerRecord(BaseModel):
    """A container as reported by the runtime.

    The runtime owns this record; we only ever read it.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default="", alias="Id")
    name: str = Field(default="", alias="Name")
    created: str = Field(default="", alias="Created")
    state: ContainerStateModel = Field(default_factory=ContainerStateModel, alias="State")
    config: ContainerConfigModel = Field(default_factory=ContainerConfigModel, alias="Config")

    @property
    def labels(self) -> dict[str, str]:
        return self.config.labels or {}

    @property
    def short_name(self) -> str:
        return self.name.lstrip("/")


@dataclass
class ContainerInfo:
    """Simplified container listing entry."""

    id: str
    name: str
    state: str
    status: str
    workspace: str

    @property
    def is_running(self) -> bool:
        # Paused and restarting containers can't be removed without stopping them
        return self.state.lower() in ("running", "paused", "restarting")


class DockerClient:
    """Synchronous client for the docker CLI."""

    def __init__(self, binary: str = "docker"):
        self._binary = binary

    @property
    def binary(self) -> str:
        return self._binary

    def _run(
        self,
        args: Sequence[str],
        *,
        capture: bool = True,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        """Run ``docker <args>`` and raise :class:`DockerError` on failure.

        With ``capture=False`` the child's output goes straight to the
        terminal (used for build/pull/push progress).
        """
        cmd = [self._binary, *args]
        logger.debug("exec: %s", shlex.join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=capture, text=True)
        except FileNotFoundError as e:
            raise DockerError(f"'{self._binary}' was not found on PATH") from e

        if check and result.returncode != 0:
            stderr = (result.stderr or "").strip() if capture else ""
            detail = stderr or f"exit status {result.returncode}"
            raise DockerError(
                f"docker {args[0]} failed: {detail}",
                code=result.returncode,
                stderr=stderr,
            )
        return result

    # -------------------------------------------------------------------------
    # Generic calls
    # -------------------------------------------------------------------------

    def call(self, args: Sequence[str], *, check: bool = True, quiet: bool = False) -> int:
        """Run a docker command and return its exit code.

        Output goes to the terminal unless *quiet* is set.
        """
        return self._run(args, capture=quiet, check=check).returncode

    def replace_process(self, args: Sequence[str]) -> NoReturn:
        """Replace the current process with ``docker <args>``.

        Used for ``run``/``exec``/``start -i`` so the container gets the
        real TTY and signals.
        """
        cmd = [self._binary, *args]
        logger.debug("execvp: %s", shlex.join(cmd))
        try:
            os.execvp(cmd[0], cmd)
        except OSError as e:
            raise DockerError(f"Failed to execute {self._binary}: {e}") from e

    def is_available(self) -> bool:
        """Check if the docker daemon is reachable."""
        try:
            result = self._run(["version", "--format", "{{.Server.Version}}"], check=False)
        except DockerError:
            return False
        return result.returncode == 0

    # -------------------------------------------------------------------------
    # Images
    # -------------------------------------------------------------------------

    def image_exists(self, image: str) -> bool:
        return self._run(["image", "inspect", image], check=False).returncode == 0

    def pull_image(self, image: str) -> None:
        self._run(["pull", image], capture=False)

    def tag_image(self, source: str, target: str) -> None:
        self._run(["tag", source, target])

    def push_image(self, image: str) -> None:
        self._run(["push", image], capture=False)

    def remove_image(self, image: str) -> None:
        self._run(["rmi", image])

    def build_image(
        self,
        context_dir: str,
        tag: str,
        build_args: Mapping[str, str],
        *,
        no_cache: bool = False,
    ) -> None:
        args = ["build"]
        for key, value in build_args.items():
            args.extend(["--build-arg", f"{key}={value}"])
        if no_cache:
            args.append("--no-cache")
        args.extend(["-t", tag, context_dir])
        self._run(args, capture=False)

    # -------------------------------------------------------------------------
    # Containers
    # -------------------------------------------------------------------------

    def inspect_container(self, name: str) -> ContainerRecord | None:
        """Inspect a container by exact name; ``None`` if it doesn't exist."""
        result = self._run(["container", "inspect", name], check=False)
        if result.returncode != 0:
            if "no such" in (result.stderr or "").lower():
                return None
            raise DockerError(
                f"docker container inspect failed: {(result.stderr or '').strip()}",
                code=result.returncode,
                stderr=result.stderr or "",
            )

        data = json.loads(result.stdout or "[]")
        if not data:
            return None
        return ContainerRecord.model_validate(data[0])

    def list_containers(self, label: str, *, include_stopped: bool = True) -> list[ContainerInfo]:
        """List containers carrying *label* (``key=value``)."""
        fmt = '{{.ID}}\t{{.Names}}\t{{.State}}\t{{.Status}}\t{{.Label "run-claude.workspace"}}'
        args = ["ps", "--filter", f"label={label}", "--format", fmt]
        if include_stopped:
            args.insert(1, "-a")
        result = self._run(args)

        containers: list[ContainerInfo] = []
        for line in (result.stdout or "").splitlines():
            if not line.strip():
                continue
            parts = line.split("\t")
            parts += [""] * (5 - len(parts))
            containers.append(
                ContainerInfo(
                    id=parts[0],
                    name=parts[1],
                    state=parts[2],
                    status=parts[3],
                    workspace=parts[4],
                )
            )
        return containers

    def start_container(self, name: str) -> None:
        self._run(["start", name])

    def stop_container(self, name: str) -> None:
        self._run(["stop", name])

    def remove_containers(self, names: Sequence[str], *, force: bool = False) -> None:
        """``docker rm``; *force* also removes running containers."""
        if names:
            self._run(["rm", *(["-f"] if force else []), *names])

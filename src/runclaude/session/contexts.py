# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Context dataclasses passed through the mount rule steps."""

from __future__ import annotations

import logging
import os
import stat
import subprocess
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from ..config import ConfigurationError, SessionConfig
from ..operations import OperationReporter

logger = logging.getLogger(__name__)


def is_socket(path: str) -> bool:
    try:
        return stat.S_ISSOCK(os.stat(path).st_mode)
    except OSError:
        return False


def gpgconf_dir(name: str) -> str | None:
    """Ask ``gpgconf --list-dirs <name>``; ``None`` if gpg isn't installed."""
    try:
        result = subprocess.run(
            ["gpgconf", "--list-dirs", name],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("gpgconf unavailable: %s", e)
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


@dataclass
class HostFacts:
    """What the rules may observe about the host.

    Everything the rule steps probe goes through here, so tests can
    describe a host without touching the real one.
    """

    home: Path
    environ: Mapping[str, str]
    is_socket: Callable[[str], bool] = is_socket
    gpg_dir: Callable[[str], str | None] = gpgconf_dir

    @classmethod
    def current(cls) -> HostFacts:
        return cls(home=Path.home(), environ=dict(os.environ))

    def env(self, name: str) -> str:
        return self.environ.get(name, "")


@dataclass(frozen=True)
class MountSpec:
    """One bind mount.  ``rule`` names the step that produced it."""

    host_path: str
    container_path: str
    read_only: bool = False
    rule: str = ""

    def to_arg(self) -> str:
        suffix = ":ro" if self.read_only else ""
        return f"{self.host_path}:{self.container_path}{suffix}"


@dataclass(frozen=True)
class EnvSpec:
    """One environment entry.

    ``value`` of ``None`` passes the host's value through by name
    (``-e NAME``), so secrets never appear in the printed command.
    """

    name: str
    value: str | None = None

    def to_arg(self) -> str:
        return self.name if self.value is None else f"{self.name}={self.value}"


@dataclass(frozen=True)
class RuntimeParameters:
    """Output of the rule engine: ordered, deduplicated mounts and env."""

    mounts: tuple[MountSpec, ...] = ()
    env: tuple[EnvSpec, ...] = ()

    def docker_args(self) -> list[str]:
        args: list[str] = []
        for e in self.env:
            args.extend(["-e", e.to_arg()])
        for m in self.mounts:
            args.extend(["-v", m.to_arg()])
        return args


def _overlaps(a: str, b: str) -> bool:
    a, b = a.rstrip("/"), b.rstrip("/")
    return a == b or a.startswith(b + "/") or b.startswith(a + "/")


@dataclass
class MountContext:
    """Context passed through the mount rule pipeline.

    Steps guard their own predicates and call :meth:`add_mount` /
    :meth:`add_env`; deduplication and the workspace collision check
    live here so every step gets them.
    """

    config: SessionConfig
    host: HostFacts
    progress: OperationReporter | None = None

    mounts: list[MountSpec] = field(default_factory=lambda: list[MountSpec]())
    env: list[EnvSpec] = field(default_factory=lambda: list[EnvSpec]())

    @property
    def container_home(self) -> str:
        return self.config.container_home

    def add_mount(self, host_path: Path | str, container_path: str, *, read_only: bool = False, rule: str = "") -> None:
        spec = MountSpec(str(host_path), container_path, read_only, rule)
        for existing in self.mounts:
            if "workspace" in (existing.rule, rule) and _overlaps(existing.container_path, container_path):
                raise ConfigurationError(
                    f"Workspace mount collides with {container_path} inside the container",
                    hint="Run from a workspace whose directory name doesn't shadow a mounted config path",
                )
            if existing.container_path == container_path:
                self.detail(f"Skipping duplicate mount for {container_path}")
                return
        self.mounts.append(spec)

    def add_env(self, name: str, value: str | None = None) -> None:
        if any(e.name == name for e in self.env):
            return
        self.env.append(EnvSpec(name, value))

    def result(self) -> RuntimeParameters:
        return RuntimeParameters(mounts=tuple(self.mounts), env=tuple(self.env))

    def info(self, msg: str) -> None:
        if self.progress:
            self.progress.info(msg)

    def detail(self, msg: str) -> None:
        if self.progress:
            self.progress.detail(msg)

    def warning(self, msg: str) -> None:
        if self.progress:
            self.progress.warning(msg)

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Session configuration.

A :class:`SessionConfig` is assembled once per invocation by
:class:`SessionConfigBuilder` and never changes afterwards.  The builder
is immutable as well: every ``with_*`` method returns a new builder, so
the order in which sources are applied is visible at the call site::

    config = (
        SessionConfigBuilder.defaults(home=..., username=..., uid=..., gid=..., cwd=...)
        .with_environment(os.environ)       # RUN_CLAUDE_* and friends
        .with_integration("aws")            # --aws
        .with_variable_directives(["FOO", "!TERM"])   # -E/--forward-variable
        .with_options(verbose=True)
        .build()
    )

Directive semantics
-------------------
The forwarded-variable list is an ordered set.  ``NAME`` appends the
name if it is not already present, ``!NAME`` removes it.  Directives are
applied in source order (environment, then integrations, then CLI flags)
so flags always win over the environment.

Nothing in this module talks to the container runtime.
"""

from __future__ import annotations

import hashlib
import os
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any

from . import __version__
from .build.dockerfile import merge_packages

TOOL_VERSION = __version__

DEFAULT_REMOTE_IMAGE = "icanhasjonas/claude-code"

BASE_FORWARD_VARIABLES: tuple[str, ...] = (
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "NUGET_API_KEY",
    "UNSPLASH_ACCESS_KEY",
    "ANTHROPIC_MODEL",
    "TERM",
)

# Environment inputs
ENV_REMOTE_IMAGE = "CLAUDE_CODE_IMAGE_NAME"
ENV_EXTRA_PACKAGES = "RUN_CLAUDE_EXTRA_PACKAGES"
ENV_EXTRA_VARIABLES = "RUN_CLAUDE_EXTRA_VARIABLES"
ENV_NO_GPG = "RUN_CLAUDE_NO_GPG"

_VARIABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_UNSAFE_NAME_CHARS_RE = re.compile(r"[^a-zA-Z0-9_-]")

# Options settable through SessionConfigBuilder.with_options
_SETTABLE_OPTIONS = frozenset({
    "workspace", "container_name", "image", "config_dir", "username",
    "interactive", "ephemeral", "privileged", "safe", "gpg",
    "install_plugins", "verbose", "dry_run", "build_only", "force_pull",
    "force_rebuild", "recreate", "export_path", "mount_rules_only",
    "mount_full", "command", "docker_args",
})


class ConfigurationError(Exception):
    """Invalid or conflicting user input.

    Raised before any call to the container runtime is made.
    """

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.hint = hint


class ConfigMountMode(str, Enum):
    """How the agent config directory is shared with the container."""

    SELECTIVE = "selective"
    FULL = "full"


@dataclass(frozen=True)
class ExtraMount:
    """A read-only mount contributed by an integration.

    Only mounted when ``host_path`` exists at launch time.
    """

    host_path: Path
    container_path: str
    read_only: bool = True


@dataclass(frozen=True)
class Integration:
    """A named batch of forwarded variables and home-relative mounts."""

    name: str
    description: str
    variables: tuple[str, ...] = ()
    # (path relative to the host home, path relative to the container home)
    home_mounts: tuple[tuple[str, str], ...] = ()


INTEGRATIONS: dict[str, Integration] = {
    "aws": Integration(
        name="aws",
        description="Forward AWS credentials and mount ~/.aws read-only",
        variables=(
            "AWS_ACCESS_KEY_ID",
            "AWS_SECRET_ACCESS_KEY",
            "AWS_SESSION_TOKEN",
            "AWS_REGION",
            "AWS_DEFAULT_REGION",
            "AWS_PROFILE",
            "AWS_ROLE_ARN",
            "AWS_WEB_IDENTITY_TOKEN_FILE",
            "AWS_ROLE_SESSION_NAME",
        ),
        home_mounts=((".aws", ".aws"),),
    ),
}


# =============================================================================
# Pure helpers
# =============================================================================

def split_words(value: str | None) -> list[str]:
    """Split a space separated environment value, dropping empties."""
    if not value:
        return []
    return value.split()


def apply_variable_directives(names: Iterable[str], directives: Iterable[str]) -> tuple[str, ...]:
    """Apply ``NAME`` / ``!NAME`` directives to an ordered set of names.

    Raises:
        ConfigurationError: If a directive is not a valid variable name.
    """
    result: list[str] = []
    for name in names:
        if name not in result:
            result.append(name)

    for directive in directives:
        exclude = directive.startswith("!")
        name = directive[1:] if exclude else directive
        if not _VARIABLE_NAME_RE.match(name):
            raise ConfigurationError(
                f"Invalid environment variable directive: '{directive}'",
                hint="Use NAME to forward a variable or !NAME to stop forwarding it",
            )
        if exclude:
            result = [n for n in result if n != name]
        elif name not in result:
            result.append(name)
    return tuple(result)


def derive_container_name(workspace: Path | str) -> str:
    """Derive the container name for an absolute workspace path.

    The last two path segments keep the name readable; the hash of the
    full path keeps ``/a/proj`` and ``/b/proj`` apart.
    """
    path = str(workspace)
    parts = path.split("/")
    tail = "/".join(parts[-2:]) if len(parts) >= 2 else parts[-1]
    sanitized = _UNSAFE_NAME_CHARS_RE.sub("-", tail)
    digest = hashlib.sha256((path + "\n").encode("utf-8")).hexdigest()[:12]
    return f"claude-code-{sanitized}-{digest}"


def is_path_incompatible_host(home: Path | str) -> bool:
    """True on hosts whose home layout can't be reproduced in the container (macOS)."""
    return str(home).startswith("/Users/")


def default_image(username: str) -> str:
    return f"claude-code-{username}:latest"


# =============================================================================
# SessionConfig
# =============================================================================

@dataclass(frozen=True)
class SessionConfig:
    """Everything one invocation needs, frozen before any rule runs."""

    workspace: Path
    home: Path
    username: str
    uid: int
    gid: int
    container_name: str
    image: str
    remote_image: str
    config_dir: Path
    config_mount: ConfigMountMode

    interactive: bool = True
    ephemeral: bool = False
    privileged: bool = False
    dangerous: bool = True
    gpg: bool = True
    install_plugins: bool = True
    verbose: bool = False
    dry_run: bool = False

    # Image and container requests
    build_only: bool = False
    force_pull: bool = False
    force_rebuild: bool = False
    recreate: bool = False
    export_path: Path | None = None

    packages: tuple[str, ...] = ()
    extra_packages: tuple[str, ...] = ()
    forward_variables: tuple[str, ...] = BASE_FORWARD_VARIABLES
    extra_mounts: tuple[ExtraMount, ...] = ()
    integrations: tuple[str, ...] = ()

    command: tuple[str, ...] = ()
    docker_args: tuple[str, ...] = ()

    @property
    def container_home(self) -> str:
        return f"/home/{self.username}"

    @property
    def container_workspace(self) -> str:
        """Workspace mount point, namespaced by user and workspace basename."""
        return f"{self.container_home}/{self.workspace.name}"

    @property
    def container_config_dir(self) -> str:
        return f"{self.container_home}/.claude"

    @property
    def build_args(self) -> dict[str, str]:
        return {
            "USERNAME": self.username,
            "HOST_UID": str(self.uid),
            "HOST_GID": str(self.gid),
        }


@dataclass(frozen=True)
class SessionConfigBuilder:
    """Immutable builder for :class:`SessionConfig`.

    Fields left as ``None`` are derived in :meth:`build`.
    """

    home: Path
    username: str
    uid: int
    gid: int
    workspace: Path

    container_name: str | None = None
    image: str | None = None
    remote_image: str = f"{DEFAULT_REMOTE_IMAGE}:latest"
    config_dir: Path | None = None

    interactive: bool = True
    ephemeral: bool = False
    privileged: bool = False
    dangerous: bool = True
    safe: bool = False
    gpg: bool | None = None
    env_no_gpg: bool = False
    install_plugins: bool = True
    verbose: bool = False
    dry_run: bool = False

    build_only: bool = False
    force_pull: bool = False
    force_rebuild: bool = False
    recreate: bool = False
    export_path: Path | None = None

    mount_rules_only: bool = False
    mount_full: bool = False

    extra_packages: tuple[str, ...] = ()
    forward_variables: tuple[str, ...] = BASE_FORWARD_VARIABLES
    integrations: tuple[str, ...] = ()

    command: tuple[str, ...] = ()
    docker_args: tuple[str, ...] = ()

    @classmethod
    def defaults(
        cls,
        *,
        home: Path | str,
        username: str,
        uid: int,
        gid: int,
        cwd: Path | str,
    ) -> SessionConfigBuilder:
        return cls(
            home=Path(home),
            username=username,
            uid=uid,
            gid=gid,
            workspace=Path(os.path.abspath(cwd)),
        )

    def with_environment(self, environ: Mapping[str, str]) -> SessionConfigBuilder:
        """Apply the ``RUN_CLAUDE_*`` and image environment inputs."""
        builder = self
        remote = environ.get(ENV_REMOTE_IMAGE)
        if remote:
            builder = replace(builder, remote_image=f"{remote}:latest")
        builder = builder.with_extra_packages(split_words(environ.get(ENV_EXTRA_PACKAGES)))
        builder = builder.with_variable_directives(split_words(environ.get(ENV_EXTRA_VARIABLES)))
        if environ.get(ENV_NO_GPG) == "1":
            builder = replace(builder, env_no_gpg=True)
        return builder

    def with_integration(self, name: str) -> SessionConfigBuilder:
        integration = INTEGRATIONS.get(name)
        if integration is None:
            raise ConfigurationError(
                f"Unknown integration: '{name}'",
                hint=f"Available integrations: {', '.join(sorted(INTEGRATIONS))}",
            )
        if name in self.integrations:
            return self
        return replace(
            self,
            integrations=(*self.integrations, name),
            forward_variables=apply_variable_directives(self.forward_variables, integration.variables),
        )

    def with_variable_directives(self, directives: Iterable[str]) -> SessionConfigBuilder:
        return replace(
            self,
            forward_variables=apply_variable_directives(self.forward_variables, directives),
        )

    def with_extra_packages(self, packages: Iterable[str]) -> SessionConfigBuilder:
        merged = list(self.extra_packages)
        for name in packages:
            if name and name not in merged:
                merged.append(name)
        return replace(self, extra_packages=tuple(merged))

    def with_options(self, **options: Any) -> SessionConfigBuilder:
        """Override plain options; ``None`` values are ignored."""
        unknown = set(options) - _SETTABLE_OPTIONS
        if unknown:
            raise TypeError(f"Unknown session options: {', '.join(sorted(unknown))}")

        changes = {key: value for key, value in options.items() if value is not None}
        for key in ("workspace", "config_dir", "export_path"):
            if key in changes:
                changes[key] = Path(os.path.abspath(os.path.expanduser(str(changes[key]))))
        for key in ("command", "docker_args"):
            if key in changes:
                changes[key] = tuple(changes[key])
        return replace(self, **changes)

    def _config_mount(self) -> ConfigMountMode:
        if self.mount_rules_only and self.mount_full:
            raise ConfigurationError(
                "Cannot use --mount-rules-only and --mount-full-claude together",
            )
        if self.mount_rules_only:
            return ConfigMountMode.SELECTIVE
        if self.mount_full:
            return ConfigMountMode.FULL
        if is_path_incompatible_host(self.home):
            return ConfigMountMode.SELECTIVE
        return ConfigMountMode.FULL

    def build(self) -> SessionConfig:
        """Validate and freeze.

        Raises:
            ConfigurationError: On conflicting flags or a missing workspace.
        """
        config_mount = self._config_mount()

        if self.force_pull and self.build_only:
            raise ConfigurationError(
                "Cannot use --pull and --build together",
                hint="Choose one: --pull (to pull latest image) or --build (to build locally)",
            )

        if self.extra_packages and not (self.build_only or self.force_rebuild or self.export_path):
            raise ConfigurationError(
                "--extra-package can only be used with --build, --rebuild, or --export-dockerfile",
                hint="Extra packages are only applied during image building operations",
            )

        if not self.workspace.is_dir():
            raise ConfigurationError(f"Workspace path does not exist: {self.workspace}")

        if self.gpg is not None:
            gpg = self.gpg
        else:
            gpg = not (self.safe or self.env_no_gpg)

        container_home = f"/home/{self.username}"
        extra_mounts: list[ExtraMount] = []
        for name in self.integrations:
            for host_rel, container_rel in INTEGRATIONS[name].home_mounts:
                extra_mounts.append(
                    ExtraMount(
                        host_path=self.home / host_rel,
                        container_path=f"{container_home}/{container_rel}",
                    )
                )

        return SessionConfig(
            workspace=self.workspace,
            home=self.home,
            username=self.username,
            uid=self.uid,
            gid=self.gid,
            container_name=self.container_name or derive_container_name(self.workspace),
            image=self.image or default_image(self.username),
            remote_image=self.remote_image,
            config_dir=self.config_dir or self.home / ".claude",
            config_mount=config_mount,
            interactive=self.interactive,
            ephemeral=self.ephemeral,
            privileged=self.privileged,
            dangerous=self.dangerous and not self.safe,
            gpg=gpg,
            install_plugins=self.install_plugins,
            verbose=self.verbose,
            dry_run=self.dry_run,
            build_only=self.build_only,
            force_pull=self.force_pull,
            force_rebuild=self.force_rebuild,
            recreate=self.recreate,
            export_path=self.export_path,
            packages=tuple(merge_packages(self.extra_packages)),
            extra_packages=self.extra_packages,
            forward_variables=self.forward_variables,
            extra_mounts=tuple(extra_mounts),
            integrations=self.integrations,
            command=self.command,
            docker_args=self.docker_args,
        )

# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Container lifecycle: observe the named container, plan the transition.

There is no state file.  Every invocation asks the runtime what the
container looks like right now (:func:`observe_state`) and turns the
answer into a :class:`LaunchPlan`.  Planning is pure; executing the
plan is the service's job.

Transitions::

    missing  ── docker run ─────────────▶ running
    stopped  ── docker start [+ exec] ──▶ running   (volume contents kept)
    running  ── docker exec ────────────▶ running
    recreate ── stop (best effort), rm ─▶ missing ──▶ ...

Two invocations racing on the same name both observe ``missing`` and
both try ``docker run``; the runtime rejects the second with a name
conflict, which surfaces as a normal fatal runtime error.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from ..config import TOOL_VERSION, ConfigurationError, SessionConfig
from ..docker_client import ContainerRecord, DockerClient
from ..operations import OperationReporter
from .constants import (
    EXEC_WRAPPER,
    LABEL_CREATED,
    LABEL_MANAGED,
    LABEL_USERNAME,
    LABEL_VERSION,
    LABEL_WORKSPACE,
    NETWORK_ARGS,
    PRIVILEGED_ARGS,
    RESTRICTED_ARGS,
)
from .contexts import EnvSpec, RuntimeParameters


class ContainerState(str, Enum):
    MISSING = "missing"
    STOPPED = "stopped"
    RUNNING = "running"


class ContainerConflictError(ConfigurationError):
    """An ephemeral session was requested but a persistent container exists."""


@dataclass(frozen=True)
class DockerCall:
    """One runtime invocation in a plan.

    ``replace_process`` calls hand the terminal over to docker and never
    return; they are always last.  ``check=False`` calls may fail
    without aborting the plan.
    """

    args: tuple[str, ...]
    replace_process: bool = False
    check: bool = True
    quiet: bool = False


@dataclass
class LaunchPlan:
    state: ContainerState
    calls: list[DockerCall] = field(default_factory=list)

    @property
    def final_call(self) -> DockerCall | None:
        return self.calls[-1] if self.calls else None

    @property
    def creates_container(self) -> bool:
        return any(c.args[:1] == ("run",) for c in self.calls)


def observe_state(docker: DockerClient, name: str) -> tuple[ContainerState, ContainerRecord | None]:
    """Ask the runtime for the container's state; exactly one of three."""
    record = docker.inspect_container(name)
    if record is None:
        return ContainerState.MISSING, None
    # Paused containers still count as running: exec works, run would conflict
    if record.state.running or record.state.paused:
        return ContainerState.RUNNING, record
    return ContainerState.STOPPED, record


def check_version(record: ContainerRecord, progress: OperationReporter) -> bool:
    """Warn if the container was created by a different tool version.

    Returns:
        True if the versions match.
    """
    version = record.labels.get(LABEL_VERSION, "unknown")
    if version == TOOL_VERSION:
        return True
    progress.warning("Version mismatch detected!")
    progress.warning(f"   Container version: {version}")
    progress.warning(f"   Script version:    {TOOL_VERSION}")
    progress.warning("   This may cause authentication or compatibility issues.")
    progress.dim("To upgrade the container: run-claude --remove-containers && run-claude --build")
    return False


def conflict_error(config: SessionConfig) -> ContainerConflictError:
    command = " ".join(config.command)
    hint = "\n".join([
        "Choose one of these options:",
        "  # Use the existing container (recommended):",
        f"  run-claude {command}".rstrip(),
        "  # Remove the existing container first:",
        f"  run-claude --recreate --rm {command}".rstrip(),
        "  # Remove all stopped containers:",
        "  run-claude --remove-containers",
    ])
    return ContainerConflictError(
        f"Container {config.container_name} already exists! "
        "--rm creates a temporary container, but a persistent container with this name already exists.",
        hint=hint,
    )


def creation_labels(config: SessionConfig, now: datetime) -> dict[str, str]:
    return {
        LABEL_MANAGED: "true",
        LABEL_WORKSPACE: str(config.workspace),
        LABEL_CREATED: now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        LABEL_VERSION: TOOL_VERSION,
        LABEL_USERNAME: config.username,
    }


def run_args(config: SessionConfig, params: RuntimeParameters, now: datetime) -> tuple[str, ...]:
    """``docker run`` arguments creating the session container."""
    args: list[str] = ["run"]
    if config.ephemeral:
        args.append("--rm")
    if config.interactive:
        args.append("-it")
    args.extend(PRIVILEGED_ARGS if config.privileged else RESTRICTED_ARGS)
    args.extend(["--name", config.container_name])
    args.extend(NETWORK_ARGS)
    for key, value in creation_labels(config, now).items():
        args.extend(["--label", f"{key}={value}"])
    args.extend(params.docker_args())
    args.extend(config.docker_args)
    args.append(config.image)
    args.extend(config.command)
    return tuple(args)


def exec_args(config: SessionConfig, forwarded: Sequence[EnvSpec]) -> tuple[str, ...]:
    """``docker exec`` arguments for an already running container."""
    args: list[str] = ["exec"]
    if config.interactive:
        args.append("-it")
    args.extend(config.docker_args)
    for spec in forwarded:
        args.extend(["-e", spec.to_arg()])
    args.extend([config.container_name, EXEC_WRAPPER])
    args.extend(config.command)
    return tuple(args)


def plan_launch(
    config: SessionConfig,
    state: ContainerState,
    params: RuntimeParameters,
    forwarded: Sequence[EnvSpec],
    now: datetime | None = None,
) -> LaunchPlan:
    """Turn the observed container state into runtime calls.

    Raises:
        ContainerConflictError: ``--rm`` against an existing container
            that is not being recreated.  Nothing is planned.
    """
    now = now or datetime.now(timezone.utc)
    name = config.container_name
    plan = LaunchPlan(state=state)

    if config.recreate and state is not ContainerState.MISSING:
        plan.calls.append(DockerCall(("stop", name), check=False, quiet=True))
        plan.calls.append(DockerCall(("rm", name), quiet=True))
        state = ContainerState.MISSING

    if state is ContainerState.MISSING:
        plan.calls.append(DockerCall(run_args(config, params, now), replace_process=True))
        return plan

    if config.ephemeral:
        raise conflict_error(config)

    if state is ContainerState.RUNNING:
        plan.calls.append(DockerCall(exec_args(config, forwarded), replace_process=True))
        return plan

    # Stopped: start keeps the container filesystem as it was
    if config.command:
        plan.calls.append(DockerCall(("start", name), quiet=True))
        plan.calls.append(DockerCall(exec_args(config, forwarded), replace_process=True))
    else:
        attach = "-i" if config.interactive else "-a"
        plan.calls.append(DockerCall(("start", attach, name), replace_process=True))
    return plan

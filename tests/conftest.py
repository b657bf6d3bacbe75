# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pytest configuration and shared fixtures for run-claude tests."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from runclaude.config import SessionConfig, SessionConfigBuilder
from runclaude.docker_client import ContainerInfo, ContainerRecord, DockerError
from runclaude.operations import OperationReporter
from runclaude.session.constants import EXEC_WRAPPER
from runclaude.session.contexts import HostFacts

# Subcommands that only look at the runtime
READ_ONLY_OPS = frozenset({"version", "image-inspect", "inspect", "ps"})


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


# ---------------------------------------------------------------------------
# Fake container runtime
# ---------------------------------------------------------------------------

@dataclass
class FakeContainer:
    name: str
    running: bool = True
    labels: dict[str, str] = field(default_factory=lambda: dict[str, str]())
    # Stand-in for the container filesystem
    files: dict[str, str] = field(default_factory=lambda: dict[str, str]())


class FakeDockerClient:
    """In-memory stand-in for :class:`runclaude.docker_client.DockerClient`.

    Keeps a table of containers and images and applies run/start/stop/rm
    to it the way the daemon would.  Every call is recorded as
    ``(op, args)``; adding an op name to ``fail`` makes it raise.
    """

    def __init__(self) -> None:
        self.containers: dict[str, FakeContainer] = {}
        self.images: set[str] = set()
        self.calls: list[tuple[str, tuple[str, ...]]] = []
        self.builds: list[dict[str, Any]] = []
        self.fail: set[str] = set()

    # -- helpers --------------------------------------------------------

    def add_container(self, name: str, *, running: bool = True, **labels: str) -> FakeContainer:
        container = FakeContainer(name=name, running=running, labels=dict(labels))
        self.containers[name] = container
        return container

    @property
    def ops(self) -> list[str]:
        return [op for op, _args in self.calls]

    @property
    def mutations(self) -> list[tuple[str, tuple[str, ...]]]:
        return [c for c in self.calls if c[0] not in READ_ONLY_OPS]

    def _record(self, op: str, args: Sequence[str]) -> None:
        self.calls.append((op, tuple(args)))
        if op in self.fail:
            raise DockerError(f"docker {op} failed: injected failure", code=1)

    def _apply(self, args: Sequence[str]) -> None:
        op = args[0]
        self._record(op, args)

        if op == "run":
            name = args[list(args).index("--name") + 1]
            if name in self.containers:
                raise DockerError(f'docker run failed: Conflict. The container name "/{name}" is already in use')
            labels = dict(
                args[i + 1].split("=", 1) for i, a in enumerate(args) if a == "--label"
            )
            self.containers[name] = FakeContainer(name=name, running=True, labels=labels)
        elif op == "start":
            self._get(args[-1]).running = True
        elif op == "stop":
            self._get(args[-1]).running = False
        elif op == "rm":
            force = "-f" in args
            for name in (a for a in args[1:] if a != "-f"):
                if self._get(name).running and not force:
                    raise DockerError(
                        f"docker rm failed: cannot remove container {name}: container is running"
                    )
                del self.containers[name]
        elif op == "exec":
            name = args[list(args).index(EXEC_WRAPPER) - 1]
            if not self._get(name).running:
                raise DockerError(f"docker exec failed: container {name} is not running")

    def _get(self, name: str) -> FakeContainer:
        try:
            return self.containers[name]
        except KeyError:
            raise DockerError(f"Error response from daemon: No such container: {name}") from None

    # -- DockerClient interface ----------------------------------------

    binary = "docker"

    def call(self, args: Sequence[str], *, check: bool = True, quiet: bool = False) -> int:
        try:
            self._apply(args)
        except DockerError:
            if check:
                raise
            return 1
        return 0

    def replace_process(self, args: Sequence[str]) -> None:
        self._apply(args)

    def is_available(self) -> bool:
        self._record("version", ())
        return True

    def image_exists(self, image: str) -> bool:
        self._record("image-inspect", (image,))
        return image in self.images

    def pull_image(self, image: str) -> None:
        self._record("pull", (image,))
        self.images.add(image)

    def tag_image(self, source: str, target: str) -> None:
        self._record("tag", (source, target))
        self.images.add(target)

    def push_image(self, image: str) -> None:
        self._record("push", (image,))

    def remove_image(self, image: str) -> None:
        self._record("rmi", (image,))
        self.images.discard(image)

    def build_image(
        self,
        context_dir: str,
        tag: str,
        build_args: Mapping[str, str],
        *,
        no_cache: bool = False,
    ) -> None:
        self._record("build", (tag,))
        self.builds.append({
            "tag": tag,
            "build_args": dict(build_args),
            "no_cache": no_cache,
            "dockerfile": (Path(context_dir) / "Dockerfile").read_text(encoding="utf-8"),
        })
        self.images.add(tag)

    def inspect_container(self, name: str) -> ContainerRecord | None:
        self._record("inspect", (name,))
        container = self.containers.get(name)
        if container is None:
            return None
        return ContainerRecord.model_validate({
            "Id": f"id-{name}",
            "Name": f"/{name}",
            "State": {
                "Status": "running" if container.running else "exited",
                "Running": container.running,
            },
            "Config": {"Labels": container.labels},
        })

    def list_containers(self, label: str, *, include_stopped: bool = True) -> list[ContainerInfo]:
        self._record("ps", (label,))
        key, _, value = label.partition("=")
        return [
            ContainerInfo(
                id=f"id-{c.name}",
                name=c.name,
                state="running" if c.running else "exited",
                status="Up 1 minute" if c.running else "Exited (0) 1 minute ago",
                workspace=c.labels.get("run-claude.workspace", ""),
            )
            for c in self.containers.values()
            if c.labels.get(key) == value and (include_stopped or c.running)
        ]

    def start_container(self, name: str) -> None:
        self._apply(("start", name))

    def stop_container(self, name: str) -> None:
        self._apply(("stop", name))

    def remove_containers(self, names: Sequence[str], *, force: bool = False) -> None:
        if names:
            self._apply(("rm", *(("-f",) if force else ()), *names))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def docker() -> FakeDockerClient:
    return FakeDockerClient()


@pytest.fixture
def host_home(tmp_path: Path) -> Path:
    home = tmp_path / "home" / "alice"
    home.mkdir(parents=True)
    return home


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    ws = tmp_path / "src" / "proj"
    ws.mkdir(parents=True)
    return ws


@pytest.fixture
def make_builder(host_home: Path, workspace: Path):
    def _make(**defaults: Any) -> SessionConfigBuilder:
        params: dict[str, Any] = {
            "home": host_home,
            "username": "alice",
            "uid": 1000,
            "gid": 1000,
            "cwd": workspace,
        }
        params.update(defaults)
        return SessionConfigBuilder.defaults(**params)

    return _make


@pytest.fixture
def make_config(make_builder):
    """Build a :class:`SessionConfig`; keyword arguments go to ``with_options``."""

    def _make(*, variables: Sequence[str] = (), extra_packages: Sequence[str] = (), **options: Any) -> SessionConfig:
        return (
            make_builder()
            .with_variable_directives(variables)
            .with_extra_packages(extra_packages)
            .with_options(**options)
            .build()
        )

    return _make


@pytest.fixture
def make_host(host_home: Path):
    def _make(
        environ: Mapping[str, str] | None = None,
        *,
        sockets: Sequence[str] = (),
        gpg_dirs: Mapping[str, str] | None = None,
    ) -> HostFacts:
        live = set(sockets)
        dirs = dict(gpg_dirs or {})
        return HostFacts(
            home=host_home,
            environ=dict(environ or {}),
            is_socket=lambda path: path in live,
            gpg_dir=dirs.get,
        )

    return _make


@pytest.fixture
def reporter() -> OperationReporter:
    return OperationReporter("test", "test operation")

#!/usr/bin/env python3
"""
run-claude - Main entry point.

Usage:
    run-claude [OPTIONS] [COMMAND]... [-- DOCKER_ARGS...]

Runs Claude Code in a persistent per-workspace Docker container.
"""

import getpass
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Set, Tuple

import click
import typer
from click.shell_completion import get_completion_class

from . import __version__
from ..config import INTEGRATIONS, SessionConfig, SessionConfigBuilder
from ..docker_client import DockerClient
from ..output import configure_logging, out
from ..session import SessionService
from .decorators import handle_errors, require_docker

PROG_NAME = "run-claude"
COMPLETE_VAR = "_RUN_CLAUDE_COMPLETE"


@dataclass
class CliState:
    """Parsed before typer sees argv: docker arguments after an option-position ``--``."""

    docker_args: List[str] = field(default_factory=list)


class Shell(str, Enum):
    bash = "bash"
    zsh = "zsh"


app = typer.Typer(
    name=PROG_NAME,
    help="Run Claude Code in a persistent, per-workspace Docker container",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        out.info(f"run-claude version {__version__}")
        raise typer.Exit()


def completion_source(shell: str) -> str:
    """Shell completion script for the run-claude command."""
    comp_cls = get_completion_class(shell)
    if comp_cls is None:
        raise typer.BadParameter(f"Unsupported shell: {shell}")
    command = typer.main.get_command(app)
    return comp_cls(command, {}, PROG_NAME, COMPLETE_VAR).source()


def build_config(
    *,
    workspace: Optional[Path],
    claude_config: Optional[Path],
    name: Optional[str],
    image: Optional[str],
    username: Optional[str],
    options: dict,
    extra_packages: List[str],
    variables: List[str],
    aws: bool,
    command: List[str],
    docker_args: List[str],
) -> SessionConfig:
    """Assemble the session config: defaults, environment, integrations, flags."""
    builder = SessionConfigBuilder.defaults(
        home=Path.home(),
        username=username or getpass.getuser(),
        uid=os.getuid(),
        gid=os.getgid(),
        cwd=os.getcwd(),
    ).with_environment(os.environ)

    if aws:
        builder = builder.with_integration("aws")

    return (
        builder
        .with_variable_directives(variables)
        .with_extra_packages(extra_packages)
        .with_options(
            workspace=workspace,
            config_dir=claude_config,
            container_name=name,
            image=image,
            command=command,
            docker_args=docker_args,
            **options,
        )
        .build()
    )


# Options stop at the first positional so the command keeps its own flags
@app.command(context_settings={"allow_interspersed_args": False})
@handle_errors
def run(
    ctx: typer.Context,
    command: Optional[List[str]] = typer.Argument(
        None, help="Command to run in the container (default: interactive zsh)"
    ),
    workspace: Optional[Path] = typer.Option(
        None, "--workspace", "-w", help="Workspace directory to mount (default: current directory)"
    ),
    claude_config: Optional[Path] = typer.Option(
        None, "--claude-config", "-c", help="Claude config directory (default: ~/.claude)"
    ),
    name: Optional[str] = typer.Option(
        None, "--name", "-n", help="Container name (default: derived from the workspace path)"
    ),
    image: Optional[str] = typer.Option(
        None, "--image", "-i", help="Docker image (default: claude-code-<username>:latest)"
    ),
    username: Optional[str] = typer.Option(
        None, "--username", help="Container username (default: current user)"
    ),
    ephemeral: bool = typer.Option(
        False, "--rm/--no-rm", help="Remove the container when it exits"
    ),
    interactive: bool = typer.Option(
        True, "--interactive/--no-interactive", help="Allocate a TTY and keep stdin open"
    ),
    privileged: bool = typer.Option(
        False, "--privileged/--no-privileged",
        help="Run fully privileged instead of with the targeted browser-sandbox capabilities",
    ),
    safe: bool = typer.Option(
        False, "--safe", help="Disable dangerous mode and GPG forwarding"
    ),
    gpg: Optional[bool] = typer.Option(
        None, "--gpg/--no-gpg", help="Forward ~/.gnupg and the GPG agent (default: on)"
    ),
    build: bool = typer.Option(False, "--build", help="Build the image and exit"),
    pull: bool = typer.Option(False, "--pull", help="Pull the latest remote image before running"),
    rebuild: bool = typer.Option(
        False, "--rebuild", help="Remove stopped containers and the image, rebuild without cache, then run"
    ),
    recreate: bool = typer.Option(False, "--recreate", help="Remove the existing container first"),
    verbose: bool = typer.Option(False, "--verbose", help="Show detailed output"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print docker commands without running them"),
    remove_containers: bool = typer.Option(
        False, "--remove-containers", help="Remove all stopped run-claude containers"
    ),
    force_remove_all: bool = typer.Option(
        False, "--force-remove-all-containers", help="Stop and remove ALL run-claude containers"
    ),
    export_dockerfile: Optional[Path] = typer.Option(
        None, "--export-dockerfile", help="Write the Dockerfile to FILE and exit", metavar="FILE"
    ),
    push_to: Optional[str] = typer.Option(
        None, "--push-to", help="Tag and push the image to REPO and exit", metavar="REPO"
    ),
    generate_completions: Optional[Shell] = typer.Option(
        None, "--generate-completions", help="Print shell completion script and exit"
    ),
    extra_packages: Optional[List[str]] = typer.Option(
        None, "--extra-package", help="Extra apt package for the image (repeatable, build only)"
    ),
    variables: Optional[List[str]] = typer.Option(
        None, "--forward-variable", "-E",
        help="Forward a host environment variable; !NAME stops forwarding it (repeatable)",
    ),
    aws: bool = typer.Option(False, "--aws", help=INTEGRATIONS["aws"].description),
    no_plugins: bool = typer.Option(False, "--no-plugins", help="Don't bake host plugins into the image"),
    mount_rules_only: bool = typer.Option(
        False, "--mount-rules-only", help="Mount only settings.json and rules/ from the config directory"
    ),
    mount_full_claude: bool = typer.Option(
        False, "--mount-full-claude", help="Mount the entire config directory"
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Run Claude Code in a Docker container bound to the workspace.

    The container is kept between runs: the first run creates it, later
    runs start it or exec into it.  Arguments after a -- that comes
    before COMMAND are passed to docker run / docker exec.
    """
    configure_logging(verbose)

    if generate_completions is not None:
        typer.echo(completion_source(generate_completions.value))
        return

    state: CliState = ctx.obj if isinstance(ctx.obj, CliState) else CliState()
    docker = DockerClient()
    service = SessionService(docker)

    if remove_containers:
        require_docker(docker)
        service.remove_stopped(dry_run=dry_run)
        return

    if force_remove_all:
        require_docker(docker)
        service.force_remove_all(
            confirm=lambda: typer.confirm(
                "Are you sure you want to force remove ALL containers?", default=False
            ),
            dry_run=dry_run,
        )
        return

    config = build_config(
        workspace=workspace,
        claude_config=claude_config,
        name=name,
        image=image,
        username=username,
        options={
            "ephemeral": ephemeral,
            "interactive": interactive,
            "privileged": privileged,
            "safe": safe,
            "gpg": gpg,
            "build_only": build,
            "force_pull": pull,
            "force_rebuild": rebuild,
            "recreate": recreate,
            "verbose": verbose,
            "dry_run": dry_run,
            "export_path": export_dockerfile,
            "install_plugins": not no_plugins,
            "mount_rules_only": mount_rules_only,
            "mount_full": mount_full_claude,
        },
        extra_packages=extra_packages or [],
        variables=variables or [],
        aws=aws,
        command=command or [],
        docker_args=state.docker_args,
    )

    if config.export_path is not None:
        service.export_dockerfile(config=config, path=config.export_path)
        return

    require_docker(docker)

    if push_to:
        service.push_image(config=config, repository=push_to)
        return

    if config.build_only:
        service.build_image(config=config)
        return

    service.run_session(config=config)


def value_options() -> Set[str]:
    """Option names that consume the following word as their value."""
    command = typer.main.get_command(app)
    names: Set[str] = set()
    for param in command.params:
        if isinstance(param, click.Option) and not (param.is_flag or param.count):
            names.update(param.opts)
    return names


def split_docker_args(args: List[str]) -> Tuple[List[str], List[str]]:
    """Separate docker passthrough arguments from run-claude's own.

    ``--`` is the separator only while options are being read.  From the
    first positional word on, everything (``--`` included) belongs to
    the command run in the container.
    """
    takes_value = value_options()
    i = 0
    while i < len(args):
        word = args[i]
        if word == "--":
            return args[:i], args[i + 1:]
        if not word.startswith("-") or word == "-":
            break
        if "=" not in word and word in takes_value:
            # skip the option's value
            i += 1
        i += 1
    return args, []


def cli(argv: Optional[List[str]] = None) -> None:
    """Console entry point.

    Arguments after a ``--`` that comes before the command go to docker,
    not to the option parser.
    """
    args, docker_args = split_docker_args(list(sys.argv[1:] if argv is None else argv))
    app(args=args, prog_name=PROG_NAME, obj=CliState(docker_args=docker_args))


if __name__ == "__main__":
    cli()

"""Decorators for CLI commands."""

from functools import wraps
from typing import Callable, TypeVar

import typer

from ..config import ConfigurationError
from ..docker_client import DockerClient, DockerError
from ..operations import OperationError
from ..output import out
from ..session.lifecycle import ContainerConflictError

R = TypeVar("R")


def handle_errors(func: Callable[..., R]) -> Callable[..., R]:
    """Decorator that turns session errors into a message and an exit code.

    Configuration problems exit with 2 (usage error), everything the
    runtime or an operation reports exits with 1.
    """
    @wraps(func)
    def wrapper(*args: object, **kwargs: object) -> R:
        try:
            return func(*args, **kwargs)
        except ContainerConflictError as e:
            out.error(str(e))
            if e.hint:
                out.hint(e.hint)
            raise typer.Exit(1)
        except ConfigurationError as e:
            out.error(str(e))
            if e.hint:
                out.hint(e.hint)
            raise typer.Exit(2)
        except OperationError as e:
            out.error(str(e))
            if e.hint:
                out.hint(e.hint)
            raise typer.Exit(1)
        except DockerError as e:
            out.error(str(e))
            raise typer.Exit(1)
    return wrapper


def require_docker(client: DockerClient) -> None:
    """Exit unless the docker daemon behind *client* answers."""
    if not client.is_available():
        out.error("Docker is not available.")
        out.hint("Start the Docker daemon and check that [bold]docker info[/bold] works")
        raise typer.Exit(1)

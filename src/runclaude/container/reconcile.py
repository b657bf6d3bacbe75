# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Container start-up reconciliation.

Runs as the image entrypoint on every container start, before handing
over to the requested command:

1. Merge allow-listed identity fields from the read-only host copy of
   ``~/.claude.json`` into the container's own ``~/.claude.json``.
2. Link a forwarded GPG agent socket to where gpg expects it.
3. Probe for a Serena server on the host and point the agent's
   ``serena`` MCP registration at it (HTTP) or back at the built-in
   stdio server.
4. ``cd`` to the workspace and exec the command (or zsh).

Every step is best effort.  A failure is logged and start-up goes on.

This file is copied into the image on its own, so it must only import
the standard library and httpx.
"""

from __future__ import annotations

import json
import logging
import os
import stat
import subprocess
import sys
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

import httpx

logger = logging.getLogger("run-claude.reconcile")

HOST_SHADOW_CONFIG = ".claude.host.json"
CONTAINER_CONFIG = ".claude.json"

# Fields copied from the host config; everything else stays container-local
HOST_CONFIG_KEYS = (
    "oauthAccount",
    "hasSeenTasksHint",
    "userID",
    "hasCompletedOnboarding",
    "lastOnboardingVersion",
    "subscriptionNoticeCount",
    "hasAvailableSubscription",
    "s1mAccessCache",
)
BYPASS_ACCEPTED_KEY = "bypassPermissionsModeAccepted"

FORWARDED_GPG_SOCKET = "/gpg-agent-extra"

AUX_SERVICE_NAME = "serena"
AUX_SERVICE_PORT_VAR = "SERENA_PORT"
DEFAULT_AUX_SERVICE_PORT = 8765
PROBE_TIMEOUT = 1.0

# Registration written at build time by `claude mcp add serena -- uvx ...`
DEFAULT_AUX_REGISTRATION: dict[str, Any] = {
    "type": "stdio",
    "command": "uvx",
    "args": [
        "--from",
        "git+https://github.com/oraios/serena",
        "serena",
        "start-mcp-server",
        "--project-from-cwd",
    ],
    "env": {},
}


# =============================================================================
# JSON files
# =============================================================================

def load_json_object(path: Path) -> dict[str, Any] | None:
    """Parse *path* as a JSON object; ``None`` if missing or invalid."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable %s: %s", path, e)
        return None
    return data if isinstance(data, dict) else None


def write_json_object(path: Path, data: Mapping[str, Any]) -> None:
    """Replace *path* atomically with *data*."""
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    os.replace(tmp, path)


# =============================================================================
# 1. Host config merge
# =============================================================================

def extract_host_fields(host_config: Mapping[str, Any]) -> dict[str, Any]:
    return {key: host_config[key] for key in HOST_CONFIG_KEYS if key in host_config}


def merge_host_config(home: Path) -> bool:
    """Merge the allow-listed host fields into the container config.

    Shallow: each extracted field replaces the container's value
    whole.  Applying it twice gives the same file as applying it once.

    Returns:
        True if the container config now carries the host fields.
    """
    shadow = home / HOST_SHADOW_CONFIG
    if not shadow.is_file():
        logger.info("No host Claude config file mounted")
        return False

    host_config = load_json_object(shadow)
    fields = extract_host_fields(host_config or {})
    if not fields:
        logger.info("No valid config found in host file")
        return False
    fields[BYPASS_ACCEPTED_KEY] = True

    target = home / CONTAINER_CONFIG
    current: dict[str, Any] = {}
    if target.exists():
        loaded = load_json_object(target)
        if loaded is None:
            logger.warning("%s is not a JSON object; leaving it untouched", target)
            return False
        current = loaded

    merged = {**current, **fields}
    if merged != current or not target.exists():
        write_json_object(target, merged)
    logger.info("Claude config merged from host file")
    return True


# =============================================================================
# 2. GPG agent socket
# =============================================================================

def is_socket(path: str) -> bool:
    try:
        return stat.S_ISSOCK(os.stat(path).st_mode)
    except OSError:
        return False


def gpgconf_dir(name: str) -> str | None:
    try:
        result = subprocess.run(
            ["gpgconf", "--list-dirs", name],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def link_gpg_agent_socket(
    home: Path,
    forwarded: str = FORWARDED_GPG_SOCKET,
    *,
    socket_check: Callable[[str], bool] = is_socket,
    gpg_dir: Callable[[str], str | None] = gpgconf_dir,
) -> Path | None:
    """Symlink the forwarded agent socket where gpg will look for it.

    Returns:
        The link path, or ``None`` if nothing was forwarded or linking failed.
    """
    if not socket_check(forwarded):
        return None

    expected = gpg_dir("agent-socket")
    link = Path(expected) if expected else home / ".gnupg" / "S.gpg-agent"

    try:
        link.parent.mkdir(parents=True, exist_ok=True)
        link.parent.chmod(0o700)
        if link.is_symlink() or link.exists():
            link.unlink()
        link.symlink_to(forwarded)
    except OSError as e:
        logger.warning("Could not link GPG agent socket at %s: %s", link, e)
        return None

    logger.info("GPG agent socket linked at %s", link)
    return link


# =============================================================================
# 3. Auxiliary service discovery
# =============================================================================

def aux_service_url(port: int) -> str:
    return f"http://localhost:{port}/mcp"


def aux_service_port(environ: Mapping[str, str]) -> int:
    value = environ.get(AUX_SERVICE_PORT_VAR, "")
    try:
        return int(value) if value else DEFAULT_AUX_SERVICE_PORT
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", AUX_SERVICE_PORT_VAR, value)
        return DEFAULT_AUX_SERVICE_PORT


def probe_aux_service(
    port: int,
    *,
    transport: httpx.BaseTransport | None = None,
    timeout: float = PROBE_TIMEOUT,
) -> bool:
    """True if an HTTP server answers on *port* with a non-error status."""
    try:
        with httpx.Client(transport=transport, timeout=timeout) as client:
            response = client.get(aux_service_url(port))
    except httpx.HTTPError as e:
        logger.debug("Probe of port %d failed: %s", port, e)
        return False
    return response.status_code < 400


def _is_probe_registration(entry: Any) -> bool:
    """Whether *entry* is an HTTP registration written by this script."""
    if not isinstance(entry, dict) or entry.get("type") != "http":
        return False
    url = entry.get("url", "")
    return isinstance(url, str) and url.startswith("http://localhost:") and url.endswith("/mcp")


def configure_aux_service(home: Path, port: int, reachable: bool) -> str:
    """Point the ``serena`` registration at the right transport.

    Returns:
        ``"http"`` or ``"stdio"`` for the transport now configured, or
        ``"unchanged"`` when there is no config file or a user-managed
        registration is left alone.
    """
    target = home / CONTAINER_CONFIG
    config = load_json_object(target)
    if config is None:
        return "unchanged"

    servers = config.get("mcpServers")
    if not isinstance(servers, dict):
        servers = {}
    current = servers.get(AUX_SERVICE_NAME)

    if reachable:
        wanted: dict[str, Any] = {"type": "http", "url": aux_service_url(port)}
        transport = "http"
        logger.info("Serena: connected to host server at localhost:%d", port)
    elif _is_probe_registration(current):
        wanted = dict(DEFAULT_AUX_REGISTRATION)
        transport = "stdio"
        logger.info("Serena: no host server detected, restoring built-in stdio mode")
    else:
        logger.info("Serena: no host server detected, using built-in stdio mode")
        return "unchanged"

    if current != wanted:
        config["mcpServers"] = {**servers, AUX_SERVICE_NAME: wanted}
        write_json_object(target, config)
    return transport


# =============================================================================
# Entry point
# =============================================================================

def reconcile(
    home: Path,
    environ: Mapping[str, str],
    *,
    transport: httpx.BaseTransport | None = None,
    socket_check: Callable[[str], bool] = is_socket,
    gpg_dir: Callable[[str], str | None] = gpgconf_dir,
) -> None:
    """Run the three reconciliation steps; none of them raise."""
    try:
        merge_host_config(home)
    except OSError as e:
        logger.warning("Host config merge failed: %s", e)

    link_gpg_agent_socket(home, socket_check=socket_check, gpg_dir=gpg_dir)

    port = aux_service_port(environ)
    try:
        configure_aux_service(home, port, probe_aux_service(port, transport=transport))
    except OSError as e:
        logger.warning("Serena configuration failed: %s", e)


def main(argv: Sequence[str] | None = None) -> None:
    args = list(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.INFO if os.environ.get("RUN_CLAUDE_VERBOSE") == "1" else logging.WARNING,
        format="%(message)s",
        stream=sys.stderr,
    )

    reconcile(Path.home(), os.environ)

    workspace = os.environ.get("WORKSPACE_PATH", "")
    if workspace and os.path.isdir(workspace):
        os.chdir(workspace)

    command = args or ["/bin/zsh"]
    os.execvp(command[0], command)


if __name__ == "__main__":
    main()

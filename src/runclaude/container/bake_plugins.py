# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Bake enabled Claude plugins into the image.

Runs once during ``docker build`` as the image user::

    python3 bake_plugins.py formatter@claude-plugins-official ...

Clones the official marketplace, pins it to the current commit, copies
each requested plugin into the plugin cache and writes the three files
the agent reads at start-up:

``~/.claude/plugins/installed_plugins.json``
    ``{"version": 2, "plugins": {key: [install record]}}``
``~/.claude/settings.json``
    ``{"enabledPlugins": {key: true}}``
``~/.claude/plugins/known_marketplaces.json``
    ``{marketplace: {"source": ..., "installLocation": ..., "lastUpdated": ...}}``

A plugin that isn't in the marketplace is skipped with a warning.

This file is copied into the image on its own; standard library only.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
import sys
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger("run-claude.bake-plugins")

MARKETPLACE_NAME = "claude-plugins-official"
MARKETPLACE_REPO = f"https://github.com/anthropics/{MARKETPLACE_NAME}.git"

# Searched in order; first match wins
PLUGIN_SUBTREES = ("plugins", "external_plugins")

SHORT_SHA_LENGTH = 12
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.000Z"


@dataclass
class BakeResult:
    installed: list[str] = field(default_factory=lambda: list[str]())
    skipped: list[str] = field(default_factory=lambda: list[str]())
    installed_plugins: dict[str, Any] = field(default_factory=lambda: dict[str, Any]())
    settings: dict[str, Any] = field(default_factory=lambda: dict[str, Any]())
    known_marketplaces: dict[str, Any] = field(default_factory=lambda: dict[str, Any]())


def plugin_name(key: str) -> str:
    """``formatter@claude-plugins-official`` -> ``formatter``."""
    return key.split("@", 1)[0]


def timestamp(now: datetime | None = None) -> str:
    return (now or datetime.now(timezone.utc)).astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def locate_plugin(marketplace_dir: Path, name: str) -> Path | None:
    # Names are single path components inside a subtree
    if name in ("", ".", "..") or "/" in name or "\\" in name:
        return None
    for subtree in PLUGIN_SUBTREES:
        candidate = marketplace_dir / subtree / name
        if candidate.is_dir():
            return candidate
    return None


def clone_marketplace(repo: str, dest: Path) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    subprocess.run(["git", "clone", "--depth", "1", repo, str(dest)], check=True)


def resolve_revision(repo_dir: Path) -> str:
    result = subprocess.run(
        ["git", "rev-parse", "HEAD"],
        cwd=repo_dir,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


def bake_plugins(
    keys: Iterable[str],
    claude_dir: Path,
    marketplace_dir: Path,
    git_sha: str,
    ts: str,
) -> BakeResult:
    """Copy plugins into the cache and build the three manifests.

    Args:
        keys: Enabled plugin keys, in the order they should be listed.
        claude_dir: The agent's config dir (``~/.claude``).
        marketplace_dir: Checked-out marketplace tree.
        git_sha: Full commit of the checkout; its prefix is the version pin.
        ts: Timestamp recorded as install and update time.
    """
    short_sha = git_sha[:SHORT_SHA_LENGTH]
    cache_dir = claude_dir / "plugins" / "cache" / MARKETPLACE_NAME
    result = BakeResult()
    plugins: dict[str, Any] = {}
    enabled: dict[str, bool] = {}

    for key in keys:
        if key in enabled:
            continue
        name = plugin_name(key)
        source = locate_plugin(marketplace_dir, name)
        if source is None:
            logger.warning("Warning: Plugin %s not found in marketplace, skipping", name)
            result.skipped.append(key)
            continue

        dest = cache_dir / name / short_sha
        shutil.copytree(source, dest, dirs_exist_ok=True)

        plugins[key] = [{
            "scope": "user",
            "installPath": str(dest),
            "version": short_sha,
            "installedAt": ts,
            "lastUpdated": ts,
            "gitCommitSha": git_sha,
        }]
        enabled[key] = True
        result.installed.append(key)
        logger.info("Installed plugin: %s", key)

    result.installed_plugins = {"version": 2, "plugins": plugins}
    result.settings = {"enabledPlugins": enabled}
    result.known_marketplaces = {
        MARKETPLACE_NAME: {
            "source": {"source": "github", "repo": f"anthropics/{MARKETPLACE_NAME}"},
            "installLocation": str(marketplace_dir),
            "lastUpdated": ts,
        },
    }
    return result


def dump(data: Any) -> str:
    return json.dumps(data, indent=2) + "\n"


def write_manifests(claude_dir: Path, result: BakeResult) -> None:
    """Write the manifests, keeping any other keys already in settings.json."""
    plugins_dir = claude_dir / "plugins"
    plugins_dir.mkdir(parents=True, exist_ok=True)
    (plugins_dir / "installed_plugins.json").write_text(dump(result.installed_plugins), encoding="utf-8")
    (plugins_dir / "known_marketplaces.json").write_text(dump(result.known_marketplaces), encoding="utf-8")

    settings_path = claude_dir / "settings.json"
    settings: dict[str, Any] = {}
    if settings_path.is_file():
        try:
            existing = json.loads(settings_path.read_text(encoding="utf-8"))
        except ValueError:
            existing = None
        if isinstance(existing, dict):
            settings = existing
    settings.update(result.settings)
    settings_path.write_text(dump(settings), encoding="utf-8")


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stderr)
    keys = [k for k in (sys.argv[1:] if argv is None else argv) if k]
    if not keys:
        logger.info("No plugins to install")
        return 0

    claude_dir = Path.home() / ".claude"
    marketplace_dir = claude_dir / "plugins" / "marketplaces" / MARKETPLACE_NAME

    clone_marketplace(MARKETPLACE_REPO, marketplace_dir)
    git_sha = resolve_revision(marketplace_dir)

    result = bake_plugins(keys, claude_dir, marketplace_dir, git_sha, timestamp())
    write_manifests(claude_dir, result)
    logger.info("Plugin setup complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())

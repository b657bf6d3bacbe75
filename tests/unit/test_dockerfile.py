# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Tests for Dockerfile rendering and the host plugin snapshot."""

from __future__ import annotations

import base64
import json

from runclaude.build.dockerfile import (
    BASE_PACKAGES,
    build_command_hint,
    embed_file,
    merge_packages,
    render_dockerfile,
)
from runclaude.build.plugins import read_enabled_plugins
from runclaude.build.scripts import (
    ENTRYPOINT_PATH,
    ENTRYPOINT_SCRIPT,
    EXEC_WRAPPER_PATH,
    EXEC_WRAPPER_SCRIPT,
    RECONCILE_PATH,
    container_script,
)


def embedded(dockerfile: str, dest: str) -> str:
    """Decode the blob written to *dest* by an ``embed_file`` line."""
    for line in dockerfile.splitlines():
        if f"| base64 -d > {dest}" in line:
            blob = line.split("echo '", 1)[1].split("'", 1)[0]
            return base64.b64decode(blob).decode("utf-8")
    raise AssertionError(f"{dest} is not embedded")


class TestPackages:
    def test_merge_appends_and_dedupes(self):
        merged = merge_packages(["redis-tools", "git", "redis-tools", ""])
        assert merged == [*BASE_PACKAGES, "redis-tools"]

    def test_single_install_layer(self):
        text = render_dockerfile(merge_packages(["redis-tools"]))
        assert text.count("apt-get install") == 1
        assert "RUN apt-get update && apt-get install -y \\\n\tbuild-essential \\\n" in text
        assert "\tredis-tools \\\n\t&& rm -rf /var/lib/apt/lists/*" in text


class TestRender:
    def test_deterministic(self):
        assert render_dockerfile(plugins=["a@m"]) == render_dockerfile(plugins=["a@m"])

    def test_stages(self):
        text = render_dockerfile()
        for stage in ("AS base-tools", "AS user-env", "AS claude-mcp", "AS final"):
            assert stage in text
        assert text.endswith('CMD ["/bin/zsh"]\n')

    def test_identity_is_a_build_argument(self):
        text = render_dockerfile()
        assert "ARG USERNAME=claude-user" in text
        assert "ARG HOST_UID=1000" in text

    def test_scripts_embedded_byte_for_byte(self):
        text = render_dockerfile()
        assert embedded(text, EXEC_WRAPPER_PATH) == EXEC_WRAPPER_SCRIPT
        assert embedded(text, ENTRYPOINT_PATH) == ENTRYPOINT_SCRIPT
        assert embedded(text, RECONCILE_PATH) == container_script("reconcile.py")

    def test_no_plugin_step_without_plugins(self):
        assert "bake_plugins" not in render_dockerfile()

    def test_plugin_step(self):
        text = render_dockerfile(plugins=["a@m", "b c@m"])
        assert embedded(text, "/tmp/bake_plugins.py") == container_script("bake_plugins.py")
        assert "python3 /tmp/bake_plugins.py a@m 'b c@m'" in text

    def test_embed_file_executable(self):
        line = embed_file("echo hi\n", "/x", executable=True)
        assert line.endswith(" > /x && chmod +x /x")

    def test_build_command_hint(self):
        assert build_command_hint("img").endswith("-t img .")


class TestEnabledPlugins:
    def test_only_true_entries(self, tmp_path):
        (tmp_path / "settings.json").write_text(
            json.dumps({"enabledPlugins": {"pluginA@m": True, "pluginB@m": False, "pluginC@m": "yes"}})
        )
        assert read_enabled_plugins(tmp_path) == ["pluginA@m"]

    def test_missing_file(self, tmp_path):
        assert read_enabled_plugins(tmp_path) == []

    def test_invalid_json(self, tmp_path):
        (tmp_path / "settings.json").write_text("{not json")
        assert read_enabled_plugins(tmp_path) == []

    def test_no_plugins_key(self, tmp_path):
        (tmp_path / "settings.json").write_text("[]")
        assert read_enabled_plugins(tmp_path) == []

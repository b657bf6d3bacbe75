# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Tests for the in-image plugin installer."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from runclaude.container.bake_plugins import (
    MARKETPLACE_NAME,
    bake_plugins,
    dump,
    main,
    timestamp,
    write_manifests,
)

SHA = "0123456789abcdef0123456789abcdef01234567"
SHORT = "0123456789ab"
TS = "2026-01-02T03:04:05.000Z"


@pytest.fixture
def marketplace(tmp_path):
    root = tmp_path / "marketplace"
    (root / "plugins" / "pluginA").mkdir(parents=True)
    (root / "plugins" / "pluginA" / "plugin.json").write_text('{"name": "pluginA"}')
    (root / "external_plugins" / "pluginB").mkdir(parents=True)
    (root / "external_plugins" / "pluginB" / "plugin.json").write_text('{"name": "pluginB"}')
    # Present in both trees; plugins/ wins
    (root / "plugins" / "dup").mkdir()
    (root / "plugins" / "dup" / "origin").write_text("plugins")
    (root / "external_plugins" / "dup").mkdir()
    (root / "external_plugins" / "dup" / "origin").write_text("external")
    return root


@pytest.fixture
def claude_dir(tmp_path):
    return tmp_path / "home" / ".claude"


def test_manifests(marketplace, claude_dir):
    result = bake_plugins(["pluginA@m"], claude_dir, marketplace, SHA, TS)

    install_path = claude_dir / "plugins" / "cache" / MARKETPLACE_NAME / "pluginA" / SHORT
    assert result.installed_plugins == {
        "version": 2,
        "plugins": {
            "pluginA@m": [{
                "scope": "user",
                "installPath": str(install_path),
                "version": SHORT,
                "installedAt": TS,
                "lastUpdated": TS,
                "gitCommitSha": SHA,
            }],
        },
    }
    assert result.settings == {"enabledPlugins": {"pluginA@m": True}}
    assert result.known_marketplaces == {
        MARKETPLACE_NAME: {
            "source": {"source": "github", "repo": f"anthropics/{MARKETPLACE_NAME}"},
            "installLocation": str(marketplace),
            "lastUpdated": TS,
        },
    }
    assert (install_path / "plugin.json").read_text() == '{"name": "pluginA"}'


def test_external_plugins_are_found(marketplace, claude_dir):
    result = bake_plugins(["pluginB@m"], claude_dir, marketplace, SHA, TS)
    assert result.installed == ["pluginB@m"]


def test_first_match_wins(marketplace, claude_dir):
    bake_plugins(["dup@m"], claude_dir, marketplace, SHA, TS)
    origin = claude_dir / "plugins" / "cache" / MARKETPLACE_NAME / "dup" / SHORT / "origin"
    assert origin.read_text() == "plugins"


def test_missing_plugin_is_skipped(marketplace, claude_dir, caplog):
    result = bake_plugins(["nope@m", "pluginA@m"], claude_dir, marketplace, SHA, TS)
    assert result.skipped == ["nope@m"]
    assert result.installed == ["pluginA@m"]
    assert list(result.settings["enabledPlugins"]) == ["pluginA@m"]
    assert "nope" in caplog.text


def test_duplicate_keys_installed_once(marketplace, claude_dir):
    result = bake_plugins(["pluginA@m", "pluginA@m"], claude_dir, marketplace, SHA, TS)
    assert result.installed == ["pluginA@m"]


def test_only_enabled_plugins_from_settings(marketplace, claude_dir, tmp_path):
    # The host snapshot filters {"pluginA@m": true, "pluginB@m": false} down to pluginA
    from runclaude.build.plugins import read_enabled_plugins

    host = tmp_path / "host"
    host.mkdir()
    (host / "settings.json").write_text(json.dumps({"enabledPlugins": {"pluginA@m": True, "pluginB@m": False}}))

    result = bake_plugins(read_enabled_plugins(host), claude_dir, marketplace, SHA, TS)
    write_manifests(claude_dir, result)

    installed = json.loads((claude_dir / "plugins" / "installed_plugins.json").read_text())
    assert list(installed["plugins"]) == ["pluginA@m"]
    settings = json.loads((claude_dir / "settings.json").read_text())
    assert settings == {"enabledPlugins": {"pluginA@m": True}}
    known = json.loads((claude_dir / "plugins" / "known_marketplaces.json").read_text())
    assert list(known) == [MARKETPLACE_NAME]


def test_write_manifests_keeps_other_settings(marketplace, claude_dir):
    claude_dir.mkdir(parents=True)
    (claude_dir / "settings.json").write_text(json.dumps({"theme": "dark", "enabledPlugins": {"old@m": True}}))

    write_manifests(claude_dir, bake_plugins(["pluginA@m"], claude_dir, marketplace, SHA, TS))

    settings = json.loads((claude_dir / "settings.json").read_text())
    assert settings == {"theme": "dark", "enabledPlugins": {"pluginA@m": True}}


def test_dump_format():
    assert dump({"a": 1}) == '{\n  "a": 1\n}\n'


def test_timestamp():
    assert timestamp(datetime(2026, 1, 2, 3, 4, 5, 678, tzinfo=timezone.utc)) == TS


def test_main_without_keys():
    assert main([]) == 0


@pytest.mark.parametrize("key", ["@m", ".@m", "..@m", "../pluginA@m", "plugins/pluginA@m"])
def test_names_that_are_not_a_single_directory_are_skipped(marketplace, claude_dir, key, caplog):
    result = bake_plugins([key], claude_dir, marketplace, SHA, TS)
    assert result.skipped == [key]
    assert result.installed == []
    assert not (claude_dir / "plugins" / "cache").exists()
    assert "skipping" in caplog.text


def test_manifest_files_exact_output(marketplace, claude_dir):
    write_manifests(claude_dir, bake_plugins(["pluginA@m", "pluginB@m"], claude_dir, marketplace, SHA, TS))

    cache = claude_dir / "plugins" / "cache" / MARKETPLACE_NAME
    assert (claude_dir / "plugins" / "installed_plugins.json").read_bytes() == f"""\
{{
  "version": 2,
  "plugins": {{
    "pluginA@m": [
      {{
        "scope": "user",
        "installPath": "{cache / "pluginA" / SHORT}",
        "version": "{SHORT}",
        "installedAt": "{TS}",
        "lastUpdated": "{TS}",
        "gitCommitSha": "{SHA}"
      }}
    ],
    "pluginB@m": [
      {{
        "scope": "user",
        "installPath": "{cache / "pluginB" / SHORT}",
        "version": "{SHORT}",
        "installedAt": "{TS}",
        "lastUpdated": "{TS}",
        "gitCommitSha": "{SHA}"
      }}
    ]
  }}
}}
""".encode()

    assert (claude_dir / "settings.json").read_bytes() == b"""\
{
  "enabledPlugins": {
    "pluginA@m": true,
    "pluginB@m": true
  }
}
"""

    assert (claude_dir / "plugins" / "known_marketplaces.json").read_bytes() == f"""\
{{
  "{MARKETPLACE_NAME}": {{
    "source": {{
      "source": "github",
      "repo": "anthropics/{MARKETPLACE_NAME}"
    }},
    "installLocation": "{marketplace}",
    "lastUpdated": "{TS}"
  }}
}}
""".encode()

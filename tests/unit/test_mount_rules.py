# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Tests for the mount/environment rule engine."""

from __future__ import annotations

import os

import pytest

from runclaude.config import ConfigurationError
from runclaude.session.contexts import EnvSpec, MountSpec
from runclaude.session.mounts import mount_pipeline
from runclaude.session.mounts.environment import forwarded_environment
from runclaude.session.rules import evaluate_rules


def mounts_by_target(params) -> dict[str, MountSpec]:
    return {m.container_path: m for m in params.mounts}


def env_map(params) -> dict[str, str | None]:
    return {e.name: e.value for e in params.env}


@pytest.fixture
def populated_home(host_home):
    """A home with every optional source present."""
    (host_home / ".claude" / "rules").mkdir(parents=True)
    (host_home / ".claude" / "plugins").mkdir()
    (host_home / ".claude" / "settings.json").write_text("{}")
    (host_home / ".claude.json").write_text("{}")
    (host_home / ".ssh").mkdir()
    (host_home / ".gitconfig").write_text("[user]\n")
    (host_home / ".gnupg").mkdir()
    (host_home / ".aws").mkdir()
    return host_home


def test_steps_registered_in_order():
    names = [s.__name__ for s in mount_pipeline.steps]
    assert names == [
        "session_environment",
        "mount_workspace",
        "mount_host_config",
        "mount_claude_config",
        "mount_ssh_keys",
        "forward_ssh_agent",
        "forward_gpg",
        "mount_integrations",
        "forward_variables",
    ]


def test_minimal_host(make_config, make_host, workspace):
    params = evaluate_rules(make_config(), make_host())
    assert params.mounts == (
        MountSpec(str(workspace), "/home/alice/proj", read_only=False, rule="workspace"),
    )
    env = env_map(params)
    assert env["WORKSPACE_PATH"] == "/home/alice/proj"
    assert env["CLAUDE_CONFIG_PATH"] == "/home/alice/.claude"
    assert env["CONTAINER_USER"] == "alice"
    assert env["NODE_OPTIONS"] == "--max-old-space-size=8192"
    assert env["CLAUDE_DANGEROUS_MODE"] == "1"


def test_evaluation_is_idempotent(make_config, make_host, populated_home):
    config = make_config()
    host = make_host({"ANTHROPIC_API_KEY": "sk-test"})
    assert evaluate_rules(config, host) == evaluate_rules(config, host)


def test_safe_mode_drops_dangerous_flags(make_config, make_host):
    env = env_map(evaluate_rules(make_config(safe=True), make_host()))
    assert "CLAUDE_DANGEROUS_MODE" not in env
    assert "ANTHROPIC_DANGEROUS_MODE" not in env


def test_verbose_is_forwarded(make_config, make_host):
    assert env_map(evaluate_rules(make_config(verbose=True), make_host()))["RUN_CLAUDE_VERBOSE"] == "1"


class TestClaudeConfig:
    def test_full_mode_mounts_directory_read_write(self, make_config, make_host, populated_home):
        mounts = mounts_by_target(evaluate_rules(make_config(mount_full=True), make_host()))
        mount = mounts["/home/alice/.claude"]
        assert mount.host_path == str(populated_home / ".claude")
        assert not mount.read_only

    def test_selective_mode_mounts_only_settings_and_rules(self, make_config, make_host, populated_home):
        params = evaluate_rules(make_config(mount_rules_only=True), make_host())
        claude_mounts = [m for m in params.mounts if m.rule == "claude_config"]
        assert {m.container_path for m in claude_mounts} == {
            "/home/alice/.claude/settings.json",
            "/home/alice/.claude/rules",
        }
        assert all(m.read_only for m in claude_mounts)

    def test_selective_mode_skips_missing_entries(self, make_config, make_host, host_home):
        (host_home / ".claude").mkdir()
        (host_home / ".claude" / "settings.json").write_text("{}")
        params = evaluate_rules(make_config(mount_rules_only=True), make_host())
        assert [m.container_path for m in params.mounts if m.rule == "claude_config"] == [
            "/home/alice/.claude/settings.json",
        ]

    def test_missing_config_dir(self, make_config, make_host):
        params = evaluate_rules(make_config(), make_host())
        assert not [m for m in params.mounts if m.rule == "claude_config"]

    def test_host_config_shadow_is_read_only(self, make_config, make_host, populated_home):
        mounts = mounts_by_target(evaluate_rules(make_config(), make_host()))
        shadow = mounts["/home/alice/.claude.host.json"]
        assert shadow.host_path == str(populated_home / ".claude.json")
        assert shadow.read_only


class TestSsh:
    def test_keys_and_gitconfig_read_only(self, make_config, make_host, populated_home):
        mounts = mounts_by_target(evaluate_rules(make_config(), make_host()))
        assert mounts["/home/alice/.ssh"].read_only
        assert mounts["/home/alice/.gitconfig"].read_only

    def test_agent_socket_mounted_by_real_path(self, make_config, make_host, tmp_path):
        real = tmp_path / "agent.real"
        real.write_text("")
        link = tmp_path / "agent.link"
        link.symlink_to(real)

        host = make_host({"SSH_AUTH_SOCK": str(link)}, sockets=[str(link)])
        params = evaluate_rules(make_config(), host)

        agent = mounts_by_target(params)["/ssh-agent"]
        assert agent.host_path == os.path.realpath(real)
        assert env_map(params)["SSH_AUTH_SOCK"] == "/ssh-agent"

    def test_stale_agent_socket_ignored(self, make_config, make_host, tmp_path):
        host = make_host({"SSH_AUTH_SOCK": str(tmp_path / "gone")})
        params = evaluate_rules(make_config(), host)
        assert "/ssh-agent" not in mounts_by_target(params)
        assert "SSH_AUTH_SOCK" not in env_map(params)


class TestGpg:
    EXTRA = "/run/user/1000/gnupg/S.gpg-agent.extra"

    def test_directory_and_extra_socket(self, make_config, make_host, populated_home):
        host = make_host(sockets=[self.EXTRA], gpg_dirs={"agent-extra-socket": self.EXTRA})
        mounts = mounts_by_target(evaluate_rules(make_config(), host))
        assert not mounts["/home/alice/.gnupg"].read_only
        assert mounts["/gpg-agent-extra"].host_path == self.EXTRA

    def test_gpgconf_unavailable_is_not_an_error(self, make_config, make_host, populated_home):
        mounts = mounts_by_target(evaluate_rules(make_config(), make_host()))
        assert "/home/alice/.gnupg" in mounts
        assert "/gpg-agent-extra" not in mounts

    def test_reported_socket_not_live(self, make_config, make_host, populated_home):
        host = make_host(gpg_dirs={"agent-extra-socket": self.EXTRA})
        assert "/gpg-agent-extra" not in mounts_by_target(evaluate_rules(make_config(), host))

    def test_disabled(self, make_config, make_host, populated_home):
        host = make_host(sockets=[self.EXTRA], gpg_dirs={"agent-extra-socket": self.EXTRA})
        params = evaluate_rules(make_config(gpg=False), host)
        assert not [m for m in params.mounts if m.rule == "gpg"]


class TestIntegrationMounts:
    def test_aws_mounted_when_present(self, make_builder, make_host, populated_home):
        config = make_builder().with_integration("aws").build()
        mount = mounts_by_target(evaluate_rules(config, make_host()))["/home/alice/.aws"]
        assert mount.read_only

    def test_aws_skipped_when_absent(self, make_builder, make_host):
        config = make_builder().with_integration("aws").build()
        assert "/home/alice/.aws" not in mounts_by_target(evaluate_rules(config, make_host()))


class TestForwardedEnvironment:
    def test_values_are_passed_by_name(self, make_config, make_host):
        params = evaluate_rules(make_config(), make_host({"ANTHROPIC_API_KEY": "sk-secret"}))
        assert EnvSpec("ANTHROPIC_API_KEY") in params.env
        args = params.docker_args()
        assert args[args.index("ANTHROPIC_API_KEY") - 1] == "-e"
        assert "sk-secret" not in " ".join(args)

    def test_unset_and_empty_are_skipped(self, make_config):
        specs = forwarded_environment(make_config(), {"TERM": "", "OPENAI_API_KEY": "x"})
        assert specs == [EnvSpec("OPENAI_API_KEY")]

    def test_deduplicated(self, make_config):
        specs = forwarded_environment(make_config(variables=["TERM"]), {"TERM": "xterm"})
        assert specs == [EnvSpec("TERM")]

    def test_aux_service_port(self, make_config):
        specs = forwarded_environment(make_config(), {"SERENA_PORT": "9000"})
        assert specs == [EnvSpec("SERENA_PORT")]

    def test_excluded_variable_not_forwarded(self, make_config):
        specs = forwarded_environment(make_config(variables=["!TERM"]), {"TERM": "xterm"})
        assert specs == []

    def test_fixed_variables_win_over_forwarded(self, make_config, make_host):
        # A host WORKSPACE_PATH must not shadow the session value
        params = evaluate_rules(make_config(variables=["WORKSPACE_PATH"]), make_host({"WORKSPACE_PATH": "/x"}))
        assert [e for e in params.env if e.name == "WORKSPACE_PATH"] == [
            EnvSpec("WORKSPACE_PATH", "/home/alice/proj"),
        ]

    def test_env_precedes_mounts(self, make_config, make_host):
        args = evaluate_rules(make_config(), make_host()).docker_args()
        assert args[0] == "-e"
        assert args[-2] == "-v"


class TestCollisions:
    def test_workspace_shadowing_ssh_dir(self, make_builder, make_host, populated_home, tmp_path):
        ws = tmp_path / "odd" / ".ssh"
        ws.mkdir(parents=True)
        config = make_builder(cwd=ws).build()
        with pytest.raises(ConfigurationError, match="collides"):
            evaluate_rules(config, make_host())

    def test_workspace_shadowing_config_dir(self, make_builder, make_host, populated_home, tmp_path):
        ws = tmp_path / "odd" / ".claude"
        ws.mkdir(parents=True)
        config = make_builder(cwd=ws).build()
        with pytest.raises(ConfigurationError):
            evaluate_rules(config, make_host())

    def test_missing_workspace_at_launch(self, make_config, make_host, workspace):
        config = make_config()
        workspace.rmdir()
        with pytest.raises(ConfigurationError, match="does not exist"):
            evaluate_rules(config, make_host())

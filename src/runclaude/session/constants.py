# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Constants shared across the session package."""

from __future__ import annotations

from ..build.scripts import EXEC_WRAPPER_PATH

# Labels written on every container we create
LABEL_PREFIX = "run-claude."
LABEL_MANAGED = LABEL_PREFIX + "managed"
LABEL_WORKSPACE = LABEL_PREFIX + "workspace"
LABEL_CREATED = LABEL_PREFIX + "created"
LABEL_VERSION = LABEL_PREFIX + "version"
LABEL_USERNAME = LABEL_PREFIX + "username"

# Filter selecting managed containers
MANAGED_FILTER = f"{LABEL_MANAGED}=true"

# Wrapper run by `docker exec` (cd to workspace, source zsh env)
EXEC_WRAPPER = EXEC_WRAPPER_PATH

# Fixed in-container paths
SSH_AGENT_SOCKET = "/ssh-agent"
GPG_EXTRA_SOCKET = "/gpg-agent-extra"
HOST_SHADOW_CONFIG = ".claude.host.json"

# Capability sets; the restricted one is sized for a headless Chromium sandbox
PRIVILEGED_ARGS = ("--privileged",)
RESTRICTED_ARGS = (
    "--cap-add=SYS_ADMIN",
    "--security-opt", "seccomp=unconfined",
    "--shm-size=2g",
)

# Host network so the container can reach services on localhost
NETWORK_ARGS = ("--network", "host")

NODE_OPTIONS = "--max-old-space-size=8192"

# Auxiliary service port, forwarded into the container when set on the host
AUX_SERVICE_PORT_VAR = "SERENA_PORT"

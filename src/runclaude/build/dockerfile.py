# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Dockerfile generation.

The generated file is deterministic for a given package list and plugin
set: nothing here depends on the clock or the host.  Identity (username,
UID, GID) is passed as build arguments, not rendered into the text.

Runtime scripts are written into the image through base64 so their
content survives the Dockerfile parser untouched.
"""

from __future__ import annotations

import base64
import shlex
from collections.abc import Iterable, Sequence

from .scripts import (
    BAKE_PLUGINS_PATH,
    ENTRYPOINT_PATH,
    ENTRYPOINT_SCRIPT,
    EXEC_WRAPPER_PATH,
    EXEC_WRAPPER_SCRIPT,
    RECONCILE_PATH,
    ZSHRC,
    container_script,
)

BASE_IMAGE = "ubuntu:25.04"
GO_VERSION = "1.21.5"
NEOVIM_VERSION = "v0.11.2"

BASE_PACKAGES: tuple[str, ...] = (
    "build-essential",
    "ca-certificates",
    "curl",
    "wget",
    "git",
    "python3",
    "python3-httpx",
    "unzip",
    "python3-pip",
    "sudo",
    "fzf",
    "zsh",
    "gh",
    "vim",
    "htop",
    "jq",
    "tree",
    "ripgrep",
    "fd-find",
    "gpg",
    "git-delta",
)

SERENA_COMMAND = "uvx --from git+https://github.com/oraios/serena serena start-mcp-server --project-from-cwd"

_BANNER = "# " + "=" * 76


def merge_packages(extra: Iterable[str] = ()) -> list[str]:
    """Base packages followed by *extra*, keeping the first occurrence."""
    packages: list[str] = []
    for name in (*BASE_PACKAGES, *extra):
        if name and name not in packages:
            packages.append(name)
    return packages


def embed_file(content: str, dest: str, *, executable: bool = False) -> str:
    """Render a RUN instruction that writes *content* to *dest* byte for byte."""
    blob = base64.b64encode(content.encode("utf-8")).decode("ascii")
    cmd = f"RUN echo '{blob}' | base64 -d > {dest}"
    if executable:
        cmd += f" && chmod +x {dest}"
    return cmd


def _stage_header(title: str) -> list[str]:
    return [_BANNER, f"# {title}", _BANNER]


def _base_tools(packages: Sequence[str]) -> list[str]:
    lines = [
        "# vim: set ft=dockerfile:",
        "",
        *_stage_header("Stage 1: Base tools and development environment"),
        f"FROM {BASE_IMAGE} AS base-tools",
        "",
        "# Install system dependencies in a single layer",
        "RUN apt-get update && apt-get install -y \\",
    ]
    lines.extend(f"\t{name} \\" for name in packages)
    lines.append("\t&& rm -rf /var/lib/apt/lists/*")
    lines += [
        "",
        "# Install Go",
        "RUN ARCH=$(dpkg --print-architecture) && \\",
        '    if [ "$ARCH" = "amd64" ]; then GOARCH="amd64"; else GOARCH="arm64"; fi && \\',
        f'    wget -O go.tar.gz "https://go.dev/dl/go{GO_VERSION}.linux-${{GOARCH}}.tar.gz" && \\',
        "    tar -C /usr/local -xzf go.tar.gz && \\",
        "    rm go.tar.gz",
        "ENV PATH=/usr/local/go/bin:$PATH",
        "ENV CGO_ENABLED=0",
        "",
        "# Install Neovim from GitHub releases (the distribution package is too old for LazyVim)",
        "RUN ARCH=$(dpkg --print-architecture) && \\",
        f'    NVIM_VERSION="{NEOVIM_VERSION}" && \\',
        '    if [ "$ARCH" = "amd64" ]; then NVIM_ARCH="linux-x86_64"; else NVIM_ARCH="linux-arm64"; fi && \\',
        '    wget -O nvim.tar.gz "https://github.com/neovim/neovim/releases/download/${NVIM_VERSION}/nvim-${NVIM_ARCH}.tar.gz" && \\',
        "    tar -C /opt -xzf nvim.tar.gz && \\",
        "    ln -s /opt/nvim-${NVIM_ARCH}/bin/nvim /usr/local/bin/nvim && \\",
        "    rm nvim.tar.gz",
        "",
        "# Create user with host UID/GID so bind-mounted files keep their ownership",
        "# On macOS hosts GID 20 (staff) may already exist in the image",
        "ARG USERNAME=claude-user",
        "ARG HOST_UID=1000",
        "ARG HOST_GID=1000",
        "RUN (getent group ${HOST_GID} || groupadd -g ${HOST_GID} ${USERNAME}) && \\",
        "    useradd -m -s /bin/zsh -u ${HOST_UID} -g ${HOST_GID} ${USERNAME} && \\",
        '    echo "${USERNAME} ALL=(root) NOPASSWD:ALL" > /etc/sudoers.d/${USERNAME} && \\',
        "    chmod 0440 /etc/sudoers.d/${USERNAME}",
        "",
        "# Build and install Unsplash MCP server",
        "WORKDIR /tmp",
        'RUN git config --global url."https://github.com/".insteadOf git@github.com: && \\',
        "    git clone https://github.com/douglarek/unsplash-mcp-server.git && \\",
        "    cd unsplash-mcp-server && \\",
        "    go build -o /usr/local/bin/unsplash-mcp-server ./cmd/server && \\",
        '    git config --global --unset url."https://github.com/".insteadOf',
    ]
    return lines


def _user_env() -> list[str]:
    return [
        *_stage_header("Stage 2: User environment setup (zsh, fnm, node)"),
        "FROM base-tools AS user-env",
        "",
        "USER $USERNAME",
        "WORKDIR /home/$USERNAME",
        "",
        "# oh-my-zsh and plugins",
        'RUN sh -c "$(curl -fsSL https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh)" "" --unattended && \\',
        "    git clone https://github.com/zsh-users/zsh-autosuggestions ${ZSH_CUSTOM:-~/.oh-my-zsh/custom}/plugins/zsh-autosuggestions && \\",
        "    git clone https://github.com/zsh-users/zsh-syntax-highlighting.git ${ZSH_CUSTOM:-~/.oh-my-zsh/custom}/plugins/zsh-syntax-highlighting",
        "",
        "# fnm and node",
        "RUN curl -o- https://fnm.vercel.app/install | bash",
        'ENV PATH="/home/$USERNAME/.local/share/fnm:$PATH"',
        'SHELL ["/bin/bash", "-c"]',
        'RUN eval "$(fnm env)" && fnm install 22 && fnm default 22 && fnm use 22',
        "",
        "# uv (provides uvx)",
        "RUN curl -LsSf https://astral.sh/uv/install.sh | sh",
        'ENV PATH="/home/$USERNAME/.local/bin:$PATH"',
        "",
        "# LazyVim",
        "RUN git clone https://github.com/LazyVim/starter ~/.config/nvim && \\",
        "    rm -rf ~/.config/nvim/.git",
        "",
        'RUN nvim --headless "+Lazy! sync" +qa',
    ]


def _mcp_add(name: str, *target: str) -> list[str]:
    return [
        f'RUN eval "$(fnm env)" && claude mcp add {name} \\',
        "    --scope user \\",
        f"    {' '.join(target)}",
    ]


def _claude_mcp() -> list[str]:
    return [
        *_stage_header("Stage 3: Claude and MCP servers"),
        "FROM user-env AS claude-mcp",
        "",
        'RUN eval "$(fnm env)" && curl -fsSL https://claude.ai/install.sh | bash',
        "ENV PATH=/home/$USERNAME/.local/bin:$PATH",
        "",
        'RUN eval "$(fnm env)" && npm install -g @playwright/mcp@latest',
        "",
        *_mcp_add("unsplash", "/usr/local/bin/unsplash-mcp-server"),
        "",
        *_mcp_add("context7", "--transport http", "https://mcp.context7.com/mcp"),
        "",
        *_mcp_add("playwright", "npx @playwright/mcp@latest"),
        "",
        "# Serena defaults to stdio; the entrypoint switches it to HTTP when a host server answers",
        *_mcp_add("serena", "--", SERENA_COMMAND),
        "",
        "# SuperClaude commands (sc:* slash commands)",
        "RUN uvx superclaude install",
    ]


def _bake_plugins(plugins: Sequence[str]) -> list[str]:
    if not plugins:
        return []
    keys = shlex.join(plugins)
    return [
        "",
        "# Bake enabled Claude plugins from host configuration",
        embed_file(container_script("bake_plugins.py"), BAKE_PLUGINS_PATH) + " && \\",
        f"    python3 {BAKE_PLUGINS_PATH} {keys} && \\",
        f"    rm {BAKE_PLUGINS_PATH}",
    ]


def _final() -> list[str]:
    return [
        *_stage_header("Stage 4: Final runtime image"),
        "FROM claude-mcp AS final",
        "",
        "USER root",
        f"RUN mkdir -p {RECONCILE_PATH.rsplit('/', 1)[0]}",
        embed_file(container_script("reconcile.py"), RECONCILE_PATH),
        embed_file(ENTRYPOINT_SCRIPT, ENTRYPOINT_PATH, executable=True),
        "",
        "# Wrapper used by docker exec to get a proper login environment",
        embed_file(EXEC_WRAPPER_SCRIPT, EXEC_WRAPPER_PATH, executable=True),
        "",
        "USER $USERNAME",
        "WORKDIR /home/$USERNAME",
        "",
        "# zsh theme, plugins and aliases",
        embed_file(ZSHRC, "~/.zshrc"),
        "",
        'ENTRYPOINT ["/entrypoint.sh"]',
        'CMD ["/bin/zsh"]',
    ]


def render_dockerfile(packages: Sequence[str] = BASE_PACKAGES, plugins: Sequence[str] = ()) -> str:
    """Render the multi-stage Dockerfile.

    Args:
        packages: Full apt package list, already merged with the base list.
        plugins: Enabled plugin keys (``name@marketplace``) to bake in.
    """
    sections = [
        _base_tools(packages),
        _user_env(),
        _claude_mcp() + _bake_plugins(plugins),
        _final(),
    ]
    return "\n\n".join("\n".join(section) for section in sections) + "\n"


def build_command_hint(image: str = "your-image-name") -> str:
    """The ``docker build`` command matching an exported Dockerfile."""
    return (
        "docker build --build-arg USERNAME=$(whoami) --build-arg HOST_UID=$(id -u) "
        f"--build-arg HOST_GID=$(id -g) -t {image} ."
    )

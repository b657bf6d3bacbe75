# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Runtime scripts embedded verbatim into the image.

These are interpreted by ``sh``/``zsh`` inside the container, not by
Python, so they are kept as plain text blobs.  The Python scripts that
run inside the image (``runclaude.container``) are read from the
installed package by :func:`container_script`.
"""

from __future__ import annotations

from importlib import resources

# Install locations inside the image
ENTRYPOINT_PATH = "/entrypoint.sh"
EXEC_WRAPPER_PATH = "/usr/local/bin/claude-exec"
RECONCILE_PATH = "/usr/local/lib/run-claude/reconcile.py"
BAKE_PLUGINS_PATH = "/tmp/bake_plugins.py"

ENTRYPOINT_SCRIPT = """\
#!/bin/sh

# Reconcile host config, GPG agent socket and Serena transport, then hand
# off to the requested command (or zsh) from the workspace directory.
if [ -f /usr/local/lib/run-claude/reconcile.py ]; then
  exec python3 /usr/local/lib/run-claude/reconcile.py "$@"
fi

if [ -n "$WORKSPACE_PATH" ] && [ -d "$WORKSPACE_PATH" ]; then
  cd "$WORKSPACE_PATH"
fi

exec "$@"
"""

EXEC_WRAPPER_SCRIPT = """\
#!/bin/zsh

# Change to workspace directory if available, fallback to home
if [[ -n "$WORKSPACE_PATH" && -d "$WORKSPACE_PATH" ]]; then
  cd "$WORKSPACE_PATH"
else
  cd ~
fi

# Execute the requested command or start interactive zsh
if [[ $# -gt 0 ]]; then
  # Source zsh environment files for command execution
  [[ -f ~/.zshenv ]] && source ~/.zshenv
  [[ -f ~/.zshrc ]] && source ~/.zshrc
  exec "$@"
else
  # Let zsh handle its own sourcing for interactive shells
  exec /bin/zsh
fi
"""

ZSHRC = """\
export ZSH="$HOME/.oh-my-zsh"
ZSH_THEME="example"
plugins=(git zsh-autosuggestions zsh-syntax-highlighting)
source $ZSH/oh-my-zsh.sh

# Colorful prompt prefix
export PS1="%F{yellow}[%F{red}cc%F{yellow}]%f $PS1"

# History configuration
HISTFILE=~/.zsh_history
HISTSIZE=50000
SAVEHIST=50000

# Node version manager
eval "$(fnm env --use-on-cd --shell zsh)"

# Claude aliases - conditional based on dangerous mode
if [ "$CLAUDE_DANGEROUS_MODE" = "1" ] || [ "$ANTHROPIC_DANGEROUS_MODE" = "1" ]; then
  alias claude="claude --dangerously-skip-permissions"
fi
alias claude-safe="command claude"

# General aliases
alias ll="ls -la"
alias vim="nvim"
alias vi="nvim"

# Git SSH configuration
export GIT_SSH_COMMAND="ssh -o StrictHostKeyChecking=no -o UserKnownHostsFile=/dev/null -o LogLevel=ERROR"
"""


def container_script(name: str) -> str:
    """Return the source of a script from ``runclaude.container``."""
    return resources.files("runclaude.container").joinpath(name).read_text(encoding="utf-8")

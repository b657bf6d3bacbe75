"""Entry point for running the CLI directly.

Usage:
    python -m runclaude [OPTIONS] [COMMAND]...
"""

from .cli.main import cli

if __name__ == "__main__":
    cli()

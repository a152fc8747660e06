"""fullintel CLI module entry point.

Enables running the CLI via: python -m fullintel.cli
"""

from fullintel.cli.main import cli

if __name__ == "__main__":
    cli()

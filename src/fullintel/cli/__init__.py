"""fullintel command-line interface.

All commands emit JSON envelopes for reliable parsing.
"""

from fullintel.cli.main import cli
from fullintel.cli.output import emit, emit_error, emit_success

__all__ = ["cli", "emit", "emit_error", "emit_success"]

"""CLI logging setup: simple %(message)s format for standalone commands."""

import logging
import sys


def setup_cli_logging(verbose=False):
    """Configure root logger with plain message format for CLI commands."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)

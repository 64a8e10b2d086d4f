"""
quantopts CLI

Command-line interface for quantopts.

Commands:
- quantopts show: Show options with defaults applied
- quantopts convert: Convert between JSON, text and binary formats
- quantopts precision: Look up the precision of a node or op
- quantopts proto: Print the .proto definition
"""

from quantopts.api.cli.main import app

__all__ = ["app"]

"""Voxgate CLI.

Registers every command on the main group.
"""

from voxgate.cli.main import cli
from voxgate.cli.serve import serve

__all__ = [
    "cli",
    "serve",
]

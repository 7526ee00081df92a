"""Main CLI command group for Voxgate."""

from __future__ import annotations

import click

import voxgate


@click.group()
@click.version_option(version=voxgate.__version__, prog_name="voxgate")
def cli() -> None:
    """Voxgate — real-time transcription gateway."""

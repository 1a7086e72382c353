"""
gpgbuffer CLI: inspect and edit GPG-encrypted files from the shell.

The main Click group is defined here; each command group lives in its
own module and is attached through a register function.

Entry point: gpgbuffer.cli:main
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from .. import __version__
from ._common import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="gpgbuffer")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: $GPGBUFFER_CONFIG or ~/.config/gpgbuffer/config.yaml).",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: Optional[Path]):
    """gpgbuffer: edit GPG-encrypted files without plaintext on disk."""
    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


from .documents import register_document_commands
from .keys import register_key_commands

register_document_commands(main)
register_key_commands(main)

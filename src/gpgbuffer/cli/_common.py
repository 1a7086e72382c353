"""Shared helpers for the CLI command modules.

Provides the Rich console, logging setup, and the wiring that builds
the orchestrator and edit controller from configuration.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console
from rich.markup import escape

from ..config import GpgBufferConfig, load_config
from ..editor import EditSessionController
from ..orchestrator import CryptoOrchestrator
from ..prompts import ConsolePrompt
from ..tool import GpgTool

console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger("gpgbuffer.cli")

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def configure_logging(verbose: bool) -> None:
    """Send gpgbuffer logs to stderr; DEBUG with --verbose, else WARNING."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger("gpgbuffer")
    root.handlers = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    root.propagate = False


@dataclass
class Services:
    """Everything a command needs to work on a document."""

    config: GpgBufferConfig
    orchestrator: CryptoOrchestrator
    editor: EditSessionController


def build_services(config: GpgBufferConfig) -> Services:
    prompt = ConsolePrompt(err_console)
    tool = GpgTool(config.tool)
    orchestrator = CryptoOrchestrator(tool, prompt, config=config)
    editor = EditSessionController(orchestrator.resolver, prompt)
    return Services(config=config, orchestrator=orchestrator, editor=editor)


def get_services(ctx: click.Context) -> Services:
    """Load config once per invocation and build the services from it."""
    obj = ctx.ensure_object(dict)
    if "services" not in obj:
        obj["services"] = build_services(load_config(obj.get("config_path")))
    return obj["services"]


def read_document(path: Path) -> bytes:
    if not path.exists():
        fail(f"No such file: {path}")
    return path.read_bytes()


def fail(message: str) -> NoReturn:
    err_console.print(f"[bold red]{escape(message)}[/]", soft_wrap=True)
    sys.exit(1)

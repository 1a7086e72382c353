"""Document commands: inspect, cat, recipients, options, seal."""

from __future__ import annotations

import sys
from pathlib import Path

import click
from rich.markup import escape
from rich.table import Table

from ._common import Services, console, err_console, fail, get_services, logger, read_document
from ..errors import GpgBufferError
from ..models import DecryptResult, DocumentState, EditorKind, EncryptionMode


def _load(services: Services, path: Path) -> tuple[DocumentState, DecryptResult]:
    """Read and decrypt a file; exits on failure."""
    ciphertext = read_document(path)
    if not services.config.is_encrypted_path(path):
        logger.warning("%s does not have an encrypted file suffix", path)
    state = DocumentState(name=str(path))
    try:
        result = services.orchestrator.decrypt(state, ciphertext)
    except GpgBufferError as exc:
        # the prompt has already shown the notice
        logger.debug("Load of %s failed: %s", path, exc)
        sys.exit(1)
    return state, result


def _save(services: Services, path: Path, state: DocumentState, plaintext: bytes) -> None:
    """Encrypt the working copy and write it; the plaintext never hits disk."""
    try:
        ciphertext = services.orchestrator.encrypt(state, plaintext)
    except GpgBufferError as exc:
        logger.debug("Save of %s failed: %s", path, exc)
        sys.exit(1)
    path.write_bytes(ciphertext)
    services.orchestrator.restore(state)
    logger.info("Wrote %d bytes to %s", len(ciphertext), path)


def _edit(ctx: click.Context, path: Path, kind: EditorKind) -> None:
    services = get_services(ctx)
    state, result = _load(services, path)
    if result.not_encrypted:
        fail(f"{path} is not encrypted; nothing to edit")

    session = services.editor.open(state, kind)
    edited = click.edit("\n".join(session.lines) + "\n", extension=".txt")
    if edited is None:
        services.editor.discard(state)
        console.print("[dim]No changes.[/]")
        return

    services.editor.commit(session, edited.splitlines())
    _save(services, path, state, result.plaintext)
    console.print(f"[green]Re-encrypted[/] {escape(str(path))}")


def register_document_commands(main: click.Group) -> None:
    """Register the document commands."""

    file_argument = click.argument(
        "path", type=click.Path(exists=True, dir_okay=False, path_type=Path)
    )

    @main.command("inspect")
    @file_argument
    @click.pass_context
    def inspect(ctx, path):
        """Show how a file is encrypted (mode, recipients, options)."""
        services = get_services(ctx)
        state, result = _load(services, path)
        if result.not_encrypted:
            console.print(f"[yellow]{escape(str(path))} is not encrypted.[/]", soft_wrap=True)
            return

        resolver = services.orchestrator.resolver
        table = Table(title=escape(str(path)), show_header=False, box=None)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        table.add_row("Mode", state.mode.value)
        for key_id in state.recipients:
            name = resolver.resolve_id_to_name(key_id)
            table.add_row("Recipient", escape(f"{name} (ID: 0x{key_id})" if name else key_id))
        for identity in state.unknown_recipients:
            table.add_row("Unknown", f"[red]{escape(identity)}[/]")
        table.add_row("Options", escape(", ".join(state.options)) or "[dim]none[/]")
        console.print(table)

    @main.command("cat")
    @file_argument
    @click.pass_context
    def cat(ctx, path):
        """Decrypt a file to stdout."""
        services = get_services(ctx)
        _, result = _load(services, path)
        click.get_binary_stream("stdout").write(result.plaintext)

    @main.command("recipients")
    @file_argument
    @click.pass_context
    def recipients(ctx, path):
        """Edit the recipient list of a file and re-encrypt it."""
        _edit(ctx, path, EditorKind.RECIPIENTS)

    @main.command("options")
    @file_argument
    @click.pass_context
    def options(ctx, path):
        """Edit the gpg options of a file and re-encrypt it."""
        _edit(ctx, path, EditorKind.OPTIONS)

    @main.command("seal")
    @click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
    @click.option("-r", "--recipient", "recipient_ids", multiple=True,
                  help="Encrypt to this key (repeatable).")
    @click.option("--symmetric", is_flag=True, help="Encrypt with a passphrase.")
    @click.option("--armor", is_flag=True, help="ASCII-armor the output.")
    @click.option("--force", is_flag=True, help="Overwrite an existing file.")
    @click.pass_context
    def seal(ctx, path, recipient_ids, symmetric, armor, force):
        """Encrypt stdin into a new file."""
        if path.exists() and not force:
            fail(f"{path} exists; use --force to overwrite")
        if symmetric and recipient_ids:
            fail("--symmetric cannot be combined with --recipient")

        services = get_services(ctx)
        state = DocumentState(name=str(path))
        if recipient_ids:
            session = services.editor.open(state, EditorKind.RECIPIENTS)
            services.editor.commit(session, list(recipient_ids))
            # explicit recipients replace the configured defaults
            state.mode = EncryptionMode.ASYMMETRIC
        if symmetric:
            state.mode = EncryptionMode.SYMMETRIC
        if recipient_ids or armor:
            state.options = services.orchestrator.default_options(state)
            state.options_defaulted = True
            if armor:
                state.add_option("armor")

        plaintext = click.get_binary_stream("stdin").read()
        _save(services, path, state, plaintext)
        err_console.print(f"[green]Sealed[/] {escape(str(path))}")

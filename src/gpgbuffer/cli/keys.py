"""Key commands: resolve."""

from __future__ import annotations

import click
from rich.markup import escape

from ._common import console, fail, get_services


def register_key_commands(main: click.Group) -> None:
    """Register the key lookup commands."""

    @main.command("resolve")
    @click.argument("query")
    @click.pass_context
    def resolve(ctx, query):
        """Resolve a name, email or key id to a single key."""
        resolver = get_services(ctx).orchestrator.resolver
        key_id = resolver.resolve_name_to_id(query)
        if key_id is None:
            fail(f'No key found for "{query}"')
        name = resolver.resolve_id_to_name(key_id)
        console.print(f"[cyan]{escape(key_id)}[/]  {escape(name)}")

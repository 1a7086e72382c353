"""
Editable views onto a document's recipients and options.

A view is a list of text lines. The host shows it to the user, and
when the user closes it the host hands the edited lines back to
commit(). Lines starting with "GPG:" are banner text and never part of
the content.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .errors import SessionClosed
from .keys import KeyResolver
from .models import (
    DocumentState,
    EditorKind,
    EditSession,
    EncryptionMode,
    KeyCandidate,
    SessionState,
)
from .prompts import PromptProvider

logger = logging.getLogger("gpgbuffer.editor")

BANNER_PREFIX = "GPG:"
UNKNOWN_MARKER = "!"

RECIPIENTS_BANNER = [
    "GPG: ----------------------------------------------------------------------",
    "GPG: Please edit the list of recipients, one recipient per line",
    'GPG: Unknown recipients have a prepended "!"',
    'GPG: Lines beginning with "GPG:" are removed automatically',
    "GPG: Closing this view commits changes",
    "GPG: ----------------------------------------------------------------------",
]

OPTIONS_BANNER = [
    "GPG: ----------------------------------------------------------------------",
    "GPG: Please edit the list of options, one option per line",
    "GPG: Please refer to the gpg documentation for valid options",
    'GPG: Lines beginning with "GPG:" are removed automatically',
    "GPG: Closing this view commits changes",
    "GPG: ----------------------------------------------------------------------",
]

_KEY_ID_SUFFIX_RE = re.compile(r"\(ID:\s*(?:0x)?([0-9A-Fa-f]+)\)\s*$")


def clean_lines(raw_lines: list[str]) -> list[str]:
    """Drop banner and blank lines, strip markers, de-duplicate in order."""
    entries: list[str] = []
    for line in raw_lines:
        if line.lstrip().startswith(BANNER_PREFIX):
            continue
        entry = line.strip().lstrip(UNKNOWN_MARKER).strip()
        if entry and entry not in entries:
            entries.append(entry)
    return entries


def recipient_query(entry: str) -> str:
    """Key filter for a recipients-view line.

    ``"Alice <alice@example.org> (ID: 0xDEADBEEF)"`` is looked up by
    its key id; anything else is looked up as typed.
    """
    match = _KEY_ID_SUFFIX_RE.search(entry)
    if match:
        return match.group(1)
    return entry


class EditSessionController:
    """Keeps at most one open view per document and kind."""

    def __init__(self, resolver: KeyResolver, prompt: PromptProvider) -> None:
        self.resolver = resolver
        self.prompt = prompt
        self._sessions: dict[tuple[str, EditorKind], EditSession] = {}

    def active(self, document: DocumentState, kind: EditorKind) -> Optional[EditSession]:
        """The open session for a document and kind, if there is one."""
        return self._sessions.get((document.doc_id, kind))

    def open(self, document: DocumentState, kind: EditorKind) -> EditSession:
        """Open a view, or return the one already open for this pair.

        Args:
            document: The document whose lists are edited.
            kind: RECIPIENTS or OPTIONS.

        Returns:
            The EditSession; its ``lines`` hold the rendered view.
        """
        existing = self.active(document, kind)
        if existing is not None and existing.is_open:
            logger.debug("Re-activating %s view for %s", kind.value, document.doc_id)
            return existing

        if kind == EditorKind.RECIPIENTS:
            lines = self.render_recipients(document)
        else:
            lines = self.render_options(document)

        session = EditSession(document=document, kind=kind, lines=lines)
        self._sessions[(document.doc_id, kind)] = session
        logger.debug("Opened %s view for %s", kind.value, document.doc_id)
        return session

    def render_recipients(self, document: DocumentState) -> list[str]:
        lines = list(RECIPIENTS_BANNER)
        for key_id in document.recipients:
            name = self.resolver.resolve_id_to_name(key_id)
            lines.append(KeyCandidate(key_id=key_id, display_name=name).label)
        for identity in document.unknown_recipients:
            lines.append(UNKNOWN_MARKER + identity)
        return lines

    def render_options(self, document: DocumentState) -> list[str]:
        return list(OPTIONS_BANNER) + list(document.options)

    def commit(self, session: EditSession, raw_lines: list[str]) -> None:
        """Write a closed view's content back and tear the session down.

        Args:
            session: The session being closed.
            raw_lines: The view's lines as the user left them.

        Raises:
            SessionClosed: The session was already committed.
        """
        if not session.is_open:
            raise SessionClosed(
                f"{session.kind.value} view for {session.document.doc_id} is already closed"
            )

        entries = clean_lines(raw_lines)
        document = session.document
        if session.kind == EditorKind.RECIPIENTS:
            self._commit_recipients(document, entries)
        else:
            document.options = entries
            logger.info("Options for %s set to %s", document.doc_id, entries)
        document.modified = True

        session.state = SessionState.CLOSED
        session.lines = []
        self._sessions.pop((document.doc_id, session.kind), None)

    def discard(self, document: DocumentState) -> None:
        """Close every view of a document without committing."""
        for kind in EditorKind:
            session = self._sessions.pop((document.doc_id, kind), None)
            if session is not None:
                session.state = SessionState.CLOSED
                session.lines = []

    def _commit_recipients(self, document: DocumentState, entries: list[str]) -> None:
        known: list[str] = []
        unknown: list[str] = []
        for entry in entries:
            key_id = self.resolver.resolve_name_to_id(recipient_query(entry))
            if key_id is None:
                unknown.append(entry)
                self.prompt.warn(f'The recipient "{entry}" is not in your public keyring!')
            else:
                known.append(key_id)

        document.replace_recipients(known, unknown)
        document.encrypted = True

        if document.recipients and document.mode != EncryptionMode.ASYMMETRIC:
            logger.info("%s now encrypts to public keys", document.doc_id)
            document.mode = EncryptionMode.ASYMMETRIC
            options: list[str] = []
            for option in document.options:
                option = "encrypt" if option == "symmetric" else option
                if option not in options:
                    options.append(option)
            document.options = options

        logger.info(
            "Recipients for %s: %d known, %d unknown",
            document.doc_id, len(document.recipients), len(document.unknown_recipients),
        )

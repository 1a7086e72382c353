"""
Decrypt-on-load and encrypt-on-save for one document at a time.

Per document the cycle is:

    UNLOADED -> DECRYPTING -> PLAINTEXT -> ENCRYPTING -> PERSISTED -> PLAINTEXT

The encrypted bytes produced on save are only a projection for the
write; the working copy stays plaintext in memory. A document whose
input turns out not to be ciphertext has every later operation
turned into a pass-through.
"""

from __future__ import annotations

import logging
import shlex
from typing import Optional

from .config import GpgBufferConfig
from .errors import DecryptFailure, EncryptFailure, NoRecipients, ToolError
from .keys import KeyResolver
from .metadata import MetadataExtractor
from .models import (
    Classification,
    DecryptResult,
    DocumentPhase,
    DocumentState,
    EncryptionMetadata,
    EncryptionMode,
)
from .prompts import PromptProvider
from .tool import GpgTool

logger = logging.getLogger("gpgbuffer.orchestrator")

DRY_RUN_ARGS = ["--verbose", "--decrypt", "--list-only", "--dry-run", "--batch"]
DECRYPT_ARGS = ["--quiet", "--decrypt"]
ENCRYPT_ARGS = ["--quiet"]


def option_flags(options: list[str]) -> list[str]:
    """Turn option strings into gpg long options.

    ``"cipher-algo AES256"`` becomes ``["--cipher-algo", "AES256"]``.
    Nothing is validated; gpg reports bad options itself. An option
    shlex cannot parse (an unbalanced quote) is split on whitespace.
    """
    flags: list[str] = []
    for option in options:
        try:
            parts = shlex.split(option)
        except ValueError:
            parts = option.split()
        if not parts:
            continue
        flags.append("--" + parts[0])
        flags.extend(parts[1:])
    return flags


def recipient_flags(recipients: list[str]) -> list[str]:
    flags: list[str] = []
    for key_id in recipients:
        flags += ["-r", key_id]
    return flags


def option_names(options: list[str]) -> set[str]:
    """The option names in ``options``, without their arguments."""
    return {option.split(None, 1)[0] for option in options if option.strip()}


class CryptoOrchestrator:
    """Drives gpg to decrypt and re-encrypt documents.

    Args:
        tool: The gpg subprocess primitive.
        prompt: Where warnings and failure notices go.
        config: Defaults for documents that were never encrypted.
        resolver: Key lookup; built from ``tool`` if omitted.
        extractor: Dry-run classifier; built from ``resolver`` if omitted.
    """

    def __init__(
        self,
        tool: GpgTool,
        prompt: PromptProvider,
        config: Optional[GpgBufferConfig] = None,
        resolver: Optional[KeyResolver] = None,
        extractor: Optional[MetadataExtractor] = None,
    ) -> None:
        self.tool = tool
        self.prompt = prompt
        self.config = config or GpgBufferConfig()
        self.resolver = resolver or KeyResolver(tool, prompt)
        self.extractor = extractor or MetadataExtractor(self.resolver, prompt)

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def decrypt(self, state: DocumentState, ciphertext: bytes) -> DecryptResult:
        """Decrypt a document and seed its state from the ciphertext.

        Args:
            state: The document's state; populated in place.
            ciphertext: Persisted bytes of the document.

        Returns:
            DecryptResult. When the input is not ciphertext the bytes are
            returned unchanged and ``state.encrypted`` becomes False.

        Raises:
            DecryptFailure: gpg could not decrypt. ``state`` is reset to
                a never-opened document and no plaintext is returned.
            ToolError: gpg could not be started. ``state`` is reset the
                same way.
        """
        if not state.encrypted:
            return DecryptResult(
                plaintext=ciphertext,
                metadata=EncryptionMetadata(classification=Classification.NOT_ENCRYPTED),
            )

        state.phase = DocumentPhase.DECRYPTING
        try:
            probe = self.tool.run(DRY_RUN_ARGS, input=ciphertext)
            metadata = self.extractor.extract(probe.stderr)

            if metadata.classification == Classification.NOT_ENCRYPTED:
                logger.info("%s is not encrypted; crypto disabled", state.name or state.doc_id)
                state.encrypted = False
                state.phase = DocumentPhase.PLAINTEXT
                return DecryptResult(plaintext=ciphertext, metadata=metadata)

            state.mode = metadata.mode
            for option in metadata.options:
                state.add_option(option)
            for key_id in metadata.recipients:
                state.add_recipient(key_id)
            for identity in metadata.unknown_recipients:
                state.add_unknown_recipient(identity)

            result = self.tool.run(DECRYPT_ARGS, input=ciphertext)
        except ToolError as exc:
            logger.error("Decryption of %s aborted: %s", state.name or state.doc_id, exc)
            state.reset()
            self.prompt.notify(f"Could not decrypt {state.name or 'document'}: {exc}")
            raise

        if not result.ok:
            diagnostics = result.stderr.strip()
            logger.warning(
                "Decryption of %s failed (exit %d): %s",
                state.name or state.doc_id, result.returncode, diagnostics,
            )
            state.reset()
            message = f"Could not decrypt {state.name or 'document'}: {diagnostics}"
            self.prompt.notify(message)
            raise DecryptFailure(message, diagnostics, result.returncode)

        state.phase = DocumentPhase.PLAINTEXT
        state.modified = False
        logger.info(
            "Decrypted %s (%s, %d recipients)",
            state.name or state.doc_id, state.mode.value, len(state.recipients),
        )
        return DecryptResult(plaintext=result.stdout, metadata=metadata)

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def default_options(self, state: DocumentState) -> list[str]:
        """Options for a document whose option list was never set."""
        if state.mode == EncryptionMode.SYMMETRIC:
            options = ["symmetric"]
        elif state.mode == EncryptionMode.ASYMMETRIC:
            options = ["encrypt"]
        else:
            options = ["symmetric" if self.config.prefer_symmetric else "encrypt"]
        if self.config.prefer_armor:
            options.append("armor")
        return options

    def encrypt(self, state: DocumentState, plaintext: bytes) -> bytes:
        """Encrypt plaintext with the document's recipients and options.

        Args:
            state: The document's state. Recipients that no longer
                resolve are moved to ``unknown_recipients``.
            plaintext: The working copy. Never modified.

        Returns:
            The ciphertext to write, or ``plaintext`` unchanged when the
            document is not encrypted.

        Raises:
            NoRecipients: A public-key document has no usable recipient.
                gpg is not started.
            EncryptFailure: gpg exited non-zero.
            ToolError: gpg could not be started. The phase is restored.
        """
        if not state.encrypted:
            return plaintext

        previous = state.phase
        try:
            if not state.options and not state.options_defaulted:
                self._apply_defaults(state)

            self.revalidate_recipients(state)

            if state.unknown_recipients:
                self.prompt.warn(
                    "There are unknown recipients: "
                    + ", ".join(state.unknown_recipients)
                    + ". They will not be able to decrypt this document."
                )

            command = self.command_flags(state)
            if (state.requires_recipients or command == ["--encrypt"]) and not state.recipients:
                message = "There are no recipients! Edit the recipient list before saving."
                logger.error("Refusing to encrypt %s: no recipients", state.name or state.doc_id)
                self.prompt.notify(message)
                raise NoRecipients(message)

            args = (
                ENCRYPT_ARGS
                + command
                + option_flags(state.options)
                + recipient_flags(state.recipients)
            )
            state.phase = DocumentPhase.ENCRYPTING
            result = self.tool.run(args, input=plaintext)
        except ToolError as exc:
            state.phase = previous
            logger.error("Encryption of %s aborted: %s", state.name or state.doc_id, exc)
            self.prompt.notify(f"Could not encrypt {state.name or 'document'}: {exc}")
            raise

        if not result.ok:
            diagnostics = result.stderr.strip()
            state.phase = previous
            logger.warning(
                "Encryption of %s failed (exit %d): %s",
                state.name or state.doc_id, result.returncode, diagnostics,
            )
            message = f"Could not encrypt {state.name or 'document'}: {diagnostics}"
            self.prompt.notify(message)
            raise EncryptFailure(message, diagnostics, result.returncode)

        state.phase = DocumentPhase.PERSISTED
        logger.info(
            "Encrypted %s (%d bytes, %d recipients)",
            state.name or state.doc_id, len(result.stdout), len(state.recipients),
        )
        return result.stdout

    def command_flags(self, state: DocumentState) -> list[str]:
        """The gpg command to add when the options name none.

        Returns ``[]`` if ``encrypt`` or ``symmetric`` is already among
        the options; otherwise the command implied by the document's
        mode, its recipients, or the configured preference.
        """
        names = option_names(state.options)
        if "encrypt" in names or "symmetric" in names:
            return []
        if state.mode == EncryptionMode.SYMMETRIC:
            return ["--symmetric"]
        if state.mode == EncryptionMode.ASYMMETRIC or state.recipients:
            return ["--encrypt"]
        return ["--symmetric" if self.config.prefer_symmetric else "--encrypt"]

    def restore(self, state: DocumentState) -> None:
        """Mark the document as back to editable plaintext after a write."""
        if state.phase == DocumentPhase.PERSISTED:
            state.modified = False
        state.phase = DocumentPhase.PLAINTEXT

    def revalidate_recipients(self, state: DocumentState) -> None:
        """Re-resolve every recipient against the current key store."""
        known: list[str] = []
        unknown = list(state.unknown_recipients)
        for key_id in state.recipients:
            resolved = self.resolver.resolve_name_to_id(key_id)
            if resolved is None:
                logger.warning("Recipient %s no longer resolves", key_id)
                self.prompt.warn(f'The recipient "{key_id}" is not in your public keyring!')
                unknown.append(key_id)
            else:
                known.append(resolved)
        state.replace_recipients(known, unknown)

    def _apply_defaults(self, state: DocumentState) -> None:
        state.options_defaulted = True
        state.options = self.default_options(state)
        logger.debug("Default options for %s: %s", state.name or state.doc_id, state.options)

        if "encrypt" in state.options and not state.recipients:
            for identity in self.config.default_recipients:
                resolved = self.resolver.resolve_name_to_id(identity)
                if resolved is None:
                    state.add_unknown_recipient(identity)
                else:
                    state.add_recipient(resolved)

"""
Classification of ciphertext from gpg's dry-run diagnostics.

The text comes from ``gpg --verbose --decrypt --list-only --dry-run``
and is matched against a handful of known phrases:

    gpg: AES256 encrypted data          cipher of a symmetric message
    gpg: encrypted with 1 passphrase    symmetric
    gpg: public key is 1A2B3C4D         one line per public-key recipient
    gpg: armor header: Version: ...     ASCII armored

Anything else is treated as not encrypted at all.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .keys import KeyResolver
from .models import Classification, EncryptionMetadata
from .prompts import PromptProvider

logger = logging.getLogger("gpgbuffer.metadata")

SYMMETRIC_RE = re.compile(r"encrypted with \d+ passphrase")
CIPHER_RE = re.compile(r"gpg: (\S+) encrypted data")
PUBLIC_KEY_RE = re.compile(r"public key is (?:0x)?([0-9A-Fa-f]{8,16})\b")
ARMOR_MARKER = "armor header"


def extract_key_ids(diagnostics: str) -> list[str]:
    """Every ``public key is <id>`` identifier, in the order printed."""
    return [match.group(1).upper() for match in PUBLIC_KEY_RE.finditer(diagnostics)]


def extract_cipher(diagnostics: str) -> Optional[str]:
    """Cipher name reported for the data packet, without a mode suffix."""
    match = CIPHER_RE.search(diagnostics)
    if not match:
        return None
    return match.group(1).split(".")[0]


class MetadataExtractor:
    """Turns dry-run diagnostics into EncryptionMetadata.

    Public-key identifiers are resolved through the KeyResolver;
    unknown ones are kept aside and reported as warnings.
    """

    def __init__(
        self,
        resolver: KeyResolver,
        prompt: PromptProvider,
        supported_ciphers: Optional[list[str]] = None,
    ) -> None:
        self.resolver = resolver
        self.prompt = prompt
        self._supported_ciphers = supported_ciphers

    @property
    def supported_ciphers(self) -> list[str]:
        if self._supported_ciphers is None:
            self._supported_ciphers = list(self.resolver.tool.supported_ciphers)
        return self._supported_ciphers

    def extract(self, diagnostics: str) -> EncryptionMetadata:
        """Classify a ciphertext from its dry-run diagnostics.

        Args:
            diagnostics: Diagnostic text printed by the dry-run decrypt.

        Returns:
            EncryptionMetadata. Its classification is NOT_ENCRYPTED when
            neither the symmetric nor the public-key phrases are present.
        """
        if SYMMETRIC_RE.search(diagnostics):
            metadata = self._symmetric(diagnostics)
        elif PUBLIC_KEY_RE.search(diagnostics):
            metadata = self._asymmetric(diagnostics)
        else:
            logger.info("No encryption markers in diagnostics")
            return EncryptionMetadata(classification=Classification.NOT_ENCRYPTED)

        if ARMOR_MARKER in diagnostics:
            metadata.armor = True
            metadata.options.append("armor")

        logger.debug(
            "Classified as %s (options=%s)",
            metadata.classification.value, metadata.options,
        )
        return metadata

    def _symmetric(self, diagnostics: str) -> EncryptionMetadata:
        metadata = EncryptionMetadata(
            classification=Classification.SYMMETRIC,
            options=["symmetric"],
        )
        cipher = extract_cipher(diagnostics)
        if cipher is None:
            return metadata

        supported = {name.upper(): name for name in self.supported_ciphers}
        if cipher.upper() in supported:
            metadata.cipher = supported[cipher.upper()]
            metadata.options.append(f"cipher-algo {metadata.cipher}")
        else:
            message = (
                f'The cipher "{cipher}" is not known by the local gpg; '
                "using gpg defaults"
            )
            logger.warning("Unsupported cipher %s, falling back to defaults", cipher)
            self.prompt.warn(message)
        return metadata

    def _asymmetric(self, diagnostics: str) -> EncryptionMetadata:
        metadata = EncryptionMetadata(
            classification=Classification.ASYMMETRIC,
            options=["encrypt"],
            key_ids=extract_key_ids(diagnostics),
        )
        for key_id in metadata.key_ids:
            resolved = self.resolver.resolve_name_to_id(key_id)
            if resolved is not None:
                if resolved not in metadata.recipients:
                    metadata.recipients.append(resolved)
            elif key_id not in metadata.unknown_recipients:
                metadata.unknown_recipients.append(key_id)
                message = f'The recipient "{key_id}" is not in your public keyring!'
                logger.warning("Recipient %s not in public keyring", key_id)
                self.prompt.warn(message)
        return metadata

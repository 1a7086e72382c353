"""
Models for an open encrypted document and its transient edit views.

A DocumentState lives exactly as long as the document it describes.
It is the single place where recipients, options and the encryption
mode are kept between a decrypt and the next encrypt.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class EncryptionMode(str, Enum):
    """How the persisted form of a document is encrypted."""

    SYMMETRIC = "symmetric"
    ASYMMETRIC = "asymmetric"
    UNSET = "unset"


class Classification(str, Enum):
    """What a dry-run decrypt says about a candidate ciphertext."""

    SYMMETRIC = "symmetric"
    ASYMMETRIC = "asymmetric"
    NOT_ENCRYPTED = "not-encrypted"


class DocumentPhase(str, Enum):
    """Where a document is in its load/save cycle."""

    UNLOADED = "unloaded"
    DECRYPTING = "decrypting"
    PLAINTEXT = "plaintext"
    ENCRYPTING = "encrypting"
    PERSISTED = "persisted"


class EditorKind(str, Enum):
    """Which list an auxiliary edit view works on."""

    RECIPIENTS = "recipients"
    OPTIONS = "options"


class SessionState(str, Enum):
    """Lifecycle of an edit session."""

    OPEN = "open"
    CLOSED = "closed"


class DocumentState(BaseModel):
    """Encryption state of one open document.

    ``recipients`` holds key identifiers the key store knows about;
    ``unknown_recipients`` holds raw identities that failed to resolve.
    The two never share an entry and neither contains duplicates.
    """

    doc_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str = ""
    encrypted: bool = True
    mode: EncryptionMode = EncryptionMode.UNSET
    recipients: list[str] = Field(default_factory=list)
    unknown_recipients: list[str] = Field(default_factory=list)
    options: list[str] = Field(default_factory=list)
    options_defaulted: bool = False
    modified: bool = False
    phase: DocumentPhase = DocumentPhase.UNLOADED

    @property
    def requires_recipients(self) -> bool:
        """True when encrypting needs at least one public key."""
        if self.mode == EncryptionMode.ASYMMETRIC:
            return True
        if self.mode == EncryptionMode.UNSET:
            return "encrypt" in self.options and "symmetric" not in self.options
        return False

    def add_recipient(self, key_id: str) -> None:
        """Append a known recipient unless it is already present."""
        if key_id not in self.recipients:
            self.recipients.append(key_id)

    def add_unknown_recipient(self, identity: str) -> None:
        """Append an unresolvable identity unless it is already present."""
        if identity not in self.unknown_recipients and identity not in self.recipients:
            self.unknown_recipients.append(identity)

    def add_option(self, option: str) -> None:
        if option not in self.options:
            self.options.append(option)

    def replace_recipients(self, known: list[str], unknown: list[str]) -> None:
        """Replace both recipient lists wholesale, keeping them disjoint."""
        self.recipients = []
        self.unknown_recipients = []
        for key_id in known:
            self.add_recipient(key_id)
        for identity in unknown:
            self.add_unknown_recipient(identity)

    def reset(self) -> None:
        """Return to the state of a document that was never opened."""
        fresh = DocumentState(name=self.name)
        for attr in (
            "encrypted",
            "mode",
            "recipients",
            "unknown_recipients",
            "options",
            "options_defaulted",
            "modified",
            "phase",
        ):
            setattr(self, attr, getattr(fresh, attr))


class EncryptionMetadata(BaseModel):
    """Everything a dry-run decrypt revealed about a ciphertext."""

    classification: Classification
    cipher: Optional[str] = None
    armor: bool = False
    key_ids: list[str] = Field(default_factory=list)
    recipients: list[str] = Field(default_factory=list)
    unknown_recipients: list[str] = Field(default_factory=list)
    options: list[str] = Field(default_factory=list)

    @property
    def mode(self) -> EncryptionMode:
        """The document mode implied by the classification."""
        if self.classification == Classification.SYMMETRIC:
            return EncryptionMode.SYMMETRIC
        if self.classification == Classification.ASYMMETRIC:
            return EncryptionMode.ASYMMETRIC
        return EncryptionMode.UNSET


@dataclass
class DecryptResult:
    """Outcome of loading a document."""

    plaintext: bytes
    metadata: Optional[EncryptionMetadata] = None

    @property
    def not_encrypted(self) -> bool:
        """Whether the input was left alone because it is not ciphertext."""
        return (
            self.metadata is not None
            and self.metadata.classification == Classification.NOT_ENCRYPTED
        )


@dataclass
class KeyCandidate:
    """A public key from the key store and its first user id."""

    key_id: str
    display_name: str = ""

    @property
    def label(self) -> str:
        """Human-readable line used in prompts and edit views."""
        if self.display_name:
            return f"{self.display_name} (ID: 0x{self.key_id})"
        return self.key_id


@dataclass
class EditSession:
    """One auxiliary view onto a document's recipients or options."""

    document: DocumentState
    kind: EditorKind
    lines: list[str] = field(default_factory=list)
    state: SessionState = SessionState.OPEN

    @property
    def is_open(self) -> bool:
        return self.state == SessionState.OPEN

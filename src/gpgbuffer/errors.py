"""Exceptions raised by the crypto orchestrator and edit sessions."""

from __future__ import annotations

from typing import Optional


class GpgBufferError(Exception):
    """Base class for every gpgbuffer failure."""


class ToolError(GpgBufferError):
    """Raised when the external gpg executable cannot be started."""


class _ToolFailure(GpgBufferError):
    """A gpg invocation that exited non-zero."""

    def __init__(
        self,
        message: str,
        diagnostics: str = "",
        returncode: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.diagnostics = diagnostics
        self.returncode = returncode


class DecryptFailure(_ToolFailure):
    """Raised when decryption fails; the document is reset to unopened."""


class EncryptFailure(_ToolFailure):
    """Raised when encryption fails; the working plaintext is untouched."""


class NoRecipients(GpgBufferError):
    """Raised when a public-key document has no usable recipients left."""


class SessionClosed(GpgBufferError):
    """Raised when committing an edit session that is no longer open."""

"""Shared test fixtures for gpgbuffer.

FakeGpg stands in for the gpg executable: it answers by command shape
and records every invocation. ScriptedPrompt replays canned answers.
"""

from __future__ import annotations

from typing import Optional

import pytest

from gpgbuffer.config import GpgBufferConfig
from gpgbuffer.errors import ToolError
from gpgbuffer.editor import EditSessionController
from gpgbuffer.keys import KeyResolver
from gpgbuffer.metadata import MetadataExtractor
from gpgbuffer.orchestrator import CryptoOrchestrator
from gpgbuffer.tool import GpgTool, ToolResult

ALICE_ID = "AAAA1111BBBB2222"
BOB_ID = "CCCC3333DDDD4444"
CAROL_ID = "EEEE5555FFFF6666"

VERSION_OUTPUT = """\
gpg (GnuPG) 2.2.40
libgcrypt 1.10.1
Home: /home/test/.gnupg
Supported algorithms:
Pubkey: RSA, ELG, DSA, ECDH, ECDSA, EDDSA
Cipher: IDEA, 3DES, CAST5, BLOWFISH, AES, AES192, AES256, TWOFISH,
        CAMELLIA128, CAMELLIA192, CAMELLIA256
Hash: SHA1, RIPEMD160, SHA256, SHA384, SHA512, SHA224
Compression: Uncompressed, ZIP, ZLIB, BZIP2
"""

NOT_OPENPGP = "gpg: no valid OpenPGP data found.\ngpg: decrypt_message failed: Unknown system error\n"


def pub_record(key_id: str, uid: str, validity: str = "u", caps: str = "scESC") -> str:
    """Colon listing for one key with a single uid and subkey."""
    return (
        f"pub:{validity}:2048:1:{key_id}:1500000000:::u:::{caps}:\n"
        f"fpr:::::::::0000000000000000000000000{key_id}:\n"
        f"uid:{validity}::::1500000000::0123456789ABCDEF::{uid}::::::::::0:\n"
        f"sub:{validity}:2048:1:{key_id[::-1]}:1500000000::::::e:\n"
    )


ALICE = pub_record(ALICE_ID, "Alice Example <alice@example.org>")
BOB = pub_record(BOB_ID, "Bob Example <bob@example.org>")
CAROL = pub_record(CAROL_ID, "Carol Example <carol@example.org>")


def _call_kind(args: list[str]) -> str:
    for flag in ("--version", "--list-keys", "--dry-run", "--decrypt"):
        if flag in args:
            return flag[2:]
    return "encrypt"


class FakeGpg(GpgTool):
    """GpgTool whose run() answers from canned results."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple[list[str], Optional[bytes]]] = []
        self.keys: dict[str, str] = {}
        self.version = VERSION_OUTPUT
        self.dry_run = ToolResult(returncode=2, stderr=NOT_OPENPGP)
        self.decrypt_result = ToolResult(returncode=0, stdout=b"secret text\n")
        self.encrypt_result = ToolResult(returncode=0, stdout=b"-----BEGIN PGP MESSAGE-----\n")
        # call kinds that raise ToolError, as if gpg could not be started
        self.broken: set[str] = set()

    def run(self, args: list[str], input: Optional[bytes] = None) -> ToolResult:
        self.calls.append((list(args), input))
        kind = _call_kind(args)
        if kind in self.broken:
            raise ToolError("Cannot run gpg: [Errno 2] No such file or directory: 'gpg'")
        if kind == "version":
            return ToolResult(returncode=0, stdout=self.version.encode())
        if kind == "list-keys":
            listing = self.keys.get(args[-1])
            if listing is None:
                return ToolResult(returncode=2, stderr="gpg: error reading key: No public key\n")
            return ToolResult(returncode=0, stdout=listing.encode())
        if kind == "dry-run":
            return self.dry_run
        if kind == "decrypt":
            return self.decrypt_result
        return self.encrypt_result

    def calls_with(self, flag: str) -> list[list[str]]:
        """Argument lists of every call that included ``flag``."""
        return [args for args, _ in self.calls if flag in args]

    @property
    def encrypt_calls(self) -> list[list[str]]:
        return [
            args for args, _ in self.calls
            if not {"--version", "--list-keys", "--decrypt"} & set(args)
        ]


class ScriptedPrompt:
    """PromptProvider that replays answers and records everything shown."""

    def __init__(self, answers: Optional[list[str]] = None) -> None:
        self.answers = list(answers or [])
        self.shown: list[str] = []
        self.asked: list[str] = []
        self.warnings: list[str] = []
        self.notices: list[str] = []

    def show(self, lines: list[str]) -> None:
        self.shown.extend(lines)

    def ask(self, message: str) -> str:
        self.asked.append(message)
        if self.answers:
            return self.answers.pop(0)
        return "0"

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def notify(self, message: str) -> None:
        self.notices.append(message)


@pytest.fixture
def fake_gpg() -> FakeGpg:
    """A fake gpg that knows Alice and Bob by name, email and key id."""
    gpg = FakeGpg()
    gpg.keys.update({
        "alice": ALICE,
        "alice@example.org": ALICE,
        ALICE_ID: ALICE,
        ALICE_ID[-8:]: ALICE,
        "bob": BOB,
        BOB_ID: BOB,
        BOB_ID[-8:]: BOB,
        "example.org": ALICE + BOB + CAROL,
    })
    return gpg


@pytest.fixture
def prompt() -> ScriptedPrompt:
    return ScriptedPrompt()


@pytest.fixture
def resolver(fake_gpg: FakeGpg, prompt: ScriptedPrompt) -> KeyResolver:
    return KeyResolver(fake_gpg, prompt)


@pytest.fixture
def extractor(resolver: KeyResolver, prompt: ScriptedPrompt) -> MetadataExtractor:
    return MetadataExtractor(resolver, prompt)


@pytest.fixture
def config() -> GpgBufferConfig:
    return GpgBufferConfig()


@pytest.fixture
def orchestrator(
    fake_gpg: FakeGpg,
    prompt: ScriptedPrompt,
    config: GpgBufferConfig,
    resolver: KeyResolver,
    extractor: MetadataExtractor,
) -> CryptoOrchestrator:
    return CryptoOrchestrator(
        fake_gpg, prompt, config=config, resolver=resolver, extractor=extractor
    )


@pytest.fixture
def controller(resolver: KeyResolver, prompt: ScriptedPrompt) -> EditSessionController:
    return EditSessionController(resolver, prompt)

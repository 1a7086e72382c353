"""
The gpg subprocess primitive.

Every call to the external tool goes through GpgTool.run(). Settings
that would otherwise be process-wide (executable, homedir, environment)
travel with the ToolConfig instead.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Optional

from .config import ToolConfig
from .errors import ToolError

logger = logging.getLogger("gpgbuffer.tool")

ALGORITHM_LABELS = ("pubkey", "cipher", "hash", "compression")


@dataclass
class ToolResult:
    """Captured outcome of one gpg invocation."""

    returncode: int
    stdout: bytes = b""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def parse_algorithms(version_output: str) -> dict[str, list[str]]:
    """Parse the supported-algorithm block of ``gpg --version``.

    Lines look like ``Cipher: IDEA, 3DES, AES,`` and may wrap onto
    indented continuation lines.

    Args:
        version_output: Full text printed by ``gpg --version``.

    Returns:
        Map of lower-cased label (pubkey, cipher, hash, compression)
        to the advertised names, in the order gpg lists them.
    """
    algorithms: dict[str, list[str]] = {}
    current: Optional[str] = None

    for line in version_output.splitlines():
        label, sep, rest = line.partition(":")
        key = label.strip().lower()
        if sep and not line[:1].isspace() and key in ALGORITHM_LABELS:
            current = key
            algorithms[current] = []
        elif current and line[:1].isspace() and line.strip():
            rest = line
        else:
            current = None
            continue
        algorithms[current].extend(
            name.strip() for name in rest.split(",") if name.strip()
        )

    return algorithms


class GpgTool:
    """Runs the external gpg executable with a fixed ToolConfig."""

    def __init__(self, config: Optional[ToolConfig] = None) -> None:
        self.config = config or ToolConfig()
        self._algorithms: Optional[dict[str, list[str]]] = None

    def command(self, args: list[str]) -> list[str]:
        """Build the full argv for a gpg invocation."""
        cmd = [self.config.executable]
        if self.config.homedir:
            cmd += ["--homedir", str(self.config.homedir.expanduser())]
        cmd += self.config.extra_args
        cmd += args
        return cmd

    def environment(self) -> Optional[dict[str, str]]:
        """Child environment, or None to inherit the parent's unchanged."""
        if not self.config.env:
            return None
        env = os.environ.copy()
        env.update(self.config.env)
        return env

    def run(self, args: list[str], input: Optional[bytes] = None) -> ToolResult:
        """Run gpg and wait for it to exit.

        Args:
            args: Arguments after the executable and configured extras.
            input: Bytes fed to gpg's standard input.

        Returns:
            ToolResult with raw stdout and decoded stderr.

        Raises:
            ToolError: If the executable cannot be started.
        """
        cmd = self.command(args)
        logger.debug("Running %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                input=input if input is not None else b"",
                capture_output=True,
                check=False,
                env=self.environment(),
            )
        except OSError as exc:
            raise ToolError(f"Cannot run {self.config.executable}: {exc}") from exc

        stderr = proc.stderr.decode("utf-8", errors="replace") if proc.stderr else ""
        logger.debug("%s exited with %d", self.config.executable, proc.returncode)
        return ToolResult(returncode=proc.returncode, stdout=proc.stdout or b"", stderr=stderr)

    def supported_algorithms(self) -> dict[str, list[str]]:
        """Algorithms advertised by ``gpg --version``, queried once."""
        if self._algorithms is None:
            result = self.run(["--version"])
            if not result.ok:
                logger.warning("gpg --version failed: %s", result.stderr.strip())
            self._algorithms = parse_algorithms(
                result.stdout.decode("utf-8", errors="replace")
            )
        return self._algorithms

    @property
    def supported_ciphers(self) -> list[str]:
        return self.supported_algorithms().get("cipher", [])

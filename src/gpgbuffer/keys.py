"""
Key lookup against the gpg key store.

Converts between human-readable identities (names, emails, short key
ids) and the stable key identifiers gpg prints in its colon listing.

Colon records used here:
    pub:<validity>:<len>:<algo>:<keyid>:<created>:<expires>:...:<caps>:
    uid:<validity>::::<created>::<hash>::<user id>:...

Only the first uid after each pub is used as its display name.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .models import KeyCandidate
from .prompts import PromptProvider
from .tool import GpgTool

logger = logging.getLogger("gpgbuffer.keys")

# Validity letters for keys gpg will refuse to encrypt to.
UNUSABLE_VALIDITY = frozenset("ire")

_ESCAPE_RE = re.compile(rb"\\x([0-9a-fA-F]{2})")


def _unescape(value: str) -> str:
    """Decode gpg's ``\\xNN`` escapes in a colon-listing field."""
    raw = _ESCAPE_RE.sub(
        lambda m: bytes([int(m.group(1), 16)]), value.encode("utf-8")
    )
    return raw.decode("utf-8", errors="replace")


def _is_usable(fields: list[str]) -> bool:
    validity = fields[1] if len(fields) > 1 else ""
    capabilities = fields[11] if len(fields) > 11 else ""
    return validity not in UNUSABLE_VALIDITY and "D" not in capabilities


def parse_key_listing(output: str, usable_only: bool = True) -> list[KeyCandidate]:
    """Collect every pub record and the first uid that follows it.

    Args:
        output: Text of ``gpg --with-colons --list-keys``.
        usable_only: Skip revoked, expired, invalid and disabled keys.

    Returns:
        Candidates in listing order.
    """
    candidates: list[KeyCandidate] = []
    current: Optional[KeyCandidate] = None
    uid_seen = False

    for line in output.splitlines():
        fields = line.split(":")
        record = fields[0]
        if record == "pub":
            if len(fields) < 5 or (usable_only and not _is_usable(fields)):
                current = None
                continue
            current = KeyCandidate(key_id=fields[4])
            candidates.append(current)
            uid_seen = False
        elif record == "uid" and current is not None and not uid_seen:
            uid_seen = True
            if len(fields) > 9:
                current.display_name = _unescape(fields[9])

    return candidates


def choice_index(answer: str, count: int) -> int:
    """Map a typed answer to a candidate index.

    Non-numeric and out-of-range answers fall back to 0. This mirrors a
    lookup-with-default rather than validating the answer; callers that
    need strict selection should validate before calling.
    """
    try:
        index = int(answer.strip())
    except ValueError:
        return 0
    if 0 <= index < count:
        return index
    return 0


class KeyResolver:
    """Resolves identities through ``gpg --list-keys``."""

    def __init__(self, tool: GpgTool, prompt: PromptProvider) -> None:
        self.tool = tool
        self.prompt = prompt

    def list_keys(self, query: str, usable_only: bool = True) -> list[KeyCandidate]:
        """Run a filtered colon listing and parse it.

        A non-zero exit from gpg here usually just means nothing matched,
        so it is logged and treated as an empty listing.
        """
        result = self.tool.run(
            ["--quiet", "--with-colons", "--fixed-list-mode", "--list-keys", query]
        )
        if not result.ok:
            logger.debug(
                "Key listing for %r exited %d: %s",
                query, result.returncode, result.stderr.strip(),
            )
        return parse_key_listing(
            result.stdout.decode("utf-8", errors="replace"), usable_only=usable_only
        )

    def resolve_name_to_id(self, query: str) -> Optional[str]:
        """Resolve a name, email or key id to a single key identifier.

        Args:
            query: Anything gpg accepts as a key filter.

        Returns:
            The key identifier, or None when the key store has no match.
            Several matches are settled by asking the user.
        """
        query = query.strip()
        if not query:
            return None

        candidates = self.list_keys(query)
        if not candidates:
            logger.debug("No key found for %r", query)
            return None
        if len(candidates) == 1:
            return candidates[0].key_id
        return self._choose(query, candidates)

    def resolve_id_to_name(self, key_id: str) -> str:
        """Return the first user id of a key, or "" when there is none."""
        candidates = self.list_keys(key_id, usable_only=False)
        if not candidates:
            return ""
        return candidates[0].display_name

    def _choose(self, query: str, candidates: list[KeyCandidate]) -> str:
        logger.info("%r matches %d keys, asking", query, len(candidates))
        lines = [f'The name "{query}" is ambiguous. Please select the correct key:']
        lines += [f"{i}: {candidate.label}" for i, candidate in enumerate(candidates)]
        self.prompt.show(lines)

        answer = ""
        while not answer.strip():
            answer = self.prompt.ask("Enter number")
        return candidates[choice_index(answer, len(candidates))].key_id

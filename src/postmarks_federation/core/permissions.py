from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

HANDLE_PATTERN = re.compile(r"^@([^@]+)@(.+)$")


@dataclass(frozen=True)
class HandlePattern:
    """A parsed ``@user@domain`` blocklist entry."""

    username: str
    domain: str

    @classmethod
    def parse(cls, handle: str) -> Optional["HandlePattern"]:
        match = HANDLE_PATTERN.match(handle.strip())
        if match is None:
            return None
        return cls(username=match.group(1), domain=match.group(2))

    def matches(self, actor_uri: str) -> bool:
        """True when ``actor_uri`` names this user on this domain.

        The host must equal the pattern's domain and the last path segment of the
        actor URI must equal the username, both compared case-insensitively.
        """
        parsed = urlparse(actor_uri)
        if not parsed.netloc:
            return False
        segments = [segment for segment in parsed.path.split("/") if segment]
        if not segments:
            return False
        return (
            parsed.netloc.lower() == self.domain.lower()
            and segments[-1].lower() == self.username.lower()
        )


def parse_blocklist(*lists: Optional[str]) -> Tuple[HandlePattern, ...]:
    """Combine newline-separated blocklists, dropping malformed entries."""
    patterns: List[HandlePattern] = []
    for raw in lists:
        if not raw:
            continue
        for line in raw.split("\n"):
            if not line.strip():
                continue
            pattern = HandlePattern.parse(line)
            if pattern is None:
                logger.warning("Ignoring malformed blocklist entry %r", line)
                continue
            patterns.append(pattern)
    return tuple(patterns)


def is_blocked(actor_uri: str, blocklist: Iterable[HandlePattern]) -> bool:
    return any(pattern.matches(actor_uri) for pattern in blocklist)


def filter_recipients(
    followers: Sequence[str], blocklist: Sequence[HandlePattern]
) -> List[str]:
    """Followers matching no blocklist pattern, in their stored order."""
    return [actor for actor in followers if not is_blocked(actor, blocklist)]


__all__ = ["HandlePattern", "filter_recipients", "is_blocked", "parse_blocklist"]

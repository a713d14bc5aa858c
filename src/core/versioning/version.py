"""API Version Values.

Provides the value types shared by the engine:
- Normalized version tokens (2, 2.1, 2024-06-01)
- Request channels a token can arrive on
- Lifecycle states and registry descriptors
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Pattern, Tuple, Union

# Integer / major.minor or ISO date, optionally prefixed with v/V
DEFAULT_TOKEN_PATTERN = r"^[vV]?(\d+(\.\d+)?|\d{4}-\d{2}-\d{2})$"

_TOKEN_RE = re.compile(DEFAULT_TOKEN_PATTERN)


class Channel(Enum):
    """Where a version token was found."""
    PATH = "path"  # /v2/users
    HEADER = "header"  # API-Version: 2
    QUERY = "query"  # ?version=2
    MEDIA_TYPE = "media_type"  # Accept: application/vnd.company.v2+json
    DEFAULT = "default"  # No channel carried a token, default policy applied

    @classmethod
    def parse(cls, value: Union[str, "Channel"]) -> "Channel":
        """Parse a channel name; accepts hyphenated or camel spellings."""
        if isinstance(value, Channel):
            return value
        key = value.strip().lower().replace("-", "_")
        aliases = {"mediatype": "media_type", "query_param": "query", "queryparam": "query"}
        key = aliases.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown version channel: {value}") from None


REQUEST_CHANNELS: Tuple[Channel, ...] = (
    Channel.PATH,
    Channel.HEADER,
    Channel.MEDIA_TYPE,
    Channel.QUERY,
)


@dataclass(frozen=True)
class VersionToken:
    """Normalized, opaque version identifier.

    Equality is exact string equality after normalization, so ``v2`` and
    ``2`` are the same token but ``2`` and ``2.0`` are not.
    """
    value: str

    @classmethod
    def parse(
        cls,
        raw: Union[str, "VersionToken"],
        pattern: Optional[Pattern[str]] = None,
    ) -> "VersionToken":
        """Normalize a raw token.

        Args:
            raw: Token text such as "v2", " 2.1 " or "2024-06-01".
            pattern: Compiled validation pattern; defaults to DEFAULT_TOKEN_PATTERN.

        Returns:
            VersionToken instance.

        Raises:
            ValueError: If the token does not match the pattern.
        """
        if isinstance(raw, VersionToken):
            return raw
        if raw is None:
            raise ValueError("Version token is empty")

        text = str(raw).strip()
        if not (pattern or _TOKEN_RE).match(text):
            raise ValueError(f"Invalid version token: {raw!r}")

        if text[:1] in ("v", "V"):
            text = text[1:]
        return cls(text)

    @property
    def sort_key(self) -> Tuple:
        # Numeric segments compare as integers, anything else lexically after them
        parts = re.split(r"[.\-]", self.value)
        return tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in parts)

    def __lt__(self, other: "VersionToken") -> bool:
        if not isinstance(other, VersionToken):
            return NotImplemented
        return self.sort_key < other.sort_key

    def __str__(self) -> str:
        return self.value


def normalize_token(
    token: Union[str, VersionToken],
    pattern: Optional[Pattern[str]] = None,
) -> VersionToken:
    """Normalize a raw token or a directly constructed VersionToken.

    Tokens that are already normalized are returned unchanged, so a pattern
    requiring the "v" prefix still accepts them.
    """
    if isinstance(token, VersionToken):
        if token.value[:1] not in ("v", "V"):
            return token
        token = token.value
    return VersionToken.parse(token, pattern)


class LifecycleState(Enum):
    """Administrative status of a version. Transitions only move forward."""
    ACTIVE = "active"
    DEPRECATED = "deprecated"
    SUNSET = "sunset"

    @property
    def rank(self) -> int:
        return _STATE_RANK[self]

    def can_transition_to(self, target: "LifecycleState") -> bool:
        return target.rank > self.rank


_STATE_RANK = {
    LifecycleState.ACTIVE: 0,
    LifecycleState.DEPRECATED: 1,
    LifecycleState.SUNSET: 2,
}


@dataclass(frozen=True)
class VersionDescriptor:
    """One registry entry. Replaced, never mutated, on transition."""
    token: VersionToken
    state: LifecycleState = LifecycleState.ACTIVE
    sunset_at: Optional[datetime] = None
    successor_link: Optional[str] = None
    released_at: Optional[datetime] = None
    changelog_url: Optional[str] = None

    @property
    def is_deprecated(self) -> bool:
        return self.state in (LifecycleState.DEPRECATED, LifecycleState.SUNSET)

    @property
    def is_sunset(self) -> bool:
        return self.state == LifecycleState.SUNSET

    def transition(self, state: LifecycleState, **changes) -> "VersionDescriptor":
        return replace(self, state=state, **changes)

    def to_dict(self) -> dict:
        return {
            "version": self.token.value,
            "state": self.state.value,
            "sunset_at": self.sunset_at.isoformat() if self.sunset_at else None,
            "successor_link": self.successor_link,
            "released_at": self.released_at.isoformat() if self.released_at else None,
            "changelog_url": self.changelog_url,
        }

    def __str__(self) -> str:
        status = ""
        if self.is_sunset:
            status = " (sunset)"
        elif self.is_deprecated:
            status = " (deprecated)"
        return f"v{self.token}{status}"

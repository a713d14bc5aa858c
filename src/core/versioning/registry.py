"""API Version Registry.

Source of truth for the versions a service supports:
- Append-only registration
- Forward-only lifecycle transitions (active -> deprecated -> sunset)
- Explicit retirement for forced cutover
- Advisory policy checks that never block an operation

Reads go through an immutable snapshot that writers swap atomically, so the
request path never takes a lock.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Pattern, Union

import yaml

from src.core.versioning.errors import ConfigurationError, RegistryConflictError
from src.core.versioning.version import (
    LifecycleState,
    VersionDescriptor,
    VersionToken,
    normalize_token,
)

logger = logging.getLogger(__name__)

TokenLike = Union[str, VersionToken]
PatternLike = Union[str, Pattern[str]]

DEFAULT_MAX_ACTIVE_VERSIONS = 3
# Sunset timestamps further out than this are logged as suspicious
SUNSET_IMMINENCE_WINDOW = timedelta(days=30)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class RegistryAdvisory:
    """Non-blocking policy signal exposed to callers."""
    code: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"code": self.code, "message": self.message}


class ActiveVersionCeiling:
    """Advisory check for the "2-3 active major versions" guidance."""

    code = "active_version_ceiling"

    def __init__(self, max_active: int = DEFAULT_MAX_ACTIVE_VERSIONS):
        self.max_active = max_active

    def check(self, descriptors: Iterable[VersionDescriptor]) -> List[RegistryAdvisory]:
        active = [d for d in descriptors if d.state == LifecycleState.ACTIVE]
        if len(active) <= self.max_active:
            return []
        tokens = ", ".join(str(d.token) for d in sorted(active, key=lambda d: d.token))
        return [
            RegistryAdvisory(
                code=self.code,
                message=(
                    f"{len(active)} active versions ({tokens}) exceed the "
                    f"recommended maximum of {self.max_active}"
                ),
            )
        ]


class VersionRegistry:
    """Registry of supported API versions."""

    def __init__(
        self,
        default_version: Optional[TokenLike] = None,
        max_active_versions: int = DEFAULT_MAX_ACTIVE_VERSIONS,
        policies: Optional[List[Any]] = None,
        token_pattern: Optional[PatternLike] = None,
    ):
        self._write_lock = threading.Lock()
        try:
            self._token_re = re.compile(token_pattern) if token_pattern is not None else None
        except re.error as e:
            raise ConfigurationError(f"Invalid version pattern: {e}") from e
        self._entries: Mapping[VersionToken, VersionDescriptor] = MappingProxyType({})
        self._retired: FrozenSet[VersionToken] = frozenset()
        self._default: Optional[VersionToken] = None
        if default_version is not None:
            try:
                self._default = self.parse_token(default_version)
            except ValueError as e:
                raise ConfigurationError(f"Invalid default version: {e}") from e
        self._policies = policies if policies is not None else [
            ActiveVersionCeiling(max_active_versions)
        ]

    @property
    def token_pattern(self) -> Optional[Pattern[str]]:
        return self._token_re

    def parse_token(self, token: TokenLike) -> VersionToken:
        """Normalize a token with the registry's validation pattern.

        Raises:
            ValueError: If the token does not match the pattern.
        """
        return normalize_token(token, self._token_re)

    # ------------------------------------------------------------------ writes

    def _publish(self, entries: Dict[VersionToken, VersionDescriptor]) -> None:
        self._entries = MappingProxyType(entries)

    def register(self, descriptor: VersionDescriptor) -> VersionDescriptor:
        """Register a new version.

        Raises:
            RegistryConflictError: If the token is already registered or was retired.
            ValueError: If the descriptor token does not match the token pattern.
        """
        token = self.parse_token(descriptor.token)
        if token != descriptor.token:
            descriptor = replace(descriptor, token=token)
        with self._write_lock:
            if token in self._entries:
                raise RegistryConflictError(f"API version {token} is already registered")
            if self.is_retired(token):
                raise RegistryConflictError(
                    f"API version {token} was retired and cannot be registered again"
                )
            if descriptor.state == LifecycleState.SUNSET and descriptor.sunset_at is None:
                descriptor = descriptor.transition(LifecycleState.SUNSET, sunset_at=_utcnow())
            entries = dict(self._entries)
            entries[token] = descriptor
            self._publish(entries)

        logger.info(
            f"Registered API version {token} ({descriptor.state.value})",
            extra={"version": token.value, "state": descriptor.state.value},
        )
        if descriptor.state == LifecycleState.DEPRECATED and not descriptor.successor_link:
            self._warn_missing_successor(token)
        self._log_advisories()
        return descriptor

    def deprecate(
        self,
        token: TokenLike,
        successor_link: Optional[str] = None,
    ) -> VersionDescriptor:
        """Mark a version as deprecated.

        Deprecating an already deprecated version updates its successor link.

        Raises:
            RegistryConflictError: If the token is unknown or already sunset.
        """
        token = self.parse_token(token)
        with self._write_lock:
            current = self._require(token, "deprecate")
            if (
                current.state != LifecycleState.DEPRECATED
                and not current.state.can_transition_to(LifecycleState.DEPRECATED)
            ):
                raise RegistryConflictError(
                    f"API version {token} is already {current.state.value} and cannot be deprecated"
                )
            updated = current.transition(
                LifecycleState.DEPRECATED,
                successor_link=successor_link or current.successor_link,
            )
            entries = dict(self._entries)
            entries[token] = updated
            self._publish(entries)

        logger.warning(
            f"API version {token} deprecated",
            extra={"version": token.value, "state": updated.state.value},
        )
        if not updated.successor_link:
            self._warn_missing_successor(token)
        return updated

    def sunset(
        self,
        token: TokenLike,
        at: Optional[datetime] = None,
        successor_link: Optional[str] = None,
    ) -> VersionDescriptor:
        """Mark a version as sunset at the given time (default: now).

        A sunset version is still served; use retire() for forced cutover.

        Raises:
            RegistryConflictError: If the token is unknown or already sunset.
        """
        token = self.parse_token(token)
        sunset_at = _as_utc(at) if at is not None else _utcnow()
        with self._write_lock:
            current = self._require(token, "sunset")
            if not current.state.can_transition_to(LifecycleState.SUNSET):
                raise RegistryConflictError(f"API version {token} is already sunset")
            updated = current.transition(
                LifecycleState.SUNSET,
                sunset_at=sunset_at,
                successor_link=successor_link or current.successor_link,
            )
            entries = dict(self._entries)
            entries[token] = updated
            self._publish(entries)

        logger.warning(
            f"API version {token} sunset at {sunset_at.isoformat()}",
            extra={"version": token.value, "state": updated.state.value},
        )
        if sunset_at - _utcnow() > SUNSET_IMMINENCE_WINDOW:
            logger.warning(
                f"API version {token} marked sunset with a distant timestamp; "
                f"consider deprecating it until the date approaches",
                extra={"version": token.value},
            )
        if not updated.successor_link:
            self._warn_missing_successor(token)
        return updated

    def retire(self, token: TokenLike) -> VersionDescriptor:
        """Remove a version from service. The token can never be registered again.

        Raises:
            RegistryConflictError: If the token is unknown or is the default version.
        """
        token = self.parse_token(token)
        with self._write_lock:
            current = self._require(token, "retire")
            if token == self._default:
                raise RegistryConflictError(
                    f"API version {token} is the default version and cannot be retired"
                )
            entries = dict(self._entries)
            del entries[token]
            self._retired = self._retired | {token}
            self._publish(entries)

        logger.info(f"API version {token} retired", extra={"version": token.value})
        return current

    def set_default(self, token: TokenLike) -> VersionToken:
        """Change the default version. The token must be registered."""
        token = self.parse_token(token)
        with self._write_lock:
            self._require(token, "set as default")
            self._default = token
        logger.info(f"Default API version set to {token}", extra={"version": token.value})
        return token

    def _require(self, token: VersionToken, action: str) -> VersionDescriptor:
        descriptor = self._entries.get(token)
        if descriptor is None:
            raise RegistryConflictError(f"Cannot {action} unknown API version {token}")
        return descriptor

    def _warn_missing_successor(self, token: VersionToken) -> None:
        logger.warning(
            f"API version {token} is deprecated without a successor link",
            extra={"version": token.value},
        )

    def _log_advisories(self) -> None:
        for advisory in self.advisories():
            logger.warning(advisory.message, extra={"advisory": advisory.code})

    # ------------------------------------------------------------------- reads

    def get(self, token: TokenLike) -> Optional[VersionDescriptor]:
        """Get a descriptor, or None when the token is unknown or malformed."""
        try:
            token = self.parse_token(token)
        except ValueError:
            return None
        return self._entries.get(token)

    def __contains__(self, token: object) -> bool:
        if not isinstance(token, (str, VersionToken)):
            return False
        return self.get(token) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def list_all(self) -> List[VersionDescriptor]:
        """All served versions in ascending order."""
        return sorted(self._entries.values(), key=lambda d: d.token)

    def list_active(self) -> List[VersionDescriptor]:
        """Versions still supported (active or deprecated) in ascending order."""
        return [d for d in self.list_all() if d.state != LifecycleState.SUNSET]

    def supported_tokens(self) -> List[str]:
        return [d.token.value for d in self.list_active()]

    def default_version(self) -> Optional[VersionToken]:
        return self._default

    def is_retired(self, token: TokenLike) -> bool:
        return self.parse_token(token) in self._retired

    def advisories(self) -> List[RegistryAdvisory]:
        """Run the advisory policies against the current snapshot."""
        descriptors = list(self._entries.values())
        results: List[RegistryAdvisory] = []
        for policy in self._policies:
            results.extend(policy.check(descriptors))
        return results


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    return _as_utc(datetime.fromisoformat(str(value)))


def create_version_registry(
    versions: List[Dict[str, Any]],
    default_version: Optional[TokenLike] = None,
    max_active_versions: int = DEFAULT_MAX_ACTIVE_VERSIONS,
    token_pattern: Optional[PatternLike] = None,
) -> VersionRegistry:
    """Factory function to create a configured registry."""
    registry = VersionRegistry(
        default_version=default_version,
        max_active_versions=max_active_versions,
        token_pattern=token_pattern,
    )

    for v in versions:
        if "version" not in v:
            raise ConfigurationError(f"Registry entry without a version: {v}")
        try:
            token = registry.parse_token(str(v["version"]))
            state = LifecycleState(v.get("state", v.get("status", "active")))
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        registry.register(
            VersionDescriptor(
                token=token,
                state=state,
                sunset_at=_parse_datetime(v.get("sunset_at")),
                successor_link=v.get("successor_link"),
                released_at=_parse_datetime(v.get("released_at")),
                changelog_url=v.get("changelog_url"),
            )
        )

    return registry


def load_registry_file(
    path: Union[str, Path],
    default_version: Optional[TokenLike] = None,
    max_active_versions: int = DEFAULT_MAX_ACTIVE_VERSIONS,
    token_pattern: Optional[PatternLike] = None,
) -> VersionRegistry:
    """Load a registry from a YAML file.

    The file holds a ``versions`` list and an optional ``default`` key, which
    wins over the ``default_version`` argument.
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}

    if not isinstance(data, dict) or not isinstance(data.get("versions", []), list):
        raise ConfigurationError(f"Invalid registry file {path}: expected a 'versions' list")

    default = data.get("default", default_version)
    registry = create_version_registry(
        data.get("versions", []),
        default_version=str(default) if default is not None else None,
        max_active_versions=max_active_versions,
        token_pattern=token_pattern,
    )
    logger.info(f"Loaded {len(registry)} API versions from {path}")
    return registry


__all__ = [
    "RegistryAdvisory",
    "ActiveVersionCeiling",
    "VersionRegistry",
    "create_version_registry",
    "load_registry_file",
]

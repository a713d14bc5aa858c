"""Version engine configuration.

VersioningConfig is the validated, immutable view of the runtime settings
the extractor, resolver and pipeline consume.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional, Pattern, Sequence, Tuple, Union

from src.core.versioning.errors import ConfigurationError
from src.core.versioning.version import (
    DEFAULT_TOKEN_PATTERN,
    REQUEST_CHANNELS,
    Channel,
    VersionToken,
)

DEFAULT_PRECEDENCE: Tuple[Channel, ...] = (
    Channel.PATH,
    Channel.HEADER,
    Channel.MEDIA_TYPE,
    Channel.QUERY,
)

# Vendor media type (application/vnd.company.v2+json) or a version parameter
# (application/json; version=2). The first non-empty group is the token.
# A digit-led "v" segment wins over vendor subtree names such as "verify";
# otherwise the last "v" segment is captured so it can be reported malformed.
DEFAULT_MEDIA_TYPE_PATTERN = (
    r"vnd\.[\w-]+(?:\.[\w-]+)*?\.v(\d[\w.-]*?)\+[\w.-]+"
    r"|vnd\.[\w-]+(?:\.[\w-]+)*\.v([\w.-]+?)\+[\w.-]+"
    r"|;\s*version\s*=\s*\"?([\w.-]+)\"?"
)


def _parse_precedence(value: Union[str, Sequence[Any]]) -> Tuple[Channel, ...]:
    if isinstance(value, str):
        value = [part for part in value.split(",") if part.strip()]
    try:
        channels = tuple(Channel.parse(v) for v in value)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
    return channels


@dataclass(frozen=True)
class VersioningConfig:
    """Configuration surface of the version engine."""

    channel_precedence: Tuple[Channel, ...] = DEFAULT_PRECEDENCE
    path_version_position: int = 0
    header_name: str = "API-Version"
    query_param_name: str = "version"
    media_type_sub_pattern: str = DEFAULT_MEDIA_TYPE_PATTERN
    token_pattern: str = DEFAULT_TOKEN_PATTERN
    version_mandatory: bool = False
    default_version: Optional[str] = "1"
    max_active_versions: int = 3
    handler_timeout_seconds: Optional[float] = None

    _token_re: Pattern[str] = field(init=False, repr=False, compare=False)
    _media_type_re: Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        precedence = _parse_precedence(self.channel_precedence)
        object.__setattr__(self, "channel_precedence", precedence)

        if not precedence:
            raise ConfigurationError("channel_precedence must name at least one channel")
        if len(set(precedence)) != len(precedence):
            raise ConfigurationError("channel_precedence contains duplicate channels")
        invalid = [c for c in precedence if c not in REQUEST_CHANNELS]
        if invalid:
            raise ConfigurationError(
                f"channel_precedence may only contain request channels, got {invalid[0].value}"
            )
        if self.path_version_position < 0:
            raise ConfigurationError("path_version_position must be >= 0")
        if not self.header_name.strip():
            raise ConfigurationError("header_name must not be empty")
        if not self.query_param_name.strip():
            raise ConfigurationError("query_param_name must not be empty")

        try:
            token_re = re.compile(self.token_pattern)
            media_re = re.compile(self.media_type_sub_pattern, re.IGNORECASE)
        except re.error as e:
            raise ConfigurationError(f"Invalid version pattern: {e}") from e
        if media_re.groups < 1:
            raise ConfigurationError("media_type_sub_pattern must contain a capture group")
        object.__setattr__(self, "_token_re", token_re)
        object.__setattr__(self, "_media_type_re", media_re)

        if self.default_version is not None:
            try:
                normalized = VersionToken.parse(str(self.default_version), token_re).value
            except ValueError as e:
                raise ConfigurationError(f"Invalid default_version: {e}") from e
            object.__setattr__(self, "default_version", normalized)
        elif not self.version_mandatory:
            raise ConfigurationError("default_version is required unless version_mandatory is set")

        if self.max_active_versions < 1:
            raise ConfigurationError("max_active_versions must be >= 1")
        if self.handler_timeout_seconds is not None and self.handler_timeout_seconds <= 0:
            raise ConfigurationError("handler_timeout_seconds must be positive")

    @property
    def token_regex(self) -> Pattern[str]:
        return self._token_re

    @property
    def media_type_regex(self) -> Pattern[str]:
        return self._media_type_re

    def precedence_rank(self, channel: Channel) -> int:
        """Lower rank wins. Channels not listed rank after all listed ones."""
        try:
            return self.channel_precedence.index(channel)
        except ValueError:
            return len(self.channel_precedence)

    @classmethod
    def from_settings(cls, settings: Any) -> "VersioningConfig":
        """Build from src.core.config.Settings."""
        return cls(
            channel_precedence=_parse_precedence(settings.VERSION_CHANNEL_PRECEDENCE),
            path_version_position=settings.VERSION_PATH_POSITION,
            header_name=settings.VERSION_HEADER_NAME,
            query_param_name=settings.VERSION_QUERY_PARAM,
            media_type_sub_pattern=settings.VERSION_MEDIA_TYPE_PATTERN,
            token_pattern=settings.VERSION_TOKEN_PATTERN,
            version_mandatory=settings.VERSION_MANDATORY,
            default_version=settings.VERSION_DEFAULT or None,
            max_active_versions=settings.VERSION_MAX_ACTIVE,
            handler_timeout_seconds=settings.HANDLER_TIMEOUT_SECONDS,
        )


__all__ = ["VersioningConfig", "DEFAULT_PRECEDENCE", "DEFAULT_MEDIA_TYPE_PATTERN"]

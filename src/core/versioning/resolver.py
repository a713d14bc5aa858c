"""Version Resolution.

Reconciles the per-channel extraction results of one request into exactly
one registered version:

1. Any malformed channel fails the request, even if another channel is valid.
2. No token anywhere applies the default policy (or fails when mandatory).
3. A single token, or several agreeing tokens, resolve directly.
4. Conflicting tokens resolve by channel precedence; losers are recorded.
5. The chosen token must exist in the registry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

from src.core.versioning.config import VersioningConfig
from src.core.versioning.errors import (
    MalformedVersionError,
    MissingVersionError,
    UnknownVersionError,
)
from src.core.versioning.extractor import ExtractionResult
from src.core.versioning.registry import VersionRegistry
from src.core.versioning.version import Channel, VersionDescriptor, VersionToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionOutcome:
    """Result of resolving one request."""
    token: VersionToken
    source: Channel
    descriptor: VersionDescriptor
    # Channels that carried the winning token as well
    agreeing: Tuple[Channel, ...] = ()
    # Channels that carried a different token and lost on precedence
    overridden: Tuple[Channel, ...] = ()

    @property
    def conflicted(self) -> bool:
        return bool(self.overridden)

    @property
    def used_default(self) -> bool:
        return self.source == Channel.DEFAULT


@dataclass
class VersionResolver:
    """Resolve extraction results against the registry."""

    registry: VersionRegistry
    config: VersioningConfig = field(default_factory=VersioningConfig)

    def resolve(self, results: Sequence[ExtractionResult]) -> ResolutionOutcome:
        """Resolve one request's extraction results.

        Raises:
            MalformedVersionError: A channel carried a token that failed normalization.
            MissingVersionError: No token anywhere and version is mandatory, or the
                default version is not available.
            UnknownVersionError: The chosen token is not registered.
        """
        candidates = [r for r in results if not r.is_absent]

        malformed = [r for r in candidates if r.is_malformed]
        if malformed:
            raise MalformedVersionError(
                "Invalid API version: "
                + ", ".join(f"{r.channel.value}={r.raw!r}" for r in malformed),
                channels=[r.channel for r in malformed],
                raw_values={r.channel.value: r.raw or "" for r in malformed},
            )

        present = [r for r in candidates if r.is_present and r.token is not None]
        if not present:
            return self._resolve_default()

        winner = min(present, key=lambda r: self.config.precedence_rank(r.channel))
        agreeing = tuple(
            r.channel for r in present if r is not winner and r.token == winner.token
        )
        overridden = tuple(r.channel for r in present if r.token != winner.token)

        if overridden:
            logger.info(
                f"Conflicting API versions; {winner.channel.value}={winner.token} "
                f"overrides " + ", ".join(
                    f"{r.channel.value}={r.token}" for r in present if r.token != winner.token
                ),
                extra={
                    "version": winner.token.value,
                    "source": winner.channel.value,
                    "overridden": [c.value for c in overridden],
                },
            )

        descriptor = self.registry.get(winner.token)
        if descriptor is None:
            raise UnknownVersionError(
                winner.token.value,
                supported=self.registry.supported_tokens(),
                channels=[winner.channel, *agreeing],
            )

        logger.debug(
            f"Resolved API version {winner.token} from {winner.channel.value}",
            extra={"version": winner.token.value, "source": winner.channel.value},
        )
        return ResolutionOutcome(
            token=winner.token,
            source=winner.channel,
            descriptor=descriptor,
            agreeing=agreeing,
            overridden=overridden,
        )

    def _resolve_default(self) -> ResolutionOutcome:
        if self.config.version_mandatory:
            raise MissingVersionError(
                "API version is required; specify it via "
                + ", ".join(c.value for c in self.config.channel_precedence)
            )

        default = self.registry.default_version()
        if default is None and self.config.default_version is not None:
            default = VersionToken(self.config.default_version)

        descriptor: Optional[VersionDescriptor] = (
            self.registry.get(default) if default is not None else None
        )
        if default is None or descriptor is None:
            # Misconfiguration, not a consumer error; never reported as unknown
            logger.error(
                f"Default API version {default} is not registered",
                extra={"version": str(default) if default else None},
            )
            raise MissingVersionError(
                "No API version specified and no default version is available"
            )

        return ResolutionOutcome(token=default, source=Channel.DEFAULT, descriptor=descriptor)


__all__ = ["ResolutionOutcome", "VersionResolver"]

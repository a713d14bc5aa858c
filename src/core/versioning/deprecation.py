"""Deprecation Annotation.

Turns a version's lifecycle state into response metadata:
- Deprecation: true
- Sunset: <HTTP-date>
- Link: <uri>; rel="successor-version"
- API-Supported-Versions: 1, 2

Annotation is pure; it never changes whether a version is served.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from src.core.versioning.registry import VersionRegistry
from src.core.versioning.version import LifecycleState, VersionDescriptor

HEADER_DEPRECATION = "Deprecation"
HEADER_SUNSET = "Sunset"
HEADER_LINK = "Link"
HEADER_SUPPORTED_VERSIONS = "API-Supported-Versions"
HEADER_API_VERSION = "API-Version"


def format_http_date(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%a, %d %b %Y %H:%M:%S GMT")


@dataclass(frozen=True)
class DeprecationAnnotation:
    """Metadata attached to a response for a deprecated or sunset version."""
    deprecated: bool = False
    sunset_at: Optional[datetime] = None
    successor_link: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.deprecated

    def to_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if not self.deprecated:
            return headers

        headers[HEADER_DEPRECATION] = "true"
        if self.sunset_at:
            headers[HEADER_SUNSET] = format_http_date(self.sunset_at)
        if self.successor_link:
            headers[HEADER_LINK] = f'<{self.successor_link}>; rel="successor-version"'
        return headers


class DeprecationAnnotator:
    """Build response metadata from registry state."""

    def __init__(self, registry: VersionRegistry):
        self.registry = registry

    def annotate(self, descriptor: VersionDescriptor) -> DeprecationAnnotation:
        if descriptor.state == LifecycleState.ACTIVE:
            return DeprecationAnnotation()
        if descriptor.state == LifecycleState.DEPRECATED:
            return DeprecationAnnotation(
                deprecated=True,
                successor_link=descriptor.successor_link,
            )
        return DeprecationAnnotation(
            deprecated=True,
            sunset_at=descriptor.sunset_at,
            successor_link=descriptor.successor_link,
        )

    def supported_versions_header(self) -> Dict[str, str]:
        """Emitted on every response, including errors."""
        return {HEADER_SUPPORTED_VERSIONS: ", ".join(self.registry.supported_tokens())}

    def response_headers(self, descriptor: VersionDescriptor) -> Dict[str, str]:
        headers = {HEADER_API_VERSION: descriptor.token.value}
        headers.update(self.annotate(descriptor).to_headers())
        headers.update(self.supported_versions_header())
        return headers


__all__ = [
    "HEADER_DEPRECATION",
    "HEADER_SUNSET",
    "HEADER_LINK",
    "HEADER_SUPPORTED_VERSIONS",
    "HEADER_API_VERSION",
    "DeprecationAnnotation",
    "DeprecationAnnotator",
    "format_http_date",
]

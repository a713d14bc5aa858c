"""Version Extraction.

Pulls a raw version token out of each request channel:
- URL path segment (/v1/users)
- Custom header (API-Version: 1, or a vendor media type)
- Query parameter (?version=1)
- Accept media type (application/vnd.company.v1+json)

Extraction never fails. Every channel reports present, absent or malformed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Pattern, Tuple, Union

from src.core.versioning.config import VersioningConfig
from src.core.versioning.version import Channel, VersionToken

# A path segment that looks like an attempt at a version (v3.1.4, vNext)
_VERSION_LIKE_SEGMENT = re.compile(r"^[vV]\d")

HeaderInput = Union[Mapping[str, str], Iterable[Tuple[str, str]], None]


def normalize_headers(headers: HeaderInput) -> Dict[str, str]:
    """Lower-case header names, keeping the first value of repeated headers."""
    if headers is None:
        return {}
    items = headers.items() if isinstance(headers, Mapping) else headers
    result: Dict[str, str] = {}
    for name, value in items:
        key = str(name).lower()
        if key not in result:
            result[key] = value
    return result


@dataclass
class VersionedRequest:
    """Inbound request as produced by the transport layer."""
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, str] = field(default_factory=dict)
    media_type: Optional[str] = None  # Falls back to the Accept header
    method: str = "GET"
    body: Any = None
    route_id: Optional[str] = None

    # Set on the copy handed to handlers
    resolved_version: Optional[VersionToken] = None

    def __post_init__(self):
        self.headers = normalize_headers(self.headers)
        self.query_params = dict(self.query_params or {})

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    @property
    def accept(self) -> Optional[str]:
        if self.media_type is not None:
            return self.media_type
        return self.header("accept")

    @property
    def path_segments(self) -> List[str]:
        return [s for s in self.path.split("?", 1)[0].split("/") if s]


class ExtractionStatus(Enum):
    PRESENT = "present"
    ABSENT = "absent"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class ExtractionResult:
    """Per-channel outcome for one request."""
    channel: Channel
    status: ExtractionStatus
    token: Optional[VersionToken] = None
    raw: Optional[str] = None

    @property
    def is_present(self) -> bool:
        return self.status == ExtractionStatus.PRESENT

    @property
    def is_absent(self) -> bool:
        return self.status == ExtractionStatus.ABSENT

    @property
    def is_malformed(self) -> bool:
        return self.status == ExtractionStatus.MALFORMED

    @classmethod
    def absent(cls, channel: Channel) -> "ExtractionResult":
        return cls(channel=channel, status=ExtractionStatus.ABSENT)


def _classify(channel: Channel, raw: str, pattern: Pattern[str]) -> ExtractionResult:
    try:
        token = VersionToken.parse(raw, pattern)
    except ValueError:
        return ExtractionResult(channel, ExtractionStatus.MALFORMED, raw=raw)
    return ExtractionResult(channel, ExtractionStatus.PRESENT, token=token, raw=raw)


def _first_group(match: "re.Match[str]") -> Optional[str]:
    for group in match.groups():
        if group:
            return group
    return None


class VersionExtractor:
    """Extract version tokens from every configured channel of a request."""

    def __init__(self, config: Optional[VersioningConfig] = None):
        self.config = config or VersioningConfig()
        self._token_re = self.config.token_regex
        self._media_re = self.config.media_type_regex

    def extract(self, request: VersionedRequest) -> List[ExtractionResult]:
        """One result per configured channel, in precedence order."""
        extractors = {
            Channel.PATH: self.extract_path,
            Channel.HEADER: self.extract_header,
            Channel.QUERY: self.extract_query,
            Channel.MEDIA_TYPE: self.extract_media_type,
        }
        return [extractors[c](request) for c in self.config.channel_precedence]

    def extract_path(self, request: VersionedRequest) -> ExtractionResult:
        segments = request.path_segments
        position = self.config.path_version_position
        if position >= len(segments):
            return ExtractionResult.absent(Channel.PATH)

        segment = segments[position]
        if self._token_re.match(segment.strip()):
            return _classify(Channel.PATH, segment, self._token_re)
        if _VERSION_LIKE_SEGMENT.match(segment):
            return ExtractionResult(Channel.PATH, ExtractionStatus.MALFORMED, raw=segment)
        return ExtractionResult.absent(Channel.PATH)

    def extract_header(self, request: VersionedRequest) -> ExtractionResult:
        value = request.header(self.config.header_name)
        if value is None or not value.strip():
            return ExtractionResult.absent(Channel.HEADER)

        if "/" in value:
            # Structured content-type style value
            match = self._media_re.search(value)
            raw = _first_group(match) if match else None
            if raw is None:
                return ExtractionResult(Channel.HEADER, ExtractionStatus.MALFORMED, raw=value)
            return _classify(Channel.HEADER, raw, self._token_re)

        return _classify(Channel.HEADER, value, self._token_re)

    def extract_query(self, request: VersionedRequest) -> ExtractionResult:
        value = request.query_params.get(self.config.query_param_name)
        if value is None or not str(value).strip():
            return ExtractionResult.absent(Channel.QUERY)
        return _classify(Channel.QUERY, str(value), self._token_re)

    def extract_media_type(self, request: VersionedRequest) -> ExtractionResult:
        accept = request.accept
        if not accept:
            return ExtractionResult.absent(Channel.MEDIA_TYPE)

        match = self._media_re.search(accept)
        raw = _first_group(match) if match else None
        if raw is None:
            return ExtractionResult.absent(Channel.MEDIA_TYPE)
        return _classify(Channel.MEDIA_TYPE, raw, self._token_re)

    def route_segments(self, request: VersionedRequest) -> List[str]:
        """Path segments following the path version, or all of them without one."""
        segments = request.path_segments
        if self.extract_path(request).is_present:
            return segments[self.config.path_version_position + 1:]
        return list(segments)


__all__ = [
    "VersionedRequest",
    "ExtractionStatus",
    "ExtractionResult",
    "VersionExtractor",
    "normalize_headers",
]

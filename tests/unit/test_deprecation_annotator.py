"""Tests for src/core/versioning/deprecation.py."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from src.core.versioning.deprecation import (
    DeprecationAnnotation,
    DeprecationAnnotator,
    format_http_date,
)
from src.core.versioning.version import LifecycleState, VersionDescriptor, VersionToken

SUCCESSOR = "https://api.example.com/v2"


class TestFormatHttpDate:
    def test_utc(self):
        value = datetime(2025, 12, 31, 23, 59, 59, tzinfo=timezone.utc)
        assert format_http_date(value) == "Wed, 31 Dec 2025 23:59:59 GMT"

    def test_converts_offset_to_gmt(self):
        value = datetime(2026, 1, 1, 1, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_http_date(value) == "Wed, 31 Dec 2025 23:00:00 GMT"


class TestDeprecationAnnotator:
    """Tests for annotate() and response headers."""

    def test_active_is_empty(self, registry):
        annotation = DeprecationAnnotator(registry).annotate(registry.get("1"))

        assert annotation == DeprecationAnnotation()
        assert annotation.is_empty
        assert annotation.to_headers() == {}

    def test_deprecated(self, registry):
        registry.deprecate("1", SUCCESSOR)

        annotation = DeprecationAnnotator(registry).annotate(registry.get("1"))

        assert annotation.deprecated is True
        assert annotation.sunset_at is None
        assert annotation.to_headers() == {
            "Deprecation": "true",
            "Link": f'<{SUCCESSOR}>; rel="successor-version"',
        }

    def test_deprecated_without_link(self, registry):
        registry.deprecate("1")

        headers = DeprecationAnnotator(registry).annotate(registry.get("1")).to_headers()
        assert headers == {"Deprecation": "true"}

    def test_sunset(self, registry):
        at = datetime(2025, 12, 31, 23, 59, 59, tzinfo=timezone.utc)
        registry.deprecate("1", SUCCESSOR)
        registry.sunset("1", at)

        annotation = DeprecationAnnotator(registry).annotate(registry.get("1"))

        assert annotation.deprecated is True
        assert annotation.sunset_at == at
        assert annotation.to_headers() == {
            "Deprecation": "true",
            "Sunset": "Wed, 31 Dec 2025 23:59:59 GMT",
            "Link": f'<{SUCCESSOR}>; rel="successor-version"',
        }

    def test_annotation_does_not_touch_registry(self, registry):
        descriptor = VersionDescriptor(
            token=VersionToken("9"),
            state=LifecycleState.DEPRECATED,
            successor_link=SUCCESSOR,
        )

        DeprecationAnnotator(registry).annotate(descriptor)

        assert registry.get("9") is None

    def test_response_headers_active(self, registry):
        headers = DeprecationAnnotator(registry).response_headers(registry.get("2"))

        assert headers == {
            "API-Version": "2",
            "API-Supported-Versions": "1, 2",
        }

    def test_response_headers_deprecated(self, registry):
        registry.deprecate("1", SUCCESSOR)

        headers = DeprecationAnnotator(registry).response_headers(registry.get("1"))

        assert headers["API-Version"] == "1"
        assert headers["Deprecation"] == "true"
        assert headers["API-Supported-Versions"] == "1, 2"

    def test_supported_versions_tracks_registry(self, registry):
        annotator = DeprecationAnnotator(registry)
        registry.retire("2")

        assert annotator.supported_versions_header() == {"API-Supported-Versions": "1"}

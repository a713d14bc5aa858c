"""Tests for src/core/versioning/pipeline.py."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from src.core.versioning.config import VersioningConfig
from src.core.versioning.dispatch import HandlerDispatchTable
from src.core.versioning.extractor import VersionedRequest
from src.core.versioning.pipeline import (
    PipelineState,
    RequestPipeline,
    VersionedResponse,
)
from src.core.versioning.registry import VersionRegistry
from src.core.versioning.version import Channel, VersionDescriptor, VersionToken

SUCCESSOR = "https://api.example.com/v2"


class TestResolutionScenarios:
    """End-to-end routing through the pipeline."""

    @pytest.mark.asyncio
    async def test_path_version_dispatches_handler(self, registry, dispatch):
        pipeline = RequestPipeline(registry, dispatch)

        result = await pipeline.handle(VersionedRequest(path="/v2/users/123"))

        assert result.ok
        assert result.state == PipelineState.COMPLETE
        assert result.route_id == "users"
        assert result.response.status_code == 200
        assert result.response.body == {"handled_by": "2", "version": "2"}
        assert "Deprecation" not in result.response.headers
        assert "Sunset" not in result.response.headers
        assert result.response.headers["API-Version"] == "2"

    @pytest.mark.asyncio
    async def test_deprecated_header_version_is_annotated(self, registry, dispatch):
        registry.deprecate("1", SUCCESSOR)
        pipeline = RequestPipeline(registry, dispatch)

        result = await pipeline.handle(
            VersionedRequest(path="/users/123", headers={"API-Version": "1"})
        )

        assert result.ok
        assert result.outcome.source == Channel.HEADER
        assert result.response.body["handled_by"] == "1"
        assert result.response.headers["Deprecation"] == "true"
        assert result.response.headers["Link"] == f'<{SUCCESSOR}>; rel="successor-version"'

    @pytest.mark.asyncio
    async def test_unknown_version_lists_supported(self, registry, dispatch):
        pipeline = RequestPipeline(registry, dispatch)

        result = await pipeline.handle(VersionedRequest(path="/v3/users/123"))

        assert not result.ok
        assert result.state == PipelineState.ERRORED
        assert result.error.kind == "UNKNOWN_VERSION"
        assert result.error.failed_in == PipelineState.RESOLVING
        assert result.response.status_code == 400
        assert result.response.headers == {"API-Supported-Versions": "1, 2"}
        assert result.response.body["error"]["supported_versions"] == ["1", "2"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "precedence,expected",
        [
            ("path,header,query,media_type", "1"),
            ("header,path,query,media_type", "2"),
        ],
    )
    async def test_conflict_follows_precedence(self, registry, dispatch, precedence, expected):
        pipeline = RequestPipeline(
            registry,
            dispatch,
            VersioningConfig(channel_precedence=precedence),
        )

        result = await pipeline.handle(
            VersionedRequest(path="/v1/users/123", headers={"API-Version": "2"})
        )

        assert result.ok
        assert result.response.body["handled_by"] == expected
        assert result.outcome.conflicted is True

    @pytest.mark.asyncio
    async def test_default_version_applied(self, registry, dispatch):
        pipeline = RequestPipeline(registry, dispatch)

        result = await pipeline.handle(VersionedRequest(path="/users"))

        assert result.ok
        assert result.outcome.used_default is True
        assert result.response.body["handled_by"] == "1"


class TestAnnotation:
    """Header annotation of completed requests."""

    @pytest.mark.asyncio
    async def test_sunset_version_still_served_with_headers(self, registry, dispatch):
        at = datetime(2025, 12, 31, 23, 59, 59, tzinfo=timezone.utc)
        registry.deprecate("1", SUCCESSOR)
        registry.sunset("1", at)
        pipeline = RequestPipeline(registry, dispatch)

        result = await pipeline.handle(VersionedRequest(path="/v1/users"))

        headers = result.response.headers
        assert result.ok
        assert headers["Deprecation"] == "true"
        assert headers["Sunset"] == "Wed, 31 Dec 2025 23:59:59 GMT"
        assert headers["API-Supported-Versions"] == "2"

    @pytest.mark.asyncio
    async def test_handler_response_headers_are_merged(self, registry):
        table = HandlerDispatchTable()
        table.register(
            "2",
            "users",
            lambda request: VersionedResponse(
                status_code=201,
                body={"id": 7},
                headers={"Location": "/v2/users/7"},
            ),
        )
        pipeline = RequestPipeline(registry, table)

        result = await pipeline.handle(VersionedRequest(path="/v2/users", method="POST"))

        assert result.response.status_code == 201
        assert result.response.body == {"id": 7}
        assert result.response.headers["Location"] == "/v2/users/7"
        assert result.response.headers["API-Version"] == "2"

    @pytest.mark.asyncio
    async def test_handler_receives_resolved_version(self, registry):
        seen = []
        table = HandlerDispatchTable()
        table.register("2", "users", lambda request: seen.append(request) or "ok")
        pipeline = RequestPipeline(registry, table)

        await pipeline.handle(VersionedRequest(path="/users", query_params={"version": "2"}))

        assert seen[0].resolved_version == VersionToken("2")
        assert seen[0].route_id == "users"


class TestDispatchFailures:
    """Failures after a version has been resolved."""

    @pytest.mark.asyncio
    async def test_route_not_implemented(self, registry, dispatch):
        pipeline = RequestPipeline(registry, dispatch)

        result = await pipeline.handle(VersionedRequest(path="/v2/orders"))

        assert result.state == PipelineState.ERRORED
        assert result.error.kind == "ROUTE_NOT_IMPLEMENTED"
        assert result.error.failed_in == PipelineState.DISPATCHING
        assert result.response.status_code == 404
        assert result.outcome.token == VersionToken("2")

    @pytest.mark.asyncio
    async def test_malformed_version(self, registry, dispatch):
        pipeline = RequestPipeline(registry, dispatch)

        result = await pipeline.handle(
            VersionedRequest(path="/v2/users", headers={"API-Version": "latest"})
        )

        assert result.error.kind == "MALFORMED_VERSION"
        assert result.response.status_code == 400
        assert result.response.headers["API-Supported-Versions"] == "1, 2"

    @pytest.mark.asyncio
    async def test_missing_mandatory_version(self, registry, dispatch):
        pipeline = RequestPipeline(
            registry,
            dispatch,
            VersioningConfig(version_mandatory=True, default_version=None),
        )

        result = await pipeline.handle(VersionedRequest(path="/users"))

        assert result.error.kind == "MISSING_VERSION"

    def test_route_id_for(self, registry, dispatch):
        pipeline = RequestPipeline(registry, dispatch)

        assert pipeline.route_id_for(VersionedRequest(path="/v2/users/1")) == "users"
        assert pipeline.route_id_for(VersionedRequest(path="/v2")) == "/"
        assert pipeline.route_id_for(VersionedRequest(path="/x", route_id="custom")) == "custom"

    @pytest.mark.asyncio
    async def test_route_id_follows_prefixed_version(self, registry, dispatch):
        pipeline = RequestPipeline(
            registry,
            dispatch,
            VersioningConfig(path_version_position=1),
        )

        result = await pipeline.handle(VersionedRequest(path="/api/v2/users/1"))

        assert result.ok
        assert result.route_id == "users"
        assert result.response.body["handled_by"] == "2"
        assert pipeline.route_id_for(VersionedRequest(path="/api/v2")) == "/"


class TestHandlerExecution:
    """Sync and async handlers, timeouts and cancellation."""

    @pytest.mark.asyncio
    async def test_async_handler(self, registry):
        table = HandlerDispatchTable()

        async def users(request):
            await asyncio.sleep(0)
            return {"async": True}

        table.register("1", "users", users)
        pipeline = RequestPipeline(registry, table)

        result = await pipeline.handle(VersionedRequest(path="/v1/users"))

        assert result.response.body == {"async": True}

    @pytest.mark.asyncio
    async def test_handler_exception_propagates(self, registry):
        table = HandlerDispatchTable()

        def users(request):
            raise RuntimeError("boom")

        table.register("1", "users", users)
        pipeline = RequestPipeline(registry, table)

        with pytest.raises(RuntimeError, match="boom"):
            await pipeline.handle(VersionedRequest(path="/v1/users"))

    @pytest.mark.asyncio
    async def test_handler_timeout(self, registry):
        table = HandlerDispatchTable()

        async def users(request):
            await asyncio.sleep(5)

        table.register("1", "users", users)
        pipeline = RequestPipeline(
            registry,
            table,
            VersioningConfig(handler_timeout_seconds=0.01),
        )

        with pytest.raises(asyncio.TimeoutError):
            await pipeline.handle(VersionedRequest(path="/v1/users"))

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, registry):
        table = HandlerDispatchTable()
        started = asyncio.Event()

        async def users(request):
            started.set()
            await asyncio.sleep(5)

        table.register("1", "users", users)
        pipeline = RequestPipeline(registry, table)

        task = asyncio.ensure_future(pipeline.handle(VersionedRequest(path="/v1/users")))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task


class TestCustomTokenPattern:
    """Routing with a configured token pattern across every component."""

    PATTERN = r"^(alpha|beta|\d+)$"

    @pytest.mark.asyncio
    async def test_custom_tokens_route_end_to_end(self):
        config = VersioningConfig(token_pattern=self.PATTERN, default_version="alpha")
        registry = VersionRegistry(default_version="alpha", token_pattern=config.token_regex)
        registry.register(VersionDescriptor(token=registry.parse_token("alpha")))
        registry.register(VersionDescriptor(token=registry.parse_token("beta")))
        table = HandlerDispatchTable(config.token_regex)
        for version in ("alpha", "beta"):
            table.register(version, "users", lambda request: request.resolved_version.value)
        pipeline = RequestPipeline(registry, table, config)

        explicit = await pipeline.handle(
            VersionedRequest(path="/users", headers={"API-Version": "beta"})
        )
        default = await pipeline.handle(VersionedRequest(path="/users"))

        assert explicit.ok
        assert explicit.response.body == "beta"
        assert explicit.response.headers["API-Supported-Versions"] == "alpha, beta"
        assert default.response.body == "alpha"

"""Versioned Request Pipeline.

Runs one request through extraction, resolution, dispatch and annotation:

    EXTRACTING -> RESOLVING -> DISPATCHING -> ANNOTATING -> COMPLETE
                      |            |
                      +-> ERRORED <+

Each request is processed independently; nothing request-scoped is shared
or cached between requests.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from src.core.versioning.config import VersioningConfig
from src.core.versioning.deprecation import DeprecationAnnotator
from src.core.versioning.dispatch import HandlerDispatchTable
from src.core.versioning.errors import VersionError
from src.core.versioning.extractor import ExtractionResult, VersionedRequest, VersionExtractor
from src.core.versioning.registry import VersionRegistry
from src.core.versioning.resolver import ResolutionOutcome, VersionResolver
from src.utils.metrics import (
    deprecated_version_requests_total,
    version_channel_conflicts_total,
    version_resolution_errors_total,
    version_resolutions_total,
)

logger = logging.getLogger(__name__)

# Route id for requests whose path has nothing after the version segment
ROOT_ROUTE = "/"


class PipelineState(Enum):
    EXTRACTING = "extracting"
    RESOLVING = "resolving"
    DISPATCHING = "dispatching"
    ANNOTATING = "annotating"
    COMPLETE = "complete"
    ERRORED = "errored"


@dataclass
class VersionedResponse:
    """Response with version headers."""
    status_code: int = 200
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class PipelineError:
    """Structured failure produced in the ERRORED state."""
    kind: str
    message: str
    status_code: int
    failed_in: PipelineState
    detail: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: VersionError, state: PipelineState) -> "PipelineError":
        return cls(
            kind=exc.kind,
            message=exc.message,
            status_code=exc.status_code,
            failed_in=state,
            detail=exc.to_dict(),
        )

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.detail or {"code": self.kind, "message": self.message}}


@dataclass
class PipelineResult:
    """Terminal result of one request."""
    state: PipelineState
    response: VersionedResponse
    outcome: Optional[ResolutionOutcome] = None
    route_id: Optional[str] = None
    error: Optional[PipelineError] = None
    extraction: List[ExtractionResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == PipelineState.COMPLETE


class RequestPipeline:
    """Orchestrates version routing for one request at a time."""

    def __init__(
        self,
        registry: VersionRegistry,
        dispatch: HandlerDispatchTable,
        config: Optional[VersioningConfig] = None,
    ):
        self.config = config or VersioningConfig()
        self.registry = registry
        self.dispatch = dispatch
        self.extractor = VersionExtractor(self.config)
        self.resolver = VersionResolver(registry, self.config)
        self.annotator = DeprecationAnnotator(registry)

    def route_id_for(self, request: VersionedRequest) -> str:
        """Explicit route id, else the first path segment after the version."""
        if request.route_id:
            return request.route_id
        segments = self.extractor.route_segments(request)
        return segments[0] if segments else ROOT_ROUTE

    async def handle(self, request: VersionedRequest) -> PipelineResult:
        """Process a request.

        Handler exceptions and cancellation propagate unchanged; no partial
        annotation is produced for them.
        """
        state = PipelineState.EXTRACTING
        extraction = self.extractor.extract(request)

        state = PipelineState.RESOLVING
        try:
            outcome = self.resolver.resolve(extraction)
        except VersionError as exc:
            return self._errored(exc, state, extraction)
        self._observe_resolution(outcome)

        state = PipelineState.DISPATCHING
        route_id = self.route_id_for(request)
        try:
            handler = self.dispatch.resolve(outcome.token, route_id)
        except VersionError as exc:
            return self._errored(exc, state, extraction, outcome)

        handler_request = replace(
            request,
            resolved_version=outcome.token,
            route_id=route_id,
        )
        result = await self._invoke(handler, handler_request)

        state = PipelineState.ANNOTATING
        response = self._annotate(result, outcome)
        if outcome.descriptor.is_deprecated:
            deprecated_version_requests_total.labels(
                version=outcome.token.value,
                state=outcome.descriptor.state.value,
            ).inc()

        return PipelineResult(
            state=PipelineState.COMPLETE,
            response=response,
            outcome=outcome,
            route_id=route_id,
            extraction=extraction,
        )

    async def _invoke(self, handler: Any, request: VersionedRequest) -> Any:
        result = handler(request)
        if inspect.isawaitable(result):
            if self.config.handler_timeout_seconds is not None:
                result = await asyncio.wait_for(result, self.config.handler_timeout_seconds)
            else:
                result = await result
        return result

    def _annotate(self, result: Any, outcome: ResolutionOutcome) -> VersionedResponse:
        headers = self.annotator.response_headers(outcome.descriptor)
        if isinstance(result, VersionedResponse):
            return VersionedResponse(
                status_code=result.status_code,
                body=result.body,
                headers={**result.headers, **headers},
            )
        return VersionedResponse(status_code=200, body=result, headers=headers)

    def _observe_resolution(self, outcome: ResolutionOutcome) -> None:
        version_resolutions_total.labels(
            source=outcome.source.value,
            version=outcome.token.value,
        ).inc()
        if outcome.conflicted:
            version_channel_conflicts_total.labels(winner=outcome.source.value).inc()

    def _errored(
        self,
        exc: VersionError,
        state: PipelineState,
        extraction: List[ExtractionResult],
        outcome: Optional[ResolutionOutcome] = None,
    ) -> PipelineResult:
        error = PipelineError.from_exception(exc, state)
        version_resolution_errors_total.labels(kind=error.kind).inc()
        logger.info(
            f"Version routing failed in {state.value}: {error.message}",
            extra={"error_code": error.kind, "state": state.value},
        )
        response = VersionedResponse(
            status_code=error.status_code,
            body=error.to_body(),
            headers=self.annotator.supported_versions_header(),
        )
        return PipelineResult(
            state=PipelineState.ERRORED,
            response=response,
            outcome=outcome,
            error=error,
            extraction=extraction,
        )


__all__ = [
    "PipelineState",
    "VersionedResponse",
    "PipelineError",
    "PipelineResult",
    "RequestPipeline",
]

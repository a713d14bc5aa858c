"""HTTP surface for the version engine.

Features:
- Catch-all versioned router feeding every request through the pipeline
- Admin router for registering, deprecating, sunsetting and retiring versions
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from src.api.version_models import (
    AdvisoryModel,
    DeprecateVersionRequest,
    RegisterVersionRequest,
    RouteTableResponse,
    SunsetVersionRequest,
    VersionChangeResponse,
    VersionDescriptorModel,
    VersionListResponse,
    VersionRoutesResponse,
)
from src.core.errors import ErrorCode
from src.core.versioning.dispatch import HandlerDispatchTable
from src.core.versioning.errors import VersionError
from src.core.versioning.extractor import VersionedRequest
from src.core.versioning.pipeline import PipelineResult, RequestPipeline
from src.core.versioning.registry import VersionRegistry
from src.core.versioning.version import VersionDescriptor, VersionToken

logger = logging.getLogger(__name__)

VERSIONED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def _first_values(items: List[tuple]) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for key, value in items:
        result.setdefault(key, value)
    return result


async def build_versioned_request(request: Request, path: str) -> VersionedRequest:
    """Translate a Starlette request into the engine's request shape."""
    body = await request.body()
    return VersionedRequest(
        path=path if path.startswith("/") else f"/{path}",
        headers=request.headers.items(),
        query_params=_first_values(request.query_params.multi_items()),
        method=request.method,
        body=body or None,
    )


def to_http_response(result: PipelineResult) -> Response:
    """Render a pipeline result as a FastAPI response."""
    response = result.response
    body = response.body
    if isinstance(body, Response):
        # Handler built its own response; only the version headers are layered on
        for key, value in response.headers.items():
            body.headers[key] = value
        return body
    if isinstance(body, (bytes, str)):
        return Response(
            content=body,
            status_code=response.status_code,
            headers=response.headers,
        )
    if body is None and response.status_code == status.HTTP_204_NO_CONTENT:
        return Response(status_code=response.status_code, headers=response.headers)
    return JSONResponse(
        content=jsonable_encoder(body),
        status_code=response.status_code,
        headers=response.headers,
    )


def create_versioned_router(pipeline: RequestPipeline) -> APIRouter:
    """Router whose catch-all route dispatches through the version pipeline."""
    router = APIRouter()

    @router.api_route("/{full_path:path}", methods=VERSIONED_METHODS, include_in_schema=False)
    async def versioned_entrypoint(full_path: str, request: Request) -> Response:
        versioned = await build_versioned_request(request, full_path)
        try:
            result = await pipeline.handle(versioned)
        except asyncio.TimeoutError:
            # Handler did not finish in time; the response is discarded unannotated
            logger.warning(
                "Versioned handler timed out",
                extra={"method": request.method, "path": versioned.path},
            )
            return JSONResponse(
                status_code=status.HTTP_504_GATEWAY_TIMEOUT,
                content={"error": {"code": "TIMEOUT", "message": "Handler timed out"}},
            )
        return to_http_response(result)

    return router


def _http_error(exc: VersionError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_dict())


def _parse_token(registry: VersionRegistry, token: str) -> VersionToken:
    try:
        return registry.parse_token(token)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": ErrorCode.MALFORMED_VERSION.value, "message": str(e)},
        ) from e


def create_admin_router(registry: VersionRegistry, dispatch: HandlerDispatchTable) -> APIRouter:
    """Administrative interface for governance and ops tooling."""
    router = APIRouter(tags=["versions"])

    def describe(descriptor: VersionDescriptor) -> VersionDescriptorModel:
        return VersionDescriptorModel.from_descriptor(
            descriptor,
            routes=dispatch.routes_for(descriptor.token),
        )

    def advisories() -> List[AdvisoryModel]:
        return [AdvisoryModel.from_advisory(a) for a in registry.advisories()]

    @router.get("", response_model=VersionListResponse)
    async def list_versions() -> Any:
        default = registry.default_version()
        return VersionListResponse(
            default_version=default.value if default else None,
            supported_versions=registry.supported_tokens(),
            versions=[describe(d) for d in registry.list_all()],
            advisories=advisories(),
        )

    @router.post("", response_model=VersionChangeResponse, status_code=status.HTTP_201_CREATED)
    async def register_version(payload: RegisterVersionRequest) -> Any:
        token = _parse_token(registry, payload.version)
        try:
            descriptor = registry.register(
                VersionDescriptor(
                    token=token,
                    state=payload.state,
                    sunset_at=payload.sunset_at,
                    successor_link=payload.successor_link,
                    released_at=payload.released_at,
                    changelog_url=payload.changelog_url,
                )
            )
        except VersionError as exc:
            raise _http_error(exc) from exc
        return VersionChangeResponse(version=describe(descriptor), advisories=advisories())

    @router.get("/routes", response_model=RouteTableResponse)
    async def route_table() -> Any:
        return RouteTableResponse(routes=dispatch.snapshot())

    @router.get("/{token}", response_model=VersionDescriptorModel)
    async def get_version(token: str) -> Any:
        parsed = _parse_token(registry, token)
        descriptor = registry.get(parsed)
        if descriptor is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={
                    "code": ErrorCode.UNKNOWN_VERSION.value,
                    "message": f"Unknown API version: {token}",
                    "retired": registry.is_retired(parsed),
                    "supported_versions": registry.supported_tokens(),
                },
            )
        return describe(descriptor)

    @router.get("/{token}/routes", response_model=VersionRoutesResponse)
    async def get_version_routes(token: str) -> Any:
        parsed = _parse_token(registry, token)
        return VersionRoutesResponse(version=parsed.value, routes=dispatch.routes_for(parsed))

    @router.post("/{token}/deprecate", response_model=VersionChangeResponse)
    async def deprecate_version(token: str, payload: DeprecateVersionRequest) -> Any:
        try:
            descriptor = registry.deprecate(
                _parse_token(registry, token),
                payload.successor_link,
            )
        except VersionError as exc:
            raise _http_error(exc) from exc
        return VersionChangeResponse(version=describe(descriptor), advisories=advisories())

    @router.post("/{token}/sunset", response_model=VersionChangeResponse)
    async def sunset_version(token: str, payload: SunsetVersionRequest) -> Any:
        try:
            descriptor = registry.sunset(
                _parse_token(registry, token),
                at=payload.at,
                successor_link=payload.successor_link,
            )
        except VersionError as exc:
            raise _http_error(exc) from exc
        return VersionChangeResponse(version=describe(descriptor), advisories=advisories())

    @router.delete("/{token}", response_model=VersionDescriptorModel)
    async def retire_version(token: str) -> Any:
        try:
            descriptor = registry.retire(_parse_token(registry, token))
        except VersionError as exc:
            raise _http_error(exc) from exc
        return VersionDescriptorModel.from_descriptor(descriptor)

    return router


__all__ = [
    "build_versioned_request",
    "to_http_response",
    "create_versioned_router",
    "create_admin_router",
]

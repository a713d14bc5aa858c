"""
Version Router - service entry point.

Serves every registered API version side by side: requests under API_PREFIX
are resolved to a version and dispatched to the handler registered for it,
and ADMIN_PREFIX exposes the registry to governance / ops tooling.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from src.api.versioning import create_admin_router, create_versioned_router
from src.core.config import Settings, get_settings
from src.core.versioning.config import VersioningConfig
from src.core.versioning.dispatch import HandlerDispatchTable
from src.core.versioning.pipeline import RequestPipeline
from src.core.versioning.registry import VersionRegistry, load_registry_file
from src.utils.logging import setup_logging

logger = logging.getLogger(__name__)


def build_registry(settings: Settings, config: VersioningConfig) -> VersionRegistry:
    """Seed the registry from VERSIONS_FILE, or start empty."""
    if settings.VERSIONS_FILE:
        return load_registry_file(
            settings.VERSIONS_FILE,
            default_version=config.default_version,
            max_active_versions=config.max_active_versions,
            token_pattern=config.token_regex,
        )
    return VersionRegistry(
        default_version=config.default_version,
        max_active_versions=config.max_active_versions,
        token_pattern=config.token_regex,
    )


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[VersionRegistry] = None,
    dispatch: Optional[HandlerDispatchTable] = None,
) -> FastAPI:
    """Build the FastAPI application around a registry and dispatch table."""
    settings = settings or get_settings()
    config = VersioningConfig.from_settings(settings)
    registry = registry if registry is not None else build_registry(settings, config)
    dispatch = dispatch if dispatch is not None else HandlerDispatchTable(config.token_regex)
    pipeline = RequestPipeline(registry, dispatch, config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Starting version router (versions: %s, default: %s)",
            ", ".join(registry.supported_tokens()) or "none",
            registry.default_version(),
        )
        for advisory in registry.advisories():
            logger.warning(advisory.message, extra={"advisory": advisory.code})
        yield
        logger.info("Shutting down version router...")

    app = FastAPI(
        title="Version Router",
        description="API version resolution and routing",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.dispatch = dispatch
    app.state.pipeline = pipeline

    app.mount("/metrics", make_asgi_app())

    @app.get("/health")
    async def health_check():
        """Liveness plus a registry summary."""
        default = registry.default_version()
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "versions": {
                "supported": registry.supported_tokens(),
                "default": default.value if default else None,
                "routes": len(dispatch),
                "advisories": [a.to_dict() for a in registry.advisories()],
            },
            "config": {
                "channel_precedence": [c.value for c in config.channel_precedence],
                "version_mandatory": config.version_mandatory,
                "log_level": settings.LOG_LEVEL,
            },
        }

    app.include_router(create_admin_router(registry, dispatch), prefix=settings.ADMIN_PREFIX)
    # Catch-all; must be registered last
    app.include_router(create_versioned_router(pipeline), prefix=settings.API_PREFIX)
    return app


settings = get_settings()
setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)
app = create_app(settings)


if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )

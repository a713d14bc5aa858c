"""API Version Routing Module.

Provides version resolution and routing for services that serve several
API versions at once:
- Version extraction from path, header, query and media type
- Precedence-based reconciliation of conflicting channels
- Version lifecycle registry (active, deprecated, sunset)
- Per-version handler dispatch
- Deprecation / sunset response metadata
"""

from src.core.versioning.version import (
    DEFAULT_TOKEN_PATTERN,
    Channel,
    LifecycleState,
    VersionDescriptor,
    VersionToken,
    normalize_token,
)
from src.core.versioning.errors import (
    ConfigurationError,
    MalformedVersionError,
    MissingVersionError,
    RegistryConflictError,
    RouteNotImplementedError,
    UnknownVersionError,
    VersionError,
)
from src.core.versioning.config import (
    DEFAULT_MEDIA_TYPE_PATTERN,
    DEFAULT_PRECEDENCE,
    VersioningConfig,
)
from src.core.versioning.registry import (
    ActiveVersionCeiling,
    RegistryAdvisory,
    VersionRegistry,
    create_version_registry,
    load_registry_file,
)
from src.core.versioning.extractor import (
    ExtractionResult,
    ExtractionStatus,
    VersionedRequest,
    VersionExtractor,
)
from src.core.versioning.resolver import ResolutionOutcome, VersionResolver
from src.core.versioning.dispatch import Handler, HandlerDispatchTable
from src.core.versioning.deprecation import DeprecationAnnotation, DeprecationAnnotator
from src.core.versioning.pipeline import (
    PipelineError,
    PipelineResult,
    PipelineState,
    RequestPipeline,
    VersionedResponse,
)

__all__ = [
    # Version values
    "DEFAULT_TOKEN_PATTERN",
    "Channel",
    "LifecycleState",
    "VersionDescriptor",
    "VersionToken",
    "normalize_token",
    # Errors
    "ConfigurationError",
    "MalformedVersionError",
    "MissingVersionError",
    "RegistryConflictError",
    "RouteNotImplementedError",
    "UnknownVersionError",
    "VersionError",
    # Config
    "DEFAULT_MEDIA_TYPE_PATTERN",
    "DEFAULT_PRECEDENCE",
    "VersioningConfig",
    # Registry
    "ActiveVersionCeiling",
    "RegistryAdvisory",
    "VersionRegistry",
    "create_version_registry",
    "load_registry_file",
    # Extraction / resolution
    "ExtractionResult",
    "ExtractionStatus",
    "VersionedRequest",
    "VersionExtractor",
    "ResolutionOutcome",
    "VersionResolver",
    # Dispatch / annotation
    "Handler",
    "HandlerDispatchTable",
    "DeprecationAnnotation",
    "DeprecationAnnotator",
    # Pipeline
    "PipelineError",
    "PipelineResult",
    "PipelineState",
    "RequestPipeline",
    "VersionedResponse",
]

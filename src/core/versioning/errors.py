"""Version engine exceptions.

Every failure the engine reports is deterministic for a given request and
registry state, so none of these are retried internally.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from src.core.errors import ErrorCode


class VersionError(Exception):
    """Base class for version resolution and routing failures."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 400

    def __init__(
        self,
        message: str,
        channels: Optional[Iterable[Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.channels: List[Any] = list(channels or [])
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    @property
    def kind(self) -> str:
        return self.code.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "channels": [getattr(c, "value", c) for c in self.channels],
        }


class MalformedVersionError(VersionError):
    """An explicit version token failed normalization."""

    code = ErrorCode.MALFORMED_VERSION

    def __init__(
        self,
        message: str,
        channels: Optional[Iterable[Any]] = None,
        raw_values: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message, channels)
        self.raw_values = dict(raw_values or {})

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["raw_values"] = self.raw_values
        return data


class MissingVersionError(VersionError):
    """No channel carried a version and version specification is mandatory."""

    code = ErrorCode.MISSING_VERSION


class UnknownVersionError(VersionError):
    """The resolved token is not present in the registry."""

    code = ErrorCode.UNKNOWN_VERSION

    def __init__(
        self,
        token: str,
        supported: Optional[Iterable[str]] = None,
        channels: Optional[Iterable[Any]] = None,
    ):
        self.token = token
        self.supported = list(supported or [])
        super().__init__(f"Unknown API version: {token}", channels)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["version"] = self.token
        data["supported_versions"] = self.supported
        return data


class RouteNotImplementedError(VersionError):
    """The version is known but has no handler for the requested route."""

    code = ErrorCode.ROUTE_NOT_IMPLEMENTED
    status_code = 404

    def __init__(
        self,
        token: str,
        route_id: str,
        available_in: Optional[Iterable[str]] = None,
    ):
        self.token = token
        self.route_id = route_id
        self.available_in = list(available_in or [])
        message = f"Route '{route_id}' is not implemented for API version {token}"
        if self.available_in:
            message += f" (available in: {', '.join(self.available_in)})"
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["version"] = self.token
        data["route"] = self.route_id
        data["available_in"] = self.available_in
        return data


class RegistryConflictError(VersionError):
    """An administrative operation contradicts the registry state."""

    code = ErrorCode.REGISTRY_CONFLICT
    status_code = 409


class ConfigurationError(ValueError):
    """Raised at startup when the engine configuration is invalid."""


__all__ = [
    "VersionError",
    "MalformedVersionError",
    "MissingVersionError",
    "UnknownVersionError",
    "RouteNotImplementedError",
    "RegistryConflictError",
    "ConfigurationError",
]

"""Shared error codes for API responses.

Centralizes error code enumeration so the version engine, the HTTP
surface and the admin endpoints report failures with the same codes.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    INPUT_ERROR = "INPUT_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    # Request-time version failures
    MALFORMED_VERSION = "MALFORMED_VERSION"  # Explicit token failed normalization
    MISSING_VERSION = "MISSING_VERSION"  # No token anywhere and version is mandatory
    UNKNOWN_VERSION = "UNKNOWN_VERSION"  # Token not in the registry
    ROUTE_NOT_IMPLEMENTED = "ROUTE_NOT_IMPLEMENTED"  # Version known, route absent
    # Administrative failures
    REGISTRY_CONFLICT = "REGISTRY_CONFLICT"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


__all__ = ["ErrorCode"]

"""API router factories."""
from src.api.versioning import create_admin_router, create_versioned_router

__all__ = ["create_admin_router", "create_versioned_router"]

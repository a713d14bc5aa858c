"""Admin API request/response models for the version registry."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from src.core.versioning.registry import RegistryAdvisory
from src.core.versioning.version import LifecycleState, VersionDescriptor


class VersionDescriptorModel(BaseModel):
    version: str
    state: LifecycleState
    sunset_at: Optional[datetime] = None
    successor_link: Optional[str] = None
    released_at: Optional[datetime] = None
    changelog_url: Optional[str] = None
    routes: List[str] = Field(default_factory=list)

    @classmethod
    def from_descriptor(
        cls,
        descriptor: VersionDescriptor,
        routes: Optional[List[str]] = None,
    ) -> "VersionDescriptorModel":
        return cls(
            version=descriptor.token.value,
            state=descriptor.state,
            sunset_at=descriptor.sunset_at,
            successor_link=descriptor.successor_link,
            released_at=descriptor.released_at,
            changelog_url=descriptor.changelog_url,
            routes=routes or [],
        )


class AdvisoryModel(BaseModel):
    code: str
    message: str

    @classmethod
    def from_advisory(cls, advisory: RegistryAdvisory) -> "AdvisoryModel":
        return cls(code=advisory.code, message=advisory.message)


class VersionListResponse(BaseModel):
    default_version: Optional[str] = None
    supported_versions: List[str]
    versions: List[VersionDescriptorModel]
    advisories: List[AdvisoryModel] = Field(default_factory=list)


class RegisterVersionRequest(BaseModel):
    version: str
    state: LifecycleState = LifecycleState.ACTIVE
    sunset_at: Optional[datetime] = None
    successor_link: Optional[str] = None
    released_at: Optional[datetime] = None
    changelog_url: Optional[str] = None


class DeprecateVersionRequest(BaseModel):
    successor_link: Optional[str] = None


class SunsetVersionRequest(BaseModel):
    at: Optional[datetime] = None
    successor_link: Optional[str] = None


class VersionChangeResponse(BaseModel):
    version: VersionDescriptorModel
    advisories: List[AdvisoryModel] = Field(default_factory=list)


class VersionRoutesResponse(BaseModel):
    version: str
    routes: List[str]


class RouteTableResponse(BaseModel):
    routes: Dict[str, List[str]]

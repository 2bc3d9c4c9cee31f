from __future__ import annotations

from pydantic import BaseModel, Field


class LoginInformation(BaseModel):
    auth_token: str = Field(..., description="Short-lived CodeArtifact authorization token")
    repository_name: str
    npm_endpoint: str
    maven_endpoint: str
    nuget_endpoint: str
    pypi_endpoint: str


class SandboxResponse(BaseModel):
    repository_name: str
    domain: str
    upstreams: list[str]


class DeleteResponse(BaseModel):
    repository_name: str
    deleted: bool


class GarbageCollectResponse(BaseModel):
    deleted: list[str]
    count: int

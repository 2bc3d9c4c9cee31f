from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from app.models.sandbox import DeleteResponse, GarbageCollectResponse, LoginInformation, SandboxResponse
from app.services.codeartifact_service import CodeArtifactService
from app.services.dependencies import get_codeartifact_service
from app.services.setup.sandbox_repository_service import SandboxRepository

router = APIRouter(prefix="/sandboxes", tags=["sandboxes"])


def _to_response(repo: SandboxRepository) -> SandboxResponse:
    return SandboxResponse(repository_name=repo.repository_name, domain=repo.domain, upstreams=repo.upstream_names)


@router.post("", response_model=SandboxResponse, status_code=201)
async def create_random_sandbox(
    service: CodeArtifactService = Depends(get_codeartifact_service),
) -> SandboxResponse:
    repo = await SandboxRepository.new_random(service=service)
    return _to_response(repo)


@router.post("/gc", response_model=GarbageCollectResponse)
async def garbage_collect(
    service: CodeArtifactService = Depends(get_codeartifact_service),
) -> GarbageCollectResponse:
    deleted = await SandboxRepository.garbage_collect(service=service)
    return GarbageCollectResponse(deleted=deleted, count=len(deleted))


@router.put("/{name}", response_model=SandboxResponse)
async def create_named_sandbox(
    name: str = Path(..., description="Repository name"),
    service: CodeArtifactService = Depends(get_codeartifact_service),
) -> SandboxResponse:
    repo = await SandboxRepository.new_with_name(name, service=service)
    return _to_response(repo)


@router.get("/{name}/login", response_model=LoginInformation)
async def login_information(
    name: str = Path(..., description="Repository name"),
    service: CodeArtifactService = Depends(get_codeartifact_service),
) -> LoginInformation:
    return await SandboxRepository.existing(name, service=service).login_information()


@router.delete("/{name}", response_model=DeleteResponse)
async def delete_sandbox(
    name: str = Path(..., description="Repository name"),
    service: CodeArtifactService = Depends(get_codeartifact_service),
) -> DeleteResponse:
    deleted = await SandboxRepository.existing(name, service=service).delete()
    return DeleteResponse(repository_name=name, deleted=deleted)

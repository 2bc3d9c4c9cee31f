from __future__ import annotations

from functools import lru_cache

from app.services.codeartifact_service import CodeArtifactService
from app.services.config import CodeArtifactConfig


@lru_cache(maxsize=1)
def get_codeartifact_config() -> CodeArtifactConfig:
    return CodeArtifactConfig.from_env()


def get_codeartifact_service() -> CodeArtifactService:
    """FastAPI dependency provider for a CodeArtifactService instance."""

    return CodeArtifactService(get_codeartifact_config())

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import ClassVar, Optional


@dataclass(frozen=True)
class CodeArtifactConfig:
    """Runtime configuration for sandbox repositories in CodeArtifact.

    The domain is shared by every sandbox and by the upstream repositories they
    proxy through; it is created lazily the first time a sandbox is prepared.
    """

    _DEFAULT_DOMAIN: ClassVar[str] = "test-cdk"
    _DEFAULT_LIFETIME_HOURS: ClassVar[float] = 24.0
    _DEFAULT_TOKEN_DURATION_HOURS: ClassVar[float] = 12.0

    domain: str = _DEFAULT_DOMAIN
    region_name: Optional[str] = None
    endpoint_url: Optional[str] = None
    repository_lifetime_hours: float = _DEFAULT_LIFETIME_HOURS
    token_duration_hours: float = _DEFAULT_TOKEN_DURATION_HOURS
    gc_on_startup: bool = False

    @property
    def repository_lifetime_ms(self) -> int:
        return int(self.repository_lifetime_hours * 3600 * 1000)

    @property
    def token_duration_seconds(self) -> int:
        return int(self.token_duration_hours * 3600)

    @staticmethod
    def _hours_from_env(env_name: str, default: float) -> float:
        raw = os.getenv(env_name)
        if not raw:
            return default
        try:
            value = float(raw)
        except ValueError as exc:
            raise ValueError(f"Invalid {env_name}; must be a number") from exc
        if value <= 0:
            raise ValueError(f"Invalid {env_name}; must be greater than zero")
        return value

    @staticmethod
    def from_env() -> "CodeArtifactConfig":
        domain = (os.getenv("CODEARTIFACT_DOMAIN") or "").strip() or CodeArtifactConfig._DEFAULT_DOMAIN
        region_name = os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION")
        endpoint_url = os.getenv("CODEARTIFACT_ENDPOINT_URL")

        gc_raw = (os.getenv("SANDBOX_GC_ON_STARTUP") or "").strip().lower()

        return CodeArtifactConfig(
            domain=domain,
            region_name=region_name,
            endpoint_url=endpoint_url,
            repository_lifetime_hours=CodeArtifactConfig._hours_from_env(
                "SANDBOX_LIFETIME_HOURS", CodeArtifactConfig._DEFAULT_LIFETIME_HOURS
            ),
            token_duration_hours=CodeArtifactConfig._hours_from_env(
                "SANDBOX_TOKEN_DURATION_HOURS", CodeArtifactConfig._DEFAULT_TOKEN_DURATION_HOURS
            ),
            gc_on_startup=gc_raw in {"1", "true", "yes", "on"},
        )

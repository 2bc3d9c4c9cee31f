from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional

import aioboto3
from botocore.exceptions import ClientError

from app.services.config import CodeArtifactConfig
from app.services.retry import retry


logger = logging.getLogger(__name__)

NOT_FOUND = "ResourceNotFoundException"
CONFLICT = "ConflictException"


def error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def is_not_found(exc: ClientError) -> bool:
    return error_code(exc) == NOT_FOUND


def is_conflict(exc: ClientError) -> bool:
    return error_code(exc) == CONFLICT


class CodeArtifactService:
    """Thin async wrapper over the CodeArtifact control plane, scoped to one domain.

    Methods take an already-open client so a caller can run a whole sequence
    (probe, create, associate) over a single connection:

        async with service.client() as client:
            if not await service.domain_exists(client=client):
                await service.create_domain(client=client)

    Only `ResourceNotFoundException` (probes, delete) and `ConflictException`
    (creates) are interpreted here. Every other `ClientError` reaches the caller
    unmodified.
    """

    _RETRY_DELAY_SECONDS: float = 0.5

    def __init__(self, config: CodeArtifactConfig, *, session: Optional[Any] = None) -> None:
        self._config = config
        self._session = session if session is not None else aioboto3.Session()

    @property
    def domain(self) -> str:
        return self._config.domain

    @property
    def config(self) -> CodeArtifactConfig:
        return self._config

    def client(self) -> Any:
        return self._session.client(
            "codeartifact",
            region_name=self._config.region_name,
            endpoint_url=self._config.endpoint_url,
        )

    # -----------------
    # Existence probes
    # -----------------

    async def domain_exists(self, *, client: Any) -> bool:
        try:
            await client.describe_domain(domain=self.domain)
            return True
        except ClientError as exc:
            if not is_not_found(exc):
                raise
            return False

    async def repository_exists(self, *, client: Any, repository: str) -> bool:
        try:
            await client.describe_repository(domain=self.domain, repository=repository)
            return True
        except ClientError as exc:
            if not is_not_found(exc):
                raise
            return False

    # -----------------
    # Create / delete
    # -----------------

    async def create_domain(self, *, client: Any, tags: Optional[dict[str, str]] = None) -> bool:
        """Create the domain. Returns False if a concurrent caller created it first."""

        kwargs: dict[str, Any] = {"domain": self.domain}
        if tags:
            kwargs["tags"] = _tag_list(tags)

        try:
            await client.create_domain(**kwargs)
        except ClientError as exc:
            # A conflict is only a lost race if the resource now exists.
            if not is_conflict(exc) or not await self.domain_exists(client=client):
                raise
            logger.info("CodeArtifact domain already exists: %s", self.domain)
            return False

        logger.info("Created CodeArtifact domain: %s", self.domain)
        return True

    async def create_repository(
        self,
        *,
        client: Any,
        repository: str,
        description: Optional[str] = None,
        upstreams: Optional[list[str]] = None,
        tags: Optional[dict[str, str]] = None,
    ) -> bool:
        """Create a repository. Returns False if a concurrent caller created it first."""

        kwargs: dict[str, Any] = {"domain": self.domain, "repository": repository}
        if description:
            kwargs["description"] = description
        if upstreams:
            kwargs["upstreams"] = [{"repositoryName": name} for name in upstreams]
        if tags:
            kwargs["tags"] = _tag_list(tags)

        try:
            await client.create_repository(**kwargs)
        except ClientError as exc:
            if not is_conflict(exc) or not await self.repository_exists(client=client, repository=repository):
                raise
            logger.info("CodeArtifact repository already exists: %s", repository)
            return False

        logger.info("Created CodeArtifact repository: %s", repository)
        return True

    async def associate_external_connection(self, *, client: Any, repository: str, external_connection: str) -> None:
        # The association call fails intermittently right after the repository is created.
        await retry(
            lambda: client.associate_external_connection(
                domain=self.domain,
                repository=repository,
                externalConnection=external_connection,
            ),
            delay_seconds=self._RETRY_DELAY_SECONDS,
        )

    async def delete_repository(self, *, client: Any, repository: str, domain: Optional[str] = None) -> bool:
        """Delete a repository. Returns False if it was already gone."""

        try:
            await client.delete_repository(domain=domain or self.domain, repository=repository)
        except ClientError as exc:
            if not is_not_found(exc):
                raise
            return False
        return True

    # -----------------
    # Lookups
    # -----------------

    async def get_authorization_token(self, *, client: Any) -> str:
        resp = await client.get_authorization_token(
            domain=self.domain,
            durationSeconds=self._config.token_duration_seconds,
        )
        return str(resp["authorizationToken"])

    async def get_repository_endpoint(self, *, client: Any, repository: str, package_format: str) -> str:
        resp = await client.get_repository_endpoint(
            domain=self.domain,
            repository=repository,
            format=package_format,
        )
        return str(resp["repositoryEndpoint"])

    async def iter_repositories(self, *, client: Any) -> AsyncIterator[dict[str, Any]]:
        """Yield every repository summary in the domain, following `nextToken`."""

        next_token: Optional[str] = None
        while True:
            kwargs: dict[str, Any] = {"domain": self.domain}
            if next_token:
                kwargs["nextToken"] = next_token

            page = await client.list_repositories_in_domain(**kwargs)
            for summary in page.get("repositories") or []:
                yield summary

            next_token = page.get("nextToken")
            if not next_token:
                return

    async def list_tags(self, *, client: Any, resource_arn: str) -> dict[str, str]:
        resp = await client.list_tags_for_resource(resourceArn=resource_arn)
        return {str(tag.get("key")): str(tag.get("value")) for tag in resp.get("tags") or []}


def _tag_list(tags: dict[str, str]) -> list[dict[str, str]]:
    return [{"key": key, "value": value} for key, value in tags.items()]

from __future__ import annotations

import logging
import random
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from app.models.sandbox import LoginInformation
from app.services.codeartifact_service import CodeArtifactService


logger = logging.getLogger(__name__)

COLLECT_BY_TAG = "collect-by"

Clock = Callable[[], int]


def now_ms() -> int:
    return int(time.time() * 1000)


class InvalidRepositoryNameError(ValueError):
    pass


@dataclass(frozen=True)
class UpstreamRepository:
    name: str
    description: str
    external_connection: str
    package_format: str


NPM_UPSTREAM = UpstreamRepository(
    name="npm-upstream",
    description="The upstream repository for NPM",
    external_connection="public:npmjs",
    package_format="npm",
)
MAVEN_UPSTREAM = UpstreamRepository(
    name="maven-upstream",
    description="The upstream repository for Maven",
    external_connection="public:maven-central",
    package_format="maven",
)
NUGET_UPSTREAM = UpstreamRepository(
    name="nuget-upstream",
    description="The upstream repository for NuGet",
    external_connection="public:nuget-org",
    package_format="nuget",
)
PYPI_UPSTREAM = UpstreamRepository(
    name="pypi-upstream",
    description="The upstream repository for PyPI",
    external_connection="public:pypi",
    package_format="pypi",
)

# Creation order for the shared upstreams.
UPSTREAMS: tuple[UpstreamRepository, ...] = (NPM_UPSTREAM, MAVEN_UPSTREAM, NUGET_UPSTREAM, PYPI_UPSTREAM)

# Order in which a sandbox lists its upstreams; CodeArtifact resolves packages in this order.
SANDBOX_UPSTREAMS: tuple[UpstreamRepository, ...] = (NPM_UPSTREAM, PYPI_UPSTREAM, NUGET_UPSTREAM, MAVEN_UPSTREAM)

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36_fraction(value: float, *, max_digits: int = 11) -> str:
    """Render a fraction in [0, 1) in base 36, e.g. 0.5 -> "0.i"."""

    digits: list[str] = []
    fraction = value
    while fraction > 0 and len(digits) < max_digits:
        fraction *= 36
        digit = int(fraction)
        digits.append(_BASE36_DIGITS[digit])
        fraction -= digit

    if not digits:
        return "0"
    return "0." + "".join(digits)


def random_repository_name(*, rng: Optional[random.Random] = None) -> str:
    value = (rng or random).random()
    qualifier = re.sub(r"[^a-z0-9]+", "", _base36_fraction(value))
    return f"test-{qualifier}"


class SandboxRepository:
    """A temporary CodeArtifact repository for one test run.

    Every sandbox lives in a shared domain and proxies through four shared upstream
    repositories (npm, Maven, NuGet, PyPI), each bound to its public registry.
    The domain and upstreams are created on first use and never deleted here.

    Each sandbox is tagged with `collect-by` (epoch milliseconds) when it is created;
    `garbage_collect()` deletes any repository in the domain whose tag is in the past.
    """

    DESCRIPTION = "Testing repository"
    DOMAIN_TAGS: dict[str, str] = {"testing": "true"}

    def __init__(self, repository_name: str, *, service: CodeArtifactService, clock: Optional[Clock] = None) -> None:
        if not repository_name or not repository_name.strip():
            raise InvalidRepositoryNameError("repository_name must be provided")

        self._repository_name = repository_name
        self._service = service
        self._clock = clock or now_ms

    @property
    def repository_name(self) -> str:
        return self._repository_name

    @property
    def domain(self) -> str:
        return self._service.domain

    @property
    def upstream_names(self) -> list[str]:
        return [upstream.name for upstream in SANDBOX_UPSTREAMS]

    # -----------------
    # Factories
    # -----------------

    @classmethod
    async def new_random(cls, *, service: CodeArtifactService, clock: Optional[Clock] = None) -> "SandboxRepository":
        repo = cls(random_repository_name(), service=service, clock=clock)
        await repo.prepare()
        return repo

    @classmethod
    async def new_with_name(
        cls,
        name: str,
        *,
        service: CodeArtifactService,
        clock: Optional[Clock] = None,
    ) -> "SandboxRepository":
        repo = cls(name, service=service, clock=clock)
        await repo.prepare()
        return repo

    @classmethod
    def existing(cls, name: str, *, service: CodeArtifactService, clock: Optional[Clock] = None) -> "SandboxRepository":
        """Handle to a repository that should already exist. Makes no AWS calls."""

        return cls(name, service=service, clock=clock)

    # -----------------
    # Lifecycle
    # -----------------

    async def prepare(self) -> None:
        """Ensure the domain, the shared upstreams and this repository exist.

        Safe to call repeatedly; existing resources are left untouched, so the
        `collect-by` tag is only ever written by the call that creates the repository.
        """

        logger.info("Preparing sandbox repository: %s (domain=%s)", self._repository_name, self.domain)

        async with self._service.client() as client:
            await self._ensure_domain(client=client)
            await self._ensure_upstreams(client=client)

            collect_by = self._clock() + self._service.config.repository_lifetime_ms
            await self._ensure_repository(
                client=client,
                name=self._repository_name,
                description=self.DESCRIPTION,
                upstreams=self.upstream_names,
                tags={COLLECT_BY_TAG: str(collect_by)},
            )

    async def login_information(self) -> LoginInformation:
        async with self._service.client() as client:
            auth_token = await self._service.get_authorization_token(client=client)
            endpoints = {
                upstream.package_format: await self._service.get_repository_endpoint(
                    client=client,
                    repository=self._repository_name,
                    package_format=upstream.package_format,
                )
                for upstream in UPSTREAMS
            }

        return LoginInformation(
            auth_token=auth_token,
            repository_name=self._repository_name,
            npm_endpoint=endpoints["npm"],
            maven_endpoint=endpoints["maven"],
            nuget_endpoint=endpoints["nuget"],
            pypi_endpoint=endpoints["pypi"],
        )

    async def delete(self) -> bool:
        """Delete the repository. Returns False if it was already gone."""

        async with self._service.client() as client:
            deleted = await self._service.delete_repository(client=client, repository=self._repository_name)

        if deleted:
            logger.info("Deleted %s", self._repository_name)
        else:
            logger.info("Repository already gone: %s", self._repository_name)
        return deleted

    @classmethod
    async def garbage_collect(cls, *, service: CodeArtifactService, clock: Optional[Clock] = None) -> list[str]:
        """Delete every repository in the domain whose `collect-by` tag has passed.

        Returns the names of the deleted repositories. A failure deleting one
        repository stops the sweep and propagates.
        """

        current = (clock or now_ms)()
        deleted: list[str] = []

        async with service.client() as client:
            if not await service.domain_exists(client=client):
                return deleted

            async for summary in service.iter_repositories(client=client):
                tags = await service.list_tags(client=client, resource_arn=summary["arn"])
                if not _is_collectable(tags, now=current):
                    continue

                name = summary["name"]
                logger.info("Deleting %s", name)
                await service.delete_repository(
                    client=client,
                    repository=name,
                    domain=summary.get("domainName"),
                )
                deleted.append(name)

        logger.info("Sandbox garbage collection complete: deleted=%d", len(deleted))
        return deleted

    # -----------------
    # Private helpers
    # -----------------

    async def _ensure_domain(self, *, client: Any) -> None:
        if await self._service.domain_exists(client=client):
            return
        await self._service.create_domain(client=client, tags=self.DOMAIN_TAGS)

    async def _ensure_upstreams(self, *, client: Any) -> None:
        for upstream in UPSTREAMS:
            await self._ensure_repository(
                client=client,
                name=upstream.name,
                description=upstream.description,
                external_connection=upstream.external_connection,
            )

    async def _ensure_repository(
        self,
        *,
        client: Any,
        name: str,
        description: Optional[str] = None,
        external_connection: Optional[str] = None,
        upstreams: Optional[list[str]] = None,
        tags: Optional[dict[str, str]] = None,
    ) -> None:
        if await self._service.repository_exists(client=client, repository=name):
            return

        created = await self._service.create_repository(
            client=client,
            repository=name,
            description=description,
            upstreams=upstreams,
            tags=tags,
        )
        # Whoever created the repository also owns associating its external connection.
        if created and external_connection:
            await self._service.associate_external_connection(
                client=client,
                repository=name,
                external_connection=external_connection,
            )


def _is_collectable(tags: dict[str, str], *, now: int) -> bool:
    raw = tags.get(COLLECT_BY_TAG)
    if raw is None:
        return False
    try:
        collect_by = float(raw)
    except ValueError:
        return False
    return collect_by < now

"""Shared fixtures: an in-memory CodeArtifact fake and a session that hands it out.

The fake implements just the control-plane calls the sandbox manager uses and
raises botocore `ClientError`s with the same error codes AWS returns.
"""
from __future__ import annotations

from typing import Any, Optional

import pytest
from botocore.exceptions import ClientError

from app.services.codeartifact_service import CodeArtifactService
from app.services.config import CodeArtifactConfig


ACCOUNT = "123456789012"
REGION = "us-east-1"


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{operation} failed: {code}"}}, operation)


class FakeCodeArtifact:
    def __init__(self, *, page_size: int = 2) -> None:
        self.domains: dict[str, dict[str, Any]] = {}
        self.repositories: dict[tuple[str, str], dict[str, Any]] = {}
        self.calls: list[str] = []
        self.page_size = page_size
        # Number of upcoming associate_external_connection calls that fail.
        self.associate_failures = 0
        # Repository name -> error raised by delete_repository.
        self.delete_errors: dict[str, ClientError] = {}
        # Operation name -> error raised on the next call.
        self.errors: dict[str, ClientError] = {}
        self._listing: list[str] = []

    def _record(self, operation: str) -> None:
        self.calls.append(operation)
        error = self.errors.pop(operation, None)
        if error is not None:
            raise error

    def count(self, operation: str) -> int:
        return self.calls.count(operation)

    def add_repository(
        self,
        name: str,
        *,
        domain: str = "test-cdk",
        tags: Optional[dict[str, str]] = None,
    ) -> None:
        self.domains.setdefault(domain, {"tags": {}})
        self.repositories[(domain, name)] = {
            "name": name,
            "domainName": domain,
            "arn": f"arn:aws:codeartifact:{REGION}:{ACCOUNT}:repository/{domain}/{name}",
            "description": None,
            "upstreams": [],
            "tags": dict(tags or {}),
            "external_connections": [],
        }

    # -----------------
    # CodeArtifact API
    # -----------------

    async def describe_domain(self, *, domain: str) -> dict[str, Any]:
        self._record("describe_domain")
        if domain not in self.domains:
            raise client_error("ResourceNotFoundException", "DescribeDomain")
        return {"domain": {"name": domain}}

    async def create_domain(self, *, domain: str, tags: Optional[list[dict[str, str]]] = None) -> dict[str, Any]:
        self._record("create_domain")
        if domain in self.domains:
            raise client_error("ConflictException", "CreateDomain")
        self.domains[domain] = {"tags": {t["key"]: t["value"] for t in tags or []}}
        return {"domain": {"name": domain}}

    async def describe_repository(self, *, domain: str, repository: str) -> dict[str, Any]:
        self._record("describe_repository")
        if (domain, repository) not in self.repositories:
            raise client_error("ResourceNotFoundException", "DescribeRepository")
        return {"repository": {"name": repository}}

    async def create_repository(
        self,
        *,
        domain: str,
        repository: str,
        description: Optional[str] = None,
        upstreams: Optional[list[dict[str, str]]] = None,
        tags: Optional[list[dict[str, str]]] = None,
    ) -> dict[str, Any]:
        self._record("create_repository")
        if domain not in self.domains:
            raise client_error("ResourceNotFoundException", "CreateRepository")
        if (domain, repository) in self.repositories:
            raise client_error("ConflictException", "CreateRepository")
        for upstream in upstreams or []:
            if (domain, upstream["repositoryName"]) not in self.repositories:
                raise client_error("ResourceNotFoundException", "CreateRepository")

        self.add_repository(repository, domain=domain, tags={t["key"]: t["value"] for t in tags or []})
        record = self.repositories[(domain, repository)]
        record["description"] = description
        record["upstreams"] = [u["repositoryName"] for u in upstreams or []]
        return {"repository": {"name": repository}}

    async def associate_external_connection(
        self, *, domain: str, repository: str, externalConnection: str
    ) -> dict[str, Any]:
        self._record("associate_external_connection")
        if self.associate_failures > 0:
            self.associate_failures -= 1
            raise client_error("InternalServerException", "AssociateExternalConnection")
        self.repositories[(domain, repository)]["external_connections"].append(externalConnection)
        return {"repository": {"name": repository}}

    async def delete_repository(self, *, domain: str, repository: str) -> dict[str, Any]:
        self._record("delete_repository")
        error = self.delete_errors.get(repository)
        if error is not None:
            raise error
        if (domain, repository) not in self.repositories:
            raise client_error("ResourceNotFoundException", "DeleteRepository")
        del self.repositories[(domain, repository)]
        return {"repository": {"name": repository}}

    async def get_authorization_token(self, *, domain: str, durationSeconds: int) -> dict[str, Any]:
        self._record("get_authorization_token")
        if domain not in self.domains:
            raise client_error("ResourceNotFoundException", "GetAuthorizationToken")
        return {"authorizationToken": f"token-{domain}-{durationSeconds}"}

    async def get_repository_endpoint(self, *, domain: str, repository: str, format: str) -> dict[str, Any]:
        self._record("get_repository_endpoint")
        if (domain, repository) not in self.repositories:
            raise client_error("ResourceNotFoundException", "GetRepositoryEndpoint")
        return {
            "repositoryEndpoint": (
                f"https://{domain}-{ACCOUNT}.d.codeartifact.{REGION}.amazonaws.com/{format}/{repository}/"
            )
        }

    async def list_repositories_in_domain(self, *, domain: str, nextToken: Optional[str] = None) -> dict[str, Any]:
        self._record("list_repositories_in_domain")
        # Continuation tokens index into the listing taken when the first page was requested.
        if not nextToken:
            self._listing = sorted(name for (d, name) in self.repositories if d == domain)
        names = self._listing
        start = int(nextToken) if nextToken else 0
        page = [name for name in names[start : start + self.page_size] if (domain, name) in self.repositories]
        resp: dict[str, Any] = {
            "repositories": [
                {
                    "name": name,
                    "domainName": domain,
                    "arn": self.repositories[(domain, name)]["arn"],
                }
                for name in page
            ]
        }
        if start + self.page_size < len(names):
            resp["nextToken"] = str(start + self.page_size)
        return resp

    async def list_tags_for_resource(self, *, resourceArn: str) -> dict[str, Any]:
        self._record("list_tags_for_resource")
        for record in self.repositories.values():
            if record["arn"] == resourceArn:
                return {"tags": [{"key": k, "value": v} for k, v in record["tags"].items()]}
        raise client_error("ResourceNotFoundException", "ListTagsForResource")


class _FakeClientContext:
    def __init__(self, fake: FakeCodeArtifact) -> None:
        self._fake = fake

    async def __aenter__(self) -> FakeCodeArtifact:
        return self._fake

    async def __aexit__(self, *exc_info: Any) -> None:
        return None


class FakeSession:
    def __init__(self, fake: FakeCodeArtifact) -> None:
        self._fake = fake
        self.client_kwargs: list[dict[str, Any]] = []

    def client(self, service_name: str, **kwargs: Any) -> _FakeClientContext:
        assert service_name == "codeartifact"
        self.client_kwargs.append(kwargs)
        return _FakeClientContext(self._fake)


@pytest.fixture
def fake_codeartifact() -> FakeCodeArtifact:
    return FakeCodeArtifact()


@pytest.fixture
def codeartifact_config() -> CodeArtifactConfig:
    return CodeArtifactConfig(region_name=REGION)


@pytest.fixture
def fake_session(fake_codeartifact: FakeCodeArtifact) -> FakeSession:
    return FakeSession(fake_codeartifact)


@pytest.fixture
def service(
    codeartifact_config: CodeArtifactConfig,
    fake_session: FakeSession,
    monkeypatch: pytest.MonkeyPatch,
) -> CodeArtifactService:
    monkeypatch.setattr(CodeArtifactService, "_RETRY_DELAY_SECONDS", 0.0)
    return CodeArtifactService(codeartifact_config, session=fake_session)

from contextlib import asynccontextmanager
import logging

from botocore.exceptions import ClientError
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette import status

from app.routes.sandboxes import router as sandboxes_router
from app.services.codeartifact_service import is_conflict, is_not_found
from app.services.dependencies import get_codeartifact_config, get_codeartifact_service
from app.services.setup.sandbox_repository_service import InvalidRepositoryNameError, SandboxRepository


logger = logging.getLogger(__name__)


def _ensure_logging() -> None:
    formatter = logging.Formatter("%(levelname)s: %(message)s")
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    else:
        root.setLevel(logging.INFO)
        for handler in root.handlers:
            handler.setFormatter(formatter)


@asynccontextmanager
async def lifespan(app: FastAPI):
    _ensure_logging()
    if get_codeartifact_config().gc_on_startup:
        logger.info("Running sandbox garbage collection on startup")
        await SandboxRepository.garbage_collect(service=get_codeartifact_service())
    yield


app = FastAPI(lifespan=lifespan)

app.include_router(sandboxes_router)


@app.exception_handler(ClientError)
async def codeartifact_error_handler(request: Request, exc: ClientError) -> JSONResponse:
    """Map CodeArtifact failures to a consistent HTTP response.

    Returns:
        404 when the repository or domain does not exist, 409 when a create call
        conflicts with an existing resource, 502 Bad Gateway otherwise. The body is
        always {"detail": "..."}.
    """
    if is_not_found(exc):
        status_code = status.HTTP_404_NOT_FOUND
    elif is_conflict(exc):
        status_code = status.HTTP_409_CONFLICT
    else:
        logger.error("CodeArtifact call failed: %s", exc)
        status_code = status.HTTP_502_BAD_GATEWAY

    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(InvalidRepositoryNameError)
async def invalid_repository_name_handler(request: Request, exc: InvalidRepositoryNameError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.get("/")
async def root():
    return {"message": "Sandbox repository manager is running."}

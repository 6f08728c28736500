"""Entry point for the web application."""

import time
import traceback
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging
from webapp.config import HOST, PORT, Settings, load_settings
from webapp.container import ServiceContainer, build_container
from webapp.exceptions import (
    ConflictError,
    DriveException,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    PermissionDeniedError,
    StoreUnavailableError,
    ValidationError,
)
from webapp.routes import auth_router, file_router, folder_router
from webapp.schemas.common import ErrorResponse

logger = setup_logging('webapp')


def _error_response(status_code: int, detail: str, code: str, **extra) -> JSONResponse:
    content = ErrorResponse(detail=detail, code=code).model_dump()
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def _request_id(request: Request) -> str:
    return getattr(request.state, 'request_id', 'unknown')


async def validation_error_handler(request: Request, exc: ValidationError):
    logger.warning(f"Validation error: {exc} [request_id={_request_id(request)}] path={request.url.path}")
    return _error_response(status.HTTP_400_BAD_REQUEST, str(exc), exc.code)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        detail = "Invalid request"
    logger.warning(f"Request validation failed: {detail} [request_id={_request_id(request)}] path={request.url.path}")
    return _error_response(status.HTTP_400_BAD_REQUEST, detail, ValidationError.code)


async def unauthorized_handler(request: Request, exc: DriveException):
    logger.warning(f"Authentication failed: {exc} [request_id={_request_id(request)}] path={request.url.path}")
    return _error_response(status.HTTP_401_UNAUTHORIZED, str(exc), exc.code)


async def permission_denied_handler(request: Request, exc: PermissionDeniedError):
    user_id = getattr(request.state, 'user_id', 'unknown')
    logger.warning(
        f"Permission denied: {exc} [request_id={_request_id(request)}] [user_id={user_id}] path={request.url.path}"
    )
    return _error_response(status.HTTP_403_FORBIDDEN, str(exc), exc.code)


async def not_found_handler(request: Request, exc: NotFoundError):
    logger.warning(f"Not found: {exc} [request_id={_request_id(request)}] path={request.url.path}")
    return _error_response(status.HTTP_404_NOT_FOUND, str(exc), exc.code)


async def conflict_handler(request: Request, exc: ConflictError):
    logger.warning(f"Conflict: {exc} [request_id={_request_id(request)}] path={request.url.path}")
    return _error_response(status.HTTP_409_CONFLICT, str(exc), exc.code)


async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    logger.error(
        f"Store unavailable: {exc} [request_id={_request_id(request)}] path={request.url.path}",
        exc_info=True
    )
    return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc), exc.code)


async def drive_exception_handler(request: Request, exc: DriveException):
    logger.error(
        f"Internal error: {exc} [request_id={_request_id(request)}] path={request.url.path}",
        exc_info=True
    )
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc), exc.code)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled exception: {exc} [request_id={_request_id(request)}] path={request.url.path}",
        exc_info=True
    )
    extra = {}
    settings = getattr(request.app.state, 'settings', None)
    if settings is not None and settings.debug:
        extra["traceback"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        DriveException.code,
        **extra
    )


def create_app(settings: Optional[Settings] = None, container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Runtime settings; read from the environment when omitted
        container: Pre-built services; built from settings on startup when omitted

    Returns:
        Configured FastAPI app
    """
    if settings is None:
        settings = container.settings if container is not None else load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Web application starting up...")
        if app.state.container is None:
            app.state.container = build_container(settings)
            logger.info("Storage backends initialized")
        yield
        logger.info("Web application shutting down...")

    app = FastAPI(
        title="Skybox Files",
        description="File storage with folders and sharing over S3-compatible object storage",
        version="1.0.0",
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.container = container

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Middleware to log all HTTP requests and responses.
        """
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()

        logger.info(f"Request started: {request.method} {request.url.path} [request_id={request_id}]")

        response = await call_next(request)

        duration = time.time() - start_time
        user_id = getattr(request.state, 'user_id', None)

        logger.info(
            f"Request completed: {request.method} {request.url.path} "
            f"status={response.status_code} duration={duration:.3f}s "
            f"[request_id={request_id}] [user_id={user_id or 'anonymous'}]"
        )

        response.headers["X-Request-ID"] = request_id

        return response

    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(InvalidCredentialsError, unauthorized_handler)
    app.add_exception_handler(InvalidTokenError, unauthorized_handler)
    app.add_exception_handler(PermissionDeniedError, permission_denied_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(ConflictError, conflict_handler)
    app.add_exception_handler(StoreUnavailableError, store_unavailable_handler)
    app.add_exception_handler(DriveException, drive_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(auth_router)
    app.include_router(file_router)
    app.include_router(folder_router)

    @app.get("/")
    async def root():
        """
        Root endpoint for health check.
        """
        return {"message": "Skybox Files API", "status": "running"}

    @app.get("/health")
    async def health_check():
        """
        Liveness check. Returns 200 if the process is serving requests.
        """
        return {"status": "healthy", "service": "webapp"}

    @app.get("/ready")
    def ready_check(request: Request):
        """
        Readiness check.
        Verifies metadata store and blob store connectivity.
        """
        current = request.app.state.container
        checks = {}
        for name, probe in (("metadata", current.node_repo.ping), ("storage", current.blob_store.ping)):
            try:
                probe()
                checks[name] = "ok"
            except StoreUnavailableError as e:
                checks[name] = f"error: {e}"

        ready = all(result == "ok" for result in checks.values())
        status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE
        return JSONResponse(status_code=status_code, content={"ready": ready, **checks})

    return app


app = create_app()


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "webapp.main:app",
        host=HOST,
        port=PORT,
    )


if __name__ == "__main__":
    main()

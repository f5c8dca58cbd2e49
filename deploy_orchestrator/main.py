"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from deploy_orchestrator import __version__
from deploy_orchestrator.api.middleware import RequestLoggingMiddleware
from deploy_orchestrator.api.v1.router import router as v1_router
from deploy_orchestrator.config import settings
from deploy_orchestrator.core.exceptions import (
    DeployOrchestratorError,
    InvalidTransitionError,
    ProjectNotFoundError,
    ProviderError,
    ValidationError,
)
from deploy_orchestrator.core.orchestrator import get_orchestrator
from deploy_orchestrator.utils.logging import configure_logging, get_logger, redact

logger = get_logger(__name__)

ERROR_STATUS_CODES: dict[type[DeployOrchestratorError], int] = {
    ProjectNotFoundError: status.HTTP_404_NOT_FOUND,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    ProviderError: status.HTTP_502_BAD_GATEWAY,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    configure_logging()
    orchestrator = get_orchestrator()
    logger.info(
        "application.starting",
        version=__version__,
        environment=settings.app_env,
        provider=orchestrator.provider.name,
        max_retries=settings.deploy_max_retries,
        poll_interval=settings.deploy_poll_interval,
    )

    yield

    # Monitors must not outlive the event loop
    await orchestrator.shutdown()
    await orchestrator.provider.aclose()
    logger.info("application.shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Deployment Orchestrator API",
        description="Deploys generated projects to Vercel and tracks their builds",
        version=__version__,
        docs_url="/docs" if settings.app_debug else None,
        redoc_url="/redoc" if settings.app_debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.is_development else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(DeployOrchestratorError)
    async def orchestrator_error_handler(
        request: Request, exc: DeployOrchestratorError
    ) -> JSONResponse:
        """Handle application-specific errors."""
        status_code = ERROR_STATUS_CODES.get(
            type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        return JSONResponse(
            status_code=status_code,
            content={
                "error": {
                    "code": type(exc).__name__.upper(),
                    "message": redact(exc.message),
                    "details": exc.details,
                }
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected errors."""
        logger.error(
            "unhandled_exception",
            error=redact(str(exc)),
            path=request.url.path,
            exc_info=True,
        )

        if settings.is_development:
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": {
                        "code": "INTERNAL_ERROR",
                        "message": redact(str(exc)),
                        "type": type(exc).__name__,
                    }
                },
            )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                }
            },
        )

    app.include_router(v1_router)

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "deploy_orchestrator.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )

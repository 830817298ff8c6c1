"""
FastAPI application entry point for the Etsub storefront.

Run with:
    uvicorn storefront.webapp.main:app --reload

Or through the CLI:
    python -m storefront.main serve
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from storefront.exceptions import AppException
from storefront.services.admin_service import AdminService
from storefront.storage.kv_store import JsonFileKVStore
from storefront.utils.config_loader import AppConfig, load_config, load_env
from storefront.utils.logging_config import setup_logging
from storefront.webapp.routes import router

logger = logging.getLogger(__name__)


def build_service(config: AppConfig) -> AdminService:
    """Build the admin service over the configured storage file."""
    kv_store = JsonFileKVStore(str(config.paths.storage_path))
    return AdminService(config, kv_store)


def create_app(service: Optional[AdminService] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: Prebuilt service (tests). When omitted, configuration is
            loaded at startup from $ETSUB_CONFIG or config/config.yaml and
            the service is built from it.

    Returns:
        FastAPI: Configured application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown."""
        if service is None:
            load_env()
            config = load_config()
            setup_logging(config.logging)
            app.state.service = build_service(config)
        else:
            app.state.service = service

        app.state.service.start()
        logger.info("Etsub storefront web app starting...")
        yield
        logger.info("Etsub storefront web app shutting down...")
        app.state.service.shutdown()

    app = FastAPI(
        title="Etsub Online Shopping",
        description="Storefront catalog with USD to ETB pricing and a password-gated admin dashboard",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        """Map application errors to JSON responses with their status code."""
        if exc.status_code >= 500:
            logger.error(f"{exc.error_code} on {request.url.path}: {exc.message}")
        else:
            logger.info(f"{exc.error_code} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.middleware("http")
    async def error_handling_middleware(request: Request, call_next):
        """Global error handling middleware."""
        start_time = time.time()
        try:
            response = await call_next(request)
            response.headers["X-Process-Time"] = str(time.time() - start_time)
            return response
        except Exception as e:
            process_time = time.time() - start_time
            logger.exception(f"Unhandled error processing {request.url.path}: {e}")
            return JSONResponse(
                status_code=500,
                content={
                    "error": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "details": {"path": str(request.url.path)},
                },
                headers={"X-Process-Time": str(process_time)},
            )

    @app.get("/health/simple")
    async def simple_health_check() -> dict[str, Any]:
        """Simple health check for load balancers."""
        return {
            "status": "ok",
            "timestamp": datetime.now().isoformat(),
        }

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("storefront.webapp.main:app", host="127.0.0.1", port=8000, reload=True)

"""SpotlightX FastAPI application."""

from datetime import datetime, timezone

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from spotlight import __version__
from spotlight.api.deps import get_cache_dep
from spotlight.api.routers import feed, jobs, personas, posts, trends, webhook
from spotlight.core.cache import RedisCache, get_cache
from spotlight.core.errors import SpotlightError
from spotlight.core.logging import get_logger, setup_logging
from spotlight.core.settings import settings

SERVICE_NAME = "spotlight"


def create_app() -> FastAPI:
    """Create the API application with routers and error handlers."""
    setup_logging(SERVICE_NAME)
    logger = get_logger(__name__)

    app = FastAPI(
        title=settings.app_name,
        description="Feed ranking and trend detection API",
        version=__version__,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for module in (feed, posts, personas, trends, jobs, webhook):
        app.include_router(module.router)

    @app.exception_handler(SpotlightError)
    async def spotlight_error_handler(request: Request, exc: SpotlightError):
        if exc.status_code >= 500:
            logger.error(f"{request.url.path}: {exc}")
        else:
            logger.info(f"{request.url.path}: {exc}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={
                "error": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": [
                    {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                    for err in exc.errors()
                ],
            },
        )

    @app.get("/healthz")
    async def health_check(cache: RedisCache = Depends(get_cache_dep)):
        """Health check endpoint."""
        return {
            "ok": True,
            "service": SERVICE_NAME,
            "version": __version__,
            "cache": cache.backend,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/")
    async def root():
        return {"message": "SpotlightX API", "service": SERVICE_NAME, "version": __version__}

    @app.on_event("startup")
    async def startup_event():
        await get_cache().connect()
        logger.info("Starting spotlight service", extra={"service": SERVICE_NAME, "version": __version__})

    @app.on_event("shutdown")
    async def shutdown_event():
        await get_cache().close()
        logger.info("Shutting down spotlight service")

    return app


app = create_app()


def main() -> None:
    uvicorn.run(
        "spotlight.api.app:app",
        host=settings.service_host,
        port=settings.service_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

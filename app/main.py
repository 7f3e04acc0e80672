import logging
import logging.config

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config import ConfigurationError, get_settings
from app.limiter import limiter
from app.routers.indexing import router as indexing_router
from app.routers.notifications import router as notifications_router
from app.routers.publishing import router as publishing_router
from app.routers.seo import router as seo_router
from app.routers.sitemaps import router as sitemaps_router

settings = get_settings()

logging.config.dictConfig(
    {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
            },
        },
        "root": {"level": settings.log_level, "handlers": ["console"]},
    }
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Bulletin Briefs – SEO & Indexing API",
    description="Serves the site's sitemaps and pushes content updates to search engines and subscribers.",
    version="1.0.0",
)

# Rate-limiting state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "content-type", "apikey", "x-client-info"],
)


@app.exception_handler(ConfigurationError)
async def configuration_exception_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("Configuration error for %s: %s", request.url, exc)
    return JSONResponse(status_code=500, content={"detail": "Server configuration error"})


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception for %s", request.url)
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred."})


app.include_router(sitemaps_router)
app.include_router(indexing_router)
app.include_router(notifications_router)
app.include_router(publishing_router)
app.include_router(seo_router)


@app.get("/", summary="Health check")
async def root() -> dict:
    return {"message": "Bulletin Briefs SEO service is running"}

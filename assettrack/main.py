from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import structlog

from assettrack.config import settings
from assettrack.container import build_container
from assettrack.logging_config import setup_logging
from assettrack.middleware.correlation import CorrelationIdMiddleware

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("starting_assettrack", env=settings.ENVIRONMENT, backend=settings.STORE_BACKEND)
    if settings.is_production and settings.JWT_SECRET_KEY == "change-me":
        logger.warning("jwt_secret_is_default")
    # Tests attach their own container before the app starts.
    owned = getattr(app.state, "container", None) is None
    if owned:
        app.state.container = await build_container(settings)
    yield
    if owned:
        await app.state.container.close()
        app.state.container = None


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Global exception handlers normalize all errors to one structured format:
# {"error": {"code": "...", "message": "..."}}
# ---------------------------------------------------------------------------

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, str):
        detail = {"error": {"code": "HTTP_ERROR", "message": detail}}
    elif isinstance(detail, dict) and "error" not in detail:
        detail = {"error": detail}
    return JSONResponse(status_code=exc.status_code, content=detail, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": jsonable_errors(exc),
            }
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry exception instances that JSONResponse cannot encode
    return [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]


app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With", "X-Request-ID"],
)


@app.get("/health", tags=["System"])
async def health(request: Request, response: Response):
    health_status = {"status": "healthy", "version": settings.APP_VERSION, "checks": {}}

    container = getattr(request.app.state, "container", None)
    try:
        store_ok = container is not None and await container.store.ping()
    except Exception as e:
        logger.error("health_check_store_failed", error=str(e))
        store_ok = False
    health_status["checks"]["store"] = "ok" if store_ok else "error"

    if not store_ok:
        health_status["status"] = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return health_status


# --- Routers ---
from assettrack.routes.admin_requests import router as admin_requests_router  # noqa: E402
from assettrack.routes.facilitator_requests import router as facilitator_requests_router  # noqa: E402

app.include_router(admin_requests_router, prefix="/api/v1/admin/requests", tags=["Admin Requests"])
app.include_router(
    facilitator_requests_router, prefix="/api/v1/facilitator/requests", tags=["Facilitator Requests"]
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("assettrack.main:app", host="0.0.0.0", port=settings.PORT)

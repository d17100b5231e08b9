from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from backend.app.api.deps import get_text_provider
from backend.app.api.v1 import router as api_v1_router
from backend.app.config import get_settings
from backend.app.infrastructure.database import check_database_connectivity
from backend.app.infrastructure.errors import (
    BindingError,
    ConflictError,
    GenerationError,
    LetterWorkflowError,
    NotFoundError,
    PermissionDeniedError,
    RenderingError,
    StateError,
    WorkflowValidationError,
)
from backend.app.infrastructure.redis import check_redis_connectivity, close_redis_client
from backend.app.infrastructure.storage import check_storage_connectivity
from backend.app.logging_config import (
    clear_context,
    get_correlation_id,
    get_logger,
    set_correlation_id,
    setup_logging,
)

try:
    settings = get_settings()
except ValidationError as e:
    missing_fields = [err["loc"][0] for err in e.errors() if err["type"] == "missing"]
    if missing_fields:
        raise SystemExit(
            f"Missing required environment variables: {', '.join(str(f).upper() for f in missing_fields)}. "
            f"Please check your .env file or environment configuration."
        ) from e
    raise

setup_logging(settings.log_dir)
logger = get_logger("app.main")

CORRELATION_HEADER = "X-Correlation-Id"

ERROR_STATUS_CODES: dict[type[LetterWorkflowError], int] = {
    StateError: 409,
    BindingError: 422,
    GenerationError: 502,
    ConflictError: 409,
    WorkflowValidationError: 422,
    NotFoundError: 404,
    PermissionDeniedError: 403,
    RenderingError: 500,
}


def status_code_for(error: LetterWorkflowError) -> int:
    if isinstance(error, GenerationError) and error.cause == "timeout":
        return 504
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(error, error_type):
            return status_code
    return 500


async def verify_infrastructure() -> dict:
    logger.info("Starting infrastructure connectivity verification")
    db_status = await check_database_connectivity()
    redis_status = check_redis_connectivity(settings.redis_url)
    storage_status = check_storage_connectivity(
        settings.s3_endpoint_url,
        settings.s3_access_key,
        settings.s3_secret_key,
        settings.s3_bucket_name,
    )

    results = {
        "database": db_status,
        "redis": redis_status,
        "storage": storage_status,
    }

    all_healthy = all(results.values())
    if all_healthy:
        logger.info("All infrastructure connectivity checks passed")
    else:
        failed = [k for k, v in results.items() if not v]
        logger.warning(f"Infrastructure connectivity checks failed for: {', '.join(failed)}")

    return results


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting Letter Workflow Engine in {settings.app_env} environment")
    connectivity = await verify_infrastructure()
    app.state.infrastructure_status = connectivity
    yield
    logger.info("Shutting down Letter Workflow Engine")
    if get_text_provider.cache_info().currsize:
        await get_text_provider().close()
    close_redis_client()


app = FastAPI(
    title="Letter Workflow Engine",
    description="Recommendation letter requests, AI drafting, versioning and review",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[CORRELATION_HEADER],
)


@app.middleware("http")
async def correlation_middleware(request: Request, call_next):
    correlation_id = set_correlation_id(request.headers.get(CORRELATION_HEADER))
    try:
        response = await call_next(request)
    finally:
        clear_context()
    response.headers[CORRELATION_HEADER] = correlation_id
    return response


@app.exception_handler(LetterWorkflowError)
async def workflow_error_handler(request: Request, exc: LetterWorkflowError) -> JSONResponse:
    structured = exc.to_structured(correlation_id=get_correlation_id())
    status_code = status_code_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        f"{request.method} {request.url.path} failed with {structured.code}",
        extra={"extra_data": structured.to_log_dict()},
    )
    return JSONResponse(
        status_code=status_code,
        content={"error": structured.model_dump(mode="json")},
    )


app.include_router(api_v1_router)


@app.get("/health")
async def health_check() -> dict:
    return {"status": "healthy"}


@app.get("/health/infrastructure")
async def infrastructure_health() -> dict:
    components = getattr(app.state, "infrastructure_status", None)
    if components is None:
        components = await verify_infrastructure()
        app.state.infrastructure_status = components
    return {
        "status": "healthy" if all(components.values()) else "degraded",
        "components": components,
    }

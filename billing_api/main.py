import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from billing_api.core.config import settings
from billing_api.core.exceptions import (
    BillingError,
    ConflictError,
    NotFoundError,
    ReconciliationError,
    ValidationError,
)
from billing_api.core.logging import configure_logging
from billing_api.db.mongo import connect_to_mongo, close_mongo_connection
from billing_api.api.v1.api import api_router

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await connect_to_mongo()
    yield
    await close_mongo_connection()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    description=settings.DESCRIPTION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_STATUS_BY_ERROR = (
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ReconciliationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def _status_for(exc: BillingError) -> int:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s %s", request.method, request.url.path, exc.code, exc.context)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error": exc.code, "context": exc.context}
    )


@app.get("/")
async def root():
    return {"message": "Welcome to Tenant Billing API"}

app.include_router(api_router, prefix=settings.API_V1_STR)

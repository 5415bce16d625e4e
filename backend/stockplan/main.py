"""
StockPlan API entry point.

    uvicorn stockplan.main:app --port 8001
"""
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from stockplan.api.v1 import router as api_v1_router
from stockplan.core.settings import settings
from stockplan.exceptions import DatabaseError, StockPlanException
from stockplan.logging_config import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)


def _error_response(status_code: int, body: dict) -> JSONResponse:
    body["timestamp"] = datetime.utcnow().isoformat() + "Z"
    return JSONResponse(status_code=status_code, content=body)


def ensure_tables() -> None:
    """Create any missing tables. Alembic still owns schema changes."""
    from stockplan.db.base import Base
    from stockplan.db.session import engine
    import stockplan.models  # noqa: F401

    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as e:
        logger.error("Could not create tables: %s", e)
    else:
        logger.info("Database tables ready")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "StockPlan API starting",
        extra={"version": settings.VERSION, "environment": settings.ENVIRONMENT},
    )
    ensure_tables()
    yield
    logger.info("StockPlan API stopped")


app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    description="Material requirements planning and inventory ledger",
    version=settings.VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "Origin", "X-User-Id"],
)


@app.exception_handler(StockPlanException)
async def handle_stockplan_error(request: Request, exc: StockPlanException):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "%s on %s: %s",
        exc.error_code,
        request.url.path,
        exc.message,
        extra={"error_code": exc.error_code, "details": exc.details},
    )
    return _error_response(exc.status_code, exc.to_dict())


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError):
    problems = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    logger.warning("Rejected request body on %s", request.url.path, extra={"errors": problems})
    return _error_response(
        422,
        {
            "error": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": {"errors": problems},
        },
    )


@app.exception_handler(SQLAlchemyError)
async def handle_database_error(request: Request, exc: SQLAlchemyError):
    logger.error("Database failure on %s", request.url.path, exc_info=True)
    error = DatabaseError()
    return _error_response(error.status_code, error.to_dict())


@app.exception_handler(Exception)
async def handle_unexpected(request: Request, exc: Exception):
    logger.error("Unhandled %s on %s", type(exc).__name__, request.url.path, exc_info=True)
    return _error_response(
        500, {"error": "INTERNAL_ERROR", "message": "Unexpected server error"}
    )


app.include_router(api_v1_router, prefix=settings.API_V1_STR)


@app.get("/")
async def root():
    return {"service": settings.PROJECT_NAME, "version": settings.VERSION}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("stockplan.main:app", host="0.0.0.0", port=8001, reload=settings.DEBUG)

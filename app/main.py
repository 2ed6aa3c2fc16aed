import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.database import Base, SessionLocal, engine
from app.logging_config import setup_logging
from app.models import goals as goals_model, health_data as health_data_model  # noqa: F401
from app.routers import goals, health_data
from app.utils.response import CORS_HEADERS, create_response, error_response, handle_exception
from seed import run_seed

logger = logging.getLogger(__name__)

AVAILABLE_ENDPOINTS = [
    "GET /",
    "GET /health",
    "GET /health-data/{userId}",
    "POST /health-data",
    "GET /health-data-aggregated/{userId}",
    "GET /goals/{userId}",
    "POST /goals",
]

app = FastAPI(title=settings.PROJECT_NAME, version=settings.API_VERSION)

# Auto create tables
Base.metadata.create_all(bind=engine)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def answer_preflight(request: Request, call_next):
    # Every path answers OPTIONS with an empty body
    if request.method == "OPTIONS":
        return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)
    return await call_next(request)


@app.on_event("startup")
async def startup_event():
    setup_logging()
    logger.info("%s API v%s starting", settings.PROJECT_NAME, settings.API_VERSION)
    run_seed()


app.include_router(health_data.router)
app.include_router(goals.router)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        return error_response(
            "Endpoint not found",
            "NOT_FOUND",
            status.HTTP_404_NOT_FOUND,
            path=request.url.path,
            method=request.method,
            availableEndpoints=AVAILABLE_ENDPOINTS,
        )
    return handle_exception(exc)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())[1:]),
            "message": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    if any(item["field"] == "userId" for item in details):
        return error_response("userId is required", "MISSING_USER_ID", status.HTTP_400_BAD_REQUEST)
    return error_response(
        "Invalid request data",
        "VALIDATION_ERROR",
        status.HTTP_400_BAD_REQUEST,
        details=details,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return handle_exception(exc)


@app.get("/")
def home():
    try:
        return create_response(
            message=f"{settings.PROJECT_NAME} API is running",
            data={
                "version": settings.API_VERSION,
                "endpoints": AVAILABLE_ENDPOINTS,
            },
            status_code=status.HTTP_200_OK,
        )
    except Exception as exc:
        return handle_exception(exc)


@app.get("/health")
def health_check():
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return create_response(
            message="OK",
            data={"status": "healthy", "database": "connected", "version": settings.API_VERSION},
        )
    except SQLAlchemyError as exc:
        logger.error("Health check failed: %s", exc)
        return create_response(
            message="Database unavailable",
            data={"status": "unhealthy", "database": "disconnected", "error": str(exc)},
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    finally:
        db.close()

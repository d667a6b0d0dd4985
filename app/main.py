"""FastAPI application entrypoint. No business logic; only wiring, error handlers and startup checks."""

from dotenv import load_dotenv

load_dotenv()

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import router as api_router
from app.core.config import settings
from app.core.database import SessionLocal, check_db_connected

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Optionally refuse to start when the database is unreachable."""
    if settings.DB_CHECK_ON_STARTUP:
        db = SessionLocal()
        try:
            connected = check_db_connected(db)
        finally:
            db.close()
        if not connected:
            logger.error("Startup database check failed")
            raise RuntimeError(
                "Database is unreachable; check DATABASE_URL host, port, credentials and SSL settings."
            )
        logger.info("Startup database check: OK")
    yield


app = FastAPI(
    title="Mexy Users API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.APP_ENV == "dev" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and path params are client errors: 400 with a short reason."""
    fields = sorted({".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()})
    reason = "Invalid request."
    if any(fields):
        reason = f"Invalid request: {', '.join(f for f in fields if f)}."
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": reason})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Never leak stack traces or driver text to clients."""
    logger.exception("Unhandled error", extra={"path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "The request could not be completed."},
    )


app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/")
def root() -> dict[str, str]:
    """Root route; minimal payload for discovery."""
    return {"message": "Mexy Users API"}

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from .config import settings
from .database import SessionLocal
from .errors import EngineError
from .redis_client import redis_client
from .routers import bookings, internal, providers, reviews, slots, verification, wallets

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Booking Engine API")

app.include_router(providers.router)
app.include_router(slots.router)
app.include_router(bookings.router)
app.include_router(wallets.router)
app.include_router(reviews.router)
app.include_router(verification.router)
app.include_router(internal.router)


@app.exception_handler(EngineError)
def engine_error_handler(request: Request, exc: EngineError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health")
def health():
    result = {"database": False, "redis": False}

    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        result["database"] = True
    except Exception as e:
        logger.warning(f"Health check: database unreachable: {e}")
    finally:
        db.close()

    try:
        result["redis"] = bool(redis_client.ping())
    except Exception as e:
        logger.warning(f"Health check: redis unreachable: {e}")

    return result

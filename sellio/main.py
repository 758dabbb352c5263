import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from . import models  # noqa: F401
from .config import ALLOWED_ORIGINS
from .database import Base, engine
from .domain.bookings.router import router as bookings_router
from .domain.coupons.router import router as coupons_router
from .domain.fulfillments.router import router as fulfillments_router
from .domain.orders.router import creator_router as order_management_router
from .domain.orders.router import router as orders_router
from .domain.reminders.router import router as cron_router
from .domain.slots.router import public_router as store_slots_router
from .domain.slots.router import router as slots_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Quiet chatty client libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("botocore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Sellio API starting")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Schema ready")
    except SQLAlchemyError as e:
        # Several workers may race to create the same tables
        if "already exists" in str(e) or "duplicate key" in str(e):
            logger.info("Schema already present, skipping create_all")
        else:
            logger.error(f"❌ Schema creation failed: {e}")
            raise

    try:
        from .rate_limiter import get_redis_client

        get_redis_client().ping()
        logger.info("Redis reachable for rate limiting")
    except RedisError as e:
        logger.warning(f"⚠️ Redis unreachable, checkout and slip upload will return 503 while limiting is on: {e}")

    yield
    logger.info("Sellio API stopped")


app = FastAPI(title="Sellio API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """A missing bearer header on creator routes is an auth failure, not a bad body"""
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(f"🔒 Missing creator token on {request.url.path}")
            return JSONResponse(
                status_code=401,
                content={"detail": "Sign in to the creator dashboard to continue"},
            )

    logger.warning(f"Rejected request body for {request.url.path}: {jsonable_errors(exc)}")
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Drop the non-serialisable ``ctx`` payload pydantic attaches to value errors"""
    return [{k: v for k, v in error.items() if k != "ctx"} for error in exc.errors()]


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as e:
        logger.error(f"❌ Unhandled error on {request.method} {request.url.path}: {str(e)}")
        raise


logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(slots_router)
app.include_router(store_slots_router)
app.include_router(orders_router)
app.include_router(order_management_router)
app.include_router(bookings_router)
app.include_router(coupons_router)
app.include_router(fulfillments_router)
app.include_router(cron_router)


@app.get("/")
def root():
    return {"message": "Sellio API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}

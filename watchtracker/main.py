import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from watchtracker.core import config
from watchtracker.core.logging_config import setup_logging
from watchtracker.api.routes import (
    auth,
    watches,
    contacts,
    leads,
    account,
    invoices,
    webhooks,
    payments,
    promo,
    admin,
    health,
)

logger = logging.getLogger(__name__)


# ============================================
# STARTUP
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(config.LOG_LEVEL)

    if config.RUN_MIGRATIONS:
        from watchtracker.db.migrate import run_migrations
        run_migrations()
    else:
        from watchtracker.db.init_db import init_db
        init_db()

    logger.info("100K Tracker API started")
    yield


# ============================================
# FASTAPI APP INIT
# ============================================

app = FastAPI(title="100K Tracker API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_origin_regex=config.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)


# ============================================
# ERROR BODIES: {"error": ...}
# ============================================

def _validation_message(error: dict) -> str:
    message = error.get("msg", "Invalid request")
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return message


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": _validation_message(error),
        }
        for error in errors
    ]
    return JSONResponse(
        status_code=400,
        content={
            "error": details[0]["message"] if details else "Invalid request",
            "details": details,
        },
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ============================================
# REGISTER ALL ROUTERS
# ============================================

app.include_router(auth.router)
app.include_router(watches.router)
app.include_router(contacts.router)
app.include_router(leads.router)
app.include_router(account.router)
app.include_router(invoices.router)
app.include_router(webhooks.router)
app.include_router(payments.router)
app.include_router(promo.router)
app.include_router(admin.router)
app.include_router(health.router)


@app.get("/")
def root():
    return {"status": "100K Tracker API running"}

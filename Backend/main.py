import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from config import CORS_ORIGINS
from migrate import migrate as run_migrations
from routers import (
    jobs_router,
    notifications_router,
    push_subscriptions_router,
    preferences_router,
    intake_router,
    treatments_router,
)
from services.push import init_firebase


logs_path = os.path.join(os.path.dirname(__file__), "logs")
os.makedirs(logs_path, exist_ok=True)
error_log_file = os.path.join(logs_path, "errors.log")
app_logger = logging.getLogger("botilyx")
if not app_logger.handlers:
    app_logger.setLevel(logging.INFO)
    fh = logging.FileHandler(error_log_file, encoding="utf-8")
    fh.setLevel(logging.ERROR)
    fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    app_logger.addHandler(fh)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_firebase()
    try:
        run_migrations()
    except Exception as e:
        app_logger.warning("Migration warning at startup: %s", e)
    yield


app = FastAPI(
    title="Botilyx API",
    description="Household medication manager: dose reminders backend",
    version="1.0.0",
    lifespan=lifespan,
)

cors_origins = [o.strip() for o in CORS_ORIGINS.split(",") if o.strip()]
allow_any_origin = "*" in cors_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_any_origin else cors_origins,
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    # Browsers reject wildcard+credentials; keep credentials off for bearer-token API calls.
    allow_credentials=False if allow_any_origin else True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(jobs_router)
app.include_router(notifications_router)
app.include_router(push_subscriptions_router)
app.include_router(preferences_router)
app.include_router(intake_router)
app.include_router(treatments_router)


@app.middleware("http")
async def _capture_unhandled_errors(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as exc:  # pragma: no cover
        app_logger.exception("Unhandled server error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/", tags=["Health"])
def health_check():
    return {"status": "ok", "service": "Botilyx API", "version": "1.0.0"}

#!/usr/bin/env python3
import os
import logging
import pathlib

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from slowapi.errors import RateLimitExceeded
from starlette.middleware.sessions import SessionMiddleware
from starlette.config import Config
from starlette.middleware.trustedhost import TrustedHostMiddleware
from starlette.responses import RedirectResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from app.database import init_db
from app.config import settings
from app.middleware.rate_limit import get_rate_limit_exceeded_handler, limiter

# Import the routers
from app.views import router as frontend_router
from app.api import router as api_router
from app.auth import router as auth_router

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Load configuration from .env for the session key
config = Config(".env")
SESSION_SECRET = config(
    "SESSION_SECRET",
    default="YOUR_DEFAULT_SESSION_SECRET_MUST_BE_32_CHARS_OR_MORE"
)

app = FastAPI(title="KinderBridge")

# Rate limiting for the JSON search endpoints
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, get_rate_limit_exceeded_handler())

# 1) Session Middleware (for request.session to work)
app.add_middleware(SessionMiddleware, secret_key=SESSION_SECRET)

# 2) Respect the X-Forwarded-* headers from Traefik
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

# 3) Restrict valid hosts
app.add_middleware(TrustedHostMiddleware, allowed_hosts=[
    settings.external_hostname,
    "localhost",
    "127.0.0.1",
    "testserver",
])

# Mount the static files directory
static_dir = pathlib.Path(__file__).parents[1] / "frontend" / "static"
templates_dir = static_dir.parent / "templates"
if os.path.exists(static_dir):
    app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")
else:
    logger.info(f"Static directory not found at {static_dir}; static files will not be served.")

@app.on_event("startup")
def on_startup():
    init_db()  # Create tables if they don't exist
    logger.info(f"KinderBridge started (auth_enabled={settings.auth_enabled}, api={settings.search_api_url})")

@app.on_event("shutdown")
async def shutdown_event():
    """Run shutdown tasks for the application"""
    logger.info("Application shutting down")

@app.get("/")
def root():
    return RedirectResponse(url="/search")

# Custom 404 - render the Jinja2 template
@app.exception_handler(404)
async def custom_404_handler(request: Request, exc: HTTPException):
    if request.url.path.startswith("/api/"):
        return JSONResponse({"detail": getattr(exc, "detail", "Not Found")}, status_code=status.HTTP_404_NOT_FOUND)
    templates = Jinja2Templates(directory=str(templates_dir))
    return templates.TemplateResponse(
        request,
        "404.html",
        {},
        status_code=status.HTTP_404_NOT_FOUND
    )

@app.exception_handler(500)
async def custom_500_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    templates = Jinja2Templates(directory=str(templates_dir))
    return templates.TemplateResponse(
        request,
        "500.html",
        {"exc": exc},
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
    )

# Include the routers
app.include_router(frontend_router)
app.include_router(auth_router)
app.include_router(api_router, prefix="/api")

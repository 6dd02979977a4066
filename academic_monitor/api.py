"""
FastAPI app entry point aggregating per-domain routers under academic_monitor/routes.
Keep as `uvicorn academic_monitor.api:app`.
"""
from __future__ import annotations


from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .db import ensure_schema
from .logs import ensure_log_schema
from .services.config_svc import ensure_default_config
from .routes.base import APP_NAME, APP_VERSION


app = FastAPI(title=APP_NAME, version=APP_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup():
    ensure_schema()
    ensure_log_schema()
    ensure_default_config()


# Every error body is {"error": ...}
@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    body = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(body, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse({"error": "Invalid request", "details": jsonable_encoder(exc.errors())}, status_code=400)


# Include routers (split by business domain)
from .routes import base as base_routes
from .routes import auth as auth_routes
from .routes import students as students_routes
from .routes import ai as ai_routes
from .routes import courses as courses_routes
from .routes import upload as upload_routes
from .routes import admin as admin_routes
from .routes import logs as logs_routes

app.include_router(base_routes.router)
app.include_router(auth_routes.router)
app.include_router(students_routes.router)
app.include_router(ai_routes.router)
app.include_router(courses_routes.router)
app.include_router(upload_routes.router)
app.include_router(admin_routes.router)
app.include_router(logs_routes.router)

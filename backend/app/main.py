"""FastAPI application entry point."""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.database import init_db
from app.errors import register_exception_handlers
from app.logging_config import configure_logging
from app.routers import (
    admin_tasks,
    auth,
    deliverables,
    project_members,
    projects,
    sprint_drafts,
    sprint_packages,
)

settings = get_settings()
configure_logging(settings)
logger = logging.getLogger("app.access")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("Meisner Studio API started (env=%s)", settings.app_env)
    yield


app = FastAPI(
    title="Meisner Studio API",
    description="Sprint packages, deliverable pricing, sprint drafts and the studio task board",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s %s %.1fms",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - start) * 1000,
        extra={"method": request.method, "path": request.url.path, "status": response.status_code},
    )
    return response


for module in (auth, deliverables, sprint_packages, sprint_drafts, projects, project_members, admin_tasks):
    app.include_router(module.router, prefix="/api")


@app.get("/health")
async def health():
    return {"status": "ok"}

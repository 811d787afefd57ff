"""BAN Directory API - Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import admin, affiliates, auth, discount_codes, employees, geocoding, messages
from app.api import notifications, packages, places, posts, products, subscriptions
from app.api import uploads, users, visits, web_push, youtube
from app.config import get_settings
from app.errors import register_error_handlers

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.scheduler_enabled:
        from app.jobs.scheduler import start_scheduler

        scheduler = start_scheduler()
        yield
        scheduler.shutdown()
    else:
        yield


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="دليل الأعمال: أماكن، منتجات، رسائل واشتراكات",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Register API routers
app.include_router(auth.router, prefix="/api/v1")
app.include_router(users.router, prefix="/api/v1")
app.include_router(packages.router, prefix="/api/v1")
app.include_router(subscriptions.router, prefix="/api/v1")
app.include_router(places.router, prefix="/api/v1")
app.include_router(products.router, prefix="/api/v1")
app.include_router(messages.router, prefix="/api/v1")
app.include_router(employees.router, prefix="/api/v1")
app.include_router(posts.router, prefix="/api/v1")
app.include_router(affiliates.router, prefix="/api/v1")
app.include_router(discount_codes.router, prefix="/api/v1")
app.include_router(notifications.router, prefix="/api/v1")
app.include_router(web_push.router, prefix="/api/v1")
app.include_router(uploads.router, prefix="/api/v1")
app.include_router(geocoding.router, prefix="/api/v1")
app.include_router(youtube.router, prefix="/api/v1")
app.include_router(visits.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/")
async def root():
    return {
        "app": "BAN Directory",
        "version": "1.0.0",
        "docs": "/docs",
    }

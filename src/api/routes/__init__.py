"""API route aggregation.

All sub-routers are collected into a single api_router that the
app factory mounts under the configured prefix.
"""

from fastapi import APIRouter

from src.api.routes import cases, cron, health, search, webhook

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(cron.router)
api_router.include_router(search.router)
api_router.include_router(cases.router)
api_router.include_router(webhook.router)

"""API routes for Approval Desk."""

from fastapi import APIRouter

from .cron import router as cron_router
from .proposals import router as proposals_router
from .tickets import router as tickets_router

api_router = APIRouter()

api_router.include_router(proposals_router)
api_router.include_router(tickets_router)

# Scheduled trigger (Vercel Cron)
api_router.include_router(cron_router)

__all__ = ["api_router"]

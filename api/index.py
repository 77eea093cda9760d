"""Vercel entry point: serves the Approval Desk ASGI app."""

from approval_desk.main import app

__all__ = ["app"]

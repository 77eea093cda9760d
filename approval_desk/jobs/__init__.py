"""
Background Jobs for Approval Desk.

- dispatch_cron: numbering, ticket issuance and push for unsent proposals
"""

from .dispatch_cron import run_dispatch_job

__all__ = ["run_dispatch_job"]

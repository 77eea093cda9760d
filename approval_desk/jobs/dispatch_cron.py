"""
Dispatch Cron Job: send approval requests for every unsent proposal.

Runs as a scheduled job (Vercel Cron via GET /api/cron/dispatch, or this
module's CLI). Each proposal is numbered, its approval tickets are issued
and pushed, and it is marked as sent.

Typical cron schedule: */15 * * * *
"""

import argparse
import asyncio
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any

import httpx

from ..core.config import Settings, get_settings
from ..core.dependencies import build_dispatcher, build_notifier, build_store


logger = logging.getLogger(__name__)


# =============================================================================
# ALERTING
# =============================================================================


ALERT_LOG_LEVELS = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
}


async def send_alert(
    webhook_url: str | None,
    title: str,
    message: str,
    severity: str = "error",
    details: dict | None = None,
) -> None:
    """Log an alert and forward it to the alert webhook when configured."""
    logger.log(
        ALERT_LOG_LEVELS.get(severity, logging.ERROR),
        f"Dispatch alert ({severity}) {title}: {message} {details or ''}".rstrip(),
    )

    if not webhook_url:
        return

    try:
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.post(
                webhook_url,
                json={
                    "source": "approval-desk-dispatch",
                    "title": title,
                    "message": message,
                    "severity": severity,
                    "sent_at": datetime.now(timezone.utc).isoformat(),
                    "details": details or {},
                },
            )
    except httpx.HTTPError as e:
        logger.error(f"Alert webhook unreachable: {e}")
        return

    if response.status_code >= 400:
        logger.error(f"Alert webhook rejected alert: HTTP {response.status_code}")


async def run_dispatch_job(
    settings: Settings,
    limit: int | None = None,
) -> dict[str, Any]:
    """
    Main entry point for the dispatch cron job.

    Returns:
        Job result summary
    """
    start_time = datetime.now(timezone.utc)
    logger.info(f"Starting dispatch job at {start_time.isoformat()}")

    store = build_store(settings)
    dispatcher = build_dispatcher(settings, store, build_notifier(settings))

    try:
        summary = await dispatcher.dispatch_pending(limit or settings.dispatch_batch_size)
    except Exception as e:
        await send_alert(
            settings.alert_webhook_url,
            title="Dispatch Cron Job Failed",
            message="The proposal dispatch job crashed unexpectedly.",
            severity="critical",
            details={
                "error": str(e),
                "traceback": traceback.format_exc()[-500:],
                "started_at": start_time.isoformat(),
            },
        )
        raise

    end_time = datetime.now(timezone.utc)
    results = {
        "started_at": start_time.isoformat(),
        "completed_at": end_time.isoformat(),
        "duration_seconds": (end_time - start_time).total_seconds(),
        **summary.to_dict(),
    }

    logger.info(
        f"Dispatch job completed in {results['duration_seconds']:.2f}s: "
        f"{results['dispatched']} proposals, {results['tickets_created']} tickets, "
        f"{results['notifications_failed']} notifications failed"
    )

    if summary.errors or summary.notifications_failed:
        await send_alert(
            settings.alert_webhook_url,
            title="Dispatch Job Completed with Warnings",
            message=(
                f"{len(summary.errors)} proposals failed and "
                f"{summary.notifications_failed} notifications were not delivered."
            ),
            severity="warning",
            details={"errors": summary.errors[:5]},
        )

    return results


# =============================================================================
# CLI ENTRY POINT
# =============================================================================


def main():
    """CLI entry point for the dispatch job."""
    parser = argparse.ArgumentParser(description="Dispatch approval requests for unsent proposals")
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum number of proposals to dispatch",
    )
    parser.add_argument(
        "--backend",
        choices=["notion", "memory"],
        default=None,
        help="Record store backend (defaults to RECORD_STORE_BACKEND)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    settings = get_settings()
    if args.backend:
        settings = settings.model_copy(update={"record_store_backend": args.backend})

    try:
        results = asyncio.run(run_dispatch_job(settings, limit=args.limit))
        print(f"Job completed: {results}")
    except Exception as e:
        print(f"Job failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

"""Periodic job runner for the storefront saga.

Runs the background sweeps on fixed intervals:
- scheduled notifications      every 60s
- failed notification retries  every 10 minutes
- payment expiry               every 30 minutes
- carrier tracking refresh     every hour

Each job runs a domain command in a worker thread inside its own domain
context. A failing run is logged and the job keeps its schedule.

Usage:
    python src/server.py              # Run every job
    python src/server.py --job tracking
    python src/server.py --once       # Run each selected job once and exit
"""

import argparse
import asyncio

import structlog

from storefront.domain import storefront
from storefront.utils.logging import add_context, clear_context, configure_logging

logger = structlog.get_logger(__name__)


def _commands():
    from storefront.fulfillment.shipment.tracking import ReconcileTracking
    from storefront.notifications.notification.retry import RetryFailedNotifications
    from storefront.notifications.notification.scheduler import ProcessScheduledNotifications
    from storefront.payments.payment.expiry import ExpireStalePayments

    return {
        "scheduled-notifications": (60, ProcessScheduledNotifications),
        "notification-retries": (600, RetryFailedNotifications),
        "payment-expiry": (1800, ExpireStalePayments),
        "tracking": (3600, ReconcileTracking),
    }


JOB_NAMES = ("scheduled-notifications", "notification-retries", "payment-expiry", "tracking")


def run_job(name: str, command_cls) -> object:
    """Run one job synchronously inside a fresh domain context."""
    add_context(job=name)
    try:
        with storefront.domain_context():
            result = storefront.process(command_cls(), asynchronous=False)
        logger.info("Job completed", result=result)
        return result
    finally:
        clear_context("job")


async def _loop(name: str, interval: int, command_cls, once: bool = False) -> None:
    while True:
        try:
            await asyncio.to_thread(run_job, name, command_cls)
        except Exception:
            logger.exception("Job failed", job=name)
        if once:
            return
        await asyncio.sleep(interval)


async def run(job_names, once: bool = False):
    jobs = _commands()
    await asyncio.gather(*(_loop(name, jobs[name][0], jobs[name][1], once=once) for name in job_names))


def main():
    parser = argparse.ArgumentParser(description="Storefront periodic job runner")
    parser.add_argument(
        "--job",
        choices=JOB_NAMES,
        action="append",
        help="Run only this job (repeatable; default: all)",
    )
    parser.add_argument("--once", action="store_true", help="Run each job once and exit")
    args = parser.parse_args()

    configure_logging("jobs")
    storefront.init()

    asyncio.run(run(args.job or JOB_NAMES, once=args.once))


if __name__ == "__main__":
    main()

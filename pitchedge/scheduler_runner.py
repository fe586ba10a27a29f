"""Long-running process: fires the build and settle jobs on their cron schedules."""

import asyncio

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from pitchedge.core.config import settings
from pitchedge.core.db import init_db
from pitchedge.core.http import close_http_clients, init_http_clients
from pitchedge.core.logger import get_logger
from pitchedge.jobs import build_predictions, evaluate_results
from pitchedge.jobs.runner import JobFn, run_job

log = get_logger("scheduler")

MISFIRE_GRACE_SECONDS = 300


def scheduled_jobs() -> list[tuple[str, JobFn, str]]:
    return [
        ("build_predictions", build_predictions.run, settings.job_build_predictions_cron),
        ("evaluate_results", evaluate_results.run, settings.job_evaluate_results_cron),
    ]


def build_scheduler() -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone="UTC")
    for name, job_fn, cron in scheduled_jobs():
        scheduler.add_job(
            run_job,
            CronTrigger.from_crontab(cron, timezone="UTC"),
            args=[name, job_fn],
            kwargs={"triggered_by": "scheduler"},
            id=name,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=MISFIRE_GRACE_SECONDS,
        )
        log.info("job_registered job=%s cron=%r", name, cron)
    return scheduler


async def main() -> None:
    if not settings.scheduler_enabled:
        log.warning("SCHEDULER_ENABLED=false; nothing to run")
        return

    await init_db()
    await init_http_clients()
    scheduler = build_scheduler()
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown(wait=False)
        await close_http_clients()


if __name__ == "__main__":
    asyncio.run(main())

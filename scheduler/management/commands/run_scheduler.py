"""
scheduler/management/commands/run_scheduler.py

Starts the background scheduler for the screening sweeps and blocks until
interrupted. Job definitions live in the database via DjangoJobStore.
"""

import logging
import time
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from django.conf import settings
from django.core.management.base import BaseCommand
from django_apscheduler.jobstores import DjangoJobStore

from scheduler.jobs import reconcile_screenings, sync_stuck_screenings

logger = logging.getLogger(__name__)

JOBS = (
    (reconcile_screenings, "Reconcile screening calls"),
    (sync_stuck_screenings, "Poll Vapi for stuck screening calls"),
)


class Command(BaseCommand):
    help = "Run the screening reconciliation and stuck-call polling jobs."

    def handle(self, *args, **options):
        tz = ZoneInfo(settings.APSCHEDULER_TIMEZONE)
        interval = settings.SCREENING_SWEEP_INTERVAL_MINUTES

        scheduler = BackgroundScheduler(timezone=tz)
        scheduler.add_jobstore(DjangoJobStore(), "default")

        for func, name in JOBS:
            scheduler.add_job(
                func,
                trigger=IntervalTrigger(minutes=interval, timezone=tz),
                id=func.__name__,
                name=name,
                jobstore="default",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=120,
            )

        scheduler.start()
        logger.info("Scheduler started: %s job(s) every %s min", len(JOBS), interval)
        self.stdout.write(self.style.SUCCESS("Scheduler running. Press Ctrl+C to stop."))

        try:
            while True:
                time.sleep(5)
        except (KeyboardInterrupt, SystemExit):
            scheduler.shutdown(wait=True)
            self.stdout.write(self.style.SUCCESS("Scheduler stopped."))

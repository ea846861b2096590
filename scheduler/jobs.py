"""
scheduler/jobs.py

Background job definitions for the screening workflow.
Registered and started by: scheduler/management/commands/run_scheduler.py

  reconcile_screenings    every SCREENING_SWEEP_INTERVAL_MINUTES
  sync_stuck_screenings   every SCREENING_SWEEP_INTERVAL_MINUTES

Each function is decorated with @close_old_connections from django-apscheduler so
that Django DB connections opened in APScheduler's worker threads are always
returned to the pool (or closed) after each run, preventing "connection already
closed" errors in long-running processes.
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.db.models.functions import Length, Trim
from django.utils import timezone
from django_apscheduler.util import close_old_connections

from applications.exceptions import NotFoundError, TransitionError
from applications.models import ActorRole, Application
from applications.transitions import is_valid_transition
from applications.workflow import WorkflowService
from hiretrack.constants import STUCK_SCREENING_THRESHOLD_MINUTES
from screenings.models import ScreeningCall
from screenings.vendor import VapiClient, VapiError, call_to_update

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Job 1: reconcile_screenings
# ─────────────────────────────────────────────────────────────────────────────

@close_old_connections
def reconcile_screenings() -> None:
    """
    Re-run conflict resolution over finished screening calls that the
    workflow has not consumed yet.

    Only actionable calls are picked up: completed or failed, holding a
    substantive transcript, and belonging to an application that can still
    move to screening_completed. Once the application advances the call
    drops out of the sweep, so repeated runs do no work.

    Each call is fed through WorkflowService.ingest_screening_event with an
    empty update, so only the stored fields are reconsidered.
    """
    service = WorkflowService()
    waiting_statuses = [
        status for status in Application.Status.values
        if is_valid_transition(status, Application.Status.SCREENING_COMPLETED, ActorRole.SYSTEM)
    ]

    candidates = list(
        ScreeningCall.objects
        .filter(
            consumed_at__isnull=True,
            status__in=[ScreeningCall.Status.COMPLETED, ScreeningCall.Status.FAILED],
            application__status__in=waiting_statuses,
        )
        .annotate(transcript_length=Length(Trim("transcript")))
        .filter(transcript_length__gt=service.config.min_transcript_length)
        .values_list("pk", flat=True)
    )

    if not candidates:
        return

    advanced = 0
    for call_id in candidates:
        try:
            result = service.ingest_screening_event(call_id, {})
        except (NotFoundError, TransitionError) as exc:
            logger.warning("reconcile_screenings: call=%s skipped: %s", call_id, exc)
            continue
        if result.advanced:
            advanced += 1

    logger.info(
        "reconcile_screenings: checked %s call(s), advanced %s application(s)",
        len(candidates), advanced,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Job 2: sync_stuck_screenings
# ─────────────────────────────────────────────────────────────────────────────

@close_old_connections
def sync_stuck_screenings() -> None:
    """
    Webhook fallback: poll Vapi directly for screening calls that have sat in
    scheduled or in-progress beyond the threshold window.

    The polled call object is converted with call_to_update() and ingested
    exactly like a webhook event, so conflicts are resolved the same way.
    """
    threshold_minutes = getattr(
        settings, "SCREENING_STUCK_THRESHOLD_MINUTES", STUCK_SCREENING_THRESHOLD_MINUTES
    )
    threshold_time = timezone.now() - timedelta(minutes=threshold_minutes)

    stuck_calls = list(
        ScreeningCall.objects
        .filter(
            status__in=[ScreeningCall.Status.SCHEDULED, ScreeningCall.Status.IN_PROGRESS],
            updated_at__lt=threshold_time,
        )
        .exclude(vendor_call_id__isnull=True)
        .exclude(vendor_call_id="")
    )

    if not stuck_calls:
        return

    client = VapiClient()
    if not client.is_configured:
        logger.warning("sync_stuck_screenings: VAPI_API_KEY not set, skipping poll")
        return

    service = WorkflowService()
    processed = 0
    for call in stuck_calls:
        try:
            data = client.fetch_call(call.vendor_call_id)
        except VapiError as exc:
            logger.warning(
                "sync_stuck_screenings: poll failed for vendor_call=%s (call=%s): %s",
                call.vendor_call_id, call.pk, exc,
            )
            continue

        update = call_to_update(data)
        if not update:
            continue

        try:
            service.ingest_screening_event(call.pk, update)
        except (NotFoundError, TransitionError) as exc:
            logger.warning("sync_stuck_screenings: call=%s skipped: %s", call.pk, exc)
            continue
        processed += 1

    logger.info("sync_stuck_screenings: processed %s stuck call(s)", processed)

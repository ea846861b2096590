"""
applications/timeline.py

Append-only timeline ledger for Applications.

append() is the only write operation: entries are never updated, deleted or
reordered. Timestamps within one application's timeline never decrease; the
ledger stamps "now" when the caller does not supply a time, and refuses an
explicit timestamp that would go backwards.
"""

import logging
from datetime import datetime

from django.db import transaction
from django.utils import timezone

from applications.exceptions import NotFoundError, OrderingViolation
from applications.models import Application, TimelineEntry
from applications.transitions import later_step

logger = logging.getLogger(__name__)


def _locked_application(application_id) -> Application:
    try:
        return Application.objects.select_for_update().get(pk=application_id)
    except Application.DoesNotExist:
        raise NotFoundError("Application", application_id) from None


def append(
    application_id,
    *,
    step: str,
    performed_by: str,
    status: str = TimelineEntry.EntryStatus.COMPLETED,
    timestamp: datetime | None = None,
    notes: str | None = "",
    from_status: str | None = None,
    to_status: str | None = None,
) -> Application:
    """
    Append one entry to the application's timeline and return the updated
    Application.

    When ``to_status`` is given the application's status is set to it in the
    same transaction, so the status always matches the latest status-carrying
    entry. ``current_step`` moves forward to ``step`` but never back.

    Raises:
        NotFoundError: the application does not exist.
        OrderingViolation: ``timestamp`` is earlier than the latest entry.
    """
    with transaction.atomic():
        application = _locked_application(application_id)
        last = application.timeline_entries.order_by("-sequence").first()

        if timestamp is None:
            stamp = timezone.now()
            # Clock skew between processes must not produce a backwards entry.
            if last is not None and stamp < last.timestamp:
                stamp = last.timestamp
        else:
            stamp = timestamp
            if last is not None and stamp < last.timestamp:
                raise OrderingViolation(last.timestamp, stamp)

        entry = TimelineEntry.objects.create(
            application=application,
            sequence=(last.sequence + 1) if last is not None else 1,
            step=step,
            status=status,
            timestamp=stamp,
            notes=notes or "",
            performed_by=performed_by,
            from_status=from_status,
            to_status=to_status,
        )

        update_fields = ["current_step", "updated_at"]
        application.current_step = later_step(application.current_step, step)
        if to_status:
            application.status = to_status
            update_fields.append("status")
        application.save(update_fields=update_fields)

    logger.debug(
        "Timeline append: application=%s seq=%s step=%s to_status=%s by=%s",
        application.pk, entry.sequence, step, to_status, performed_by,
    )
    return application


def history(application_id) -> list[TimelineEntry]:
    """Fresh, ordered snapshot of an application's timeline."""
    if not Application.objects.filter(pk=application_id).exists():
        raise NotFoundError("Application", application_id)
    return list(TimelineEntry.objects.filter(application_id=application_id).order_by("sequence"))


def latest(application_id) -> TimelineEntry | None:
    return (
        TimelineEntry.objects.filter(application_id=application_id)
        .order_by("-sequence")
        .first()
    )

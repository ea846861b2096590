"""
screenings/services.py

Screening call helpers shared by the workflow, the webhook and the scheduler.

Single source of truth for:
  - Vendor event/status → ScreeningCall.Status mapping
  - Transcript formatting
  - Turning a raw vendor payload into a workflow update dict
  - Per-application call and retry limits
"""

import logging

from django.db.models import Q

from screenings.models import ScreeningCall

logger = logging.getLogger(__name__)

Status = ScreeningCall.Status

# Vendor webhook event type → internal status.
# Extend here when the vendor adds new event types.
_EVENT_STATUS_MAP: dict[str, str] = {
    "call-started": Status.IN_PROGRESS,
    "call-ended": Status.COMPLETED,
    "call-completed": Status.COMPLETED,
    "end-of-call-report": Status.COMPLETED,
    "call-failed": Status.FAILED,
    "call-error": Status.FAILED,
}

# Vendor call status string → internal status (status-update events and polls).
_VENDOR_STATUS_MAP: dict[str, str] = {
    "queued": Status.SCHEDULED,
    "scheduled": Status.SCHEDULED,
    "ringing": Status.IN_PROGRESS,
    "in-progress": Status.IN_PROGRESS,
    "in_progress": Status.IN_PROGRESS,
    "forwarding": Status.IN_PROGRESS,
    "ended": Status.COMPLETED,
    "completed": Status.COMPLETED,
    "failed": Status.FAILED,
    "error": Status.FAILED,
}

_FAILURE_EVENTS = frozenset({"call-failed", "call-error"})


def map_vendor_status(raw_status: str | None) -> str | None:
    """
    Map a vendor call status to ScreeningCall.Status.
    Returns None for unknown values so the stored status is left alone.
    """
    return _VENDOR_STATUS_MAP.get((raw_status or "").strip().lower())


def map_event_status(event_type: str | None, raw_status: str | None = None) -> str | None:
    event = (event_type or "").strip().lower()
    if event in _EVENT_STATUS_MAP:
        return _EVENT_STATUS_MAP[event]
    return map_vendor_status(raw_status)


def format_transcript(transcript) -> str | None:
    """
    Normalise a vendor transcript into a dialogue string.

    Plain strings are returned stripped. Lists of turn objects (``role`` plus
    ``message``/``content``/``text``) are rendered as "Role: text" blocks.
    """
    if transcript is None:
        return None
    if isinstance(transcript, str):
        return transcript.strip()

    lines = []
    for turn in transcript:
        role = (turn.get("role") or "").capitalize()
        text = (
            turn.get("message")
            or turn.get("content")
            or turn.get("text")
            or ""
        ).strip()
        if role and text:
            lines.append(f"{role}: {text}")
    return "\n\n".join(lines)


def normalise_summary(summary):
    if summary is None or isinstance(summary, dict):
        return summary
    return {"text": str(summary)}


def build_update(payload: dict) -> dict:
    """
    Convert a vendor webhook payload into the raw update consumed by
    WorkflowService.ingest_screening_event.

    Only fields the vendor actually sent appear in the result, so the merge
    leaves everything else untouched.
    """
    data = payload.get("message") or payload
    event_type = (data.get("type") or "").strip().lower()
    call = data.get("call") or {}

    update: dict = {}

    status = map_event_status(event_type, data.get("status") or call.get("status"))
    if status is not None:
        update["status"] = status

    if "transcript" in data:
        update["transcript"] = format_transcript(data["transcript"])
    elif data.get("messages"):
        update["transcript"] = format_transcript(data["messages"])

    if "summary" in data:
        update["summary"] = normalise_summary(data["summary"])
    elif isinstance(data.get("analysis"), dict) and "summary" in data["analysis"]:
        update["summary"] = normalise_summary(data["analysis"]["summary"])

    error = data.get("error")
    if isinstance(error, dict):
        error = error.get("message")
    if error or "errorMessage" in data:
        update["errorMessage"] = error or data.get("errorMessage")
    elif event_type in _FAILURE_EVENTS:
        update["errorMessage"] = "Call failed"

    return update


def extract_call_reference(payload: dict) -> tuple[str | None, str | None]:
    """Return ``(screening_call_id, vendor_call_id)`` from a webhook payload."""
    data = payload.get("message") or payload
    metadata = data.get("metadata") or (data.get("call") or {}).get("metadata") or {}
    screening_id = metadata.get("screeningId") or metadata.get("screening_id")
    vendor_call_id = data.get("callId") or (data.get("call") or {}).get("id")
    return (str(screening_id) if screening_id else None), vendor_call_id


# ── Limits ─────────────────────────────────────────────────────────────────────

def has_reached_call_limit(application, max_completed_calls: int) -> bool:
    """True once the application holds ``max_completed_calls`` completed screenings."""
    completed = application.screening_calls.filter(status=Status.COMPLETED).count()
    return completed >= max_completed_calls


def failed_attempt_count(application) -> int:
    return application.screening_calls.filter(
        Q(status=Status.FAILED)
        | (
            Q(error_message__isnull=False)
            & ~Q(error_message="")
            & ~Q(status__in=[Status.IN_PROGRESS, Status.COMPLETED])
        )
    ).count()


def is_retry_allowed(application, max_retries: int) -> bool:
    """
    A new attempt is allowed while no screening has completed and the number
    of failed attempts does not exceed ``max_retries``.
    """
    calls = application.screening_calls.all()
    if not calls.exists():
        return True
    if calls.filter(status=Status.COMPLETED).exists():
        return False
    return failed_attempt_count(application) <= max_retries


def has_active_call(application) -> bool:
    return application.screening_calls.filter(
        status__in=[Status.SCHEDULED, Status.IN_PROGRESS]
    ).exists()

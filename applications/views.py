"""
applications/views.py

JSON endpoints for the application workflow.

  POST /applications/                        — submit an application
  GET  /applications/<pk>/                   — application, timeline, progress
  POST /applications/<pk>/status/            — request a status transition
  GET  /applications/<pk>/transitions/       — allowed next statuses for a role
  POST /applications/<pk>/notes/             — append a note to the timeline
  POST /applications/<pk>/screenings/        — schedule a screening call

Workflow errors map to HTTP statuses here and nowhere else:
NotFoundError → 404, TransitionError → 409, ScreeningLimitError → 409,
invalid input → 400.
"""

import json
import logging

from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from applications import timeline
from applications.exceptions import NotFoundError, ScreeningLimitError, TransitionError
from applications.forms import (
    AddNoteForm,
    ScheduleScreeningForm,
    StatusTransitionForm,
    SubmitApplicationForm,
)
from applications.models import ActorRole, Application, TimelineEntry
from applications.transitions import allowed_next_statuses
from applications.workflow import WorkflowService
from candidates.models import Candidate
from jobs.models import Job

logger = logging.getLogger(__name__)


# ── Serialisation ──────────────────────────────────────────────────────────────

def serialize_entry(entry: TimelineEntry) -> dict:
    return {
        "sequence": entry.sequence,
        "step": entry.step,
        "status": entry.status,
        "timestamp": entry.timestamp.isoformat(),
        "notes": entry.notes or None,
        "performedBy": entry.performed_by,
        "fromStatus": entry.from_status,
        "toStatus": entry.to_status,
    }


def serialize_screening(call) -> dict:
    return {
        "id": call.pk,
        "applicationId": call.application_id,
        "attemptNumber": call.attempt_number,
        "vendorCallId": call.vendor_call_id,
        "status": call.status,
        "transcript": call.transcript,
        "errorMessage": call.error_message,
        "summary": call.summary,
        "conflictType": call.conflict_type or None,
    }


def serialize_application(application: Application, service: WorkflowService | None = None) -> dict:
    service = service or WorkflowService()
    return {
        "id": application.pk,
        "candidateId": application.candidate_id,
        "jobId": application.job_id,
        "status": application.status,
        "currentStep": application.current_step,
        "resumeUrl": application.resume_url,
        "progress": service.progress(application),
        "nextSteps": [
            {"step": s.step, "label": s.label, "optional": s.optional}
            for s in service.next_steps(application.current_step)
        ],
        "timeline": [serialize_entry(e) for e in timeline.history(application.pk)],
    }


# ── Helpers ────────────────────────────────────────────────────────────────────

def _error(message: str, status: int, **extra) -> JsonResponse:
    return JsonResponse({"error": message, **extra}, status=status)


def _parse_body(request) -> dict | None:
    try:
        body = json.loads(request.body or b"{}")
    except (json.JSONDecodeError, ValueError):
        return None
    return body if isinstance(body, dict) else None


# ── Views ──────────────────────────────────────────────────────────────────────

@method_decorator(csrf_exempt, name="dispatch")
class ApplicationCreateView(View):
    """POST /applications/"""

    def post(self, request):
        body = _parse_body(request)
        if body is None:
            return _error("Invalid JSON.", 400)

        form = SubmitApplicationForm(body)
        if not form.is_valid():
            return _error("Invalid application.", 400, fields=form.errors.get_json_data())

        candidate = get_object_or_404(Candidate, pk=form.cleaned_data["candidate_id"])
        job = get_object_or_404(Job, pk=form.cleaned_data["job_id"])
        if job.status != Job.Status.OPEN:
            return _error(f"Job {job.pk} is not accepting applications.", 409)
        if Application.objects.filter(candidate=candidate, job=job).exists():
            return _error("Candidate has already applied to this job.", 409)

        service = WorkflowService()
        application = service.submit_application(
            candidate,
            job,
            resume_url=form.cleaned_data.get("resume_url") or None,
        )
        return JsonResponse(serialize_application(application, service), status=201)


class ApplicationDetailView(View):
    """GET /applications/<pk>/"""

    def get(self, request, pk):
        application = get_object_or_404(Application, pk=pk)
        data = serialize_application(application)
        data["screenings"] = [
            serialize_screening(call) for call in application.screening_calls.all()
        ]
        return JsonResponse(data)


@method_decorator(csrf_exempt, name="dispatch")
class StatusTransitionView(View):
    """POST /applications/<pk>/status/"""

    def post(self, request, pk):
        body = _parse_body(request)
        if body is None:
            return _error("Invalid JSON.", 400)

        form = StatusTransitionForm(body)
        if not form.is_valid():
            return _error("Invalid transition request.", 400, fields=form.errors.get_json_data())

        service = WorkflowService()
        try:
            application = service.request_transition(
                pk,
                form.cleaned_data["status"],
                to_step=form.cleaned_data["step"],
                note=form.cleaned_data["note"],
                actor_role=form.cleaned_data["actor_role"],
            )
        except NotFoundError as exc:
            return _error(str(exc), 404)
        except TransitionError as exc:
            return JsonResponse(exc.to_dict(), status=409)

        return JsonResponse(serialize_application(application, service))


class AllowedTransitionsView(View):
    """GET /applications/<pk>/transitions/?actor_role=recruiter"""

    def get(self, request, pk):
        application = get_object_or_404(Application, pk=pk)
        actor_role = request.GET.get("actor_role", ActorRole.RECRUITER)
        if actor_role not in ActorRole.values:
            return _error(f"Unknown actor role: {actor_role}", 400)

        return JsonResponse({
            "status": application.status,
            "actorRole": actor_role,
            "allowed": sorted(allowed_next_statuses(application.status, actor_role)),
        })


@method_decorator(csrf_exempt, name="dispatch")
class AddNoteView(View):
    """
    POST /applications/<pk>/notes/

    Appends a note-only entry to the timeline. The entry carries no status
    change, so the application's status is untouched.
    """

    def post(self, request, pk):
        body = _parse_body(request)
        if body is None:
            return _error("Invalid JSON.", 400)

        form = AddNoteForm(body)
        if not form.is_valid():
            return _error("Invalid note.", 400, fields=form.errors.get_json_data())

        application = get_object_or_404(Application, pk=pk)
        application = timeline.append(
            application.pk,
            step=form.cleaned_data["step"] or application.current_step,
            status=form.cleaned_data["entry_status"] or TimelineEntry.EntryStatus.COMPLETED,
            notes=form.cleaned_data["note"],
            performed_by=form.cleaned_data["actor_role"],
        )
        return JsonResponse(serialize_application(application), status=201)


@method_decorator(csrf_exempt, name="dispatch")
class ScheduleScreeningView(View):
    """POST /applications/<pk>/screenings/"""

    def post(self, request, pk):
        body = _parse_body(request)
        if body is None:
            return _error("Invalid JSON.", 400)

        form = ScheduleScreeningForm(body)
        if not form.is_valid():
            return _error("Invalid screening request.", 400, fields=form.errors.get_json_data())

        try:
            call = WorkflowService().schedule_screening(
                pk,
                actor_role=form.cleaned_data["actor_role"],
                vendor_call_id=form.cleaned_data["vendor_call_id"],
            )
        except NotFoundError as exc:
            return _error(str(exc), 404)
        except TransitionError as exc:
            return JsonResponse(exc.to_dict(), status=409)
        except ScreeningLimitError as exc:
            return _error(str(exc), 409)

        logger.info("Screening scheduled via API: application=%s call=%s", pk, call.pk)
        return JsonResponse(serialize_screening(call), status=201)

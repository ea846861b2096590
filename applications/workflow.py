"""
applications/workflow.py

The single write path for Application status changes.

WorkflowService validates every requested transition against the table in
applications/transitions.py, records it on the timeline and, for vendor
screening events, reconciles the call record before deciding whether the
application moves.

Every read-modify-write runs inside transaction.atomic() with the owning row
locked via select_for_update(), so two callbacks for the same application are
serialised while different applications proceed independently.
"""

import logging
from dataclasses import dataclass, field

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from applications import timeline
from applications.exceptions import (
    NoteRequiredError,
    NotFoundError,
    ScreeningLimitError,
    TransitionError,
)
from applications.models import ActorRole, Application, TimelineEntry
from applications.transitions import (
    default_step_for,
    get_transition,
    is_at_or_past,
    is_terminal,
    is_valid_transition,
    requires_note,
)
from hiretrack.constants import DEFAULT_MIN_TRANSCRIPT_LENGTH
from screenings.conflicts import (
    ConflictResolution,
    ScreeningPatch,
    ScreeningSnapshot,
    merge,
    resolve_conflicts,
)
from screenings.models import ScreeningCall
from screenings.services import has_active_call, has_reached_call_limit, is_retry_allowed

logger = logging.getLogger(__name__)

Status = Application.Status
Step = Application.Step


@dataclass(frozen=True)
class StepConfig:
    step: str
    label: str
    optional: bool = False


DEFAULT_STEPS: tuple[StepConfig, ...] = (
    StepConfig(Step.APPLICATION_SUBMITTED, "Application Submitted"),
    StepConfig(Step.RESUME_UPLOADED, "Resume Uploaded", optional=True),
    StepConfig(Step.SCREENING_CALL_SCHEDULED, "Screening Call Scheduled"),
    StepConfig(Step.SCREENING_CALL_COMPLETED, "Screening Call Completed"),
    StepConfig(Step.RECRUITER_REVIEW, "Under Review"),
    StepConfig(Step.HIRING_DECISION, "Hiring Decision"),
    StepConfig(Step.PROCESS_COMPLETE, "Process Complete"),
)


@dataclass(frozen=True)
class WorkflowConfig:
    """Tunables for WorkflowService. Build from Django settings with from_settings()."""

    min_transcript_length: int = DEFAULT_MIN_TRANSCRIPT_LENGTH
    max_completed_calls: int = 1
    max_retries: int = 1
    steps: tuple[StepConfig, ...] = DEFAULT_STEPS

    @classmethod
    def from_settings(cls) -> "WorkflowConfig":
        return cls(
            min_transcript_length=getattr(
                settings, "SCREENING_MIN_TRANSCRIPT_LENGTH", DEFAULT_MIN_TRANSCRIPT_LENGTH
            ),
            max_completed_calls=getattr(settings, "SCREENING_MAX_COMPLETED_CALLS", 1),
            max_retries=getattr(settings, "SCREENING_MAX_RETRIES", 1),
        )


@dataclass
class IngestResult:
    screening_call: ScreeningCall
    application: Application
    resolution: ConflictResolution | None = None
    advanced: bool = False
    ignored: bool = False
    notes: list[str] = field(default_factory=list)


def _default_note(status: str) -> str:
    return f"Application status changed to {status.replace('_', ' ')}"


class WorkflowService:
    def __init__(self, config: WorkflowConfig | None = None):
        self.config = config or WorkflowConfig.from_settings()

    # ── Public API ─────────────────────────────────────────────────────────────

    def submit_application(
        self,
        candidate,
        job,
        *,
        resume_url: str | None = None,
        actor_role: str = ActorRole.CANDIDATE,
        note: str | None = None,
    ) -> Application:
        """Create an Application together with its application_submitted entry."""
        with transaction.atomic():
            application = Application.objects.create(
                candidate=candidate,
                job=job,
                resume_url=resume_url,
            )
            application = timeline.append(
                application.pk,
                step=Step.APPLICATION_SUBMITTED,
                performed_by=actor_role,
                notes=note or "Application submitted",
                to_status=Status.SUBMITTED,
            )

        logger.info(
            "Application submitted: application=%s candidate=%s job=%s",
            application.pk, candidate.pk, job.pk,
        )
        return application

    def request_transition(
        self,
        application_id,
        to_status: str,
        *,
        to_step: str | None = None,
        note: str | None = None,
        actor_role: str,
    ) -> Application:
        """
        Move an application to ``to_status`` and append exactly one completed
        timeline entry.

        Raises:
            NotFoundError: unknown application.
            TransitionError: the (from, to, actor_role) tuple is not in the
                table. Re-fetch the application before trying again.
            NoteRequiredError: the transition needs a note and none was given.
        """
        if to_step is not None and to_step not in Step.values:
            raise ValueError(f"Unknown application step: {to_step!r}")

        with transaction.atomic():
            application = self._lock_application(application_id)
            from_status = application.status
            self._check_transition(from_status, to_status, actor_role, note)

            application = timeline.append(
                application.pk,
                step=to_step or default_step_for(to_status),
                performed_by=actor_role,
                notes=note or _default_note(to_status),
                from_status=from_status,
                to_status=to_status,
            )

        logger.info(
            "Application transition: application=%s %s -> %s by=%s",
            application.pk, from_status, to_status, actor_role,
        )
        return application

    def ingest_screening_event(self, screening_call_id, raw_update: dict | None) -> IngestResult:
        """
        Merge a vendor update into a screening call, reconcile conflicting
        fields, persist the corrected record and advance the application when
        the call produced a usable transcript.

        Duplicate deliveries are success no-ops: an application already at or
        past screening_completed is left alone, and a consumed call ignores
        further updates.
        """
        patch = ScreeningPatch.from_payload(raw_update or {})

        with transaction.atomic():
            call = self._lock_call(screening_call_id)

            if call.is_locked:
                logger.info(
                    "Screening event ignored: call=%s already consumed at %s",
                    call.pk, call.consumed_at.isoformat(),
                )
                return IngestResult(
                    screening_call=call,
                    application=call.application,
                    ignored=True,
                )

            merged = merge(ScreeningSnapshot.from_call(call), patch)
            resolution = resolve_conflicts(merged, self.config.min_transcript_length)
            if resolution.has_conflict:
                logger.warning(
                    "Screening conflict: call=%s type=%s resolution=%r "
                    "status=%s transcript_length=%s",
                    call.pk,
                    resolution.conflict_type,
                    resolution.resolution,
                    merged.status,
                    len(merged.transcript or ""),
                )

            self._persist_resolution(call, resolution)
            result = self._advance_from_screening(call, resolution)

        logger.info(
            "Screening event ingested: call=%s status=%s should_process=%s advanced=%s",
            call.pk, call.status, resolution.should_process, result.advanced,
        )
        return result

    def schedule_screening(
        self,
        application_id,
        *,
        actor_role: str = ActorRole.SYSTEM,
        vendor_call_id: str | None = None,
    ) -> ScreeningCall:
        """
        Create a new screening call for an application, moving a submitted
        application to screening_scheduled.

        Raises:
            ScreeningLimitError: completed-call limit reached, retries spent
                or another call is still active.
            TransitionError: the application cannot be screened from its
                current status, or ``actor_role`` may not schedule screenings.
        """
        with transaction.atomic():
            application = self._lock_application(application_id)
            status = application.status

            if is_terminal(status) or is_at_or_past(status, Status.SCREENING_COMPLETED):
                raise TransitionError(
                    status,
                    Status.SCREENING_SCHEDULED,
                    actor_role,
                    reason=f"Application {application.pk} is past screening ({status}).",
                )
            # Retries need the same roles as the first scheduling.
            scheduling = get_transition(Status.SUBMITTED, Status.SCREENING_SCHEDULED)
            if actor_role not in scheduling.allowed_roles:
                raise TransitionError(status, Status.SCREENING_SCHEDULED, actor_role)

            if has_reached_call_limit(application, self.config.max_completed_calls):
                raise ScreeningLimitError(
                    f"Application {application.pk} already has a completed screening call."
                )
            if not is_retry_allowed(application, self.config.max_retries):
                raise ScreeningLimitError(
                    f"Application {application.pk} has used all "
                    f"{self.config.max_retries} screening retries."
                )
            if has_active_call(application):
                raise ScreeningLimitError(
                    f"Application {application.pk} already has an active screening call."
                )

            attempt_number = application.screening_calls.count() + 1
            call = ScreeningCall.objects.create(
                application=application,
                attempt_number=attempt_number,
                vendor_call_id=vendor_call_id,
            )
            if status == Status.SUBMITTED:
                self.request_transition(
                    application.pk,
                    Status.SCREENING_SCHEDULED,
                    note=f"Screening call scheduled (attempt {attempt_number})",
                    actor_role=actor_role,
                )

        logger.info(
            "Screening scheduled: application=%s call=%s attempt=%s",
            application.pk, call.pk, attempt_number,
        )
        return call

    def progress(self, application: Application) -> int:
        """
        Percentage of required workflow steps with a completed timeline entry.
        Optional steps never count towards the total.
        """
        required = [s.step for s in self.config.steps if not s.optional]
        if not required:
            return 0
        done = set(
            application.timeline_entries.filter(
                status=TimelineEntry.EntryStatus.COMPLETED,
                step__in=required,
            ).values_list("step", flat=True)
        )
        return round(len(done) / len(required) * 100)

    def next_steps(self, step: str) -> list[StepConfig]:
        """
        Configured steps that may follow ``step``: every optional step up to
        and including the next required one.
        """
        configured = [s.step for s in self.config.steps]
        if step not in configured:
            return []
        upcoming = []
        for candidate in self.config.steps[configured.index(step) + 1:]:
            upcoming.append(candidate)
            if not candidate.optional:
                break
        return upcoming

    # ── Internals ──────────────────────────────────────────────────────────────

    def _check_transition(self, from_status, to_status, actor_role, note) -> None:
        if not is_valid_transition(from_status, to_status, actor_role):
            logger.warning(
                "Transition rejected: %s -> %s by=%s", from_status, to_status, actor_role
            )
            raise TransitionError(from_status, to_status, actor_role)
        if requires_note(from_status, to_status) and not (note and note.strip()):
            logger.warning(
                "Transition rejected (note required): %s -> %s by=%s",
                from_status, to_status, actor_role,
            )
            raise NoteRequiredError(from_status, to_status, actor_role)

    @staticmethod
    def _lock_application(application_id) -> Application:
        try:
            return Application.objects.select_for_update().get(pk=application_id)
        except Application.DoesNotExist:
            raise NotFoundError("Application", application_id) from None

    @staticmethod
    def _lock_call(screening_call_id) -> ScreeningCall:
        try:
            return (
                ScreeningCall.objects.select_for_update()
                .select_related("application")
                .get(pk=screening_call_id)
            )
        except (ScreeningCall.DoesNotExist, ValueError):
            raise NotFoundError("ScreeningCall", screening_call_id) from None

    @staticmethod
    def _persist_resolution(call: ScreeningCall, resolution: ConflictResolution) -> None:
        resolved = resolution.resolved
        call.status = resolved.status
        call.transcript = resolved.transcript
        call.error_message = resolved.error_message
        call.summary = resolved.summary
        if resolution.has_conflict:
            call.conflict_type = resolution.conflict_type

        now = timezone.now()
        if call.status == ScreeningCall.Status.IN_PROGRESS and call.started_at is None:
            call.started_at = now
        if (
            call.status in (ScreeningCall.Status.COMPLETED, ScreeningCall.Status.FAILED)
            and call.completed_at is None
        ):
            call.completed_at = now
        call.save()

    def _advance_from_screening(
        self, call: ScreeningCall, resolution: ConflictResolution
    ) -> IngestResult:
        application = self._lock_application(call.application_id)
        result = IngestResult(
            screening_call=call, application=application, resolution=resolution
        )

        if resolution.should_process:
            if is_at_or_past(application.status, Status.SCREENING_COMPLETED):
                result.notes.append(f"already {application.status}")
            elif is_valid_transition(
                application.status, Status.SCREENING_COMPLETED, ActorRole.SYSTEM
            ):
                note = f"AI screening call {call.pk} completed"
                if resolution.has_conflict:
                    note += f" (resolved {resolution.conflict_type})"
                result.application = self.request_transition(
                    application.pk,
                    Status.SCREENING_COMPLETED,
                    to_step=Step.SCREENING_CALL_COMPLETED,
                    note=note,
                    actor_role=ActorRole.SYSTEM,
                )
                result.advanced = True
            else:
                logger.warning(
                    "Screening call %s completed but application %s cannot reach "
                    "screening_completed from %s",
                    call.pk, application.pk, application.status,
                )
                result.notes.append(f"cannot advance from {application.status}")

            if (
                call.status == ScreeningCall.Status.COMPLETED
                and call.summary is not None
                and call.consumed_at is None
            ):
                call.consumed_at = timezone.now()
                call.save(update_fields=["consumed_at", "updated_at"])

        elif (
            call.status == ScreeningCall.Status.IN_PROGRESS
            and application.status == Status.SCREENING_SCHEDULED
        ):
            result.application = self.request_transition(
                application.pk,
                Status.SCREENING_IN_PROGRESS,
                note=f"AI screening call {call.pk} started",
                actor_role=ActorRole.SYSTEM,
            )
            result.advanced = True

        elif call.status == ScreeningCall.Status.FAILED:
            # A failed call does not reject the candidate; the application
            # waits for a retry or a recruiter decision.
            logger.info(
                "Screening call failed: call=%s application=%s error=%r",
                call.pk, application.pk, call.error_message,
            )

        return result

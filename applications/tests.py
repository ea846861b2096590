import json
from datetime import timedelta

from django.test import TestCase
from django.urls import reverse
from django.utils import timezone

from applications import timeline
from applications.exceptions import (
    NoteRequiredError,
    NotFoundError,
    OrderingViolation,
    ScreeningLimitError,
    TimelineImmutableError,
    TransitionError,
)
from applications.models import ActorRole, Application, TimelineEntry
from applications.transitions import (
    TERMINAL_STATUSES,
    allowed_next_statuses,
    is_at_or_past,
    is_valid_transition,
    later_step,
    requires_note,
)
from applications.workflow import WorkflowConfig, WorkflowService
from candidates.models import Candidate
from jobs.models import Job
from screenings.models import ScreeningCall

Status = Application.Status
Step = Application.Step

LONG_TRANSCRIPT = (
    "Assistant: Hi, thanks for applying to the server role. "
    "User: Happy to chat, I have three years of restaurant experience. " * 4
)


def _make_job(**kwargs) -> Job:
    defaults = {"title": "Line Cook", "location": "Downtown", "role_type": Job.RoleType.COOK}
    defaults.update(kwargs)
    return Job.objects.create(**defaults)


def _make_candidate() -> Candidate:
    return Candidate.objects.create(
        first_name="Ana",
        last_name="Pop",
        email="ana@example.com",
        phone="+40700000001",
    )


def _make_application(status: str = Status.SUBMITTED) -> Application:
    return Application.objects.create(
        candidate=_make_candidate(),
        job=_make_job(),
        status=status,
    )


def _service() -> WorkflowService:
    return WorkflowService(WorkflowConfig())


class TransitionTableTests(TestCase):
    def test_identity_transitions_are_never_allowed(self):
        for status in Status.values:
            for role in ActorRole.values:
                self.assertFalse(is_valid_transition(status, status, role), (status, role))

    def test_submitted_cannot_jump_to_hired(self):
        for role in ActorRole.values:
            self.assertFalse(is_valid_transition(Status.SUBMITTED, Status.HIRED, role))

    def test_hired_may_only_move_to_withdrawn(self):
        self.assertEqual(
            allowed_next_statuses(Status.HIRED, ActorRole.CANDIDATE),
            frozenset({Status.WITHDRAWN}),
        )
        self.assertEqual(allowed_next_statuses(Status.HIRED, ActorRole.RECRUITER), frozenset())

    def test_rejected_and_withdrawn_have_no_outgoing_transitions(self):
        for status in (Status.REJECTED, Status.WITHDRAWN):
            for role in ActorRole.values:
                self.assertEqual(allowed_next_statuses(status, role), frozenset())

    def test_hiring_requires_a_note(self):
        self.assertTrue(requires_note(Status.UNDER_REVIEW, Status.HIRED))
        self.assertFalse(requires_note(Status.SUBMITTED, Status.SCREENING_SCHEDULED))

    def test_system_may_only_schedule_from_submitted(self):
        self.assertEqual(
            allowed_next_statuses(Status.SUBMITTED, ActorRole.SYSTEM),
            frozenset({Status.SCREENING_SCHEDULED}),
        )

    def test_candidate_can_withdraw_from_every_pipeline_status(self):
        for status in Status.values:
            if status in TERMINAL_STATUSES:
                continue
            self.assertTrue(
                is_valid_transition(status, Status.WITHDRAWN, ActorRole.CANDIDATE), status
            )

    def test_terminal_statuses_rank_after_the_pipeline(self):
        self.assertTrue(is_at_or_past(Status.REJECTED, Status.SCREENING_COMPLETED))
        self.assertTrue(is_at_or_past(Status.UNDER_REVIEW, Status.SCREENING_COMPLETED))
        self.assertFalse(is_at_or_past(Status.SCREENING_SCHEDULED, Status.SCREENING_COMPLETED))

    def test_later_step_never_moves_back(self):
        self.assertEqual(
            later_step(Step.RECRUITER_REVIEW, Step.APPLICATION_SUBMITTED),
            Step.RECRUITER_REVIEW,
        )
        self.assertEqual(
            later_step(Step.APPLICATION_SUBMITTED, Step.SCREENING_CALL_SCHEDULED),
            Step.SCREENING_CALL_SCHEDULED,
        )


class TimelineLedgerTests(TestCase):
    def test_append_assigns_increasing_sequence_numbers(self):
        app = _make_application()
        timeline.append(app.pk, step=Step.APPLICATION_SUBMITTED, performed_by=ActorRole.CANDIDATE)
        timeline.append(app.pk, step=Step.RESUME_UPLOADED, performed_by=ActorRole.CANDIDATE)

        entries = timeline.history(app.pk)
        self.assertEqual([e.sequence for e in entries], [1, 2])
        self.assertLessEqual(entries[0].timestamp, entries[1].timestamp)

    def test_append_with_status_updates_application(self):
        app = _make_application()
        app = timeline.append(
            app.pk,
            step=Step.SCREENING_CALL_SCHEDULED,
            performed_by=ActorRole.SYSTEM,
            from_status=Status.SUBMITTED,
            to_status=Status.SCREENING_SCHEDULED,
        )

        self.assertEqual(app.status, Status.SCREENING_SCHEDULED)
        self.assertEqual(app.current_step, Step.SCREENING_CALL_SCHEDULED)
        self.assertEqual(timeline.latest(app.pk).to_status, Status.SCREENING_SCHEDULED)

    def test_earlier_explicit_timestamp_is_rejected(self):
        app = _make_application()
        now = timezone.now()
        timeline.append(
            app.pk, step=Step.APPLICATION_SUBMITTED, performed_by=ActorRole.SYSTEM, timestamp=now
        )

        with self.assertRaises(OrderingViolation):
            timeline.append(
                app.pk,
                step=Step.RESUME_UPLOADED,
                performed_by=ActorRole.SYSTEM,
                timestamp=now - timedelta(hours=1),
            )

        self.assertEqual(len(timeline.history(app.pk)), 1)

    def test_current_step_does_not_regress(self):
        app = _make_application()
        timeline.append(app.pk, step=Step.RECRUITER_REVIEW, performed_by=ActorRole.RECRUITER)
        app = timeline.append(
            app.pk,
            step=Step.APPLICATION_SUBMITTED,
            performed_by=ActorRole.RECRUITER,
            notes="Late note about the original submission",
        )

        self.assertEqual(app.current_step, Step.RECRUITER_REVIEW)

    def test_saved_entries_cannot_be_modified_or_deleted(self):
        app = _make_application()
        timeline.append(app.pk, step=Step.APPLICATION_SUBMITTED, performed_by=ActorRole.SYSTEM)
        entry = TimelineEntry.objects.get(application=app)

        entry.notes = "rewritten"
        with self.assertRaises(TimelineImmutableError):
            entry.save()
        with self.assertRaises(TimelineImmutableError):
            entry.delete()

        self.assertEqual(TimelineEntry.objects.get(pk=entry.pk).notes, "")

    def test_history_of_unknown_application_raises(self):
        with self.assertRaises(NotFoundError):
            timeline.history(999999)


class RequestTransitionTests(TestCase):
    def test_submit_application_records_initial_entry(self):
        app = _service().submit_application(_make_candidate(), _make_job())

        entries = timeline.history(app.pk)
        self.assertEqual(app.status, Status.SUBMITTED)
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].step, Step.APPLICATION_SUBMITTED)
        self.assertEqual(entries[0].to_status, Status.SUBMITTED)
        self.assertEqual(entries[0].performed_by, ActorRole.CANDIDATE)

    def test_legal_transition_appends_exactly_one_entry(self):
        app = _service().submit_application(_make_candidate(), _make_job())

        app = _service().request_transition(
            app.pk, Status.SCREENING_SCHEDULED, actor_role=ActorRole.RECRUITER
        )

        entries = timeline.history(app.pk)
        self.assertEqual(len(entries), 2)
        self.assertEqual(entries[-1].from_status, Status.SUBMITTED)
        self.assertEqual(entries[-1].to_status, Status.SCREENING_SCHEDULED)
        self.assertEqual(entries[-1].performed_by, ActorRole.RECRUITER)
        self.assertEqual(entries[-1].notes, "Application status changed to screening scheduled")
        self.assertEqual(app.status, entries[-1].to_status)

    def test_submitted_to_hired_is_rejected_and_leaves_state_untouched(self):
        app = _service().submit_application(_make_candidate(), _make_job())

        with self.assertRaises(TransitionError) as ctx:
            _service().request_transition(
                app.pk, Status.HIRED, note="Great fit", actor_role=ActorRole.ADMIN
            )

        app.refresh_from_db()
        self.assertEqual(app.status, Status.SUBMITTED)
        self.assertEqual(len(timeline.history(app.pk)), 1)
        self.assertEqual(ctx.exception.from_status, Status.SUBMITTED)
        self.assertEqual(ctx.exception.to_status, Status.HIRED)

    def test_hiring_without_note_is_rejected(self):
        app = _make_application(Status.UNDER_REVIEW)

        with self.assertRaises(NoteRequiredError):
            _service().request_transition(app.pk, Status.HIRED, actor_role=ActorRole.RECRUITER)

        app.refresh_from_db()
        self.assertEqual(app.status, Status.UNDER_REVIEW)
        self.assertFalse(app.timeline_entries.exists())

    def test_hiring_with_note_succeeds(self):
        app = _make_application(Status.UNDER_REVIEW)

        app = _service().request_transition(
            app.pk, Status.HIRED, note="Strong trial shift", actor_role=ActorRole.RECRUITER
        )

        self.assertEqual(app.status, Status.HIRED)
        self.assertEqual(app.current_step, Step.HIRING_DECISION)
        self.assertEqual(timeline.latest(app.pk).notes, "Strong trial shift")

    def test_hired_candidate_can_still_withdraw(self):
        app = _make_application(Status.HIRED)

        app = _service().request_transition(
            app.pk, Status.WITHDRAWN, actor_role=ActorRole.CANDIDATE
        )

        self.assertEqual(app.status, Status.WITHDRAWN)
        entry = timeline.latest(app.pk)
        self.assertEqual(entry.from_status, Status.HIRED)
        self.assertEqual(entry.to_status, Status.WITHDRAWN)

    def test_wrong_role_is_rejected(self):
        app = _make_application()

        with self.assertRaises(TransitionError):
            _service().request_transition(
                app.pk, Status.REJECTED, note="No", actor_role=ActorRole.SYSTEM
            )

    def test_identity_request_is_rejected(self):
        app = _make_application(Status.UNDER_REVIEW)

        with self.assertRaises(TransitionError):
            _service().request_transition(
                app.pk, Status.UNDER_REVIEW, actor_role=ActorRole.ADMIN
            )

    def test_unknown_application_raises_not_found(self):
        with self.assertRaises(NotFoundError):
            _service().request_transition(
                999999, Status.SCREENING_SCHEDULED, actor_role=ActorRole.SYSTEM
            )

    def test_unknown_step_raises_value_error(self):
        app = _make_application()

        with self.assertRaises(ValueError):
            _service().request_transition(
                app.pk,
                Status.SCREENING_SCHEDULED,
                to_step="orientation",
                actor_role=ActorRole.SYSTEM,
            )


class IngestScreeningEventTests(TestCase):
    def _scheduled(self):
        app = _make_application(Status.SCREENING_SCHEDULED)
        call = ScreeningCall.objects.create(application=app, vendor_call_id="call_1")
        return app, call

    def test_failed_call_with_transcript_completes_screening(self):
        app, call = self._scheduled()

        result = _service().ingest_screening_event(call.pk, {
            "status": ScreeningCall.Status.FAILED,
            "errorMessage": "Call failed",
            "transcript": LONG_TRANSCRIPT,
        })

        call.refresh_from_db()
        app.refresh_from_db()
        self.assertTrue(result.advanced)
        self.assertEqual(call.status, ScreeningCall.Status.COMPLETED)
        self.assertIsNone(call.error_message)
        self.assertEqual(
            call.conflict_type, ScreeningCall.ConflictType.FAILED_STATUS_WITH_TRANSCRIPT
        )
        self.assertEqual(app.status, Status.SCREENING_COMPLETED)
        self.assertEqual(app.current_step, Step.SCREENING_CALL_COMPLETED)
        self.assertEqual(timeline.latest(app.pk).performed_by, ActorRole.SYSTEM)

    def test_repeated_completion_is_a_no_op(self):
        app, call = self._scheduled()
        update = {"status": ScreeningCall.Status.COMPLETED, "transcript": LONG_TRANSCRIPT}

        _service().ingest_screening_event(call.pk, update)
        entries_after_first = len(timeline.history(app.pk))
        result = _service().ingest_screening_event(call.pk, update)

        app.refresh_from_db()
        self.assertFalse(result.advanced)
        self.assertEqual(app.status, Status.SCREENING_COMPLETED)
        self.assertEqual(len(timeline.history(app.pk)), entries_after_first)

    def test_consumed_call_ignores_later_updates(self):
        app, call = self._scheduled()
        _service().ingest_screening_event(call.pk, {
            "status": ScreeningCall.Status.COMPLETED,
            "transcript": LONG_TRANSCRIPT,
            "summary": {"text": "Experienced, available weekends"},
        })
        call.refresh_from_db()
        self.assertIsNotNone(call.consumed_at)

        result = _service().ingest_screening_event(call.pk, {
            "status": ScreeningCall.Status.FAILED,
            "transcript": "",
        })

        call.refresh_from_db()
        self.assertTrue(result.ignored)
        self.assertEqual(call.status, ScreeningCall.Status.COMPLETED)
        self.assertEqual(call.transcript, LONG_TRANSCRIPT)

    def test_call_started_moves_application_in_progress(self):
        app, call = self._scheduled()

        _service().ingest_screening_event(call.pk, {"status": ScreeningCall.Status.IN_PROGRESS})

        app.refresh_from_db()
        call.refresh_from_db()
        self.assertEqual(app.status, Status.SCREENING_IN_PROGRESS)
        self.assertIsNotNone(call.started_at)

    def test_genuine_failure_leaves_application_waiting(self):
        app, call = self._scheduled()

        result = _service().ingest_screening_event(call.pk, {
            "status": ScreeningCall.Status.FAILED,
            "errorMessage": "No answer",
            "transcript": "Hello?",
        })

        app.refresh_from_db()
        call.refresh_from_db()
        self.assertFalse(result.advanced)
        self.assertEqual(app.status, Status.SCREENING_SCHEDULED)
        self.assertEqual(call.status, ScreeningCall.Status.FAILED)
        self.assertEqual(call.error_message, "No answer")
        self.assertIsNotNone(call.completed_at)

    def test_partial_update_keeps_stored_fields(self):
        app, call = self._scheduled()
        _service().ingest_screening_event(call.pk, {"transcript": LONG_TRANSCRIPT})

        _service().ingest_screening_event(call.pk, {"summary": {"text": "ok"}})

        call.refresh_from_db()
        self.assertEqual(call.transcript, LONG_TRANSCRIPT)
        self.assertEqual(call.summary, {"text": "ok"})

    def test_completion_for_unscheduled_application_is_skipped(self):
        app = _make_application(Status.SUBMITTED)
        call = ScreeningCall.objects.create(application=app)

        result = _service().ingest_screening_event(call.pk, {
            "status": ScreeningCall.Status.COMPLETED,
            "transcript": LONG_TRANSCRIPT,
        })

        app.refresh_from_db()
        self.assertFalse(result.advanced)
        self.assertEqual(app.status, Status.SUBMITTED)
        self.assertTrue(result.notes)

    def test_application_status_is_never_stored_on_a_call(self):
        app, call = self._scheduled()

        with self.assertLogs("screenings.conflicts", level="WARNING"):
            _service().ingest_screening_event(call.pk, {
                "status": Status.HIRED,
                "transcript": "Hello?",
            })

        call.refresh_from_db()
        app.refresh_from_db()
        self.assertEqual(call.status, ScreeningCall.Status.SCHEDULED)
        self.assertEqual(call.transcript, "Hello?")
        self.assertEqual(app.status, Status.SCREENING_SCHEDULED)

    def test_non_text_transcript_is_dropped(self):
        app, call = self._scheduled()
        _service().ingest_screening_event(call.pk, {"transcript": "Hi there"})

        with self.assertLogs("screenings.conflicts", level="WARNING"):
            result = _service().ingest_screening_event(call.pk, {
                "status": ScreeningCall.Status.FAILED,
                "transcript": 12345,
                "errorMessage": {"code": 500},
            })

        call.refresh_from_db()
        self.assertFalse(result.advanced)
        self.assertEqual(call.status, ScreeningCall.Status.FAILED)
        self.assertEqual(call.transcript, "Hi there")
        self.assertIsNone(call.error_message)

    def test_unknown_call_raises_not_found(self):
        with self.assertRaises(NotFoundError):
            _service().ingest_screening_event(999999, {"status": ScreeningCall.Status.COMPLETED})


class ScheduleScreeningTests(TestCase):
    def test_first_schedule_moves_submitted_application(self):
        app = _service().submit_application(_make_candidate(), _make_job())

        call = _service().schedule_screening(app.pk, vendor_call_id="call_a")

        app.refresh_from_db()
        self.assertEqual(call.attempt_number, 1)
        self.assertEqual(call.status, ScreeningCall.Status.SCHEDULED)
        self.assertEqual(app.status, Status.SCREENING_SCHEDULED)

    def test_active_call_blocks_new_schedule(self):
        app = _make_application()
        _service().schedule_screening(app.pk)

        with self.assertRaises(ScreeningLimitError):
            _service().schedule_screening(app.pk)

    def test_retry_after_failure_until_limit(self):
        app = _make_application()
        first = _service().schedule_screening(app.pk)
        ScreeningCall.objects.filter(pk=first.pk).update(status=ScreeningCall.Status.FAILED)

        second = _service().schedule_screening(app.pk)
        self.assertEqual(second.attempt_number, 2)
        app.refresh_from_db()
        self.assertEqual(app.status, Status.SCREENING_SCHEDULED)

        ScreeningCall.objects.filter(pk=second.pk).update(status=ScreeningCall.Status.FAILED)
        with self.assertRaises(ScreeningLimitError):
            _service().schedule_screening(app.pk)

    def test_completed_call_blocks_new_schedule(self):
        app = _make_application(Status.SCREENING_SCHEDULED)
        ScreeningCall.objects.create(application=app, status=ScreeningCall.Status.COMPLETED)

        with self.assertRaises(ScreeningLimitError):
            _service().schedule_screening(app.pk)

    def test_retry_limit_comes_from_config(self):
        app = _make_application(Status.SCREENING_SCHEDULED)
        for attempt in (1, 2):
            ScreeningCall.objects.create(
                application=app,
                attempt_number=attempt,
                status=ScreeningCall.Status.FAILED,
            )
        service = WorkflowService(WorkflowConfig(max_retries=2))

        call = service.schedule_screening(app.pk)

        self.assertEqual(call.attempt_number, 3)

    def test_past_screening_is_rejected(self):
        app = _make_application(Status.UNDER_REVIEW)

        with self.assertRaises(TransitionError):
            _service().schedule_screening(app.pk)

    def test_candidate_cannot_schedule(self):
        app = _make_application()

        with self.assertRaises(TransitionError):
            _service().schedule_screening(app.pk, actor_role=ActorRole.CANDIDATE)
        self.assertFalse(app.screening_calls.exists())


class ProgressTests(TestCase):
    def test_progress_counts_required_steps_once(self):
        app = _service().submit_application(_make_candidate(), _make_job())
        self.assertEqual(_service().progress(app), 17)

        timeline.append(app.pk, step=Step.RESUME_UPLOADED, performed_by=ActorRole.CANDIDATE)
        timeline.append(
            app.pk,
            step=Step.APPLICATION_SUBMITTED,
            performed_by=ActorRole.RECRUITER,
            notes="Checked contact details",
        )

        self.assertEqual(_service().progress(app), 17)

    def test_next_steps_run_through_optional_steps(self):
        steps = [s.step for s in _service().next_steps(Step.APPLICATION_SUBMITTED)]
        self.assertEqual(steps, [Step.RESUME_UPLOADED, Step.SCREENING_CALL_SCHEDULED])

        steps = [s.step for s in _service().next_steps(Step.SCREENING_CALL_SCHEDULED)]
        self.assertEqual(steps, [Step.SCREENING_CALL_COMPLETED])
        self.assertEqual(_service().next_steps(Step.PROCESS_COMPLETE), [])
        self.assertEqual(_service().next_steps(Step.REFERENCE_CHECK), [])


class ApplicationViewTests(TestCase):
    def _post(self, url, data):
        return self.client.post(url, data=json.dumps(data), content_type="application/json")

    def test_create_returns_application_with_timeline(self):
        candidate = _make_candidate()
        job = _make_job()

        response = self._post(
            reverse("applications:create"), {"candidate_id": candidate.pk, "job_id": job.pk}
        )

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["status"], Status.SUBMITTED)
        self.assertEqual(len(body["timeline"]), 1)

    def test_duplicate_application_is_a_conflict(self):
        app = _make_application()

        response = self._post(
            reverse("applications:create"),
            {"candidate_id": app.candidate_id, "job_id": app.job_id},
        )

        self.assertEqual(response.status_code, 409)

    def test_closed_job_does_not_accept_applications(self):
        job = _make_job(status=Job.Status.CLOSED)

        response = self._post(
            reverse("applications:create"),
            {"candidate_id": _make_candidate().pk, "job_id": job.pk},
        )

        self.assertEqual(response.status_code, 409)

    def test_illegal_status_change_returns_409_with_tuple(self):
        app = _make_application()

        response = self._post(
            reverse("applications:status", args=[app.pk]),
            {"status": Status.HIRED, "note": "x", "actor_role": ActorRole.ADMIN},
        )

        self.assertEqual(response.status_code, 409)
        body = response.json()
        self.assertEqual(body["error"], "transition_not_allowed")
        self.assertEqual(body["from_status"], Status.SUBMITTED)
        self.assertEqual(body["to_status"], Status.HIRED)

    def test_missing_note_returns_note_required(self):
        app = _make_application(Status.UNDER_REVIEW)

        response = self._post(
            reverse("applications:status", args=[app.pk]),
            {"status": Status.HIRED, "actor_role": ActorRole.RECRUITER},
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"], "note_required")

    def test_legal_status_change_returns_updated_application(self):
        app = _make_application()

        response = self._post(
            reverse("applications:status", args=[app.pk]),
            {"status": Status.SCREENING_SCHEDULED, "actor_role": ActorRole.RECRUITER},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], Status.SCREENING_SCHEDULED)

    def test_status_change_validates_input(self):
        app = _make_application()

        bad_json = self.client.post(
            reverse("applications:status", args=[app.pk]),
            data="{not json",
            content_type="application/json",
        )
        bad_role = self._post(
            reverse("applications:status", args=[app.pk]),
            {"status": Status.SCREENING_SCHEDULED, "actor_role": "intern"},
        )

        self.assertEqual(bad_json.status_code, 400)
        self.assertEqual(bad_role.status_code, 400)

    def test_status_change_for_unknown_application_is_404(self):
        response = self._post(
            reverse("applications:status", args=[999999]),
            {"status": Status.SCREENING_SCHEDULED, "actor_role": ActorRole.SYSTEM},
        )

        self.assertEqual(response.status_code, 404)

    def test_allowed_transitions_lists_role_options(self):
        app = _make_application(Status.HIRED)

        response = self.client.get(
            reverse("applications:transitions", args=[app.pk]),
            {"actor_role": ActorRole.CANDIDATE},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["allowed"], [Status.WITHDRAWN])

    def test_note_does_not_change_status(self):
        app = _make_application(Status.UNDER_REVIEW)

        response = self._post(
            reverse("applications:add_note", args=[app.pk]),
            {"note": "Called references", "actor_role": ActorRole.RECRUITER},
        )

        self.assertEqual(response.status_code, 201)
        app.refresh_from_db()
        self.assertEqual(app.status, Status.UNDER_REVIEW)
        entry = timeline.latest(app.pk)
        self.assertEqual(entry.notes, "Called references")
        self.assertIsNone(entry.to_status)

    def test_schedule_screening_endpoint(self):
        app = _make_application()
        url = reverse("applications:schedule_screening", args=[app.pk])

        first = self._post(url, {"vendor_call_id": "call_xyz"})
        second = self._post(url, {})

        self.assertEqual(first.status_code, 201)
        self.assertEqual(first.json()["vendorCallId"], "call_xyz")
        self.assertEqual(second.status_code, 409)

    def test_detail_includes_screenings_and_progress(self):
        app = _make_application()
        ScreeningCall.objects.create(application=app)

        response = self.client.get(reverse("applications:detail", args=[app.pk]))

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(len(body["screenings"]), 1)
        self.assertEqual(body["progress"], 0)
        self.assertEqual(
            body["nextSteps"][0],
            {"step": Step.RESUME_UPLOADED, "label": "Resume Uploaded", "optional": True},
        )

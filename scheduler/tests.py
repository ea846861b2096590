from datetime import timedelta
from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from applications.models import Application
from candidates.models import Candidate
from jobs.models import Job
from scheduler import jobs
from screenings.models import ScreeningCall
from screenings.vendor import VapiError

TRANSCRIPT = "Assistant: When can you start? User: Next Monday, I am free all week. " * 3


def _make_application(status=Application.Status.SCREENING_SCHEDULED) -> Application:
    candidate = Candidate.objects.create(
        first_name="Ana",
        last_name="Pop",
        phone="+40700000001",
        email="ana@example.com",
    )
    job = Job.objects.create(title="Host", location="Old Town")
    return Application.objects.create(candidate=candidate, job=job, status=status)


def _age(call: ScreeningCall, minutes: int = 60) -> None:
    ScreeningCall.objects.filter(pk=call.pk).update(
        updated_at=timezone.now() - timedelta(minutes=minutes)
    )


class ReconcileScreeningsTests(TestCase):
    def test_failed_call_with_transcript_advances_application(self):
        app = _make_application()
        call = ScreeningCall.objects.create(
            application=app,
            status=ScreeningCall.Status.FAILED,
            transcript=TRANSCRIPT,
            error_message="Call failed",
        )

        jobs.reconcile_screenings.__wrapped__()

        app.refresh_from_db()
        call.refresh_from_db()
        self.assertEqual(app.status, Application.Status.SCREENING_COMPLETED)
        self.assertEqual(call.status, ScreeningCall.Status.COMPLETED)

    def test_terminal_applications_are_skipped(self):
        app = _make_application(status=Application.Status.WITHDRAWN)
        call = ScreeningCall.objects.create(
            application=app,
            status=ScreeningCall.Status.FAILED,
            transcript=TRANSCRIPT,
            error_message="Call failed",
        )

        jobs.reconcile_screenings.__wrapped__()

        call.refresh_from_db()
        self.assertEqual(call.status, ScreeningCall.Status.FAILED)
        self.assertEqual(call.error_message, "Call failed")

    def test_second_sweep_does_nothing_once_application_advanced(self):
        app = _make_application()
        call = ScreeningCall.objects.create(
            application=app,
            status=ScreeningCall.Status.COMPLETED,
            transcript=TRANSCRIPT,
        )

        jobs.reconcile_screenings.__wrapped__()
        app.refresh_from_db()
        self.assertEqual(app.status, Application.Status.SCREENING_COMPLETED)
        updated_at = ScreeningCall.objects.get(pk=call.pk).updated_at

        with patch("scheduler.jobs.WorkflowService.ingest_screening_event") as mock_ingest:
            jobs.reconcile_screenings.__wrapped__()

        self.assertFalse(mock_ingest.called)
        self.assertEqual(ScreeningCall.objects.get(pk=call.pk).updated_at, updated_at)

    @patch("scheduler.jobs.WorkflowService.ingest_screening_event")
    def test_calls_that_cannot_advance_are_not_swept(self, mock_ingest):
        waiting = _make_application()
        ScreeningCall.objects.create(
            application=waiting,
            status=ScreeningCall.Status.FAILED,
            transcript="Hello?",
            error_message="No answer",
        )
        ScreeningCall.objects.create(
            application=waiting,
            status=ScreeningCall.Status.COMPLETED,
            transcript=None,
        )
        unscheduled = _make_application(status=Application.Status.SUBMITTED)
        ScreeningCall.objects.create(
            application=unscheduled,
            status=ScreeningCall.Status.COMPLETED,
            transcript=TRANSCRIPT,
        )

        jobs.reconcile_screenings.__wrapped__()

        self.assertFalse(mock_ingest.called)

    def test_completed_call_with_summary_is_consumed(self):
        app = _make_application()
        call = ScreeningCall.objects.create(
            application=app,
            status=ScreeningCall.Status.COMPLETED,
            transcript=TRANSCRIPT,
            summary={"text": "Available next week"},
        )

        jobs.reconcile_screenings.__wrapped__()

        call.refresh_from_db()
        self.assertIsNotNone(call.consumed_at)


class SyncStuckScreeningsTests(TestCase):
    @patch("scheduler.jobs.VapiClient")
    def test_polled_result_is_ingested(self, mock_client_cls):
        app = _make_application()
        call = ScreeningCall.objects.create(application=app, vendor_call_id="call_stuck")
        _age(call)
        client = mock_client_cls.return_value
        client.is_configured = True
        client.fetch_call.return_value = {
            "id": "call_stuck",
            "status": "ended",
            "endedReason": "customer-ended-call",
            "transcript": TRANSCRIPT,
        }

        jobs.sync_stuck_screenings.__wrapped__()

        client.fetch_call.assert_called_once_with("call_stuck")
        app.refresh_from_db()
        self.assertEqual(app.status, Application.Status.SCREENING_COMPLETED)

    @patch("scheduler.jobs.VapiClient")
    def test_recent_calls_are_not_polled(self, mock_client_cls):
        app = _make_application()
        ScreeningCall.objects.create(application=app, vendor_call_id="call_fresh")

        jobs.sync_stuck_screenings.__wrapped__()

        self.assertFalse(mock_client_cls.return_value.fetch_call.called)

    @patch("scheduler.jobs.VapiClient")
    def test_skips_poll_without_api_key(self, mock_client_cls):
        app = _make_application()
        call = ScreeningCall.objects.create(application=app, vendor_call_id="call_stuck")
        _age(call)
        mock_client_cls.return_value.is_configured = False

        jobs.sync_stuck_screenings.__wrapped__()

        self.assertFalse(mock_client_cls.return_value.fetch_call.called)

    @patch("scheduler.jobs.VapiClient")
    def test_vendor_error_leaves_call_untouched(self, mock_client_cls):
        app = _make_application()
        call = ScreeningCall.objects.create(application=app, vendor_call_id="call_stuck")
        _age(call)
        client = mock_client_cls.return_value
        client.is_configured = True
        client.fetch_call.side_effect = VapiError("HTTP 500")

        jobs.sync_stuck_screenings.__wrapped__()

        call.refresh_from_db()
        app.refresh_from_db()
        self.assertEqual(call.status, ScreeningCall.Status.SCHEDULED)
        self.assertEqual(app.status, Application.Status.SCREENING_SCHEDULED)


class RunSchedulerCommandTests(TestCase):
    @patch("scheduler.management.commands.run_scheduler.time.sleep", side_effect=KeyboardInterrupt)
    @patch("scheduler.management.commands.run_scheduler.DjangoJobStore")
    @patch("scheduler.management.commands.run_scheduler.BackgroundScheduler")
    def test_registers_both_sweeps_and_shuts_down(self, mock_scheduler_cls, _store, _sleep):
        scheduler = mock_scheduler_cls.return_value

        call_command("run_scheduler", stdout=StringIO())

        job_ids = [c.kwargs["id"] for c in scheduler.add_job.call_args_list]
        self.assertEqual(job_ids, ["reconcile_screenings", "sync_stuck_screenings"])
        scheduler.start.assert_called_once_with()
        scheduler.shutdown.assert_called_once_with(wait=True)

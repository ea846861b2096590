from unittest.mock import MagicMock, patch

import requests
from django.test import SimpleTestCase, TestCase

from applications.models import Application
from candidates.models import Candidate
from jobs.models import Job
from screenings.conflicts import (
    ScreeningPatch,
    ScreeningSnapshot,
    is_substantive,
    merge,
    resolve_conflicts,
)
from screenings.models import ScreeningCall
from screenings.services import (
    build_update,
    extract_call_reference,
    failed_attempt_count,
    format_transcript,
    has_active_call,
    has_reached_call_limit,
    is_retry_allowed,
)
from screenings.vendor import VapiClient, VapiError, call_to_update

Status = ScreeningCall.Status
ConflictType = ScreeningCall.ConflictType

TRANSCRIPT_300 = ("Assistant: Tell me about your last kitchen job. User: Prep and grill. " * 5)[:300]


def _make_application() -> Application:
    candidate = Candidate.objects.create(first_name="Ana", last_name="Pop", email="ana@example.com")
    job = Job.objects.create(title="Host", location="Uptown")
    return Application.objects.create(candidate=candidate, job=job)


class ConflictResolverTests(SimpleTestCase):
    def test_failed_status_with_transcript_is_overridden(self):
        snapshot = ScreeningSnapshot(
            status=Status.FAILED, transcript=TRANSCRIPT_300, error_message="Call failed"
        )

        result = resolve_conflicts(snapshot)

        self.assertTrue(result.has_conflict)
        self.assertEqual(result.conflict_type, ConflictType.FAILED_STATUS_WITH_TRANSCRIPT)
        self.assertEqual(result.resolved.status, Status.COMPLETED)
        self.assertIsNone(result.resolved.error_message)
        self.assertTrue(result.should_process)

    def test_pending_call_has_no_conflict(self):
        result = resolve_conflicts(ScreeningSnapshot(status=Status.SCHEDULED))

        self.assertFalse(result.has_conflict)
        self.assertFalse(result.should_process)
        self.assertEqual(result.conflict_type, ConflictType.NONE)

    def test_error_next_to_transcript_is_cleared(self):
        snapshot = ScreeningSnapshot(
            status=Status.IN_PROGRESS, transcript=TRANSCRIPT_300, error_message="timeout"
        )

        result = resolve_conflicts(snapshot)

        self.assertEqual(result.conflict_type, ConflictType.ERROR_WITH_TRANSCRIPT)
        self.assertEqual(result.resolved.status, Status.IN_PROGRESS)
        self.assertIsNone(result.resolved.error_message)
        self.assertTrue(result.should_process)

    def test_completed_call_with_error_and_transcript_keeps_status(self):
        snapshot = ScreeningSnapshot(
            status=Status.COMPLETED, transcript=TRANSCRIPT_300, error_message="late error"
        )

        result = resolve_conflicts(snapshot)

        self.assertEqual(result.conflict_type, ConflictType.ERROR_WITH_TRANSCRIPT)
        self.assertEqual(result.resolved.status, Status.COMPLETED)

    def test_success_status_with_error_and_short_transcript(self):
        snapshot = ScreeningSnapshot(
            status=Status.COMPLETED, transcript="Hi", error_message="hangup"
        )

        result = resolve_conflicts(snapshot)

        self.assertEqual(result.conflict_type, ConflictType.SUCCESS_STATUS_WITH_ERROR)
        self.assertIsNone(result.resolved.error_message)
        self.assertFalse(result.should_process)

    def test_genuine_failure_is_left_alone(self):
        snapshot = ScreeningSnapshot(status=Status.FAILED, transcript="Hello?", error_message="busy")

        result = resolve_conflicts(snapshot)

        self.assertFalse(result.has_conflict)
        self.assertEqual(result.resolved, snapshot)
        self.assertFalse(result.should_process)

    def test_resolver_does_not_touch_its_input(self):
        snapshot = ScreeningSnapshot(
            status=Status.FAILED, transcript=TRANSCRIPT_300, error_message="Call failed"
        )

        resolve_conflicts(snapshot)

        self.assertEqual(snapshot.status, Status.FAILED)
        self.assertEqual(snapshot.error_message, "Call failed")

    def test_substantive_threshold_is_exclusive(self):
        self.assertFalse(is_substantive("x" * 20))
        self.assertTrue(is_substantive("x" * 21))
        self.assertFalse(is_substantive("   " + "x" * 5 + "   " * 10))
        self.assertTrue(is_substantive("x" * 11, min_length=10))


class MergeTests(SimpleTestCase):
    def test_patch_overrides_only_sent_fields(self):
        snapshot = ScreeningSnapshot(status=Status.IN_PROGRESS, transcript="so far")

        merged = merge(snapshot, ScreeningPatch(summary={"text": "ok"}))

        self.assertEqual(merged.status, Status.IN_PROGRESS)
        self.assertEqual(merged.transcript, "so far")
        self.assertEqual(merged.summary, {"text": "ok"})

    def test_explicit_null_clears_a_field(self):
        snapshot = ScreeningSnapshot(status=Status.FAILED, error_message="boom")

        merged = merge(snapshot, ScreeningPatch.from_payload({"errorMessage": None}))

        self.assertIsNone(merged.error_message)

    def test_empty_patch_returns_same_snapshot(self):
        snapshot = ScreeningSnapshot(status=Status.SCHEDULED)
        patch_ = ScreeningPatch.from_payload({"unrelated": 1})

        self.assertTrue(patch_.is_empty())
        self.assertIs(merge(snapshot, patch_), snapshot)

    def test_from_payload_drops_values_a_call_cannot_hold(self):
        with self.assertLogs("screenings.conflicts", level="WARNING"):
            patch_ = ScreeningPatch.from_payload({
                "status": "hired",
                "transcript": ["not", "text"],
                "summary": {"text": "kept"},
            })

        self.assertEqual(patch_, ScreeningPatch(summary={"text": "kept"}))

    def test_from_payload_keeps_explicit_nulls(self):
        patch_ = ScreeningPatch.from_payload({"transcript": None, "errorMessage": None})

        self.assertIsNone(patch_.transcript)
        self.assertIsNone(patch_.error_message)
        self.assertFalse(patch_.is_empty())

    def test_from_payload_accepts_both_error_spellings(self):
        self.assertEqual(ScreeningPatch.from_payload({"error_message": "a"}).error_message, "a")
        self.assertEqual(ScreeningPatch.from_payload({"errorMessage": "b"}).error_message, "b")


class VendorPayloadTests(SimpleTestCase):
    def test_end_of_call_report(self):
        payload = {
            "message": {
                "type": "end-of-call-report",
                "call": {"id": "call_1", "metadata": {"screeningId": "7"}},
                "transcript": TRANSCRIPT_300,
                "analysis": {"summary": "Good fit for weekends"},
            }
        }

        update = build_update(payload)

        self.assertEqual(update["status"], Status.COMPLETED)
        self.assertEqual(update["transcript"], TRANSCRIPT_300.strip())
        self.assertEqual(update["summary"], {"text": "Good fit for weekends"})
        self.assertNotIn("errorMessage", update)
        self.assertEqual(extract_call_reference(payload), ("7", "call_1"))

    def test_call_failed_gets_default_error(self):
        update = build_update({"type": "call-failed", "callId": "call_2"})

        self.assertEqual(update, {"status": Status.FAILED, "errorMessage": "Call failed"})
        self.assertEqual(extract_call_reference({"callId": "call_2"}), (None, "call_2"))

    def test_status_update_uses_vendor_status(self):
        update = build_update({"message": {"type": "status-update", "status": "in-progress"}})

        self.assertEqual(update, {"status": Status.IN_PROGRESS})

    def test_error_object_message_is_used(self):
        update = build_update({"type": "call-error", "error": {"message": "SIP 486"}})

        self.assertEqual(update["errorMessage"], "SIP 486")

    def test_transcript_turns_are_formatted(self):
        turns = [
            {"role": "assistant", "message": "Hello there"},
            {"role": "user", "content": "Hi"},
            {"role": "user", "text": ""},
        ]

        self.assertEqual(format_transcript(turns), "Assistant: Hello there\n\nUser: Hi")

    def test_polled_call_ending_in_error_is_failed(self):
        update = call_to_update({
            "status": "ended",
            "endedReason": "pipeline-error-openai-llm-failed",
            "artifact": {"transcript": "short"},
        })

        self.assertEqual(update["status"], Status.FAILED)
        self.assertEqual(update["errorMessage"], "pipeline-error-openai-llm-failed")
        self.assertEqual(update["transcript"], "short")

    def test_polled_completed_call(self):
        update = call_to_update({
            "status": "ended",
            "endedReason": "customer-ended-call",
            "transcript": TRANSCRIPT_300,
            "analysis": {"summary": {"text": "ok"}},
        })

        self.assertEqual(update["status"], Status.COMPLETED)
        self.assertEqual(update["summary"], {"text": "ok"})
        self.assertNotIn("errorMessage", update)


class VapiClientTests(SimpleTestCase):
    def _client(self) -> VapiClient:
        return VapiClient(api_key="test-key", base_url="https://vapi.test/")

    @patch("screenings.vendor.requests.get")
    def test_fetch_call_returns_json(self, mock_get):
        response = MagicMock(ok=True, status_code=200)
        response.json.return_value = {"id": "call_1", "status": "ended"}
        mock_get.return_value = response

        data = self._client().fetch_call("call_1")

        self.assertEqual(data["status"], "ended")
        args, kwargs = mock_get.call_args
        self.assertEqual(args[0], "https://vapi.test/call/call_1")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer test-key")

    @patch("screenings.vendor.requests.get")
    def test_http_error_raises(self, mock_get):
        mock_get.return_value = MagicMock(ok=False, status_code=404, text="not found")

        with self.assertRaises(VapiError):
            self._client().fetch_call("call_missing")

    @patch("screenings.vendor.requests.get", side_effect=requests.ConnectionError("down"))
    def test_network_error_raises(self, mock_get):
        with self.assertRaises(VapiError):
            self._client().fetch_call("call_1")

    def test_missing_api_key_raises(self):
        client = VapiClient(api_key="", base_url="https://vapi.test")

        self.assertFalse(client.is_configured)
        with self.assertRaises(VapiError):
            client.fetch_call("call_1")


class ScreeningLimitTests(TestCase):
    def test_failed_attempts_include_errored_scheduled_calls(self):
        app = _make_application()
        ScreeningCall.objects.create(application=app, status=Status.FAILED)
        ScreeningCall.objects.create(application=app, error_message="no answer")
        ScreeningCall.objects.create(application=app, status=Status.IN_PROGRESS, error_message="x")

        self.assertEqual(failed_attempt_count(app), 2)

    def test_retry_allowed_without_calls(self):
        app = _make_application()

        self.assertTrue(is_retry_allowed(app, max_retries=1))
        self.assertFalse(has_active_call(app))
        self.assertFalse(has_reached_call_limit(app, max_completed_calls=1))

    def test_completed_call_stops_retries(self):
        app = _make_application()
        ScreeningCall.objects.create(application=app, status=Status.COMPLETED)

        self.assertFalse(is_retry_allowed(app, max_retries=5))
        self.assertTrue(has_reached_call_limit(app, max_completed_calls=1))

    def test_locked_call(self):
        app = _make_application()
        call = ScreeningCall.objects.create(
            application=app, status=Status.COMPLETED, summary={"text": "ok"}
        )
        self.assertFalse(call.is_locked)

        call.consumed_at = call.scheduled_at
        self.assertTrue(call.is_locked)

import hashlib
import hmac
import json
import time
from unittest.mock import patch

from django.test import TestCase, override_settings
from django.urls import reverse

from applications.exceptions import TransitionError
from applications.models import Application
from candidates.models import Candidate
from jobs.models import Job
from screenings.models import ScreeningCall

TRANSCRIPT = (
    "Assistant: Can you work Friday nights? User: Yes, and most weekends too. " * 3
)


def _make_job() -> Job:
    return Job.objects.create(title="Server", location="Harbour")


def _make_candidate() -> Candidate:
    return Candidate.objects.create(
        first_name="Ana",
        last_name="Pop",
        phone="+40700000001",
        email="ana@example.com",
    )


def _make_scheduled_call(vendor_call_id: str | None = "call_abc") -> ScreeningCall:
    application = Application.objects.create(
        candidate=_make_candidate(),
        job=_make_job(),
        status=Application.Status.SCREENING_SCHEDULED,
    )
    return ScreeningCall.objects.create(application=application, vendor_call_id=vendor_call_id)


def _end_of_call(call: ScreeningCall, **extra) -> dict:
    message = {
        "type": "end-of-call-report",
        "call": {"id": call.vendor_call_id, "metadata": {"screeningId": str(call.pk)}},
        "transcript": TRANSCRIPT,
        "analysis": {"summary": "Available weekends"},
    }
    message.update(extra)
    return {"message": message}


def _sign(body: bytes, secret: str, timestamp: int | None = None) -> str:
    ts = str(timestamp if timestamp is not None else int(time.time()))
    digest = hmac.new(secret.encode(), f"{ts}.".encode() + body, hashlib.sha256).hexdigest()
    return f"t={ts},v0={digest}"


class WebhookSecurityTests(TestCase):
    @override_settings(VAPI_WEBHOOK_SECRET="topsecret")
    def test_rejects_missing_signature_when_secret_configured(self):
        response = self.client.post(
            reverse("webhooks:vapi"),
            data=json.dumps({"callId": "call_x"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 401)
        self.assertIn("error", response.json())

    @override_settings(VAPI_WEBHOOK_SECRET="topsecret")
    def test_rejects_bad_signature(self):
        body = json.dumps({"callId": "call_x"}).encode()
        response = self.client.post(
            reverse("webhooks:vapi"),
            data=body,
            content_type="application/json",
            HTTP_X_VAPI_SIGNATURE=_sign(body, "wrong-secret"),
        )
        self.assertEqual(response.status_code, 401)

    @override_settings(VAPI_WEBHOOK_SECRET="topsecret")
    def test_rejects_stale_signature(self):
        body = json.dumps({"callId": "call_x"}).encode()
        response = self.client.post(
            reverse("webhooks:vapi"),
            data=body,
            content_type="application/json",
            HTTP_X_VAPI_SIGNATURE=_sign(body, "topsecret", int(time.time()) - 3600),
        )
        self.assertEqual(response.status_code, 401)

    @override_settings(VAPI_WEBHOOK_SECRET="topsecret")
    def test_accepts_valid_signature(self):
        call = _make_scheduled_call()
        body = json.dumps(_end_of_call(call)).encode()

        response = self.client.post(
            reverse("webhooks:vapi"),
            data=body,
            content_type="application/json",
            HTTP_X_VAPI_SIGNATURE=_sign(body, "topsecret"),
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "advanced")

    def test_rejects_invalid_json(self):
        response = self.client.post(
            reverse("webhooks:vapi"), data="{oops", content_type="application/json"
        )
        self.assertEqual(response.status_code, 400)

    def test_get_is_not_allowed(self):
        response = self.client.get(reverse("webhooks:vapi"))
        self.assertEqual(response.status_code, 405)


@override_settings(VAPI_WEBHOOK_SECRET="")
class VapiWebhookTests(TestCase):
    def _post(self, payload: dict):
        return self.client.post(
            reverse("webhooks:vapi"),
            data=json.dumps(payload),
            content_type="application/json",
        )

    def test_end_of_call_report_completes_screening(self):
        call = _make_scheduled_call()

        response = self._post(_end_of_call(call))

        self.assertEqual(response.status_code, 200)
        call.refresh_from_db()
        self.assertEqual(call.status, ScreeningCall.Status.COMPLETED)
        self.assertEqual(call.summary, {"text": "Available weekends"})
        self.assertIsNotNone(call.consumed_at)
        self.assertEqual(call.application.status, Application.Status.SCREENING_COMPLETED)

    def test_failed_report_with_transcript_is_recovered(self):
        call = _make_scheduled_call()

        self._post(_end_of_call(call, type="call-failed", error="Call failed"))

        call.refresh_from_db()
        self.assertEqual(call.status, ScreeningCall.Status.COMPLETED)
        self.assertIsNone(call.error_message)
        self.assertEqual(
            call.conflict_type, ScreeningCall.ConflictType.FAILED_STATUS_WITH_TRANSCRIPT
        )
        self.assertEqual(call.application.status, Application.Status.SCREENING_COMPLETED)

    def test_duplicate_delivery_is_acknowledged(self):
        call = _make_scheduled_call()
        self._post(_end_of_call(call))

        response = self._post(_end_of_call(call))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "already_processed")
        self.assertEqual(call.application.timeline_entries.count(), 1)

    def test_lookup_by_vendor_call_id(self):
        call = _make_scheduled_call(vendor_call_id="call_vendor_only")

        response = self._post({"type": "call-started", "callId": "call_vendor_only"})

        self.assertEqual(response.status_code, 200)
        call.refresh_from_db()
        self.assertEqual(call.status, ScreeningCall.Status.IN_PROGRESS)
        self.assertEqual(call.application.status, Application.Status.SCREENING_IN_PROGRESS)

    def test_metadata_lookup_binds_vendor_call_id(self):
        call = _make_scheduled_call(vendor_call_id=None)
        payload = {
            "message": {
                "type": "status-update",
                "status": "ringing",
                "call": {"id": "call_late", "metadata": {"screeningId": str(call.pk)}},
            }
        }

        self._post(payload)

        call.refresh_from_db()
        self.assertEqual(call.vendor_call_id, "call_late")

    def test_unknown_call_is_acknowledged(self):
        response = self._post({"type": "call-ended", "callId": "call_nobody"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "call_not_found")

    def test_missing_reference_is_acknowledged(self):
        response = self._post({"type": "call-ended"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "no_call_reference")

    def test_rejected_transition_is_acknowledged(self):
        call = _make_scheduled_call()
        error = TransitionError("screening_scheduled", "screening_completed", "system")

        with patch(
            "webhooks.views.WorkflowService.ingest_screening_event", side_effect=error
        ):
            response = self._post(_end_of_call(call))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "transition_rejected")

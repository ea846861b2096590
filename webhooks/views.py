"""
webhooks/views.py

Inbound webhook endpoints.

  POST /webhooks/vapi/   — Vapi voice-call server event

The view is CSRF-exempt (external services cannot obtain a CSRF token) and
validates a shared-secret signature before any processing occurs.
"""

import hashlib
import hmac
import json
import logging
import time

from django.conf import settings
from django.db import transaction
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from applications.exceptions import NotFoundError, TransitionError
from applications.workflow import WorkflowService
from hiretrack.constants import WEBHOOK_TIMESTAMP_TOLERANCE_SECS
from screenings.models import ScreeningCall
from screenings.services import build_update, extract_call_reference

logger = logging.getLogger(__name__)

# ── Shared response helpers ────────────────────────────────────────────────────

def _ok(message: str = "ok") -> JsonResponse:
    return JsonResponse({"status": message}, status=200)


def _reject(reason: str, status: int = 401) -> JsonResponse:
    logger.warning("Webhook rejected: %s", reason)
    return JsonResponse({"error": reason}, status=status)


# ─────────────────────────────────────────────────────────────────────────────
# Vapi webhook
# ─────────────────────────────────────────────────────────────────────────────

@csrf_exempt
@require_POST
def vapi_webhook(request):
    """
    POST /webhooks/vapi/

    Receives call lifecycle events from Vapi and feeds them to the workflow.

    Expected payload (Vapi server message):
      {
        "message": {
          "type": "status-update | call-started | call-ended | end-of-call-report
                   | call-failed | call-error",
          "status": "in-progress | ended | ...",
          "call": {"id": "call_...", "metadata": {"screeningId": "42"}},
          "transcript": "..." | [{"role": "assistant|user", "message": "..."}],
          "analysis": {"summary": "..."},
          "error": "..." | {"message": "..."}
        }
      }

    The envelope may be omitted, in which case the fields sit at the top
    level and ``callId`` may replace ``call.id``.

    Unknown calls and rejected transitions are acknowledged with 200 so the
    vendor does not keep re-delivering an event we can never apply.
    """
    raw_body = request.body

    # ── 1. Signature validation ────────────────────────────────────────────────
    secret = settings.VAPI_WEBHOOK_SECRET
    if secret:
        sig_header = request.META.get("HTTP_X_VAPI_SIGNATURE", "")
        if not sig_header:
            return _reject("Missing X-Vapi-Signature header")

        validation_error = _validate_signature(sig_header, raw_body, secret)
        if validation_error:
            return _reject(validation_error)
    else:
        logger.warning("VAPI_WEBHOOK_SECRET is not set — skipping signature validation.")

    # ── 2. Parse body ──────────────────────────────────────────────────────────
    try:
        payload = json.loads(raw_body)
    except json.JSONDecodeError:
        return _reject("Invalid JSON body", status=400)
    if not isinstance(payload, dict):
        return _reject("Webhook body must be a JSON object", status=400)

    # ── 3. Locate the ScreeningCall record ─────────────────────────────────────
    screening_id, vendor_call_id = extract_call_reference(payload)
    if not screening_id and not vendor_call_id:
        logger.error("Vapi webhook missing call reference: %s", payload)
        return _ok("no_call_reference")

    call = _find_screening_call(screening_id, vendor_call_id)
    if call is None:
        logger.warning(
            "Vapi webhook received for unknown call: screening=%s vendor_call=%s",
            screening_id, vendor_call_id,
        )
        return _ok("call_not_found")

    # ── 4. Build the patch and hand it to the workflow ─────────────────────────
    update = build_update(payload)
    if not update:
        logger.debug("Vapi webhook carried no call fields: call=%s", call.pk)
        return _ok("ignored")

    try:
        result = WorkflowService().ingest_screening_event(call.pk, update)
    except NotFoundError:
        logger.warning("Screening call %s disappeared before ingest", call.pk)
        return _ok("call_not_found")
    except TransitionError as exc:
        logger.warning(
            "Vapi webhook could not move application: call=%s %s -> %s (%s)",
            call.pk, exc.from_status, exc.to_status, exc.reason,
        )
        return _ok("transition_rejected")

    if result.ignored:
        return _ok("already_processed")
    return _ok("advanced" if result.advanced else "recorded")


def _find_screening_call(screening_id: str | None, vendor_call_id: str | None) -> ScreeningCall | None:
    """
    Resolve the ScreeningCall by our own id (metadata) first, then by the
    vendor's call id.

    When the call was matched through metadata and has no vendor id bound
    yet, the vendor id is recorded so later events and polls can find it.
    """
    call = None
    if screening_id:
        try:
            call = ScreeningCall.objects.get(pk=int(screening_id))
        except (ScreeningCall.DoesNotExist, ValueError):
            call = None

    if call is None and vendor_call_id:
        return ScreeningCall.objects.filter(vendor_call_id=vendor_call_id).first()

    if call is not None and vendor_call_id and not call.vendor_call_id:
        with transaction.atomic():
            if not ScreeningCall.objects.filter(vendor_call_id=vendor_call_id).exists():
                call.vendor_call_id = vendor_call_id
                call.save(update_fields=["vendor_call_id", "updated_at"])
                logger.info(
                    "Bound vendor call id: screening=%s vendor_call=%s",
                    call.pk, vendor_call_id,
                )
    return call


def _validate_signature(sig_header: str, body: bytes, secret: str) -> str | None:
    """
    Validate a Vapi HMAC-SHA256 webhook signature.

    Header format:  X-Vapi-Signature: t={unix_timestamp},v0={hmac_hex}
    Signed message: "{timestamp}.{raw_body}"

    Returns None on success, or an error string on failure.
    """
    try:
        parts = dict(part.split("=", 1) for part in sig_header.split(","))
        timestamp_str = parts.get("t", "")
        received_sig = parts.get("v0", "")
    except (ValueError, AttributeError):
        return "Malformed X-Vapi-Signature header"

    if not timestamp_str or not received_sig:
        return "X-Vapi-Signature header missing t= or v0= component"

    try:
        timestamp = int(timestamp_str)
    except ValueError:
        return "X-Vapi-Signature timestamp is not an integer"

    age = int(time.time()) - timestamp
    if abs(age) > WEBHOOK_TIMESTAMP_TOLERANCE_SECS:
        return f"X-Vapi-Signature timestamp is too old (age={age}s)"

    signed_payload = f"{timestamp_str}.".encode() + body
    expected_sig = hmac.new(
        secret.encode(),
        signed_payload,
        hashlib.sha256,
    ).hexdigest()

    if not hmac.compare_digest(expected_sig, received_sig):
        return "X-Vapi-Signature HMAC mismatch"

    return None

"""
screenings/vendor.py

Read-only client for the Vapi voice API, used as a webhook fallback.

Only call lookup lives here; placing calls is handled outside this service.
  Call lookup : GET {VAPI_BASE_URL}/call/{id}
  Auth        : Authorization: Bearer {VAPI_API_KEY}
"""

import logging

import requests
from django.conf import settings

from hiretrack.constants import VENDOR_REQUEST_TIMEOUT_SECS
from screenings.models import ScreeningCall
from screenings.services import format_transcript, map_vendor_status, normalise_summary

logger = logging.getLogger(__name__)


class VapiError(Exception):
    """Raised when the Vapi API returns an error or an unexpected response."""


class VapiClient:
    def __init__(self, api_key: str | None = None, base_url: str | None = None):
        self.api_key = api_key if api_key is not None else settings.VAPI_API_KEY
        self.base_url = (base_url or settings.VAPI_BASE_URL).rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def fetch_call(self, vendor_call_id: str) -> dict:
        """
        Return the vendor's current view of a call.

        Raises:
            VapiError: on network failure, non-2xx status or a non-JSON body.
        """
        if not self.api_key:
            raise VapiError("VAPI_API_KEY is not configured.")

        url = f"{self.base_url}/call/{vendor_call_id}"
        try:
            response = requests.get(
                url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=VENDOR_REQUEST_TIMEOUT_SECS,
            )
        except requests.RequestException as exc:
            raise VapiError(f"Vapi request failed: {exc}") from exc

        if not response.ok:
            raise VapiError(
                f"Vapi returned HTTP {response.status_code} for call {vendor_call_id}: "
                f"{response.text[:200]}"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise VapiError(f"Vapi returned a non-JSON body for call {vendor_call_id}") from exc


def call_to_update(call_data: dict) -> dict:
    """
    Translate a polled Vapi call object into a workflow raw update.

    Poll responses carry the same information as the end-of-call webhook but
    nest the conversation under ``artifact``/``analysis``.
    """
    update: dict = {}
    status = map_vendor_status(call_data.get("status"))
    ended_reason = (call_data.get("endedReason") or "").lower()
    if status is not None:
        if status == ScreeningCall.Status.COMPLETED and ("error" in ended_reason or "failed" in ended_reason):
            status = ScreeningCall.Status.FAILED
        update["status"] = status

    artifact = call_data.get("artifact") or {}
    transcript = call_data.get("transcript") or artifact.get("transcript")
    if transcript:
        update["transcript"] = format_transcript(transcript)

    analysis = call_data.get("analysis") or {}
    summary = call_data.get("summary") or analysis.get("summary")
    if summary:
        update["summary"] = normalise_summary(summary)

    if update.get("status") == ScreeningCall.Status.FAILED:
        update["errorMessage"] = call_data.get("endedReason") or "Call failed"

    return update

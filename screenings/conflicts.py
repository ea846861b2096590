"""
screenings/conflicts.py

Reconciliation of screening call records whose fields disagree.

The voice vendor reports status, transcript and error independently and out
of order, so a stored call can claim to have failed while holding a full
conversation, or claim success while carrying an error. resolve_conflicts()
decides which story the record tells and returns a corrected copy.

Everything here is pure: no database access, no mutation of inputs. The
workflow service persists the result.

Decision table (first match wins):
  1. error + substantive transcript, status not failed → error_with_transcript
     Clear the error, keep transcript and status.
  2. failed status + substantive transcript            → failed_status_with_transcript
     Rewrite status to completed and clear any error.
  3. completed status + error                          → success_status_with_error
     Clear the error.
  4. anything else                                     → no conflict

A failed call that also carries an error message matches rule 2, not rule 1:
the status rewrite is the more specific correction. An error next to a short
transcript is a genuine failure (no rule fires). No transcript and no error
is a call still pending.
"""

import logging
from dataclasses import dataclass, fields, replace
from typing import Any

from hiretrack.constants import DEFAULT_MIN_TRANSCRIPT_LENGTH
from screenings.models import ScreeningCall

Status = ScreeningCall.Status
ConflictType = ScreeningCall.ConflictType

logger = logging.getLogger(__name__)


class _Unset:
    """Marks a patch field the vendor did not send (distinct from an explicit null)."""

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(frozen=True)
class ScreeningSnapshot:
    """Fully materialised view of the four fields the resolver reasons about."""

    status: str
    transcript: str | None = None
    error_message: str | None = None
    summary: dict | None = None

    @classmethod
    def from_call(cls, call: ScreeningCall) -> "ScreeningSnapshot":
        return cls(
            status=call.status,
            transcript=call.transcript,
            error_message=call.error_message,
            summary=call.summary,
        )


@dataclass(frozen=True)
class ScreeningPatch:
    """Partial vendor update. Fields left as UNSET are not touched by merge()."""

    status: Any = UNSET
    transcript: Any = UNSET
    error_message: Any = UNSET
    summary: Any = UNSET

    @classmethod
    def from_payload(cls, data: dict) -> "ScreeningPatch":
        """
        Build a patch from a raw update dict.

        Accepts both ``errorMessage`` (vendor spelling) and ``error_message``.
        A key that is present with a null value clears the field.

        Values the call record cannot hold are dropped with a warning: a
        status outside ScreeningCall.Status (Application values included)
        and non-string transcript or error text.
        """
        values = {}
        if "status" in data:
            if data["status"] in Status.values:
                values["status"] = data["status"]
            else:
                logger.warning("Screening update dropped invalid status=%r", data["status"])
        if "summary" in data:
            values["summary"] = data["summary"]

        text_fields = {"transcript": data.get("transcript", UNSET)}
        if "error_message" in data:
            text_fields["error_message"] = data["error_message"]
        elif "errorMessage" in data:
            text_fields["error_message"] = data["errorMessage"]
        for name, value in text_fields.items():
            if value is UNSET:
                continue
            if value is None or isinstance(value, str):
                values[name] = value
            else:
                logger.warning(
                    "Screening update dropped non-text %s of type %s",
                    name, type(value).__name__,
                )
        return cls(**values)

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is UNSET for f in fields(self))


@dataclass(frozen=True)
class ConflictResolution:
    has_conflict: bool
    conflict_type: str
    resolved: ScreeningSnapshot
    should_process: bool
    resolution: str = ""


def merge(snapshot: ScreeningSnapshot, patch: ScreeningPatch) -> ScreeningSnapshot:
    """Apply ``patch`` over ``snapshot``: every field the patch carries wins."""
    changes = {
        f.name: getattr(patch, f.name)
        for f in fields(patch)
        if getattr(patch, f.name) is not UNSET
    }
    return replace(snapshot, **changes) if changes else snapshot


def is_substantive(transcript: str | None, min_length: int = DEFAULT_MIN_TRANSCRIPT_LENGTH) -> bool:
    """A transcript counts as a real conversation once it exceeds ``min_length``."""
    return bool(transcript) and len(transcript.strip()) > min_length


def _has_error(error_message: str | None) -> bool:
    return bool(error_message and error_message.strip())


def resolve_conflicts(
    snapshot: ScreeningSnapshot,
    min_length: int = DEFAULT_MIN_TRANSCRIPT_LENGTH,
) -> ConflictResolution:
    has_transcript = is_substantive(snapshot.transcript, min_length)
    has_error = _has_error(snapshot.error_message)
    is_failed = snapshot.status == Status.FAILED

    if has_error and has_transcript and not is_failed:
        return ConflictResolution(
            has_conflict=True,
            conflict_type=ConflictType.ERROR_WITH_TRANSCRIPT,
            resolved=replace(snapshot, error_message=None),
            should_process=True,
            resolution="Process transcript despite error flag",
        )

    if is_failed and has_transcript:
        return ConflictResolution(
            has_conflict=True,
            conflict_type=ConflictType.FAILED_STATUS_WITH_TRANSCRIPT,
            resolved=replace(snapshot, status=Status.COMPLETED, error_message=None),
            should_process=True,
            resolution="Override status to screening_completed",
        )

    if snapshot.status == Status.COMPLETED and has_error:
        return ConflictResolution(
            has_conflict=True,
            conflict_type=ConflictType.SUCCESS_STATUS_WITH_ERROR,
            resolved=replace(snapshot, error_message=None),
            should_process=has_transcript,
            resolution="Clear error message",
        )

    return ConflictResolution(
        has_conflict=False,
        conflict_type=ConflictType.NONE,
        resolved=snapshot,
        should_process=has_transcript,
    )

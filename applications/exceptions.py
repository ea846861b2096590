"""
applications/exceptions.py

Error model for the application workflow.

Conflicting screening data is never an error: the resolver always produces a
best-effort record. Everything here is raised to the caller and not retried.
"""


class WorkflowError(Exception):
    """Base class for workflow errors."""


class NotFoundError(WorkflowError):
    """A referenced Application or ScreeningCall does not exist."""

    def __init__(self, kind: str, object_id):
        self.kind = kind
        self.object_id = object_id
        super().__init__(f"{kind} {object_id} not found.")


class TransitionError(WorkflowError):
    """
    The requested (from, to, actor_role) transition is not permitted.

    Callers should re-fetch the application before trying again: a rejection
    usually means their view of the current status is stale.
    """

    def __init__(self, from_status: str, to_status: str, actor_role: str, reason: str = ""):
        self.from_status = from_status
        self.to_status = to_status
        self.actor_role = actor_role
        self.reason = reason or (
            f"Transition from '{from_status}' to '{to_status}' "
            f"is not allowed for role '{actor_role}'."
        )
        super().__init__(self.reason)

    def to_dict(self) -> dict:
        return {
            "error": "transition_not_allowed",
            "message": self.reason,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "actor_role": self.actor_role,
        }


class NoteRequiredError(TransitionError):
    """The transition is legal but must carry an explanatory note."""

    def __init__(self, from_status: str, to_status: str, actor_role: str):
        super().__init__(
            from_status,
            to_status,
            actor_role,
            reason=f"A note is required to move from '{from_status}' to '{to_status}'.",
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["error"] = "note_required"
        return data


class OrderingViolation(WorkflowError):
    """A timeline append supplied a timestamp earlier than the latest entry."""

    def __init__(self, previous, supplied):
        self.previous = previous
        self.supplied = supplied
        super().__init__(
            f"Timeline timestamp {supplied.isoformat()} is earlier than the "
            f"latest entry at {previous.isoformat()}."
        )


class TimelineImmutableError(WorkflowError):
    """A saved timeline entry was about to be updated or deleted."""


class ScreeningLimitError(WorkflowError):
    """Scheduling refused because the application's call or retry limit is spent."""

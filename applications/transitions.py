"""
applications/transitions.py

Declarative transition table for Application.Status.

Every legal (from, to) pair is listed once in TRANSITIONS together with the
actor roles allowed to perform it and whether a note is mandatory. Anything
not listed is rejected, identity pairs included. Nothing in this module
touches the database.
"""

from typing import NamedTuple

from applications.models import ActorRole, Application

Status = Application.Status
Step = Application.Step

SYSTEM = ActorRole.SYSTEM
CANDIDATE = ActorRole.CANDIDATE
RECRUITER = ActorRole.RECRUITER
ADMIN = ActorRole.ADMIN

_HUMAN = frozenset({RECRUITER, ADMIN})
_AUTOMATED = frozenset({SYSTEM})
_AUTOMATED_OR_HUMAN = frozenset({SYSTEM, RECRUITER, ADMIN})
_SELF_WITHDRAWAL = frozenset({CANDIDATE, ADMIN})


class Transition(NamedTuple):
    from_status: str
    to_status: str
    allowed_roles: frozenset
    requires_note: bool


TERMINAL_STATUSES = frozenset({Status.HIRED, Status.REJECTED, Status.WITHDRAWN})

# Pipeline order for "at or past" comparisons. Terminal statuses rank after
# every pipeline status.
_PIPELINE_ORDER = (
    Status.SUBMITTED,
    Status.SCREENING_SCHEDULED,
    Status.SCREENING_IN_PROGRESS,
    Status.SCREENING_COMPLETED,
    Status.UNDER_REVIEW,
    Status.INTERVIEW_SCHEDULED,
    Status.INTERVIEW_COMPLETED,
)
_STATUS_RANK = {status: rank for rank, status in enumerate(_PIPELINE_ORDER)}
_TERMINAL_RANK = len(_PIPELINE_ORDER)

_STEP_ORDER = {step: rank for rank, step in enumerate(Step.values)}

# Step recorded on the timeline when the caller does not name one.
_DEFAULT_STEPS = {
    Status.SUBMITTED: Step.APPLICATION_SUBMITTED,
    Status.SCREENING_SCHEDULED: Step.SCREENING_CALL_SCHEDULED,
    Status.SCREENING_IN_PROGRESS: Step.SCREENING_CALL_SCHEDULED,
    Status.SCREENING_COMPLETED: Step.SCREENING_CALL_COMPLETED,
    Status.UNDER_REVIEW: Step.RECRUITER_REVIEW,
    Status.INTERVIEW_SCHEDULED: Step.INTERVIEW_SCHEDULED,
    Status.INTERVIEW_COMPLETED: Step.INTERVIEW_COMPLETED,
    Status.HIRED: Step.HIRING_DECISION,
    Status.REJECTED: Step.HIRING_DECISION,
    Status.WITHDRAWN: Step.PROCESS_COMPLETE,
}


def _withdrawals() -> tuple[Transition, ...]:
    # Every non-terminal status, plus hired: a hired candidate may still withdraw.
    return tuple(
        Transition(source, Status.WITHDRAWN, _SELF_WITHDRAWAL, False)
        for source in _PIPELINE_ORDER + (Status.HIRED,)
    )


TRANSITIONS: tuple[Transition, ...] = (
    # ── Intake ────────────────────────────────────────────────────────────────
    Transition(Status.SUBMITTED, Status.SCREENING_SCHEDULED, _AUTOMATED_OR_HUMAN, False),
    Transition(Status.SUBMITTED, Status.REJECTED, _HUMAN, True),

    # ── Voice screening (vendor driven) ───────────────────────────────────────
    Transition(Status.SCREENING_SCHEDULED, Status.SCREENING_IN_PROGRESS, _AUTOMATED, False),
    # Vendors may deliver the completion callback without an in-progress one.
    Transition(Status.SCREENING_SCHEDULED, Status.SCREENING_COMPLETED, _AUTOMATED, False),
    Transition(Status.SCREENING_SCHEDULED, Status.REJECTED, _HUMAN, True),
    Transition(Status.SCREENING_IN_PROGRESS, Status.SCREENING_COMPLETED, _AUTOMATED, False),
    Transition(Status.SCREENING_IN_PROGRESS, Status.REJECTED, _HUMAN, True),

    # ── Review & hiring decisions ─────────────────────────────────────────────
    Transition(Status.SCREENING_COMPLETED, Status.UNDER_REVIEW, _AUTOMATED_OR_HUMAN, False),
    Transition(Status.SCREENING_COMPLETED, Status.INTERVIEW_SCHEDULED, _HUMAN, True),
    Transition(Status.SCREENING_COMPLETED, Status.REJECTED, _HUMAN, True),
    Transition(Status.UNDER_REVIEW, Status.INTERVIEW_SCHEDULED, _HUMAN, True),
    Transition(Status.UNDER_REVIEW, Status.HIRED, _HUMAN, True),
    Transition(Status.UNDER_REVIEW, Status.REJECTED, _HUMAN, True),
    Transition(Status.INTERVIEW_SCHEDULED, Status.INTERVIEW_COMPLETED, _AUTOMATED_OR_HUMAN, False),
    Transition(Status.INTERVIEW_SCHEDULED, Status.HIRED, _HUMAN, True),
    Transition(Status.INTERVIEW_SCHEDULED, Status.REJECTED, _HUMAN, True),
    Transition(Status.INTERVIEW_COMPLETED, Status.HIRED, _HUMAN, True),
    Transition(Status.INTERVIEW_COMPLETED, Status.REJECTED, _HUMAN, True),
) + _withdrawals()

_BY_PAIR = {(t.from_status, t.to_status): t for t in TRANSITIONS}


def get_transition(from_status: str, to_status: str) -> Transition | None:
    return _BY_PAIR.get((from_status, to_status))


def is_valid_transition(from_status: str, to_status: str, actor_role: str) -> bool:
    transition = get_transition(from_status, to_status)
    return transition is not None and actor_role in transition.allowed_roles


def requires_note(from_status: str, to_status: str) -> bool:
    transition = get_transition(from_status, to_status)
    return bool(transition and transition.requires_note)


def allowed_next_statuses(from_status: str, actor_role: str) -> frozenset:
    return frozenset(
        t.to_status
        for t in TRANSITIONS
        if t.from_status == from_status and actor_role in t.allowed_roles
    )


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def status_rank(status: str) -> int:
    return _STATUS_RANK.get(status, _TERMINAL_RANK)


def is_at_or_past(current: str, target: str) -> bool:
    """True when ``current`` is ``target`` or further down the pipeline."""
    return status_rank(current) >= status_rank(target)


def default_step_for(status: str) -> str:
    return _DEFAULT_STEPS[status]


def step_rank(step: str) -> int:
    return _STEP_ORDER[step]


def later_step(current: str, requested: str) -> str:
    """Return whichever step is further along; current_step never regresses."""
    return requested if step_rank(requested) > step_rank(current) else current

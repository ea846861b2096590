from django.db import models

from applications.exceptions import TimelineImmutableError


class ActorRole(models.TextChoices):
    """Category of principal requesting a transition."""

    SYSTEM = "system", "System"
    CANDIDATE = "candidate", "Candidate"
    RECRUITER = "recruiter", "Recruiter"
    ADMIN = "admin", "Admin"


class Application(models.Model):
    """
    Core pipeline entity. Links a Candidate to a Job and owns all workflow
    state. Status changes go through applications.workflow.WorkflowService,
    which records each one on the append-only timeline.
    """

    class Status(models.TextChoices):
        # ── Intake ────────────────────────────────────────────────────────────
        SUBMITTED = "submitted", "Submitted"

        # ── Voice screening ───────────────────────────────────────────────────
        SCREENING_SCHEDULED = "screening_scheduled", "Screening Scheduled"
        SCREENING_IN_PROGRESS = "screening_in_progress", "Screening In Progress"
        SCREENING_COMPLETED = "screening_completed", "Screening Completed"

        # ── Recruiter review ──────────────────────────────────────────────────
        UNDER_REVIEW = "under_review", "Under Review"
        INTERVIEW_SCHEDULED = "interview_scheduled", "Interview Scheduled"
        INTERVIEW_COMPLETED = "interview_completed", "Interview Completed"

        # ── Terminal ──────────────────────────────────────────────────────────
        HIRED = "hired", "Hired"
        REJECTED = "rejected", "Rejected"
        WITHDRAWN = "withdrawn", "Withdrawn"

    class Step(models.TextChoices):
        # Declaration order is pipeline order; current_step never moves back.
        APPLICATION_SUBMITTED = "application_submitted", "Application Submitted"
        RESUME_UPLOADED = "resume_uploaded", "Resume Uploaded"
        RESUME_REVIEW = "resume_review", "Resume Review"
        SCREENING_CALL_PENDING = "screening_call_pending", "Screening Call Pending"
        SCREENING_CALL_SCHEDULED = "screening_call_scheduled", "Screening Call Scheduled"
        SCREENING_CALL_COMPLETED = "screening_call_completed", "Screening Call Completed"
        RECRUITER_REVIEW = "recruiter_review", "Recruiter Review"
        INTERVIEW_SCHEDULED = "interview_scheduled", "Interview Scheduled"
        INTERVIEW_COMPLETED = "interview_completed", "Interview Completed"
        REFERENCE_CHECK = "reference_check", "Reference Check"
        HIRING_DECISION = "hiring_decision", "Hiring Decision"
        PROCESS_COMPLETE = "process_complete", "Process Complete"

    candidate = models.ForeignKey(
        "candidates.Candidate",
        on_delete=models.CASCADE,
        related_name="applications",
    )
    job = models.ForeignKey(
        "jobs.Job",
        on_delete=models.CASCADE,
        related_name="applications",
    )
    status = models.CharField(
        max_length=30,
        choices=Status.choices,
        default=Status.SUBMITTED,
        db_index=True,
    )
    current_step = models.CharField(
        max_length=30,
        choices=Step.choices,
        default=Step.APPLICATION_SUBMITTED,
    )

    resume_url = models.CharField(max_length=500, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Application"
        verbose_name_plural = "Applications"
        # A candidate may only hold one application per job
        unique_together = [("candidate", "job")]

    def __str__(self) -> str:
        return f"{self.candidate} → {self.job} [{self.status}]"

    @property
    def timeline(self) -> list["TimelineEntry"]:
        return list(self.timeline_entries.order_by("sequence"))


class TimelineEntry(models.Model):
    """
    Audit trail entry recording one step/status change of an Application.
    Rows are written once by applications.timeline.append and never edited.
    """

    class EntryStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        IN_PROGRESS = "in_progress", "In Progress"
        COMPLETED = "completed", "Completed"
        SKIPPED = "skipped", "Skipped"

    application = models.ForeignKey(
        Application,
        on_delete=models.CASCADE,
        related_name="timeline_entries",
    )
    # 1-based position within the application's timeline
    sequence = models.PositiveIntegerField()
    step = models.CharField(max_length=30, choices=Application.Step.choices)
    status = models.CharField(
        max_length=20,
        choices=EntryStatus.choices,
        default=EntryStatus.COMPLETED,
    )
    timestamp = models.DateTimeField()
    notes = models.TextField(blank=True, default="")
    performed_by = models.CharField(max_length=20, choices=ActorRole.choices)

    # Populated only when the entry records an application status change
    from_status = models.CharField(
        max_length=30, choices=Application.Status.choices, null=True, blank=True
    )
    to_status = models.CharField(
        max_length=30, choices=Application.Status.choices, null=True, blank=True
    )

    class Meta:
        ordering = ["sequence"]
        verbose_name = "Timeline Entry"
        verbose_name_plural = "Timeline Entries"
        unique_together = [("application", "sequence")]

    def __str__(self) -> str:
        return f"App#{self.application_id} #{self.sequence}: {self.step} [{self.status}]"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise TimelineImmutableError(
                f"Timeline entry #{self.sequence} of application {self.application_id} "
                "cannot be modified."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise TimelineImmutableError(
            f"Timeline entry #{self.sequence} of application {self.application_id} "
            "cannot be deleted."
        )

    @property
    def is_status_change(self) -> bool:
        return bool(self.to_status)

from django.db import models


class ScreeningCall(models.Model):
    """
    One attempted AI voice screening session for an Application.

    Status uses its own vocabulary: ``rejected`` here means the call failed,
    not that the candidate was turned down. Never assign these values to
    Application.status directly.
    """

    class Status(models.TextChoices):
        SCHEDULED = "screening_scheduled", "Scheduled"
        IN_PROGRESS = "screening_in_progress", "In Progress"
        COMPLETED = "screening_completed", "Completed"
        FAILED = "rejected", "Failed"

    class ConflictType(models.TextChoices):
        NONE = "", "None"
        ERROR_WITH_TRANSCRIPT = "error_with_transcript", "Error With Transcript"
        FAILED_STATUS_WITH_TRANSCRIPT = "failed_status_with_transcript", "Failed Status With Transcript"
        SUCCESS_STATUS_WITH_ERROR = "success_status_with_error", "Success Status With Error"

    application = models.ForeignKey(
        "applications.Application",
        on_delete=models.CASCADE,
        related_name="screening_calls",
    )
    attempt_number = models.PositiveSmallIntegerField(default=1)
    # Identifier assigned by the voice vendor; bound when the call is placed
    vendor_call_id = models.CharField(max_length=255, unique=True, null=True, blank=True)

    status = models.CharField(
        max_length=30,
        choices=Status.choices,
        default=Status.SCHEDULED,
        db_index=True,
    )
    transcript = models.TextField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)
    summary = models.JSONField(null=True, blank=True)

    # Last conflict found by screenings.conflicts.resolve_conflicts
    conflict_type = models.CharField(
        max_length=40,
        choices=ConflictType.choices,
        default=ConflictType.NONE,
        blank=True,
    )
    # Set once the workflow has consumed a completed call with its summary
    consumed_at = models.DateTimeField(null=True, blank=True)

    scheduled_at = models.DateTimeField(auto_now_add=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-scheduled_at"]
        verbose_name = "Screening Call"
        verbose_name_plural = "Screening Calls"

    def __str__(self) -> str:
        return f"Screening#{self.pk} app={self.application_id} [{self.status}]"

    @property
    def is_locked(self) -> bool:
        """A consumed, summarised completed call accepts no further updates."""
        return (
            self.status == self.Status.COMPLETED
            and self.summary is not None
            and self.consumed_at is not None
        )

from django.db import models


class Job(models.Model):
    class Status(models.TextChoices):
        OPEN = "open", "Open"
        PAUSED = "paused", "Paused"
        CLOSED = "closed", "Closed"

    class RoleType(models.TextChoices):
        SERVER = "server", "Server"
        COOK = "cook", "Cook"
        HOST = "host", "Host"
        MANAGER = "manager", "Manager"
        GENERAL = "general", "General"

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    location = models.CharField(max_length=255, blank=True, default="")
    role_type = models.CharField(
        max_length=20,
        choices=RoleType.choices,
        default=RoleType.GENERAL,
    )
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.OPEN,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Job"
        verbose_name_plural = "Jobs"

    def __str__(self) -> str:
        return f"[{self.status}] {self.title}"

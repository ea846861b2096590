from django.db import models


class Candidate(models.Model):
    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150)

    # Contact
    email = models.CharField(max_length=254, db_index=True)
    # Dialled by the voice screening agent
    phone = models.CharField(max_length=50, blank=True, default="")

    resume_url = models.CharField(max_length=500, null=True, blank=True)
    notes = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Candidate"
        verbose_name_plural = "Candidates"

    def __str__(self) -> str:
        return f"{self.full_name} <{self.email}>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

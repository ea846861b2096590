"""
applications/migrations/0001_initial.py

Initial migration: Application and TimelineEntry tables.
"""

import django.db.models.deletion
from django.db import migrations, models

APPLICATION_STATUS_CHOICES = [
    ("submitted", "Submitted"),
    ("screening_scheduled", "Screening Scheduled"),
    ("screening_in_progress", "Screening In Progress"),
    ("screening_completed", "Screening Completed"),
    ("under_review", "Under Review"),
    ("interview_scheduled", "Interview Scheduled"),
    ("interview_completed", "Interview Completed"),
    ("hired", "Hired"),
    ("rejected", "Rejected"),
    ("withdrawn", "Withdrawn"),
]

APPLICATION_STEP_CHOICES = [
    ("application_submitted", "Application Submitted"),
    ("resume_uploaded", "Resume Uploaded"),
    ("resume_review", "Resume Review"),
    ("screening_call_pending", "Screening Call Pending"),
    ("screening_call_scheduled", "Screening Call Scheduled"),
    ("screening_call_completed", "Screening Call Completed"),
    ("recruiter_review", "Recruiter Review"),
    ("interview_scheduled", "Interview Scheduled"),
    ("interview_completed", "Interview Completed"),
    ("reference_check", "Reference Check"),
    ("hiring_decision", "Hiring Decision"),
    ("process_complete", "Process Complete"),
]

ACTOR_ROLE_CHOICES = [
    ("system", "System"),
    ("candidate", "Candidate"),
    ("recruiter", "Recruiter"),
    ("admin", "Admin"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("candidates", "0001_initial"),
        ("jobs", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Application",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "status",
                    models.CharField(
                        choices=APPLICATION_STATUS_CHOICES,
                        db_index=True,
                        default="submitted",
                        max_length=30,
                    ),
                ),
                (
                    "current_step",
                    models.CharField(
                        choices=APPLICATION_STEP_CHOICES,
                        default="application_submitted",
                        max_length=30,
                    ),
                ),
                ("resume_url", models.CharField(blank=True, max_length=500, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "candidate",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="applications",
                        to="candidates.candidate",
                    ),
                ),
                (
                    "job",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="applications",
                        to="jobs.job",
                    ),
                ),
            ],
            options={
                "verbose_name": "Application",
                "verbose_name_plural": "Applications",
                "ordering": ["-created_at"],
                "unique_together": {("candidate", "job")},
            },
        ),
        migrations.CreateModel(
            name="TimelineEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sequence", models.PositiveIntegerField()),
                ("step", models.CharField(choices=APPLICATION_STEP_CHOICES, max_length=30)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("in_progress", "In Progress"),
                            ("completed", "Completed"),
                            ("skipped", "Skipped"),
                        ],
                        default="completed",
                        max_length=20,
                    ),
                ),
                ("timestamp", models.DateTimeField()),
                ("notes", models.TextField(blank=True, default="")),
                ("performed_by", models.CharField(choices=ACTOR_ROLE_CHOICES, max_length=20)),
                (
                    "from_status",
                    models.CharField(blank=True, choices=APPLICATION_STATUS_CHOICES, max_length=30, null=True),
                ),
                (
                    "to_status",
                    models.CharField(blank=True, choices=APPLICATION_STATUS_CHOICES, max_length=30, null=True),
                ),
                (
                    "application",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="timeline_entries",
                        to="applications.application",
                    ),
                ),
            ],
            options={
                "verbose_name": "Timeline Entry",
                "verbose_name_plural": "Timeline Entries",
                "ordering": ["sequence"],
                "unique_together": {("application", "sequence")},
            },
        ),
    ]

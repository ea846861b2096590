"""
screenings/migrations/0001_initial.py

Initial migration: ScreeningCall table.
"""

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("applications", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="ScreeningCall",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("attempt_number", models.PositiveSmallIntegerField(default=1)),
                ("vendor_call_id", models.CharField(blank=True, max_length=255, null=True, unique=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("screening_scheduled", "Scheduled"),
                            ("screening_in_progress", "In Progress"),
                            ("screening_completed", "Completed"),
                            ("rejected", "Failed"),
                        ],
                        db_index=True,
                        default="screening_scheduled",
                        max_length=30,
                    ),
                ),
                ("transcript", models.TextField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, null=True)),
                ("summary", models.JSONField(blank=True, null=True)),
                (
                    "conflict_type",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("", "None"),
                            ("error_with_transcript", "Error With Transcript"),
                            ("failed_status_with_transcript", "Failed Status With Transcript"),
                            ("success_status_with_error", "Success Status With Error"),
                        ],
                        default="",
                        max_length=40,
                    ),
                ),
                ("consumed_at", models.DateTimeField(blank=True, null=True)),
                ("scheduled_at", models.DateTimeField(auto_now_add=True)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "application",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="screening_calls",
                        to="applications.application",
                    ),
                ),
            ],
            options={
                "verbose_name": "Screening Call",
                "verbose_name_plural": "Screening Calls",
                "ordering": ["-scheduled_at"],
            },
        ),
    ]

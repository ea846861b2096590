"""
hiretrack/urls.py

Root URL configuration.
"""

from django.urls import include, path

urlpatterns = [
    # ── App routes ─────────────────────────────────────────────────────────────
    path("applications/", include("applications.urls", namespace="applications")),

    # ── Webhooks (CSRF-exempt, no login required) ──────────────────────────────
    path("webhooks/", include("webhooks.urls", namespace="webhooks")),
]

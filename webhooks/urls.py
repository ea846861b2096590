"""
webhooks/urls.py

URL patterns for inbound webhook endpoints.

  POST /webhooks/vapi/  — Vapi voice-call server event

The view is already @csrf_exempt — no additional middleware needed.
"""

from django.urls import path

from webhooks import views

app_name = "webhooks"

urlpatterns = [
    path("vapi/", views.vapi_webhook, name="vapi"),
]

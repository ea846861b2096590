"""
applications/urls.py
"""

from django.urls import path

from applications import views

app_name = "applications"

urlpatterns = [
    path("", views.ApplicationCreateView.as_view(), name="create"),
    path("<int:pk>/", views.ApplicationDetailView.as_view(), name="detail"),
    path("<int:pk>/status/", views.StatusTransitionView.as_view(), name="status"),
    path("<int:pk>/transitions/", views.AllowedTransitionsView.as_view(), name="transitions"),
    path("<int:pk>/notes/", views.AddNoteView.as_view(), name="add_note"),
    path("<int:pk>/screenings/", views.ScheduleScreeningView.as_view(), name="schedule_screening"),
]

"""
applications/forms.py

Input validation for the application workflow endpoints: submission,
status transitions, timeline notes and screening scheduling.

Forms only check shape; legality of a transition is decided by
applications.workflow.WorkflowService.
"""

from django import forms

from applications.models import ActorRole, Application, TimelineEntry


class SubmitApplicationForm(forms.Form):
    candidate_id = forms.IntegerField(min_value=1)
    job_id = forms.IntegerField(min_value=1)
    resume_url = forms.CharField(required=False, max_length=500)


class StatusTransitionForm(forms.Form):
    """Requested status change."""
    status = forms.ChoiceField(choices=Application.Status.choices)
    step = forms.ChoiceField(choices=Application.Step.choices, required=False)
    note = forms.CharField(required=False)
    actor_role = forms.ChoiceField(choices=ActorRole.choices)

    def clean_step(self):
        return self.cleaned_data.get("step") or None

    def clean_note(self):
        return (self.cleaned_data.get("note") or "").strip() or None


class AddNoteForm(forms.Form):
    """Add a note to the application's timeline without changing status."""
    note = forms.CharField()
    actor_role = forms.ChoiceField(choices=ActorRole.choices)
    step = forms.ChoiceField(choices=Application.Step.choices, required=False)
    entry_status = forms.ChoiceField(
        choices=TimelineEntry.EntryStatus.choices,
        required=False,
    )

    def clean_note(self):
        note = (self.cleaned_data.get("note") or "").strip()
        if not note:
            raise forms.ValidationError("Note cannot be blank.")
        return note


class ScheduleScreeningForm(forms.Form):
    actor_role = forms.ChoiceField(choices=ActorRole.choices, required=False)
    vendor_call_id = forms.CharField(required=False, max_length=255)

    def clean_actor_role(self):
        return self.cleaned_data.get("actor_role") or ActorRole.SYSTEM

    def clean_vendor_call_id(self):
        return self.cleaned_data.get("vendor_call_id") or None

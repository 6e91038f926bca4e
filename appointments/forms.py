from datetime import date, datetime, time, timedelta

from django import forms
from django.utils import timezone

BOOKING_WINDOW_DAYS = 30
OFFERED_DATES = 15

TIME_SLOTS = [
    time(9, 0), time(9, 30), time(10, 0), time(10, 30), time(11, 0), time(11, 30),
    time(14, 0), time(14, 30), time(15, 0), time(15, 30), time(16, 0), time(16, 30), time(17, 0),
]


def available_dates(start=None):
    """Weekdays in the booking window starting at ``start`` (today by default)."""
    start = start or timezone.localdate()
    dates = []
    for i in range(BOOKING_WINDOW_DAYS):
        d = start + timedelta(days=i)
        if d.weekday() < 5:
            dates.append(d)
    return dates[:OFFERED_DATES]


class BookingForm(forms.Form):
    appointment_date = forms.ChoiceField(error_messages={'required': 'Please select a date'})
    appointment_time = forms.ChoiceField(error_messages={'required': 'Please select a time'})
    notes = forms.CharField(widget=forms.Textarea(attrs={'rows': 4}), required=False)

    def __init__(self, *args, today=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['appointment_date'].choices = [
            (d.isoformat(), d.strftime('%a %b %d')) for d in available_dates(today)
        ]
        self.fields['appointment_time'].choices = [
            (t.strftime('%H:%M'), t.strftime('%H:%M')) for t in TIME_SLOTS
        ]

    def clean_appointment_date(self):
        return date.fromisoformat(self.cleaned_data['appointment_date'])

    def clean_appointment_time(self):
        return datetime.strptime(self.cleaned_data['appointment_time'], '%H:%M').time()

from django.contrib import messages
from django.contrib.auth.mixins import LoginRequiredMixin
from django.views.generic import ListView

from docspot.exceptions import RemoteError
from .directory import DoctorDirectory, DoctorFilter


class DoctorSearchView(LoginRequiredMixin, ListView):
    """Search doctors - only approved doctors, by name/specialty text, specialty and location"""
    template_name = 'doctors/doctor_search.html'
    context_object_name = 'doctors'
    paginate_by = 12

    def get_queryset(self):
        directory = DoctorDirectory()
        self.doctor_filter = DoctorFilter.from_query(self.request.GET)
        try:
            self.approved = directory.approved()
        except RemoteError as e:
            messages.error(self.request, str(e))
            self.approved = []
        return directory.list(self.doctor_filter, doctors=self.approved)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['search_q'] = self.doctor_filter.text
        context['search_specialty'] = self.doctor_filter.specialty
        context['search_location'] = self.doctor_filter.location
        context['specialties'] = DoctorDirectory.specialties(self.approved)
        context['locations'] = DoctorDirectory.locations(self.approved)
        context['total_doctors'] = len(self.approved)
        context['matching_doctors'] = len(self.object_list)
        return context

from django.contrib import messages
from django.shortcuts import redirect
from django.urls import reverse
from django.views.decorators.http import require_POST
from django.views.generic import ListView, FormView

from accounts.identity import identity_for
from accounts.mixins import RoleRequiredMixin, PatientRequiredMixin
from accounts.models import Role
from docspot.exceptions import DocSpotError, NotFoundError
from doctors.directory import DoctorDirectory
from .forms import BookingForm
from .models import Appointment
from .repository import AppointmentRepository
from .workflow import AppointmentWorkflow

STATUS_TABS = ['all'] + list(Appointment.Status.values)


class AppointmentListView(RoleRequiredMixin, ListView):
    """Role-scoped appointment list with a status tab"""
    allowed_roles = [Role.PATIENT, Role.DOCTOR, Role.ADMIN]
    template_name = 'appointments/appointment_list.html'
    context_object_name = 'appointments'
    paginate_by = 15

    def get_tab(self):
        tab = self.request.GET.get('filter', 'all')
        return tab if tab in STATUS_TABS else 'all'

    def get_queryset(self):
        try:
            appointments = AppointmentRepository().list_for(self.identity)
        except DocSpotError as e:
            messages.error(self.request, str(e))
            return []
        tab = self.get_tab()
        if tab == 'all':
            return appointments
        return [a for a in appointments if a.status == tab]

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        workflow = AppointmentWorkflow()
        context['tab'] = self.get_tab()
        context['tabs'] = STATUS_TABS
        context['rows'] = [
            {'appointment': a, 'actions': workflow.actions(a, self.identity)}
            for a in context['object_list']
        ]
        return context


class BookAppointmentView(PatientRequiredMixin, FormView):
    """Patient books a pending appointment with an approved doctor"""
    form_class = BookingForm
    template_name = 'appointments/book_appointment.html'

    def get(self, request, *args, **kwargs):
        if not self.load_doctor():
            return redirect('doctors:doctor_search')
        return super().get(request, *args, **kwargs)

    def post(self, request, *args, **kwargs):
        if not self.load_doctor():
            return redirect('doctors:doctor_search')
        return super().post(request, *args, **kwargs)

    def load_doctor(self):
        try:
            self.doctor = DoctorDirectory().get(self.kwargs['doctor_id'])
        except DocSpotError as e:
            messages.error(self.request, str(e))
            return False
        return True

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context['doctor'] = self.doctor
        return context

    def form_valid(self, form):
        try:
            AppointmentRepository().create(
                patient_id=self.identity.user_id,
                doctor_id=self.doctor.pk,
                appointment_date=form.cleaned_data['appointment_date'],
                appointment_time=form.cleaned_data['appointment_time'],
                notes=form.cleaned_data['notes'],
            )
        except DocSpotError as e:
            messages.error(self.request, str(e))
            return redirect('appointments:book', doctor_id=self.doctor.pk)
        messages.success(
            self.request,
            'Appointment booked successfully! You will receive a confirmation once the doctor approves it.'
        )
        return redirect('appointments:list')


@require_POST
def update_appointment_status(request, pk):
    """Confirm, decline, cancel or complete an appointment"""
    identity = identity_for(request)
    if not identity.is_authenticated:
        messages.error(request, 'Permission denied.')
        return redirect('accounts:login')

    new_status = request.POST.get('status', '')
    try:
        appointment = AppointmentRepository().update_status(pk, new_status, identity)
    except NotFoundError as e:
        messages.error(request, str(e))
    except DocSpotError as e:
        messages.error(request, f'Failed to update appointment status: {e}')
    else:
        messages.success(request, f'Appointment {appointment.get_status_display().lower()}.')

    tab = request.POST.get('filter', '')
    if tab in STATUS_TABS and tab != 'all':
        return redirect(f"{reverse('appointments:list')}?filter={tab}")
    return redirect('appointments:list')

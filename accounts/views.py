import logging

from django.contrib import messages
from django.contrib.auth import login
from django.contrib.auth.views import LogoutView
from django.db import DatabaseError
from django.shortcuts import render, redirect
from django.urls import reverse_lazy
from django.views.generic import CreateView, TemplateView

from appointments.models import Appointment
from docspot.exceptions import DocSpotError
from doctors.models import Doctor
from doctors.review import review_doctor
from .forms import UserRegistrationForm, LoginForm
from .identity import identity_for
from .mixins import AdminRequiredMixin
from .models import User, Role

logger = logging.getLogger(__name__)


class RegisterView(CreateView):
    """User registration view"""
    form_class = UserRegistrationForm
    template_name = 'accounts/register.html'
    success_url = reverse_lazy('accounts:login')

    def form_valid(self, form):
        try:
            user = form.save()
        except DatabaseError:
            logger.exception('Registration failed for %s', form.cleaned_data.get('email'))
            messages.error(self.request, 'Registration failed. Please try again.')
            return self.form_invalid(form)

        logger.info('Registered %s user %s', user.role, user.pk)
        messages.success(
            self.request,
            f'Registration successful! {"Your doctor profile is pending approval." if user.role == Role.DOCTOR else "You can now login."}'
        )
        return redirect(self.success_url)


def login_view(request):
    """Email + password sign-in"""
    if identity_for(request).is_authenticated:
        return redirect('accounts:dashboard_redirect')

    if request.method == 'POST':
        form = LoginForm(request.POST)
        if form.is_valid():
            email = form.cleaned_data['email'].strip().lower()
            password = form.cleaned_data['password']
            try:
                user = User.objects.filter(email__iexact=email).first()
                valid = user is not None and user.is_active and user.check_password(password)
            except DatabaseError:
                logger.exception('Sign-in lookup failed')
                messages.error(request, 'Sign-in is temporarily unavailable. Please try again.')
                return render(request, 'accounts/login.html', {'form': form})

            if valid:
                login(request, user)
                messages.success(request, f'Welcome back, {user.full_name or user.email}!')
                return redirect('accounts:dashboard_redirect')

            # Wrong password, blocked account, or no user with this email
            messages.error(request, 'Invalid email or password.')
    else:
        form = LoginForm()

    return render(request, 'accounts/login.html', {'form': form})


class CustomLogoutView(LogoutView):
    """Custom logout view"""
    next_page = 'accounts:login'

    def dispatch(self, request, *args, **kwargs):
        messages.success(request, 'You have been logged out successfully.')
        return super().dispatch(request, *args, **kwargs)


def dashboard_redirect(request):
    """Redirect users to their role-specific landing page"""
    identity = identity_for(request)
    if not identity.is_authenticated:
        return redirect('accounts:login')

    if identity.role == Role.ADMIN:
        return redirect('accounts:admin_dashboard')
    elif identity.role == Role.DOCTOR:
        try:
            doctor = Doctor.objects.filter(user_id=identity.user_id).first()
        except DatabaseError:
            logger.exception('Could not load doctor record for user %s', identity.user_id)
            messages.error(request, 'Your doctor profile could not be loaded. Please try again.')
            return redirect('appointments:list')
        if doctor is None or doctor.status == Doctor.Status.PENDING:
            messages.warning(request, 'Your doctor profile is pending approval. Patients cannot book you yet.')
        elif doctor.status == Doctor.Status.REJECTED:
            messages.warning(request, 'Your doctor profile was not approved. Please contact the administrator.')
        return redirect('appointments:list')
    elif identity.role == Role.PATIENT:
        return redirect('doctors:doctor_search')
    else:
        messages.error(request, 'Invalid user role.')
        return redirect('accounts:login')


class AdminDashboardView(AdminRequiredMixin, TemplateView):
    """Admin dashboard: counts and doctors waiting for review"""
    template_name = 'accounts/admin_dashboard.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        try:
            stats = {
                'total_users': User.objects.count(),
                'total_patients': User.objects.filter(role=Role.PATIENT).count(),
                'total_doctors': Doctor.objects.filter(status=Doctor.Status.APPROVED).count(),
                'total_appointments': Appointment.objects.count(),
                'pending_doctors': list(
                    Doctor.objects.filter(status=Doctor.Status.PENDING).select_related('user').order_by('created_at')
                ),
            }
        except DatabaseError:
            logger.exception('Could not load admin dashboard')
            messages.error(self.request, 'Dashboard data is temporarily unavailable. Please try again.')
            stats = {
                'total_users': 0,
                'total_patients': 0,
                'total_doctors': 0,
                'total_appointments': 0,
                'pending_doctors': [],
            }
        context.update(stats)
        return context


def _review(request, doctor_id, new_status):
    if request.method == 'POST':
        try:
            doctor = review_doctor(doctor_id, new_status, identity_for(request))
        except DocSpotError as e:
            messages.error(request, str(e))
        else:
            messages.success(request, f'Dr. {doctor.user.full_name} has been {new_status}.')
    return redirect('accounts:admin_dashboard')


def approve_doctor(request, doctor_id):
    """Approve a pending doctor"""
    return _review(request, doctor_id, Doctor.Status.APPROVED)


def reject_doctor(request, doctor_id):
    """Reject a pending doctor"""
    return _review(request, doctor_id, Doctor.Status.REJECTED)

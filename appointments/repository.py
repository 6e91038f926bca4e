"""Role-scoped create/read/update of appointments.

Every method takes the caller's identity or ids explicitly. Database failures
are logged here and re-raised as RemoteError so views can show one message.
"""
import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as FieldValidationError
from django.db import DatabaseError

from accounts.models import Role
from docspot.exceptions import NotFoundError, RemoteError, ValidationError
from doctors.models import Doctor
from .models import Appointment
from .workflow import AppointmentWorkflow

logger = logging.getLogger(__name__)

User = get_user_model()


class AppointmentRepository:

    def __init__(self, workflow=None):
        self.workflow = workflow or AppointmentWorkflow()

    def create(self, patient_id, doctor_id, appointment_date, appointment_time, notes=''):
        """Book a pending appointment with an approved doctor."""
        try:
            if not User.objects.filter(pk=patient_id, role=Role.PATIENT, is_active=True).exists():
                raise ValidationError('Only registered patients can book appointments.')
            doctor = Doctor.objects.filter(pk=doctor_id, status=Doctor.Status.APPROVED).first()
            if doctor is None:
                raise ValidationError('This doctor is not available for booking.')

            appointment = Appointment.objects.create(
                patient_id=patient_id,
                doctor=doctor,
                appointment_date=appointment_date,
                appointment_time=appointment_time,
                notes=notes or '',
                status=Appointment.Status.PENDING,
            )
        except (FieldValidationError, ValueError, TypeError) as exc:
            raise ValidationError('Invalid booking details.') from exc
        except DatabaseError as exc:
            logger.exception('Could not book appointment for patient %s with doctor %s', patient_id, doctor_id)
            raise RemoteError() from exc

        logger.info(
            'Appointment %s booked: patient %s, doctor %s, %s %s',
            appointment.pk, patient_id, doctor.pk, appointment_date, appointment_time
        )
        return appointment

    def doctor_for(self, user_id):
        """The Doctor record owned by ``user_id``."""
        try:
            return Doctor.objects.get(user_id=user_id)
        except Doctor.DoesNotExist:
            raise NotFoundError('No doctor profile found for this account.')

    def list_for(self, identity):
        """Appointments visible to ``identity``, most recently created first.

        Patients see their own bookings, doctors the bookings made with them,
        admins every booking. A doctor without a Doctor record sees nothing.
        """
        try:
            qs = Appointment.objects.select_related('patient', 'doctor', 'doctor__user')
            if identity.role == Role.PATIENT:
                qs = qs.filter(patient_id=identity.user_id)
            elif identity.role == Role.DOCTOR:
                try:
                    doctor = self.doctor_for(identity.user_id)
                except NotFoundError:
                    logger.info('Doctor user %s has no doctor record yet', identity.user_id)
                    return []
                qs = qs.filter(doctor=doctor)
            elif identity.role == Role.ADMIN:
                pass
            else:
                return []
            return list(qs.order_by('-created_at', '-pk'))
        except DatabaseError as exc:
            logger.exception('Could not list appointments for %s %s', identity.role, identity.user_id)
            raise RemoteError() from exc

    def get(self, appointment_id):
        try:
            return Appointment.objects.select_related('patient', 'doctor', 'doctor__user').get(pk=appointment_id)
        except (Appointment.DoesNotExist, ValueError, TypeError):
            raise NotFoundError('Appointment not found.')
        except DatabaseError as exc:
            logger.exception('Could not load appointment %s', appointment_id)
            raise RemoteError() from exc

    def update_status(self, appointment_id, new_status, identity):
        """Move an appointment to ``new_status`` if the workflow allows ``identity`` to."""
        if new_status not in Appointment.Status.values:
            raise ValidationError(f'Unknown appointment status "{new_status}".')

        appointment = self.get(appointment_id)
        self.workflow.transition(appointment, new_status, identity)
        try:
            appointment.save(update_fields=['status', 'updated_at'])
        except DatabaseError as exc:
            logger.exception('Could not save status of appointment %s', appointment_id)
            raise RemoteError() from exc
        return appointment

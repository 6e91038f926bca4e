"""Admin review of doctor registrations: pending -> approved | rejected."""
import logging

from django.db import DatabaseError

from docspot.exceptions import InvalidTransitionError, NotFoundError, RemoteError
from .models import Doctor

logger = logging.getLogger(__name__)

REVIEW_OUTCOMES = (Doctor.Status.APPROVED, Doctor.Status.REJECTED)


def review_doctor(doctor_id, new_status, identity):
    """Approve or reject a pending doctor. Only admins may review."""
    if not identity.is_admin:
        raise InvalidTransitionError('Only an administrator can review doctors.', target=new_status, role=identity.role)
    if new_status not in REVIEW_OUTCOMES:
        raise InvalidTransitionError(f'Unknown review outcome "{new_status}".', target=new_status, role=identity.role)

    try:
        doctor = Doctor.objects.select_related('user').get(pk=doctor_id)
    except Doctor.DoesNotExist:
        raise NotFoundError('Doctor not found.')
    except DatabaseError as exc:
        logger.exception('Could not load doctor %s for review', doctor_id)
        raise RemoteError() from exc

    if doctor.status != Doctor.Status.PENDING:
        raise InvalidTransitionError(
            f'Doctor is already {doctor.get_status_display().lower()}.',
            current=doctor.status, target=new_status, role=identity.role
        )

    doctor.status = new_status
    try:
        doctor.save(update_fields=['status', 'updated_at'])
    except DatabaseError as exc:
        logger.exception('Could not save review of doctor %s', doctor_id)
        raise RemoteError() from exc
    logger.info('Doctor %s %s by admin %s', doctor.pk, new_status, identity.user_id)
    return doctor

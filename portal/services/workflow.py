"""
Appointment status workflow.

Legal transitions and the roles allowed to trigger them live in one
table.  ``missed`` is only ever written by the out-of-band sweep in
:func:`mark_missed`; no user role can request it.  ``completed`` and
``missed`` are terminal.
"""
from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction
from django.utils import timezone

from portal.exceptions import TransitionNotAllowed
from portal.models import Appointment, AppointmentTransition
from portal.services.access import ADMIN, DOCTOR, PATIENT

logger = logging.getLogger(__name__)

SCHEDULED = Appointment.STATUS_SCHEDULED
COMPLETED = Appointment.STATUS_COMPLETED
CANCELLED = Appointment.STATUS_CANCELLED
MISSED = Appointment.STATUS_MISSED

SYSTEM = 'system'

# current status -> {new status: roles allowed to request it}
TRANSITIONS: dict[str, dict[str, frozenset[str]]] = {
    SCHEDULED: {
        COMPLETED: frozenset({DOCTOR, ADMIN}),
        CANCELLED: frozenset({PATIENT, DOCTOR, ADMIN}),
        MISSED: frozenset({SYSTEM}),
    },
    CANCELLED: {
        SCHEDULED: frozenset({PATIENT}),
    },
    COMPLETED: {},
    MISSED: {},
}

# Labels of the actions a client renders for each target status
ACTION_NAMES = {
    COMPLETED: 'complete',
    CANCELLED: 'cancel',
    SCHEDULED: 'reschedule',
}


def can_transition(role: Optional[str], current: str, new: str) -> bool:
    """Return True if ``role`` may move an appointment from ``current`` to ``new``."""
    if role is None:
        return False
    return role in TRANSITIONS.get(current, {}).get(new, frozenset())


def allowed_transitions(role: Optional[str], current: str) -> list[str]:
    """Target statuses ``role`` may request from ``current``."""
    return sorted(new for new in TRANSITIONS.get(current, {}) if can_transition(role, current, new))


def is_terminal(status: str) -> bool:
    return not TRANSITIONS.get(status)


def is_participant(profile, appointment: Appointment) -> bool:
    """Whether ``profile`` may act on ``appointment`` at all."""
    if profile is None:
        return False
    if profile.role == ADMIN:
        return True
    if profile.role == DOCTOR:
        return appointment.doctor_id == profile.pk
    if profile.role == PATIENT:
        return appointment.patient_id == profile.pk
    return False


def available_actions(profile, appointment: Appointment) -> list[str]:
    """Actions to expose for ``appointment``; empty once terminal."""
    if not is_participant(profile, appointment):
        return []
    return [ACTION_NAMES[s] for s in allowed_transitions(profile.role, appointment.status)]


def transition_appointment(appointment: Appointment, new_status: str, *, actor_profile,
                           reason: str = '', appointment_date=None) -> tuple[Appointment, bool]:
    """Move ``appointment`` to ``new_status`` on behalf of ``actor_profile``.

    Returns ``(appointment, changed)``.  Requesting the status the
    appointment already has is a no-op.  Raises ``PermissionError`` when
    the actor is not a participant and :class:`TransitionNotAllowed` when
    the transition is not in the table for the actor's role.
    ``appointment_date`` may accompany a reschedule.
    """
    if not is_participant(actor_profile, appointment):
        raise PermissionError('not a participant of this appointment')
    if new_status not in TRANSITIONS:
        raise ValueError(f'unknown status {new_status}')

    with transaction.atomic():
        locked = Appointment.objects.select_for_update().get(pk=appointment.pk)
        if locked.status == new_status:
            return locked, False
        if not can_transition(actor_profile.role, locked.status, new_status):
            raise TransitionNotAllowed(locked.status, new_status)
        old_status = locked.status
        locked.status = new_status
        update_fields = ['status', 'updated_at']
        if appointment_date is not None and new_status == SCHEDULED:
            locked.appointment_date = appointment_date
            update_fields.append('appointment_date')
        locked.save(update_fields=update_fields)
        AppointmentTransition.objects.create(
            appointment=locked,
            from_status=old_status,
            to_status=new_status,
            actor=actor_profile.user,
            reason=reason or '',
        )
    logger.info('appointment %s: %s -> %s by %s', locked.pk, old_status, new_status, actor_profile.pk)
    return locked, True


def mark_missed(now=None) -> list[int]:
    """Out-of-band sweep: scheduled appointments whose end passed become missed."""
    now = now or timezone.now()
    missed_ids: list[int] = []
    candidates = Appointment.objects.filter(status=SCHEDULED, appointment_date__lt=now).order_by('appointment_date')
    for appt in candidates.iterator():
        if appt.end_time > now:
            continue
        with transaction.atomic():
            locked = Appointment.objects.select_for_update().get(pk=appt.pk)
            if not can_transition(SYSTEM, locked.status, MISSED):
                continue
            locked.status = MISSED
            locked.save(update_fields=['status', 'updated_at'])
            AppointmentTransition.objects.create(
                appointment=locked,
                from_status=SCHEDULED,
                to_status=MISSED,
                actor=None,
                reason='no show',
            )
        missed_ids.append(locked.pk)
    if missed_ids:
        logger.info('marked %d appointment(s) as missed', len(missed_ids))
    return missed_ids

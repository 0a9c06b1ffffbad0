"""
Push notifications over the channel layer.

Each identity has a websocket group ``session.<user_id>``; every client
signed in as that identity joins it (see
:class:`portal.realtime.consumers.SessionUpdatesConsumer`).
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.utils import timezone

logger = logging.getLogger(__name__)


def session_group(user_id: int) -> str:
    return f"session.{user_id}"


def _send(group: str, event: dict[str, Any]) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    try:
        async_to_sync(channel_layer.group_send)(group, event)
    except Exception:
        # Push is advisory; clients re-fetch on their own
        logger.warning('push to %s failed', group, exc_info=True)


def session_changed(user_id: int, *, status: str, role: Optional[str], profile: Optional[dict]) -> None:
    _send(session_group(user_id), {
        'type': 'session.changed',
        'status': status,
        'role': role,
        'profile': profile,
        'ts': timezone.now().isoformat(),
    })


def appointment_changed(appointment) -> None:
    event = {
        'type': 'appointment.changed',
        'appointmentId': appointment.pk,
        'status': appointment.status,
        'ts': timezone.now().isoformat(),
    }
    for user_id in {appointment.patient_id, appointment.doctor_id}:
        _send(session_group(user_id), event)

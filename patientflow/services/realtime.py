"""
Display-board updates over Channels.

Queue changes are pushed to the group of the department's display
board once the surrounding transaction has committed.
"""
from __future__ import annotations

import logging
import re

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction
from django.utils import timezone

from .. import conf

logger = logging.getLogger(__name__)

_GROUP_UNSAFE = re.compile(r'[^0-9A-Za-z_.\-]')


def queue_group(tenant_scope: str, department: str) -> str:
    """Channel group name for one department board (ASCII, max 100 chars)."""
    name = f"queue.{_GROUP_UNSAFE.sub('-', tenant_scope)}.{_GROUP_UNSAFE.sub('-', department)}"
    return name[:99]


def _send(group: str, event: dict) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    try:
        async_to_sync(channel_layer.group_send)(group, event)
    except Exception:
        logger.warning("Broadcast to %s failed", group, exc_info=True)


def broadcast_queue_change(tenant_scope: str, department: str, event: str, payload=None) -> None:
    if not conf.get('BROADCAST_UPDATES'):
        return
    message = {
        'type': 'queue.update',
        'event': event,
        'department': department,
        'ts': timezone.now().isoformat(),
        'data': payload,
    }
    group = queue_group(tenant_scope, department)
    transaction.on_commit(lambda: _send(group, message))

"""
Serialization points for mutating decisions.

``serialized(key)`` makes the enclosed check-then-write atomic for one
key: a process-local lock keeps threads of this worker in line, and a
``SELECT ... FOR UPDATE`` on the key's :class:`LockKey` row does the
same across worker processes on databases that support row locks.
The block runs inside ``transaction.atomic()``; the locks are released
only after the transaction has committed.

Keys name a room or a department, never a day or a patient, so the
number of :class:`LockKey` rows stays bounded by the clinic layout.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager

from django.db import transaction

from ..models import LockKey

_registry_guard = threading.Lock()
_registry: dict[str, list] = {}


def _acquire_local(key: str) -> threading.Lock:
    with _registry_guard:
        slot = _registry.get(key)
        if slot is None:
            slot = [threading.Lock(), 0]
            _registry[key] = slot
        slot[1] += 1
    slot[0].acquire()
    return slot[0]


def _release_local(key: str) -> None:
    with _registry_guard:
        slot = _registry[key]
        slot[0].release()
        slot[1] -= 1
        if slot[1] == 0:
            del _registry[key]


@contextmanager
def serialized(key: str):
    _acquire_local(key)
    try:
        with transaction.atomic():
            LockKey.objects.get_or_create(key=key)
            LockKey.objects.select_for_update().get(key=key)
            yield
    finally:
        _release_local(key)


def booking_key(tenant_scope: str, room_name: str) -> str:
    return f"booking:{tenant_scope}:{room_name}"


def department_key(tenant_scope: str, department: str) -> str:
    return f"call-next:{tenant_scope}:{department}"


def numbering_key(tenant_scope: str, department: str) -> str:
    return f"queue-number:{tenant_scope}:{department}"

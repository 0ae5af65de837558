"""
Call-next selection.

Among the waiting entries of a department the next patient is the one
with the smallest ``(priority, enqueued_at, queue_number)``: urgent
patients first, first-come first-served within a priority band.  No
waiting entry can be passed over by one that has a worse priority and
arrived later.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from ..exceptions import NoCandidateError
from ..models import VisitQueueEntry
from .bookings import BookingEngine
from .locks import department_key, serialized
from .queue import VisitQueueStore, apply_status, clean_department

logger = logging.getLogger(__name__)


def serving_key(entry: VisitQueueEntry):
    return (entry.priority, entry.enqueued_at, entry.queue_number)


def pick_next(entries: Iterable[VisitQueueEntry]) -> Optional[VisitQueueEntry]:
    waiting = [e for e in entries if e.status == VisitQueueEntry.STATUS_WAITING and e.removed_at is None]
    if not waiting:
        return None
    return min(waiting, key=serving_key)


class CallNextSelector:
    def __init__(self, store: Optional[VisitQueueStore] = None, bookings: Optional[BookingEngine] = None):
        self.store = store or VisitQueueStore()
        self.bookings = bookings or BookingEngine()

    def call_next(self, tenant_scope: str, department: str, room_number: Optional[str] = None, *,
                  candidate_rooms: Optional[Sequence[str]] = None,
                  actor: Optional[str] = None) -> VisitQueueEntry:
        """Call the next waiting patient of ``department``.

        Two concurrent calls for the same department never return the
        same entry.  Raises :class:`NoCandidateError` when nobody waits.
        """
        department = clean_department(department)
        with serialized(department_key(tenant_scope, department)):
            skipped = set()
            while True:
                entry = pick_next(e for e in self.store.snapshot(tenant_scope, department) if e.pk not in skipped)
                if entry is None:
                    logger.debug("No waiting patients in %s/%s", tenant_scope, department)
                    raise NoCandidateError(f'no patients waiting in {department}', department=department)
                # only a row still waiting and not removed may be called
                locked = self.store.waiting(tenant_scope, department).select_for_update().filter(pk=entry.pk).first()
                if locked is not None:
                    break
                skipped.add(entry.pk)
            entry = locked
            room = room_number or self._free_room(tenant_scope, candidate_rooms)
            apply_status(entry, VisitQueueEntry.STATUS_CALLED, room_number=room, actor=actor, reason='call-next')
        logger.info("Called #%s (%s) in %s to room %s", entry.queue_number, entry.patient_id, department, room or '-')
        return entry

    def _free_room(self, tenant_scope: str, candidate_rooms: Optional[Sequence[str]]) -> Optional[str]:
        if not candidate_rooms:
            return None
        free = self.bookings.free_rooms(tenant_scope, candidate_rooms)
        return free[0] if free else None

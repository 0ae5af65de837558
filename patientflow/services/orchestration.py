"""
Patient-flow orchestration facade.

Views and management commands talk to :class:`Orchestrator` only.  It
composes the queue store, the call-next selector and the booking
engine, and after every successful mutation records an activity event
and notifies the department's display board.  Neither of those side
effects can undo the operation that triggered them.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from ..exceptions import InvalidTransitionError, NotFoundError
from ..models import RoomBooking, VisitQueueEntry
from .audit import log_activity
from .bookings import BookingEngine, format_booking
from .queue import VisitQueueStore, format_entry
from .realtime import broadcast_queue_change
from .selector import CallNextSelector

logger = logging.getLogger(__name__)

Entry = VisitQueueEntry


class Orchestrator:
    def __init__(self, store: Optional[VisitQueueStore] = None, bookings: Optional[BookingEngine] = None,
                 selector: Optional[CallNextSelector] = None):
        self.store = store or VisitQueueStore()
        self.bookings = bookings or BookingEngine()
        self.selector = selector or CallNextSelector(self.store, self.bookings)

    # -- side effects -------------------------------------------------------

    def _entry_changed(self, entry: Entry, event: str, actor: Optional[str], description: str, **metadata) -> None:
        log_activity(
            user=actor,
            activity_type=f'queue_{event}',
            entity_type='visit_queue_entry',
            entity_id=entry.pk,
            tenant_scope=entry.tenant_scope,
            description=description,
            metadata={'department': entry.department, 'status': entry.status, 'stage': entry.stage, **metadata},
        )
        broadcast_queue_change(entry.tenant_scope, entry.department, event, format_entry(entry))

    def _booking_changed(self, booking: RoomBooking, event: str, actor: Optional[str], description: str) -> None:
        log_activity(
            user=actor,
            activity_type=f'room_{event}',
            entity_type='room_booking',
            entity_id=booking.pk,
            tenant_scope=booking.tenant_scope,
            description=description,
            metadata={
                'roomName': booking.room_name,
                'bookingDate': booking.booking_date.isoformat(),
                'startTime': booking.start_time.strftime('%H:%M'),
                'endTime': booking.end_time.strftime('%H:%M'),
                'status': booking.status,
            },
        )

    # -- queue --------------------------------------------------------------

    def check_in(self, tenant_scope: str, patient_id: str, department: str, priority: Optional[int] = None, *,
                 service_type: Optional[str] = None, appointment_id: Optional[str] = None,
                 notes: Optional[str] = None, actor: Optional[str] = None) -> Entry:
        entry = self.store.enqueue(
            tenant_scope, patient_id, department, priority,
            service_type=service_type, appointment_id=appointment_id, notes=notes, actor=actor,
        )
        self._entry_changed(
            entry, 'checked_in', actor, f'{patient_id} checked in to {department} as #{entry.queue_number}',
            priority=entry.priority,
        )
        return entry

    def call_next(self, tenant_scope: str, department: str, room_number: Optional[str] = None, *,
                  candidate_rooms: Optional[Sequence[str]] = None, actor: Optional[str] = None) -> Entry:
        entry = self.selector.call_next(
            tenant_scope, department, room_number, candidate_rooms=candidate_rooms, actor=actor,
        )
        self._entry_changed(
            entry, 'called', actor, f'#{entry.queue_number} called to {entry.room_number or department}',
            roomNumber=entry.room_number,
        )
        return entry

    def update_status(self, entry_id, new_status: str, room_number: Optional[str] = None, *,
                      actor: Optional[str] = None, reason: str = '') -> Entry:
        entry = self.store.update_status(entry_id, new_status, room_number, actor=actor, reason=reason)
        self._entry_changed(entry, new_status, actor, f'#{entry.queue_number} is now {new_status}', reason=reason)
        return entry

    def advance_stage(self, entry_id, new_stage: str, room_number: Optional[str] = None, *,
                      actor: Optional[str] = None, reason: str = '') -> Entry:
        entry = self.store.update_stage(entry_id, new_stage, room_number, actor=actor, reason=reason)
        self._entry_changed(
            entry, 'stage_changed', actor, f'#{entry.queue_number} moved to {new_stage}',
            roomNumber=entry.room_number,
        )
        return entry

    def start_visit(self, entry_id, room_number: Optional[str] = None, *, actor: Optional[str] = None) -> Entry:
        return self.update_status(entry_id, Entry.STATUS_IN_PROGRESS, room_number, actor=actor, reason='started')

    def complete(self, entry_id, *, actor: Optional[str] = None) -> Entry:
        return self.update_status(entry_id, Entry.STATUS_COMPLETED, actor=actor, reason='completed')

    def cancel(self, entry_id, *, actor: Optional[str] = None, reason: str = '') -> Entry:
        return self.update_status(entry_id, Entry.STATUS_CANCELLED, actor=actor, reason=reason or 'cancelled')

    def mark_no_show(self, entry_id, *, actor: Optional[str] = None) -> Entry:
        return self.update_status(entry_id, Entry.STATUS_NO_SHOW, actor=actor, reason='no-show')

    def remove(self, entry_id, *, actor: Optional[str] = None) -> None:
        entry = self.store.get(entry_id)
        self.store.remove(entry_id, actor=actor)
        log_activity(
            user=actor,
            activity_type='queue_removed',
            entity_type='visit_queue_entry',
            entity_id=entry.pk,
            tenant_scope=entry.tenant_scope,
            description=f'#{entry.queue_number} removed from {entry.department}',
            metadata={'department': entry.department, 'status': entry.status},
        )
        broadcast_queue_change(entry.tenant_scope, entry.department, 'removed', {'id': str(entry.pk)})

    def book_room_for_visit(self, entry_id, room_request: dict, *, actor: Optional[str] = None) -> RoomBooking:
        """Reserve a room for an active visit and put the room on the entry.

        A :class:`ConflictError` from the booking engine propagates as
        is; the entry keeps its previous room in that case.
        If the entry stops being active before the room is linked, the
        new booking is cancelled again and the error propagates.
        """
        entry = self.store.get(entry_id)
        if not entry.is_active:
            raise InvalidTransitionError(
                f'cannot book a room for a {entry.status} entry', current=entry.status, requested='book-room',
            )
        booking = self.bookings.create_booking(
            entry.tenant_scope,
            room_request.get('room_name'),
            room_request.get('booking_date'),
            room_request.get('start_time'),
            room_request.get('end_time'),
            room_type=room_request.get('room_type'),
            appointment_id=entry.appointment_id,
            equipment_required=room_request.get('equipment_required') or (),
            notes=room_request.get('notes'),
            visit=entry,
        )
        self._booking_changed(booking, 'booked', actor, f'{booking.room_name} booked for #{entry.queue_number}')
        try:
            entry = self.store.update_stage(entry.pk, entry.stage, booking.room_name, actor=actor, reason='room booked')
        except (InvalidTransitionError, NotFoundError):
            # the visit ended before the room was linked; release the slot
            self.cancel_booking(booking.pk, actor=actor)
            logger.warning("Released booking %s: queue entry %s is no longer active", booking.pk, entry.pk)
            raise
        logger.info("Room %s assigned to queue entry %s", booking.room_name, entry.pk)
        broadcast_queue_change(entry.tenant_scope, entry.department, 'room_assigned', format_entry(entry))
        return booking

    # -- rooms --------------------------------------------------------------

    def create_booking(self, tenant_scope: str, room_name: str, booking_date, start_time, end_time, *,
                       actor: Optional[str] = None, **details) -> RoomBooking:
        booking = self.bookings.create_booking(tenant_scope, room_name, booking_date, start_time, end_time, **details)
        self._booking_changed(booking, 'booked', actor, f'{booking.room_name} booked')
        return booking

    def update_booking(self, booking_id, *, actor: Optional[str] = None, **patch) -> RoomBooking:
        booking = self.bookings.update_booking(booking_id, **patch)
        self._booking_changed(booking, 'booking_updated', actor, f'{booking.room_name} booking updated')
        return booking

    def cancel_booking(self, booking_id, *, actor: Optional[str] = None) -> RoomBooking:
        booking = self.bookings.cancel_booking(booking_id)
        self._booking_changed(booking, 'booking_cancelled', actor, f'{booking.room_name} booking cancelled')
        return booking

    def list_bookings(self, tenant_scope: str, booking_date, room_name: Optional[str] = None,
                      include_cancelled: bool = True) -> list[dict]:
        return [format_booking(b) for b in self.bookings.list_bookings(
            tenant_scope, booking_date, room_name, include_cancelled,
        )]

    def free_rooms(self, tenant_scope: str, rooms: Iterable[str], booking_date=None, at=None) -> list[str]:
        return self.bookings.free_rooms(tenant_scope, rooms, booking_date, at)

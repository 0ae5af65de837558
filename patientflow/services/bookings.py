"""
Room and equipment reservations.

The booking engine is the single owner of :class:`RoomBooking` rows.
It guarantees that, within one tenant scope, no two non-cancelled
bookings of the same room on the same day overlap.  The overlap check
and the write happen inside one serialization point keyed on
``(tenant_scope, room_name)`` so that of two concurrent
requests for the same slot at most one wins.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Iterable, Optional

from django.db import transaction
from django.utils import timezone

from ..exceptions import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from ..models import RoomBooking
from .intervals import TimeInterval, covers, parse_time, validate_interval
from .locks import booking_key, serialized

logger = logging.getLogger(__name__)

# Allowed status moves; cancelled and completed are terminal.
BOOKING_TRANSITIONS = {
    RoomBooking.STATUS_BOOKED: {RoomBooking.STATUS_IN_USE, RoomBooking.STATUS_CANCELLED},
    RoomBooking.STATUS_IN_USE: {RoomBooking.STATUS_COMPLETED, RoomBooking.STATUS_CANCELLED},
    RoomBooking.STATUS_COMPLETED: set(),
    RoomBooking.STATUS_CANCELLED: set(),
}

SCHEDULE_FIELDS = ('room_name', 'booking_date', 'start_time', 'end_time')
DETAIL_FIELDS = ('room_type', 'appointment_id', 'equipment_required', 'notes')


def can_transition(current: str, new: str) -> bool:
    return new in BOOKING_TRANSITIONS.get(current, set())


def _parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError('booking date is required (YYYY-MM-DD)')


def _clean_room(room_name) -> str:
    room = (room_name or '').strip() if isinstance(room_name, str) else ''
    if not room:
        raise ValidationError('room name is required')
    return room


def _clean_equipment(items: Optional[Iterable[str]]) -> list[str]:
    return sorted({str(i).strip() for i in (items or []) if str(i).strip()})


def find_conflict(tenant_scope: str, room_name: str, booking_date: date, interval: TimeInterval,
                  exclude_id=None) -> Optional[RoomBooking]:
    """Return the first non-cancelled booking overlapping ``interval``."""
    qs = RoomBooking.objects.filter(
        tenant_scope=tenant_scope,
        room_name=room_name,
        booking_date=booking_date,
        start_time__lt=interval.end,
        end_time__gt=interval.start,
    ).exclude(status=RoomBooking.STATUS_CANCELLED)
    if exclude_id is not None:
        qs = qs.exclude(pk=exclude_id)
    return qs.order_by('start_time').first()


class BookingEngine:
    """Create, reschedule and cancel room bookings without double-booking."""

    def get(self, booking_id) -> RoomBooking:
        booking = RoomBooking.objects.filter(pk=booking_id).first()
        if not booking:
            raise NotFoundError('booking not found', bookingId=str(booking_id))
        return booking

    def create_booking(self, tenant_scope: str, room_name: str, booking_date, start_time, end_time, *,
                       room_type: Optional[str] = None, appointment_id: Optional[str] = None,
                       equipment_required: Iterable[str] = (), notes: Optional[str] = None,
                       visit=None) -> RoomBooking:
        if not tenant_scope:
            raise ValidationError('tenant scope is required')
        room = _clean_room(room_name)
        day = _parse_date(booking_date)
        interval = TimeInterval.of(start_time, end_time)

        with serialized(booking_key(tenant_scope, room)):
            clash = find_conflict(tenant_scope, room, day, interval)
            if clash:
                logger.info("Booking conflict on %s %s %s with %s", room, day, interval, clash.pk)
                raise ConflictError('room is already booked during this time', conflicting_booking_id=clash.pk)
            booking = RoomBooking.objects.create(
                tenant_scope=tenant_scope,
                room_name=room,
                room_type=room_type or None,
                booking_date=day,
                start_time=interval.start,
                end_time=interval.end,
                status=RoomBooking.STATUS_BOOKED,
                appointment_id=appointment_id or None,
                equipment_required=_clean_equipment(equipment_required),
                notes=notes or '',
                visit=visit,
            )
        logger.info("Booked %s on %s %s (%s)", room, day, interval, booking.pk)
        return booking

    def update_booking(self, booking_id, **patch) -> RoomBooking:
        """Apply ``patch`` to a booking.

        Changing the room, day or times re-runs the conflict check with
        the booking's own prior state excluded.  Status-only changes
        follow the status machine and never re-check conflicts.
        """
        unknown = set(patch) - set(SCHEDULE_FIELDS) - set(DETAIL_FIELDS) - {'status'}
        if unknown:
            raise ValidationError(f"unsupported fields: {', '.join(sorted(unknown))}")
        current = self.get(booking_id)

        new_status = patch.get('status')
        if new_status is not None and new_status != current.status:
            if new_status not in BOOKING_TRANSITIONS:
                raise ValidationError(f'unknown booking status: {new_status}')
            if not can_transition(current.status, new_status):
                raise InvalidTransitionError(
                    f'cannot move booking from {current.status} to {new_status}',
                    current=current.status, requested=new_status,
                )

        reschedule = {k: patch[k] for k in SCHEDULE_FIELDS if k in patch}
        if not reschedule:
            return self._apply(current.pk, patch)

        if current.status in (RoomBooking.STATUS_CANCELLED, RoomBooking.STATUS_COMPLETED):
            raise InvalidTransitionError(
                f'cannot reschedule a {current.status} booking', current=current.status, requested='reschedule',
            )
        room = _clean_room(reschedule.get('room_name', current.room_name))
        day = _parse_date(reschedule.get('booking_date', current.booking_date))
        start = parse_time(reschedule.get('start_time', current.start_time))
        end = parse_time(reschedule.get('end_time', current.end_time))
        validate_interval(start, end)
        interval = TimeInterval(start, end)
        values = dict(patch, room_name=room, booking_date=day, start_time=start, end_time=end)

        if values.get('status') == RoomBooking.STATUS_CANCELLED:
            return self._apply(current.pk, values)
        with serialized(booking_key(current.tenant_scope, room)):
            clash = find_conflict(current.tenant_scope, room, day, interval, exclude_id=current.pk)
            if clash:
                logger.info("Reschedule of %s conflicts with %s", current.pk, clash.pk)
                raise ConflictError('room is already booked during this time', conflicting_booking_id=clash.pk)
            return self._apply(current.pk, values)

    def _apply(self, booking_id, values: dict) -> RoomBooking:
        with transaction.atomic():
            booking = RoomBooking.objects.select_for_update().get(pk=booking_id)
            if any(f in values for f in SCHEDULE_FIELDS) and booking.status in (
                RoomBooking.STATUS_CANCELLED, RoomBooking.STATUS_COMPLETED,
            ):
                raise InvalidTransitionError(
                    f"cannot reschedule a {booking.status} booking", current=booking.status, requested="reschedule",
                )
            new_status = values.get('status')
            if new_status is not None and new_status != booking.status and not can_transition(booking.status, new_status):
                raise InvalidTransitionError(
                    f'cannot move booking from {booking.status} to {new_status}',
                    current=booking.status, requested=new_status,
                )
            for field, value in values.items():
                if field == 'equipment_required':
                    value = _clean_equipment(value)
                elif field == 'notes':
                    value = value or ''
                setattr(booking, field, value)
            booking.save()
        return booking

    def cancel_booking(self, booking_id) -> RoomBooking:
        """Cancel a booking; cancelling twice is a no-op."""
        booking = self.get(booking_id)
        if booking.status == RoomBooking.STATUS_CANCELLED:
            return booking
        booking = self._apply(booking.pk, {'status': RoomBooking.STATUS_CANCELLED})
        logger.info("Cancelled booking %s (%s)", booking.pk, booking.room_name)
        return booking

    def list_bookings(self, tenant_scope: str, booking_date, room_name: Optional[str] = None,
                      include_cancelled: bool = True) -> list[RoomBooking]:
        qs = RoomBooking.objects.filter(tenant_scope=tenant_scope, booking_date=_parse_date(booking_date))
        if room_name:
            qs = qs.filter(room_name=room_name)
        if not include_cancelled:
            qs = qs.exclude(status=RoomBooking.STATUS_CANCELLED)
        return list(qs.order_by('start_time', 'room_name'))

    def free_rooms(self, tenant_scope: str, rooms: Iterable[str], booking_date=None,
                   at: Optional[time] = None) -> list[str]:
        """Return the candidate rooms no live booking occupies at ``at``."""
        now = timezone.localtime()
        day = _parse_date(booking_date) if booking_date else now.date()
        instant = parse_time(at) if at else now.time().replace(microsecond=0)
        candidates = [r.strip() for r in rooms if r and r.strip()]
        busy = set()
        qs = RoomBooking.objects.filter(
            tenant_scope=tenant_scope, booking_date=day, room_name__in=candidates,
        ).exclude(status__in=[RoomBooking.STATUS_CANCELLED, RoomBooking.STATUS_COMPLETED])
        for b in qs:
            if covers(TimeInterval(b.start_time, b.end_time), instant):
                busy.add(b.room_name)
        return [r for r in candidates if r not in busy]


def format_booking(booking: RoomBooking) -> dict:
    return {
        'id': str(booking.pk),
        'tenantScope': booking.tenant_scope,
        'roomName': booking.room_name,
        'roomType': booking.room_type,
        'bookingDate': booking.booking_date.isoformat(),
        'startTime': booking.start_time.strftime('%H:%M'),
        'endTime': booking.end_time.strftime('%H:%M'),
        'status': booking.status,
        'appointmentId': booking.appointment_id,
        'visitId': str(booking.visit_id) if booking.visit_id else None,
        'equipmentRequired': list(booking.equipment_required or []),
        'notes': booking.notes,
        'createdAt': booking.created_at.isoformat() if booking.created_at else None,
        'updatedAt': booking.updated_at.isoformat() if booking.updated_at else None,
    }

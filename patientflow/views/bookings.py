"""Room booking endpoints."""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..exceptions import NotFoundError
from ..serializers.bookings import (
    AvailabilityQuerySerializer,
    BookingCreateSerializer,
    BookingListQuerySerializer,
    BookingUpdateSerializer,
)
from ..services.bookings import format_booking
from .common import actor_for, ok, orchestrator, tenant_scope_for


def _booking_in_scope(request, booking_id):
    booking = orchestrator.bookings.get(booking_id)
    if booking.tenant_scope != tenant_scope_for(request):
        raise NotFoundError('booking not found', bookingId=str(booking_id))
    return booking


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def room_bookings(request):
    """List a day's bookings (GET) or create one (POST).

    Overlapping an existing non-cancelled booking of the same room
    answers 409 with ``conflictingBookingId``.
    """
    scope = tenant_scope_for(request)
    if request.method == 'GET':
        q = BookingListQuerySerializer(data=request.query_params.dict())
        q.is_valid(raise_exception=True)
        d = q.validated_data
        data = orchestrator.list_bookings(scope, d['date'], d.get('roomName') or None, d['includeCancelled'])
        return Response(ok(data, meta={'date': d['date'].isoformat(), 'total': len(data)}))

    s = BookingCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    req = s.to_room_request()
    booking = orchestrator.create_booking(
        scope,
        req.pop('room_name'),
        req.pop('booking_date'),
        req.pop('start_time'),
        req.pop('end_time'),
        appointment_id=s.validated_data.get('appointmentId') or None,
        actor=actor_for(request),
        **req,
    )
    return Response(ok(format_booking(booking)), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def room_booking_detail(request, booking_id):
    booking = _booking_in_scope(request, booking_id)
    if request.method == 'GET':
        return Response(ok(format_booking(booking)))
    s = BookingUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    booking = orchestrator.update_booking(booking.pk, actor=actor_for(request), **s.to_patch())
    return Response(ok(format_booking(booking)))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def room_booking_cancel(request, booking_id):
    """Cancel a booking.  Cancelling twice answers the same booking."""
    booking = _booking_in_scope(request, booking_id)
    booking = orchestrator.cancel_booking(booking.pk, actor=actor_for(request))
    return Response(ok(format_booking(booking)))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def room_availability(request):
    scope = tenant_scope_for(request)
    q = AvailabilityQuerySerializer(data=request.query_params.dict())
    q.is_valid(raise_exception=True)
    rooms = q.room_list()
    free = orchestrator.free_rooms(scope, rooms, q.validated_data.get('date'), q.validated_data.get('at'))
    return Response(ok({'free': free, 'busy': [r for r in rooms if r not in free]}))

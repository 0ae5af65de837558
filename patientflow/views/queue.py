"""
Visit queue endpoints.

Staff check patients in, call the next patient of a department and
move entries through their status and stage.  Every handler reads the
tenant scope from the request and only ever sees entries of that
scope; an entry of another scope answers 404 as if it did not exist.
Domain errors propagate to ``api_exception_handler`` which renders
them in the error envelope.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..exceptions import NotFoundError
from ..serializers.bookings import RoomRequestSerializer
from ..serializers.queue import (
    CallNextSerializer,
    CancelSerializer,
    CheckInSerializer,
    DepartmentQuerySerializer,
    QueueListQuerySerializer,
    StageUpdateSerializer,
    StatsQuerySerializer,
    StatusUpdateSerializer,
)
from ..services.bookings import format_booking
from ..services.queue import format_entry, format_transition
from .common import actor_for, ok, orchestrator, tenant_scope_for


def _entry_in_scope(request, entry_id):
    entry = orchestrator.store.get(entry_id)
    if entry.tenant_scope != tenant_scope_for(request):
        raise NotFoundError('queue entry not found', entryId=str(entry_id))
    return entry


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def queue_entries(request):
    """List entries (GET) or check a patient in (POST)."""
    scope = tenant_scope_for(request)
    if request.method == 'GET':
        q = QueueListQuerySerializer(data=request.query_params.dict())
        q.is_valid(raise_exception=True)
        entries = orchestrator.store.list_entries(
            scope,
            department=q.validated_data.get('department'),
            status=q.validated_data.get('status'),
            day=q.validated_data.get('date'),
        )
        return Response(ok([format_entry(e) for e in entries], meta={'total': len(entries)}))

    s = CheckInSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    d = s.validated_data
    entry = orchestrator.check_in(
        scope,
        d['patientId'],
        d['department'].strip(),
        d.get('priority'),
        service_type=d.get('serviceType') or None,
        appointment_id=d.get('appointmentId') or None,
        notes=d.get('notes'),
        actor=actor_for(request),
    )
    return Response(ok(format_entry(entry)), status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def queue_snapshot(request):
    """Active entries of one department in serving order."""
    scope = tenant_scope_for(request)
    q = DepartmentQuerySerializer(data=request.query_params.dict())
    q.is_valid(raise_exception=True)
    department = q.validated_data['department']
    entries = orchestrator.store.snapshot(scope, department)
    data = [dict(format_entry(e), position=i) for i, e in enumerate(entries, start=1)]
    return Response(ok(data, meta={'department': department, 'total': len(data)}))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def queue_call_next(request):
    """Call the next waiting patient.  An empty queue answers ``data: null``."""
    scope = tenant_scope_for(request)
    s = CallNextSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    d = s.validated_data
    entry = orchestrator.call_next(
        scope,
        d['department'].strip(),
        d.get('roomNumber') or None,
        candidate_rooms=d.get('candidateRooms') or None,
        actor=actor_for(request),
    )
    return Response(ok(format_entry(entry)))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def queue_now_serving(request):
    scope = tenant_scope_for(request)
    entries = orchestrator.store.now_serving(scope, request.query_params.get('department') or None)
    return Response(ok([format_entry(e) for e in entries]))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def queue_stats(request):
    scope = tenant_scope_for(request)
    q = StatsQuerySerializer(data=request.query_params.dict())
    q.is_valid(raise_exception=True)
    stats = orchestrator.store.stats(scope, q.validated_data.get('department'), q.validated_data.get('date'))
    return Response(ok(stats))


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def queue_entry_detail(request, entry_id):
    """Entry detail with its transition history, or removal from live views."""
    entry = _entry_in_scope(request, entry_id)
    if request.method == 'DELETE':
        orchestrator.remove(entry.pk, actor=actor_for(request))
        return Response(ok({'id': str(entry.pk), 'removed': True}))
    data = format_entry(entry)
    data['transitionHistory'] = [format_transition(t) for t in orchestrator.store.history(entry.pk)]
    return Response(ok(data))


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def queue_entry_status(request, entry_id):
    entry = _entry_in_scope(request, entry_id)
    s = StatusUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    d = s.validated_data
    entry = orchestrator.update_status(
        entry.pk, d['status'], d.get('roomNumber') or None, actor=actor_for(request), reason=d.get('reason') or '',
    )
    return Response(ok(format_entry(entry)))


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def queue_entry_stage(request, entry_id):
    entry = _entry_in_scope(request, entry_id)
    s = StageUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    d = s.validated_data
    entry = orchestrator.advance_stage(
        entry.pk, d['stage'], d.get('roomNumber') or None, actor=actor_for(request), reason=d.get('reason') or '',
    )
    return Response(ok(format_entry(entry)))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def queue_entry_cancel(request, entry_id):
    entry = _entry_in_scope(request, entry_id)
    s = CancelSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    entry = orchestrator.cancel(entry.pk, actor=actor_for(request), reason=s.validated_data.get('reason') or '')
    return Response(ok(format_entry(entry)))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def queue_entry_no_show(request, entry_id):
    entry = _entry_in_scope(request, entry_id)
    entry = orchestrator.mark_no_show(entry.pk, actor=actor_for(request))
    return Response(ok(format_entry(entry)))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def queue_entry_book_room(request, entry_id):
    """Book a room for the visit and assign it to the entry.

    An overlapping booking answers 409 ``conflict`` with the id of the
    booking in the way; the entry is left without the new room.
    """
    entry = _entry_in_scope(request, entry_id)
    s = RoomRequestSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    booking = orchestrator.book_room_for_visit(entry.pk, s.to_room_request(), actor=actor_for(request))
    entry = orchestrator.store.get(entry.pk)
    return Response(ok({'booking': format_booking(booking), 'entry': format_entry(entry)}),
                    status=status.HTTP_201_CREATED)

from datetime import date
from types import SimpleNamespace

import pytest
from django.db import DatabaseError

from patientflow.exceptions import ConflictError, InvalidTransitionError
from patientflow.models import ActivityEvent, RoomBooking, VisitQueueEntry
from patientflow.services import realtime
from patientflow.services.orchestration import Orchestrator

pytestmark = pytest.mark.django_db

DAY = date(2026, 3, 2)
ROOM = {'room_name': 'Procedure 1', 'booking_date': DAY, 'start_time': '09:00', 'end_time': '10:00'}


@pytest.fixture
def flow():
    return Orchestrator()


def test_check_in_and_call_record_activity(flow):
    entry = flow.check_in('branch-1', 'P-1', 'general', actor='clerk')
    flow.call_next('branch-1', 'general', 'Room 2', actor='nurse1')
    types = list(ActivityEvent.objects.filter(entity_id=str(entry.pk)).order_by('id').values_list('activity_type', flat=True))
    assert types == ['queue_checked_in', 'queue_called']
    event = ActivityEvent.objects.get(activity_type='queue_called')
    assert event.user == 'nurse1'
    assert event.tenant_scope == 'branch-1'
    assert event.metadata['roomNumber'] == 'Room 2'


def test_shortcuts_move_status(flow):
    a = flow.check_in('branch-1', 'A', 'general')
    b = flow.check_in('branch-1', 'B', 'general')
    c = flow.check_in('branch-1', 'C', 'general')
    flow.call_next('branch-1', 'general')
    flow.call_next('branch-1', 'general')
    assert flow.start_visit(a.pk, 'Room 1').status == VisitQueueEntry.STATUS_IN_PROGRESS
    assert flow.complete(a.pk).status == VisitQueueEntry.STATUS_COMPLETED
    assert flow.mark_no_show(b.pk).status == VisitQueueEntry.STATUS_NO_SHOW
    assert flow.cancel(c.pk, reason='left').status == VisitQueueEntry.STATUS_CANCELLED
    with pytest.raises(InvalidTransitionError):
        flow.complete(c.pk)


def test_book_room_for_visit_links_room(flow):
    entry = flow.check_in('branch-1', 'P-1', 'general', appointment_id='APT-9')
    flow.advance_stage(entry.pk, 'triage')
    booking = flow.book_room_for_visit(entry.pk, ROOM, actor='nurse1')

    entry.refresh_from_db()
    assert entry.room_number == 'Procedure 1'
    assert entry.stage == 'triage'
    assert booking.visit_id == entry.pk
    assert booking.appointment_id == 'APT-9'
    assert booking.tenant_scope == 'branch-1'
    assert ActivityEvent.objects.filter(activity_type='room_booked', entity_id=str(booking.pk)).exists()


def test_book_room_conflict_leaves_entry_untouched(flow):
    existing = flow.create_booking('branch-1', 'Procedure 1', DAY, '09:30', '10:30', actor='admin')
    entry = flow.check_in('branch-1', 'P-1', 'general')

    with pytest.raises(ConflictError) as exc:
        flow.book_room_for_visit(entry.pk, ROOM)
    assert exc.value.conflicting_booking_id == existing.pk

    entry.refresh_from_db()
    assert entry.room_number is None
    assert entry.status == VisitQueueEntry.STATUS_WAITING
    assert RoomBooking.objects.count() == 1


def test_book_room_requires_active_entry(flow):
    entry = flow.check_in('branch-1', 'P-1', 'general')
    flow.cancel(entry.pk)
    with pytest.raises(InvalidTransitionError):
        flow.book_room_for_visit(entry.pk, ROOM)
    assert RoomBooking.objects.count() == 0


def test_booking_released_when_visit_ends_before_room_is_linked(flow, monkeypatch):
    entry = flow.check_in('branch-1', 'P-1', 'general')
    original = flow.store.update_stage

    def update_stage(entry_id, *args, **kwargs):
        flow.store.update_status(entry_id, VisitQueueEntry.STATUS_CANCELLED)
        return original(entry_id, *args, **kwargs)

    monkeypatch.setattr(flow.store, 'update_stage', update_stage)
    with pytest.raises(InvalidTransitionError):
        flow.book_room_for_visit(entry.pk, ROOM)

    booking = RoomBooking.objects.get()
    assert booking.status == RoomBooking.STATUS_CANCELLED
    assert booking.visit_id == entry.pk
    assert VisitQueueEntry.objects.get(pk=entry.pk).room_number is None


def test_booking_passthroughs(flow):
    b = flow.create_booking('branch-1', 'Room 1', DAY, '09:00', '10:00', room_type='consultation', actor='admin')
    flow.update_booking(b.pk, end_time='10:30', actor='admin')
    flow.cancel_booking(b.pk, actor='admin')
    listed = flow.list_bookings('branch-1', DAY)
    assert [x['status'] for x in listed] == ['cancelled']
    assert listed[0]['endTime'] == '10:30'
    assert flow.free_rooms('branch-1', ['Room 1'], DAY, '09:15') == ['Room 1']
    types = list(ActivityEvent.objects.order_by('id').values_list('activity_type', flat=True))
    assert types == ['room_booked', 'room_booking_updated', 'room_booking_cancelled']


def test_remove_logs_and_hides(flow):
    entry = flow.check_in('branch-1', 'P-1', 'general')
    flow.remove(entry.pk, actor='clerk')
    assert flow.store.snapshot('branch-1', 'general') == []
    assert ActivityEvent.objects.filter(activity_type='queue_removed', user='clerk').exists()


def test_activity_failure_does_not_undo_check_in(flow, monkeypatch):
    def broken(**kwargs):
        raise DatabaseError('activities table unavailable')

    monkeypatch.setattr('patientflow.services.audit.ActivityEvent', SimpleNamespace(objects=SimpleNamespace(create=broken)))
    entry = flow.check_in('branch-1', 'P-1', 'general')
    assert VisitQueueEntry.objects.filter(pk=entry.pk).exists()


def test_queue_change_broadcast_after_commit(flow, monkeypatch, django_capture_on_commit_callbacks):
    sent = []

    class FakeLayer:
        async def group_send(self, group, event):
            sent.append((group, event))

    monkeypatch.setattr(realtime, 'get_channel_layer', lambda: FakeLayer())
    with django_capture_on_commit_callbacks(execute=True):
        flow.check_in('branch 1', 'P-1', 'General Medicine')

    assert len(sent) == 1
    group, event = sent[0]
    assert group == 'queue.branch-1.General-Medicine'
    assert event['type'] == 'queue.update'
    assert event['event'] == 'checked_in'
    assert event['data']['patientId'] == 'P-1'

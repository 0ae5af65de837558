"""
URL mappings for the patient-flow API.

Trailing slashes are omitted, matching the paths the front-end calls.
Entry and booking ids are UUIDs.
"""
from django.urls import include, path

from .views import health
from .views.activities import list_activities
from .views.bookings import room_availability, room_booking_cancel, room_booking_detail, room_bookings
from .views.queue import (
    queue_call_next,
    queue_entries,
    queue_entry_book_room,
    queue_entry_cancel,
    queue_entry_detail,
    queue_entry_no_show,
    queue_entry_stage,
    queue_entry_status,
    queue_now_serving,
    queue_snapshot,
    queue_stats,
)

urlpatterns = [
    # Ops
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),

    # Visit queue
    path('api/queue', queue_entries, name='queue-entries'),
    path('api/queue/snapshot', queue_snapshot, name='queue-snapshot'),
    path('api/queue/call-next', queue_call_next, name='queue-call-next'),
    path('api/queue/now-serving', queue_now_serving, name='queue-now-serving'),
    path('api/queue/stats', queue_stats, name='queue-stats'),
    path('api/queue/<uuid:entry_id>', queue_entry_detail, name='queue-entry'),
    path('api/queue/<uuid:entry_id>/status', queue_entry_status, name='queue-entry-status'),
    path('api/queue/<uuid:entry_id>/stage', queue_entry_stage, name='queue-entry-stage'),
    path('api/queue/<uuid:entry_id>/cancel', queue_entry_cancel, name='queue-entry-cancel'),
    path('api/queue/<uuid:entry_id>/no-show', queue_entry_no_show, name='queue-entry-no-show'),
    path('api/queue/<uuid:entry_id>/book-room', queue_entry_book_room, name='queue-entry-book-room'),

    # Rooms
    path('api/rooms/bookings', room_bookings, name='room-bookings'),
    path('api/rooms/bookings/<uuid:booking_id>', room_booking_detail, name='room-booking'),
    path('api/rooms/bookings/<uuid:booking_id>/cancel', room_booking_cancel, name='room-booking-cancel'),
    path('api/rooms/availability', room_availability, name='room-availability'),

    # Activity log
    path('api/activities', list_activities, name='activities'),
]

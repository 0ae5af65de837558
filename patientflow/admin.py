"""
Django admin registrations for patient-flow records.

Lets superusers inspect queues, bookings and the audit trail under
``/admin/``.  Live changes should go through the API so that the
state machines and double-booking checks apply.
"""
from django.contrib import admin

from .models import ActivityEvent, RoomBooking, VisitQueueEntry, VisitQueueTransition


class VisitQueueTransitionInline(admin.TabularInline):
    model = VisitQueueTransition
    extra = 0
    readonly_fields = ('field', 'from_value', 'to_value', 'operator', 'timestamp', 'reason')


@admin.register(VisitQueueEntry)
class VisitQueueEntryAdmin(admin.ModelAdmin):
    list_display = ('queue_number', 'tenant_scope', 'department', 'patient_id', 'priority', 'stage', 'status',
                    'room_number', 'enqueued_at')
    list_filter = ('tenant_scope', 'department', 'status', 'stage')
    search_fields = ('patient_id', 'appointment_id')
    inlines = [VisitQueueTransitionInline]


@admin.register(RoomBooking)
class RoomBookingAdmin(admin.ModelAdmin):
    list_display = ('room_name', 'tenant_scope', 'booking_date', 'start_time', 'end_time', 'status')
    list_filter = ('tenant_scope', 'status', 'room_type')
    search_fields = ('room_name', 'appointment_id')


@admin.register(ActivityEvent)
class ActivityEventAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'activity_type', 'entity_type', 'entity_id', 'user', 'tenant_scope')
    list_filter = ('activity_type', 'entity_type')

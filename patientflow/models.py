"""
Database models for patient-flow orchestration.

Two record collections carry the live state: visit queue entries and
room bookings.  Both are scoped by ``tenant_scope`` (a clinic or branch
key) and only reference patients and appointments by identifier; those
records are owned by other services.  Transition rows and activity
events are append-only audit data.
"""
from __future__ import annotations

import uuid

from django.db import models
from django.db.models import Q


class VisitQueueEntry(models.Model):
    """A patient's place in a department queue for one visit."""
    STATUS_WAITING = 'waiting'
    STATUS_CALLED = 'called'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_NO_SHOW = 'no_show'
    STATUS_CHOICES = [
        (STATUS_WAITING, 'Waiting'),
        (STATUS_CALLED, 'Called'),
        (STATUS_IN_PROGRESS, 'In progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_NO_SHOW, 'No show'),
    ]
    ACTIVE_STATUSES = (STATUS_WAITING, STATUS_CALLED, STATUS_IN_PROGRESS)
    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED, STATUS_NO_SHOW)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_scope = models.CharField(max_length=64, db_index=True)
    patient_id = models.CharField(max_length=64, db_index=True)
    appointment_id = models.CharField(max_length=64, blank=True, null=True)
    department = models.CharField(max_length=100)
    service_type = models.CharField(max_length=100, blank=True, default='consultation')
    # Lower number is more urgent
    priority = models.PositiveSmallIntegerField(default=3)
    queue_number = models.PositiveIntegerField()
    stage = models.CharField(max_length=32, default='registration')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_WAITING, db_index=True)
    room_number = models.CharField(max_length=50, blank=True, null=True)
    serving_staff = models.CharField(max_length=64, blank=True, null=True)
    enqueued_at = models.DateTimeField(editable=False)
    called_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    removed_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default='')

    class Meta:
        db_table = 'visit_queue_entries'
        constraints = [
            models.UniqueConstraint(
                fields=['tenant_scope', 'patient_id', 'department'],
                condition=Q(status__in=['waiting', 'called', 'in_progress'], removed_at__isnull=True),
                name='uq_active_visit_per_department',
            ),
        ]
        indexes = [
            models.Index(fields=['tenant_scope', 'department', 'status', 'priority', 'enqueued_at'], name='vqe_dept_status_prio_idx'),
            models.Index(fields=['tenant_scope', 'department', 'enqueued_at'], name='vqe_dept_enqueued_idx'),
        ]

    @property
    def is_active(self) -> bool:
        return self.status in self.ACTIVE_STATUSES and self.removed_at is None

    def __str__(self) -> str:
        return f"#{self.queue_number} {self.department} ({self.patient_id}, {self.status})"


class VisitQueueTransition(models.Model):
    """Records a status or stage change for a queue entry."""
    FIELD_STATUS = 'status'
    FIELD_STAGE = 'stage'
    FIELD_CHOICES = [(FIELD_STATUS, 'status'), (FIELD_STAGE, 'stage')]

    entry = models.ForeignKey(VisitQueueEntry, related_name='transitions', on_delete=models.CASCADE)
    field = models.CharField(max_length=10, choices=FIELD_CHOICES, default=FIELD_STATUS)
    from_value = models.CharField(max_length=32, null=True, blank=True)
    to_value = models.CharField(max_length=32)
    operator = models.CharField(max_length=64, blank=True, default='')
    timestamp = models.DateTimeField(auto_now_add=True)
    reason = models.CharField(max_length=255, blank=True)

    class Meta:
        db_table = 'visit_queue_transitions'

    def __str__(self) -> str:
        return f"{self.entry_id} {self.field}: {self.from_value} → {self.to_value}"


class RoomBooking(models.Model):
    """A reservation of a room (and its equipment) for part of one day.

    ``start_time``/``end_time`` form a half-open interval on
    ``booking_date``.  Non-cancelled bookings of the same room on the
    same day never overlap.
    """
    STATUS_BOOKED = 'booked'
    STATUS_IN_USE = 'in_use'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_BOOKED, 'Booked'),
        (STATUS_IN_USE, 'In use'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_scope = models.CharField(max_length=64)
    room_name = models.CharField(max_length=100)
    room_type = models.CharField(max_length=50, blank=True, null=True)
    booking_date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_BOOKED, db_index=True)
    appointment_id = models.CharField(max_length=64, blank=True, null=True)
    visit = models.ForeignKey(
        VisitQueueEntry, null=True, blank=True, on_delete=models.SET_NULL, related_name='room_bookings'
    )
    equipment_required = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'room_bookings'
        indexes = [
            models.Index(fields=['tenant_scope', 'room_name', 'booking_date'], name='rb_room_day_idx'),
            models.Index(fields=['tenant_scope', 'booking_date', 'start_time'], name='rb_day_start_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.room_name} {self.booking_date:%F} {self.start_time:%H:%M}-{self.end_time:%H:%M} ({self.status})"


class ActivityEvent(models.Model):
    user = models.CharField(max_length=64, blank=True, default='')
    tenant_scope = models.CharField(max_length=64, blank=True, default='')
    activity_type = models.CharField(max_length=64)
    entity_type = models.CharField(max_length=64, blank=True, null=True)
    entity_id = models.CharField(max_length=64, blank=True, null=True)
    description = models.CharField(max_length=255, blank=True, default='')
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'activities'
        indexes = [
            models.Index(fields=['activity_type', 'created_at'], name='act_type_created_idx'),
            models.Index(fields=['entity_type', 'entity_id', 'created_at'], name='act_entity_created_idx'),
            models.Index(fields=['tenant_scope', 'created_at'], name='act_tenant_created_idx'),
        ]

    def __str__(self):
        return f"{self.activity_type}:{self.entity_id}@{self.created_at:%F %T}"


class LockKey(models.Model):
    """Row locked with SELECT ... FOR UPDATE to serialize one key."""
    key = models.CharField(max_length=255, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.key

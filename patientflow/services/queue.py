"""
Visit queue store and its state machine.

The store is the single owner of :class:`VisitQueueEntry` rows.  Every
change goes through the status machine below or through a stage
change, and each change is recorded as a :class:`VisitQueueTransition`
row so the order in which patients were served can be audited later.

Status and stage are orthogonal: status is the queue lifecycle
(waiting, called, ...), stage is the clinical workflow position
(triage, consultation, ...).  Stage may only change while the entry
is active.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models import Max
from django.utils import timezone

from .. import conf
from ..exceptions import DuplicateError, InvalidTransitionError, NotFoundError, ValidationError
from ..models import VisitQueueEntry, VisitQueueTransition
from .locks import numbering_key, serialized

logger = logging.getLogger(__name__)

Entry = VisitQueueEntry

STATUS_TRANSITIONS = {
    Entry.STATUS_WAITING: {Entry.STATUS_CALLED, Entry.STATUS_CANCELLED},
    Entry.STATUS_CALLED: {Entry.STATUS_IN_PROGRESS, Entry.STATUS_CANCELLED, Entry.STATUS_NO_SHOW},
    Entry.STATUS_IN_PROGRESS: {Entry.STATUS_COMPLETED, Entry.STATUS_CANCELLED},
    Entry.STATUS_COMPLETED: set(),
    Entry.STATUS_CANCELLED: set(),
    Entry.STATUS_NO_SHOW: set(),
}


def can_transition(current: str, new: str) -> bool:
    """Return True if a queue entry may move from ``current`` to ``new``."""
    return new in STATUS_TRANSITIONS.get(current, set())


def clean_department(department) -> str:
    return department.strip() if isinstance(department, str) else ''


def live_entries(tenant_scope: str):
    return Entry.objects.filter(tenant_scope=tenant_scope, removed_at__isnull=True)


def serving_order(qs):
    """Priority first (lower is more urgent), then check-in order."""
    return qs.order_by('priority', 'enqueued_at', 'queue_number')


def _record(entry: Entry, field: str, old, new, actor: Optional[str], reason: str = '') -> None:
    VisitQueueTransition.objects.create(
        entry=entry, field=field, from_value=old, to_value=new, operator=actor or '', reason=reason,
    )


def _stamp(entry: Entry, status: str, now) -> None:
    if status == Entry.STATUS_CALLED:
        entry.called_at = now
    elif status == Entry.STATUS_IN_PROGRESS:
        entry.started_at = now
    elif status in Entry.TERMINAL_STATUSES:
        entry.completed_at = now


def apply_status(entry: Entry, new_status: str, *, room_number: Optional[str] = None,
                 actor: Optional[str] = None, reason: str = '') -> Entry:
    """Move a locked, freshly read entry to ``new_status``.

    Callers must hold the row (``select_for_update``) inside a
    transaction; the selector uses this for call-next.
    """
    if not can_transition(entry.status, new_status):
        raise InvalidTransitionError(
            f'cannot move queue entry from {entry.status} to {new_status}',
            current=entry.status, requested=new_status,
        )
    old = entry.status
    entry.status = new_status
    _stamp(entry, new_status, timezone.now())
    if room_number:
        entry.room_number = room_number
    if actor and new_status in (Entry.STATUS_CALLED, Entry.STATUS_IN_PROGRESS):
        entry.serving_staff = actor
    entry.save()
    _record(entry, VisitQueueTransition.FIELD_STATUS, old, new_status, actor, reason)
    return entry


class VisitQueueStore:
    """Department queues of visits for each tenant scope."""

    def get(self, entry_id) -> Entry:
        entry = Entry.objects.filter(pk=entry_id, removed_at__isnull=True).first()
        if not entry:
            raise NotFoundError('queue entry not found', entryId=str(entry_id))
        return entry

    def _locked(self, entry_id) -> Entry:
        entry = Entry.objects.select_for_update().filter(pk=entry_id, removed_at__isnull=True).first()
        if not entry:
            raise NotFoundError('queue entry not found', entryId=str(entry_id))
        return entry

    def active_entry_for(self, tenant_scope: str, patient_id: str, department: str) -> Optional[Entry]:
        return live_entries(tenant_scope).filter(
            patient_id=patient_id, department=department, status__in=Entry.ACTIVE_STATUSES,
        ).first()

    def enqueue(self, tenant_scope: str, patient_id: str, department: str, priority: Optional[int] = None, *,
                service_type: Optional[str] = None, appointment_id: Optional[str] = None,
                notes: Optional[str] = None, actor: Optional[str] = None) -> Entry:
        if not tenant_scope:
            raise ValidationError('tenant scope is required')
        if not patient_id:
            raise ValidationError('patient id is required')
        department = clean_department(department)
        if not department:
            raise ValidationError('department is required')
        if priority is None:
            priority = conf.get('DEFAULT_PRIORITY')
        lo, hi = conf.get('MIN_PRIORITY'), conf.get('MAX_PRIORITY')
        try:
            priority = int(priority)
        except (TypeError, ValueError):
            raise ValidationError('priority must be an integer')
        if not lo <= priority <= hi:
            raise ValidationError(f'priority must be between {lo} and {hi}')

        # numbering and the one-active-entry check share one serialization point
        try:
            with serialized(numbering_key(tenant_scope, department)):
                existing = self.active_entry_for(tenant_scope, patient_id, department)
                if existing:
                    logger.info("Duplicate check-in for %s in %s (entry %s)", patient_id, department, existing.pk)
                    raise DuplicateError('patient is already in the queue', existing_entry_id=existing.pk)
                now = timezone.now()
                entry = Entry.objects.create(
                    tenant_scope=tenant_scope,
                    patient_id=patient_id,
                    appointment_id=appointment_id or None,
                    department=department,
                    service_type=service_type or conf.get('DEFAULT_SERVICE_TYPE'),
                    priority=priority,
                    queue_number=self._next_number(tenant_scope, department, now),
                    stage=conf.get('DEFAULT_STAGE'),
                    status=Entry.STATUS_WAITING,
                    enqueued_at=now,
                    notes=notes or '',
                )
                _record(entry, VisitQueueTransition.FIELD_STATUS, None, Entry.STATUS_WAITING, actor, 'check-in')
        except IntegrityError:
            existing = self.active_entry_for(tenant_scope, patient_id, department)
            raise DuplicateError(
                'patient is already in the queue', existing_entry_id=existing.pk if existing else None,
            )
        logger.info("Enqueued %s in %s as #%s (priority %s)", patient_id, department, entry.queue_number, priority)
        return entry

    def _next_number(self, tenant_scope: str, department: str, now) -> int:
        day = timezone.localtime(now).date()
        start, end = _day_bounds(day)
        agg = Entry.objects.filter(
            tenant_scope=tenant_scope, department=department, enqueued_at__gte=start, enqueued_at__lt=end,
        ).aggregate(n=Max('queue_number'))
        return (agg['n'] or 0) + 1

    def update_status(self, entry_id, new_status: str, room_number: Optional[str] = None, *,
                      actor: Optional[str] = None, reason: str = '') -> Entry:
        if new_status not in STATUS_TRANSITIONS:
            raise ValidationError(f'unknown queue status: {new_status}')
        with transaction.atomic():
            entry = self._locked(entry_id)
            apply_status(entry, new_status, room_number=room_number, actor=actor, reason=reason)
        logger.info("Queue entry %s is now %s", entry.pk, new_status)
        return entry

    def update_stage(self, entry_id, new_stage: str, room_number: Optional[str] = None, *,
                     actor: Optional[str] = None, reason: str = '') -> Entry:
        stages = conf.get('STAGES')
        if new_stage not in stages:
            raise ValidationError(f'unknown stage: {new_stage}', allowed=list(stages))
        with transaction.atomic():
            entry = self._locked(entry_id)
            if entry.status not in Entry.ACTIVE_STATUSES:
                raise InvalidTransitionError(
                    f'cannot change stage of a {entry.status} entry', current=entry.status, requested=new_stage,
                )
            old = entry.stage
            entry.stage = new_stage
            if room_number:
                entry.room_number = room_number
            if actor:
                entry.serving_staff = actor
            entry.save()
            if old != new_stage:
                _record(entry, VisitQueueTransition.FIELD_STAGE, old, new_stage, actor, reason)
        return entry

    def remove(self, entry_id, *, actor: Optional[str] = None) -> None:
        """Take an entry out of every live view; the row stays for audit."""
        with transaction.atomic():
            entry = self._locked(entry_id)
            entry.removed_at = timezone.now()
            entry.save(update_fields=['removed_at'])
            _record(entry, VisitQueueTransition.FIELD_STATUS, entry.status, entry.status, actor, 'removed')
        logger.info("Removed queue entry %s", entry_id)

    def history(self, entry_id) -> list[VisitQueueTransition]:
        return list(VisitQueueTransition.objects.filter(entry_id=entry_id).order_by('timestamp', 'id'))

    def snapshot(self, tenant_scope: str, department: str) -> list[Entry]:
        department = clean_department(department)
        qs = live_entries(tenant_scope).filter(department=department, status__in=Entry.ACTIVE_STATUSES)
        return list(serving_order(qs))

    def waiting(self, tenant_scope: str, department: str):
        department = clean_department(department)
        return serving_order(live_entries(tenant_scope).filter(department=department, status=Entry.STATUS_WAITING))

    def now_serving(self, tenant_scope: str, department: Optional[str] = None) -> list[Entry]:
        qs = live_entries(tenant_scope).filter(status__in=[Entry.STATUS_CALLED, Entry.STATUS_IN_PROGRESS])
        if department:
            qs = qs.filter(department=clean_department(department))
        return list(qs.order_by('-called_at', 'queue_number'))

    def list_entries(self, tenant_scope: str, department: Optional[str] = None, status: Optional[str] = None,
                     day: Optional[date] = None) -> list[Entry]:
        qs = live_entries(tenant_scope)
        if day:
            start, end = _day_bounds(day)
            qs = qs.filter(enqueued_at__gte=start, enqueued_at__lt=end)
        if department:
            qs = qs.filter(department=clean_department(department))
        if status:
            qs = qs.filter(status=status)
        return list(serving_order(qs))

    def stats(self, tenant_scope: str, department: Optional[str] = None, day: Optional[date] = None) -> dict:
        """Queue figures for a department, or the whole tenant scope.

        Waiting, called and in-progress counts cover the live queue
        whenever the entry was enqueued.  Terminal counts and the average
        wait (``called_at - enqueued_at``) cover one day, today by default.
        """
        day = day or timezone.localdate()
        start, end = _day_bounds(day)
        live = live_entries(tenant_scope)
        if department:
            live = live.filter(department=clean_department(department))
        counts = {s: 0 for s in STATUS_TRANSITIONS}
        for status in live.filter(status__in=Entry.ACTIVE_STATUSES).values_list('status', flat=True):
            counts[status] += 1
        for status in live.filter(
            status__in=Entry.TERMINAL_STATUSES, enqueued_at__gte=start, enqueued_at__lt=end,
        ).values_list('status', flat=True):
            counts[status] += 1
        waits = [
            (called_at - enqueued_at).total_seconds()
            for enqueued_at, called_at in live.filter(called_at__gte=start, called_at__lt=end)
            .values_list('enqueued_at', 'called_at')
        ]
        return {
            'date': day.isoformat(),
            'department': clean_department(department) if department else None,
            'waitingCount': counts[Entry.STATUS_WAITING],
            'calledCount': counts[Entry.STATUS_CALLED],
            'inProgressCount': counts[Entry.STATUS_IN_PROGRESS],
            'completedCount': counts[Entry.STATUS_COMPLETED],
            'cancelledCount': counts[Entry.STATUS_CANCELLED],
            'noShowCount': counts[Entry.STATUS_NO_SHOW],
            'total': sum(counts.values()),
            'avgWaitSeconds': round(sum(waits) / len(waits), 1) if waits else None,
        }


def _day_bounds(day: date):
    start = timezone.make_aware(datetime.combine(day, time.min))
    return start, start + timedelta(days=1)


def format_entry(entry: Entry) -> dict:
    return {
        'id': str(entry.pk),
        'tenantScope': entry.tenant_scope,
        'patientId': entry.patient_id,
        'appointmentId': entry.appointment_id,
        'department': entry.department,
        'serviceType': entry.service_type,
        'priority': entry.priority,
        'queueNumber': entry.queue_number,
        'stage': entry.stage,
        'status': entry.status,
        'roomNumber': entry.room_number,
        'servingStaff': entry.serving_staff,
        'enqueuedAt': entry.enqueued_at.isoformat() if entry.enqueued_at else None,
        'calledAt': entry.called_at.isoformat() if entry.called_at else None,
        'startedAt': entry.started_at.isoformat() if entry.started_at else None,
        'completedAt': entry.completed_at.isoformat() if entry.completed_at else None,
        'notes': entry.notes,
    }


def format_transition(t: VisitQueueTransition) -> dict:
    return {
        'field': t.field,
        'from': t.from_value,
        'to': t.to_value,
        'operator': t.operator,
        'timestamp': t.timestamp.strftime('%Y-%m-%d %H:%M:%S'),
        'reason': t.reason,
    }

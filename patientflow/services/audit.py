"""Activity log for patient-flow operations."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from django.db import DatabaseError

from ..models import ActivityEvent

logger = logging.getLogger(__name__)


def log_activity(*, user: Optional[str], activity_type: str, entity_type: Optional[str] = None,
                 entity_id=None, tenant_scope: Optional[str] = None, description: str = '',
                 metadata: Optional[Dict[str, Any]] = None) -> Optional[ActivityEvent]:
    """Persist one activity event.

    The caller's operation has already committed when this runs, so a
    storage failure here is logged and reported as ``None``.
    """
    try:
        return ActivityEvent.objects.create(
            user=user or '',
            tenant_scope=tenant_scope or '',
            activity_type=activity_type,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            description=(description or '')[:255],
            metadata=metadata or {},
        )
    except DatabaseError:
        logger.warning("Could not record activity %s for %s %s", activity_type, entity_type, entity_id, exc_info=True)
        return None


def format_activity(event: ActivityEvent) -> dict:
    return {
        'id': event.id,
        'user': event.user,
        'tenantScope': event.tenant_scope,
        'activityType': event.activity_type,
        'entityType': event.entity_type,
        'entityId': event.entity_id,
        'description': event.description,
        'metadata': event.metadata,
        'createdAt': event.created_at.strftime('%Y-%m-%d %H:%M:%S'),
    }

"""Helpers shared by the patient-flow API views."""
from __future__ import annotations

from typing import Optional

from ..exceptions import ValidationError
from ..services.orchestration import Orchestrator

orchestrator = Orchestrator()


def tenant_scope_for(request) -> str:
    """Tenant scope from the ``X-Tenant-Scope`` header or a ``tenantScope`` parameter."""
    scope = (
        request.headers.get('X-Tenant-Scope')
        or request.query_params.get('tenantScope')
        or (request.data.get('tenantScope') if hasattr(request.data, 'get') else None)
    )
    scope = (scope or '').strip()
    if not scope:
        raise ValidationError('tenant scope is required (X-Tenant-Scope header)')
    return scope


def actor_for(request) -> Optional[str]:
    user = getattr(request, 'user', None)
    if user is None or not getattr(user, 'is_authenticated', False):
        return None
    return user.get_username()


def ok(data, **extra) -> dict:
    return {'ok': True, 'data': data, **extra}

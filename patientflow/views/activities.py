from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import ActivityEvent
from ..services.audit import format_activity
from .common import ok, tenant_scope_for


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_activities(request):
    """Most recent activity events of the tenant scope, newest first."""
    scope = tenant_scope_for(request)
    qs = ActivityEvent.objects.filter(tenant_scope=scope)
    activity_type = request.query_params.get('activityType') or request.query_params.get('activity_type')
    entity_type = request.query_params.get('entityType') or request.query_params.get('entity_type')
    entity_id = request.query_params.get('entityId')
    if activity_type:
        qs = qs.filter(activity_type=activity_type)
    if entity_type:
        qs = qs.filter(entity_type=entity_type)
    if entity_id:
        qs = qs.filter(entity_id=entity_id)
    try:
        limit = max(1, min(int(request.query_params.get('limit', 50)), 200))
    except ValueError:
        limit = 50
    return Response(ok([format_activity(a) for a in qs.order_by('-created_at', '-id')[:limit]]))

"""
ASGI config for the clinicflow project.

Serves HTTP through Django and the display-board WebSocket through
Channels.  Settings must be configured before Django-dependent imports.
"""
import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "clinicflow.settings")

import django  # noqa: E402
django.setup()  # noqa: E402

from django.core.asgi import get_asgi_application  # noqa: E402
from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.auth import AuthMiddlewareStack  # noqa: E402
from django.urls import path  # noqa: E402

from patientflow.realtime.consumers import QueueDisplayConsumer  # noqa: E402

django_asgi_app = get_asgi_application()

websocket_urlpatterns = [
    path("ws/queue/<str:tenant_scope>/<str:department>/", QueueDisplayConsumer.as_asgi()),
]

application = ProtocolTypeRouter({
    "http": django_asgi_app,
    "websocket": AuthMiddlewareStack(URLRouter(websocket_urlpatterns)),
})

import json

from channels.generic.websocket import AsyncWebsocketConsumer

from ..services.realtime import queue_group


class QueueDisplayConsumer(AsyncWebsocketConsumer):
    """Pushes queue changes of one department to its display board."""

    async def connect(self):
        kwargs = self.scope["url_route"]["kwargs"]
        self.department = kwargs["department"]
        self.group = queue_group(kwargs["tenant_scope"], self.department)
        await self.channel_layer.group_add(self.group, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "department": self.department}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(self.group, self.channel_name)

    async def queue_update(self, event):
        # event: {"type": "queue.update", "event": "called", "department": ..., "ts": ..., "data": {...}}
        await self.send(json.dumps(event))

import json
from channels.generic.websocket import AsyncWebsocketConsumer

class UpdatesConsumer(AsyncWebsocketConsumer):
    """Staff dashboards: booking events and cache refresh notices on the ``updates`` group."""
    GROUP = "updates"

    async def connect(self):
        await self.channel_layer.group_add(self.GROUP, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(self.GROUP, self.channel_name)

    async def appointment_event(self, event):
        # {"type": "appointment.event", "event": "whatsapp_booking.created", "ts": "...", "data": {...}}
        await self.send(json.dumps(event))

    async def broadcast_refresh(self, event):
        # {"type": "broadcast.refresh", "version": int, "ts": "...", "keys": [...]}
        await self.send(json.dumps(event))

import json

from channels.generic.websocket import AsyncWebsocketConsumer

from portal.services.notify import session_group


class SessionUpdatesConsumer(AsyncWebsocketConsumer):
    """Pushes session and appointment changes to every client of one identity.

    Close codes: 4001 when the socket is not authenticated.
    """

    async def connect(self):
        user = self.scope.get("user")
        if not (user and getattr(user, "is_authenticated", False)):
            await self.close(code=4001)
            return
        self.group_name = session_group(user.pk)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "userId": user.pk}))

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        # Clients only listen; a ping keeps proxies from closing idle sockets
        if text_data and text_data.strip() == "ping":
            await self.send(json.dumps({"type": "pong"}))

    async def session_changed(self, event):
        # event: {"type": "session.changed", "status", "role", "profile", "ts"}
        await self.send(json.dumps(event))

    async def appointment_changed(self, event):
        await self.send(json.dumps(event))

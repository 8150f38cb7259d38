import json
import logging

from channels.generic.websocket import AsyncWebsocketConsumer

from .notifications import dashboard_group_name

logger = logging.getLogger(__name__)


class DashboardConsumer(AsyncWebsocketConsumer):
    """Read-only feed of refresh snapshots and SOS alerts for coordinators' dashboards."""

    async def connect(self):
        user = self.scope.get("user")
        if user is None or not user.is_authenticated:
            logger.info("Rejected dashboard connection from anonymous user")
            await self.close()
            return

        self.group_name = dashboard_group_name()
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self._push('connection_established', {'group': self.group_name})

    async def disconnect(self, close_code):
        if hasattr(self, 'group_name'):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        # Control goes through the REST API
        await self._push('info', {'detail': 'Read-only channel. Use the REST API to control monitoring.'})

    async def _push(self, message_type, payload):
        await self.send(text_data=json.dumps({'type': message_type, 'payload': payload}))

    # Group message handlers: 'dashboard.snapshot' and 'sos.alert'
    async def dashboard_snapshot(self, event):
        await self._push('snapshot', event['payload'])

    async def sos_alert(self, event):
        await self._push('sos_alert', event['payload'])

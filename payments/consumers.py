# payments/consumers.py

import json
import logging

from channels.generic.websocket import AsyncWebsocketConsumer

from .utils.notifications import notification_group

logger = logging.getLogger(__name__)


class NotificationConsumer(AsyncWebsocketConsumer):
    """Pushes payment and settlement notifications to the owning user."""

    async def connect(self):
        self.user_id = str(self.scope['url_route']['kwargs']['user_id'])
        self.room_group_name = notification_group(self.user_id)

        user = self.scope.get('user')
        if user is None or not user.is_authenticated or str(user.pk) != self.user_id:
            logger.warning(f"Rejected notification socket for user {self.user_id}")
            await self.close()
            return

        await self.channel_layer.group_add(self.room_group_name, self.channel_name)
        await self.accept()
        await self.send(text_data=json.dumps({
            'message': f'Connected to notifications for user {self.user_id}'
        }))

    async def disconnect(self, close_code):
        if hasattr(self, 'room_group_name'):
            await self.channel_layer.group_discard(self.room_group_name, self.channel_name)

    async def send_notification(self, event):
        await self.send(text_data=json.dumps(event['message']))

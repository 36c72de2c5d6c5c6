# payments/utils/notifications.py

import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.utils import timezone

logger = logging.getLogger(__name__)


def notification_group(user_id) -> str:
    return f'notifications_{user_id}'


def send_notification(user_id, notification_type, title, message, related_id=''):
    """
    Save a notification row and push it over the user's websocket group.

    Fire-and-forget: failures are logged, never raised, so a notification
    problem can not undo a payment or settlement that already committed.
    """
    from payments.models import Notification

    try:
        notification = Notification.objects.create(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            related_id=str(related_id or ''),
        )
    except Exception:
        logger.exception(f"Failed to store {notification_type} notification for user {user_id}")
        return None

    channel_layer = get_channel_layer()
    if channel_layer is None:
        return notification

    try:
        async_to_sync(channel_layer.group_send)(
            notification_group(user_id),
            {
                'type': 'send_notification',
                'message': {
                    'id': notification.id,
                    'type': notification_type,
                    'title': title,
                    'text': message,
                    'relatedId': notification.related_id,
                    'timestamp': timezone.now().isoformat(),
                },
            },
        )
    except Exception as e:
        # websocket might not be connected
        logger.warning(f"Websocket push failed for user {user_id}: {e}")

    return notification

"""
ASGI config for onetime_project project.

It exposes the ASGI callable as a module-level variable named `application`.
"""

import os
from django.core.asgi import get_asgi_application
from channels.routing import ProtocolTypeRouter, URLRouter
from channels.auth import AuthMiddlewareStack

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'onetime_project.settings')

# Initialize Django before importing anything that touches models
django_asgi_app = get_asgi_application()

import payments.routing  # noqa: E402

application = ProtocolTypeRouter({
    'http': django_asgi_app,
    'websocket': AuthMiddlewareStack(
        URLRouter(
            payments.routing.websocket_urlpatterns
        )
    ),
})

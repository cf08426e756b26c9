"""
Request-scoped access to the shared WebhookServices container.
"""

from fastapi import Request

from medvoice.webhook.setup import WebhookServices


def get_services(request: Request) -> WebhookServices:
    """The services built by create_app() and stored on app.state."""
    return request.app.state.services

"""ASGI application."""

from staybook.api.factory import create_app

app = create_app()

"""HTTP route layer -- FastAPI application and JSON API routes."""

from metalproxy.api.app import create_app

__all__ = ["create_app"]

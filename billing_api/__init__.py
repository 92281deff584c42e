"""FastAPI surface of the billing engine."""

from billing_api.app import create_app

__all__ = ["create_app"]

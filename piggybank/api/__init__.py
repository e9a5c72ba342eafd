"""HTTP API package."""

from piggybank.api.app import create_app

__all__ = ["create_app"]

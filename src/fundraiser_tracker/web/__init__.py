"""Starlette JSON API over the order store (dashboard, order list, order form)."""

from .app import create_app

__all__ = ["create_app"]

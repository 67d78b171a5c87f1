"""Shipment tracking backend: admin-maintained shipment status with public lookup."""

from tracker.web import create_app

__version__ = "1.0.0"

__all__ = ["create_app", "__version__"]

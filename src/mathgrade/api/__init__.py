"""HTTP surface for the processing queue."""

from mathgrade.api.app import create_app

__all__ = ['create_app']

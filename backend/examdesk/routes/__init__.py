"""HTTP routes."""

from .exam_routes import create_exam_routes
from .import_routes import create_import_routes

__all__ = ["create_exam_routes", "create_import_routes"]

"""Route blueprints for the web application."""

from .modules import modules_bp, jobs_bp
from .settings import settings_bp

__all__ = [
    "modules_bp",
    "jobs_bp",
    "settings_bp",
]

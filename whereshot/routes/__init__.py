"""Flask routes package."""
from whereshot.routes.api import api_bp

__all__ = ['api_bp']

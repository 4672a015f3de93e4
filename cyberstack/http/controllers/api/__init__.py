"""
API Controller Package
----------------------
JSON endpoints of the portfolio backend:
- views: Per-slug view counter with visitor deduplication.
- chats: Chat transcript logging and browsing.
- agent: Assistant context and hybrid chat replies.
- repositories: GitHub repository listing and details.
- models: Local model status, switching, capability probe and translation.
"""

from flask import Blueprint, current_app

# Create the Blueprint shared by all sub-modules
api_bp = Blueprint('api', __name__)


def get_service(name):
    """Looks up a service registered on the app by create_app()."""
    return current_app.extensions[name]


# Import sub-modules to register routes
from . import views
from . import chats
from . import agent
from . import repositories
from . import models

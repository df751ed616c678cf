"""
Sub commands of the docker-queue CLI
"""

from .serve import serve_app
from .config import config_app

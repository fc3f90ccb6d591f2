# Lookup API
from teletext_mirror.api.app import create_app

__all__ = ["create_app"]

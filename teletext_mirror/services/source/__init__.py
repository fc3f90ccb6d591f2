# Yle teletext source service
from teletext_mirror.services.source.client import TeletextClient

__all__ = ["TeletextClient"]

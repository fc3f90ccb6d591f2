# Updater service
from teletext_mirror.services.updater.sync import TeletextUpdater

__all__ = ["TeletextUpdater"]

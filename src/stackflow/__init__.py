"""stackflow - resumable sign-in dialogs for chat bots."""

from .app import StackflowApp
from .config import Settings, get_settings
from .types import TurnResult

__version__ = "0.1.0"

__all__ = ["Settings", "StackflowApp", "TurnResult", "get_settings"]

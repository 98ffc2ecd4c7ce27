"""
User interaction for Site Updater.
"""

from .console import ConsoleUI
from .progress_display import TransferProgress

__all__ = [
    "ConsoleUI",
    "TransferProgress",
]

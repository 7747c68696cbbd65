"""tvrenamer Qt integration."""
from .worker import RenameWorker

__all__ = [
    "RenameWorker",
]

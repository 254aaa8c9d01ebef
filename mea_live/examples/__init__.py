"""MEA Live examples module."""

from .record_live import main as record_main, main_sync as record_main_sync

__all__ = ["record_main", "record_main_sync"]

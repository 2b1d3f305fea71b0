"""Database models"""

from .show import Show

__all__ = ["Show"]

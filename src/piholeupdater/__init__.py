"""
PiholeUpdater - Safe update orchestration for Pi-hole + Unbound + Redis stacks
"""

__version__ = "1.0.0"

from .core import StackUpdater, UpdaterError

__all__ = ["StackUpdater", "UpdaterError"]

"""
Database models package.
"""

from .user import User
from .thread import Thread

__all__ = ["User", "Thread"]

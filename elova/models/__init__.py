"""Elova database models."""

from .base import Base
from .provider import Provider
from .workflow import Workflow
from .execution import Execution
from .sync_log import SyncLog

__all__ = [
    "Base",
    "Provider",
    "Workflow",
    "Execution",
    "SyncLog",
]

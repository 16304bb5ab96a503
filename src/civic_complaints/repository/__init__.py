"""Repository layer for draft persistence."""

from .base import DraftRepository
from .local import LocalDraftRepository, MemoryDraftRepository

__all__ = [
    "DraftRepository",
    "LocalDraftRepository",
    "MemoryDraftRepository",
]

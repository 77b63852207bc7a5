"""Persistence: repository interface and the in-memory store."""

from tradesim.storage.memory import InMemoryRepository
from tradesim.storage.repository import Repository


__all__ = [
    "InMemoryRepository",
    "Repository",
]

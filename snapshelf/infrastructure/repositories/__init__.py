# Repository Pattern Implementation
"""
Repositories abstract database operations.
The shared media index keeps its records, URI grants and consent
requests behind MediaRepository.
"""
from .base import AsyncRepository
from .media_repository import MediaRepository

__all__ = [
    "AsyncRepository",
    "MediaRepository",
]

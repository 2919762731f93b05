"""Async database infrastructure.

This module provides async database connectivity using aiosqlite.
"""
from .connection import connect, init_schema

__all__ = [
    'connect',
    'init_schema',
]

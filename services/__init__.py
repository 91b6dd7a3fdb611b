"""
Services layer for the vault retrieval service.

This module contains the background services:
- RetrievalService: Runs retrievals on a background event loop
- RetrievalResultStore: Thread-safe hand-off of results and content

Thread Model:
    Main Thread (Flask)
    └── RetrievalLoop thread (one asyncio loop, one task per retrieval)
"""

from .retrieval_service import RetrievalService, RetrievalResultStore

__all__ = [
    "RetrievalService",
    "RetrievalResultStore",
]

"""
Configuration commune des tests : document store en mémoire, pas de Redis.
"""
import os

os.environ.setdefault("DOCUMENT_STORE_BACKEND", "memory")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest

from app.core.document_store import InMemoryDocumentStore


@pytest.fixture
def store():
    return InMemoryDocumentStore()

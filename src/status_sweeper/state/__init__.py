"""
Durable document storage for the status sweeper.

This package provides an abstract document store with pluggable backends
used for entity records and the sweep checkpoint.
"""

from .manager import (
    DocumentStore,
    DocumentStoreFactory,
    InMemoryDocumentStore,
    JsonFileDocumentStore,
)

__all__ = [
    "DocumentStore",
    "DocumentStoreFactory",
    "InMemoryDocumentStore",
    "JsonFileDocumentStore",
]

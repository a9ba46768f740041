"""
Store Module

CouchDB adapter for the primary (canonical) and listing (board index) stores.
"""

from spriteib.store.couch import CouchClient, CouchDatabase, DocumentRef, ViewRow
from spriteib.store.port import ContentStore
from spriteib.store.views import ensure_views

__all__ = [
    "ContentStore",
    "CouchClient",
    "CouchDatabase",
    "DocumentRef",
    "ViewRow",
    "ensure_views",
]

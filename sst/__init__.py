"""
SST: idempotent ingest of promise documents into a content store.

Creates or updates a main post, resolves the posts, terms and media it
references, and substitutes placeholder tokens once everything is known.
"""

__version__ = "0.1.0"
__author__ = "SST Project"

# Import main components
from .database import ContentStore, DatabaseManager
from .media import MediaFetcher, HttpMediaFetcher, MockMediaFetcher
from .models import Request, Reference, ReferenceArgs, ResponseObject, Post, Term
from .engine import RequestCoordinator
from .hooks import SSTHooks
from .errors import SSTError

__all__ = [
    "ContentStore",
    "DatabaseManager",
    "MediaFetcher",
    "HttpMediaFetcher",
    "MockMediaFetcher",
    "Request",
    "Reference",
    "ReferenceArgs",
    "ResponseObject",
    "Post",
    "Term",
    "RequestCoordinator",
    "SSTHooks",
    "SSTError"
]

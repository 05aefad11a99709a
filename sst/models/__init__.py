"""Data models for SST."""

from .objects import Post, Term
from .request import Request, Reference, ReferenceArgs
from .response import ResponseObject, PostEntry, TermEntry

__all__ = [
    "Post",
    "Term",
    "Request",
    "Reference",
    "ReferenceArgs",
    "ResponseObject",
    "PostEntry",
    "TermEntry"
]

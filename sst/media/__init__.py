"""Media fetchers for attachment references."""

from .base import MediaFetcher
from .http import HttpMediaFetcher
from .mock import MockMediaFetcher

__all__ = ["MediaFetcher", "HttpMediaFetcher", "MockMediaFetcher"]

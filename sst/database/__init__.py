"""Content store for SST."""

from .base import ContentStore, OVERWRITE, REPLACE_LIST
from .manager import DatabaseManager, slugify

__all__ = ["ContentStore", "DatabaseManager", "OVERWRITE", "REPLACE_LIST", "slugify"]

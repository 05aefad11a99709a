"""
Metadata application for SST.

Writes flat and nested meta maps to posts and terms, resolving placeholder
tokens in string values first.
"""

from typing import Any, Dict, Optional

from ..database import ContentStore, OVERWRITE, REPLACE_LIST
from ..hooks import MetaFilter
from .context import ResolvedReferenceTable
from .tokens import PlaceholderResolver


class MetadataApplier:
    """
    Applies metadata to a target object.
    """
    
    def __init__(self, store: ContentStore, token_resolver: PlaceholderResolver,
                 meta_filter: Optional[MetaFilter] = None):
        """
        Initialize the applier.
        
        Args:
            store: Content store receiving the meta
            token_resolver: Resolver used on string values
            meta_filter: Optional pre-save filters
        """
        self.store = store
        self.token_resolver = token_resolver
        self.meta_filter = meta_filter or MetaFilter()
    
    def apply(self, object_kind: str, object_id: int,
              meta: Optional[Dict[str, Any]],
              nested_meta: Optional[Dict[str, Any]],
              table: ResolvedReferenceTable) -> bool:
        """
        Write flat and nested meta to an object.
        
        A list value in the flat map replaces every stored value for its key;
        a scalar overwrites the single stored value. Each top-level key of the
        nested map is stored as one entry holding the whole structure.
        
        Args:
            object_kind: "post" or "term"
            object_id: Local ID of the object
            meta: Flat meta map
            nested_meta: Nested meta map
            table: Resolved references used for token substitution
            
        Returns:
            True if anything was written, False if both maps were empty
        """
        meta = self.meta_filter.filter_meta(object_kind, object_id, dict(meta or {})) or {}
        nested_meta = self.meta_filter.filter_nested_meta(object_kind, object_id, dict(nested_meta or {})) or {}
        
        if not meta and not nested_meta:
            return False
        
        for key, values in meta.items():
            if isinstance(values, list):
                self.store.set_meta(
                    object_kind, object_id, key,
                    [self._resolve_scalar(value, table, key) for value in values],
                    REPLACE_LIST
                )
            else:
                self.store.set_meta(
                    object_kind, object_id, key,
                    self._resolve_scalar(values, table, key),
                    OVERWRITE
                )
        
        for key, structure in nested_meta.items():
            self.store.set_meta(
                object_kind, object_id, key,
                self._resolve_nested(structure, table, key),
                OVERWRITE
            )
        
        return True
    
    def _resolve_scalar(self, value: Any, table: ResolvedReferenceTable, context: str) -> Any:
        if not isinstance(value, str):
            return value
        resolved = self.token_resolver.resolve(value, table, context)
        return value if resolved is None else resolved
    
    def _resolve_nested(self, value: Any, table: ResolvedReferenceTable, path: str) -> Any:
        """Walk a nested structure, resolving tokens in string leaves."""
        if isinstance(value, dict):
            return {
                key: self._resolve_nested(item, table, f"{path}.{key}")
                for key, item in value.items()
            }
        if isinstance(value, list):
            return [
                self._resolve_nested(item, table, f"{path}.{index}")
                for index, item in enumerate(value)
            ]
        return self._resolve_scalar(value, table, path)

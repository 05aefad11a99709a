"""
Per-request state for SST.

A RequestContext is created at the start of a create or update and discarded
at the end. Nothing in it outlives the request.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Tuple, Union

from ..models import Post, Term, ResponseObject


@dataclass
class ResolvedObject:
    """
    Handle to an object created or reused for a reference.
    """
    local_id: int
    obj: Union[Post, Term]
    source_id: Optional[str] = None

    @property
    def kind(self) -> str:
        """Either "post" or "term"."""
        return "term" if isinstance(self.obj, Term) else "post"

    @property
    def is_attachment(self) -> bool:
        return isinstance(self.obj, Post) and self.obj.post_type == "attachment"


class ResolvedReferenceTable:
    """
    Maps upstream source IDs to the objects resolved for them.

    Entries are write-once: recording a key that is already present keeps
    the first handle.
    """

    def __init__(self):
        self._entries: Dict[str, ResolvedObject] = {}

    def get(self, source_id: Optional[str]) -> Optional[ResolvedObject]:
        if source_id is None:
            return None
        return self._entries.get(source_id)

    def record(self, source_id: str, resolved: ResolvedObject) -> ResolvedObject:
        """
        Record a resolved object under a source ID.

        Args:
            source_id: The lookup key
            resolved: The handle to store

        Returns:
            The handle stored under the key (the earlier one if already present)
        """
        existing = self._entries.get(source_id)
        if existing is not None:
            logging.debug(f"Source ID {source_id} already resolved to {existing.local_id}")
            return existing
        self._entries[source_id] = resolved
        return resolved

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def items(self) -> Iterator[Tuple[str, ResolvedObject]]:
        return iter(self._entries.items())


@dataclass
class RequestContext:
    """
    State shared by every component while one request is processed.
    """
    main_id: Optional[int] = None
    table: ResolvedReferenceTable = field(default_factory=ResolvedReferenceTable)
    response: ResponseObject = field(default_factory=ResponseObject)

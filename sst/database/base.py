"""
Base content store interface for SST.

This module defines the abstract interface the ingest core uses to read and
write posts, terms and their meta.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..models import Post, Term


OVERWRITE = "overwrite"
REPLACE_LIST = "replace_list"


class ContentStore(ABC):
    """
    Abstract base class for content stores.

    The store is shared mutable state across concurrent requests. The ingest
    core relies on ``find_by_upstream_id`` followed by ``create`` behaving as
    closely to an atomic create-if-absent as the backend allows; two requests
    introducing the same upstream ID at the same moment may otherwise both
    create an object.
    """

    @abstractmethod
    def find_by_upstream_id(self, kind: str, upstream_id: str) -> Optional[Post]:
        """
        Find the most recent object of a given type tagged with an upstream ID.

        Args:
            kind: Post type to search
            upstream_id: Value of the object's sst_source_id meta

        Returns:
            The matching post, or None
        """
        pass

    @abstractmethod
    def create(self, kind: str, fields: Dict[str, Any]) -> Post:
        """
        Create a new object.

        Raises:
            StoreError: If the store rejects the object
        """
        pass

    @abstractmethod
    def update(self, object_id: int, fields: Dict[str, Any]) -> Post:
        """
        Update fields of an existing object.

        Raises:
            NotFoundError: If the object does not exist
            StoreError: If the store rejects the update
        """
        pass

    @abstractmethod
    def get(self, object_id: int) -> Optional[Post]:
        """Get an object by local ID."""
        pass

    @abstractmethod
    def set_meta(self, object_kind: str, object_id: int, key: str, values: Any,
                 mode: str = OVERWRITE) -> None:
        """
        Write a meta value.

        Args:
            object_kind: "post" or "term"
            object_id: Local ID of the post or term
            key: Meta key
            values: A single value (overwrite) or list of values (replace_list)
            mode: OVERWRITE or REPLACE_LIST
        """
        pass

    @abstractmethod
    def get_meta(self, object_kind: str, object_id: int, key: str, single: bool = True) -> Any:
        """
        Read a meta value.

        Returns:
            The first stored value (or None) when ``single``, else a list of all values
        """
        pass

    @abstractmethod
    def create_term(self, name: str, taxonomy: str, args: Optional[Dict[str, Any]] = None) -> Term:
        """
        Create a term.

        Raises:
            TermExistsError: If an equivalent term already exists
            StoreError: If the taxonomy is unknown or the term is invalid
        """
        pass

    @abstractmethod
    def get_term(self, term_id: int) -> Optional[Term]:
        """Get a term by ID."""
        pass

    @abstractmethod
    def attach_term(self, object_id: int, term_id: int, taxonomy: str) -> None:
        """Add a term to an object, keeping existing assignments."""
        pass

    @abstractmethod
    def set_object_terms(self, object_id: int, term_ids: List[int], taxonomy: str) -> None:
        """Replace an object's terms in a taxonomy."""
        pass

    @abstractmethod
    def get_object_terms(self, object_id: int, taxonomy: str) -> List[Term]:
        """List the terms assigned to an object in a taxonomy."""
        pass

    @abstractmethod
    def canonical_url(self, object_id: int) -> str:
        """Get the permalink of an object."""
        pass

    @abstractmethod
    def term_url(self, term_id: int) -> str:
        """Get the archive URL of a term."""
        pass

    @abstractmethod
    def is_image(self, object_id: int) -> bool:
        """Whether the object is an attachment holding an image."""
        pass

    @abstractmethod
    def image_url(self, object_id: int, size: str = "full") -> str:
        """Get the URL of an image attachment rendered at a named size."""
        pass

    @abstractmethod
    def file_url(self, object_id: int) -> str:
        """Get the URL of an attachment's stored file."""
        pass

    @abstractmethod
    def post_type_exists(self, post_type: str) -> bool:
        """Whether a post type is registered."""
        pass

    @abstractmethod
    def taxonomy_exists(self, taxonomy: str) -> bool:
        """Whether a taxonomy is registered."""
        pass

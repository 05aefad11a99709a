"""
Request models for SST.

This module defines the structure of an ingest request: the main object's
fields, its metadata and the ordered list of references to resolve.
"""

from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field, field_validator


SCALAR_TYPES = (str, int, float, bool)


def validate_flat_meta(values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check that a flat meta map only holds scalars or lists of scalars.
    
    Args:
        values: The meta map to check
        
    Returns:
        The unchanged meta map
        
    Raises:
        ValueError: If a key or value has an unsupported shape
    """
    for meta_key, meta_value in values.items():
        if not isinstance(meta_key, str):
            raise ValueError(f"Invalid meta key {meta_key}. Meta keys must be strings.")
        if isinstance(meta_value, list):
            for individual_value in meta_value:
                if not isinstance(individual_value, SCALAR_TYPES):
                    raise ValueError(
                        f"Invalid meta value for key {meta_key}. "
                        "Meta values within arrays must be scalar values."
                    )
        elif not isinstance(meta_value, SCALAR_TYPES):
            raise ValueError(
                f"Invalid meta value for key {meta_key}. "
                "Meta values must either be numeric arrays or scalar values."
            )
    return values


class ReferenceArgs(BaseModel):
    """
    Arguments used to find or create a referenced object.
    
    The same shape describes an inline term parent, which is why it may carry
    its own ``sst_source_id`` and ``parent``.
    """
    
    url: Optional[str] = Field(
        None,
        description="The URL for an attachment, if this reference is an attachment"
    )
    
    title: Optional[str] = Field(
        None,
        description="Title of the post, or name of the term"
    )
    
    parent: Optional[Union[int, 'ReferenceArgs']] = Field(
        None,
        description="Parent object: a resolved local ID or an inline term reference"
    )
    
    slug: Optional[str] = None
    
    status: Optional[str] = Field(
        None,
        description="Status for a referenced post (defaults to the configured status on create)"
    )
    
    description: Optional[str] = Field(
        None,
        description="Term description, or attachment description (alt text fallback)"
    )
    
    sst_source_id: Optional[str] = Field(
        None,
        description="Upstream source ID of an inline parent"
    )
    
    meta: Dict[str, Any] = Field(
        default_factory=dict,
        description="Flat meta to add to the posts or terms created"
    )
    
    nested_meta: Dict[str, Any] = Field(
        default_factory=dict,
        alias="nestedMeta",
        description="Nested meta stored verbatim under each top-level key"
    )
    
    class Config:
        """Pydantic configuration."""
        populate_by_name = True
    
    @field_validator("meta")
    @classmethod
    def _check_meta(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        return validate_flat_meta(value)


class Reference(BaseModel):
    """
    One entry in a request's reference list.
    
    ``type`` and ``subtype`` are kept as free strings: combinations that do
    not route to a resolver are reported as per-reference errors rather than
    rejecting the whole request.
    """
    
    type: str = Field(
        ...,
        description="The object type: post or term"
    )
    
    subtype: str = Field(
        ...,
        description="The object subtype (post type or taxonomy)"
    )
    
    sst_source_id: Optional[str] = Field(
        None,
        description="The original source ID"
    )
    
    args: ReferenceArgs = Field(
        default_factory=ReferenceArgs,
        description="Arguments for creating the reference"
    )
    
    save_to_meta: Optional[str] = Field(
        None,
        description="Meta key on the main object that receives the resolved local ID"
    )
    
    id: Optional[int] = Field(
        None,
        description="Known local ID to update in place"
    )
    
    @property
    def is_attachment(self) -> bool:
        """Whether this reference selects file-download handling."""
        return self.type == "post" and self.subtype == "attachment"


class Request(BaseModel):
    """
    An ingest request ("promise" document) for one main object.
    
    Extra top-level keys are kept; keys naming a registered taxonomy and
    holding a list of term ids assign those terms to the main object.
    """
    
    id: Optional[int] = None
    
    type: Optional[str] = Field(
        None,
        description="Type of Post for the object"
    )
    
    title: Optional[str] = None
    
    content: Optional[str] = None
    
    excerpt: Optional[str] = None
    
    status: Optional[str] = None
    
    slug: Optional[str] = None
    
    date: Optional[str] = None
    
    date_gmt: Optional[str] = None
    
    author: Optional[int] = None
    
    parent: Optional[int] = None
    
    menu_order: Optional[int] = None
    
    meta: Dict[str, Any] = Field(
        default_factory=dict,
        description="Flat meta fields"
    )
    
    nested_meta: Dict[str, Any] = Field(
        default_factory=dict,
        alias="nestedMeta",
        description="Nested meta fields"
    )
    
    references: List[Reference] = Field(
        default_factory=list,
        description="References to resolve, in order"
    )
    
    class Config:
        """Pydantic configuration."""
        extra = "allow"
        populate_by_name = True
    
    @field_validator("meta")
    @classmethod
    def _check_meta(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        return validate_flat_meta(value)
    
    @property
    def source_id(self) -> Optional[str]:
        """The main object's upstream source ID, if any."""
        value = self.meta.get("sst_source_id")
        return str(value) if value not in (None, "") else None
    
    def post_fields(self) -> Dict[str, Any]:
        """
        Get the fields passed to the content store for the main object.
        
        Returns:
            Dictionary of the store fields that were supplied
        """
        names = [
            "title", "content", "excerpt", "status", "slug",
            "date", "date_gmt", "author", "parent", "menu_order"
        ]
        return {
            name: getattr(self, name)
            for name in names
            if getattr(self, name) is not None
        }
    
    def term_assignments(self) -> Dict[str, List[int]]:
        """
        Get extra top-level keys that look like taxonomy term id lists.
        
        Returns:
            Mapping of key to list of term ids
        """
        assignments = {}
        for key, value in (self.model_extra or {}).items():
            if isinstance(value, list) and all(
                isinstance(item, int) and not isinstance(item, bool) for item in value
            ):
                assignments[key] = value
        return assignments


# Enable forward references for self-referencing model
ReferenceArgs.model_rebuild()

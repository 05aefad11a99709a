"""
Content object models for SST.

These are the objects the content store hands back: posts (including
attachments) and taxonomy terms.
"""

from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class Post(BaseModel):
    """
    A post-like content object. Attachments are posts of type "attachment".
    """
    
    id: int = Field(
        ...,
        description="Local ID assigned by the content store"
    )
    
    post_type: str = Field(
        ...,
        description="The object type (post, page, attachment, ...)"
    )
    
    title: str = Field(
        default="",
        description="The object title"
    )
    
    content: str = Field(
        default="",
        description="The body content"
    )
    
    excerpt: str = Field(
        default=""
    )
    
    status: str = Field(
        default="draft",
        description="A named status (publish, draft, inherit, ...)"
    )
    
    slug: Optional[str] = None
    
    parent: Optional[int] = Field(
        None,
        description="Local ID of the parent object"
    )
    
    author: Optional[int] = None
    
    menu_order: int = 0
    
    date: Optional[str] = Field(
        None,
        description="Publish date in the site's timezone"
    )
    
    date_gmt: Optional[str] = None
    
    mime_type: Optional[str] = Field(
        None,
        description="MIME type of the stored file (attachments only)"
    )
    
    file_path: Optional[str] = Field(
        None,
        description="Path of the stored file relative to the upload directory (attachments only)"
    )
    
    modified_at: Optional[datetime] = None


class Term(BaseModel):
    """
    A taxonomy term.
    """
    
    term_id: int = Field(
        ...,
        description="Local ID assigned by the content store"
    )
    
    name: str = Field(
        ...,
        description="Display name of the term"
    )
    
    slug: str = Field(
        ...,
        description="URL-safe identifier, unique within the taxonomy"
    )
    
    taxonomy: str = Field(
        ...,
        description="The taxonomy the term belongs to"
    )
    
    description: str = ""
    
    parent: int = Field(
        0,
        description="term_id of the parent term, 0 for top-level terms"
    )

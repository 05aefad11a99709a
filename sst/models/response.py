"""
Response models for SST.

The response lists every object touched while handling a request, plus the
non-fatal errors collected along the way.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from .objects import Post, Term


class PostEntry(BaseModel):
    """A post created or reused during a request."""
    
    post_id: int
    post_type: str
    sst_source_id: Optional[str] = None


class TermEntry(BaseModel):
    """A term created or reused during a request."""
    
    term_id: int
    taxonomy: str
    name: str
    slug: str


class ResponseObject(BaseModel):
    """
    The assembled result of a create or update request.
    """
    
    posts: List[PostEntry] = Field(
        default_factory=list,
        description="Posts that were created or updated during the request"
    )
    
    terms: List[TermEntry] = Field(
        default_factory=list,
        description="Terms that were created or updated during the request"
    )
    
    errors: List[str] = Field(
        default_factory=list,
        description="Non-fatal errors, one per failed reference"
    )
    
    status: int = Field(
        201,
        exclude=True,
        description="HTTP-style status of the response"
    )
    
    def add_post(self, post: Post, sst_source_id: Optional[str] = None, first: bool = False) -> None:
        """
        Add a post to the response.
        
        Args:
            post: The post to add
            sst_source_id: Upstream source ID stored on the post
            first: Prepend instead of append
        """
        entry = PostEntry(post_id=post.id, post_type=post.post_type, sst_source_id=sst_source_id)
        if first:
            self.posts.insert(0, entry)
        else:
            self.posts.append(entry)
    
    def add_term(self, term: Term) -> None:
        """Add a term to the response."""
        self.terms.append(TermEntry(
            term_id=term.term_id,
            taxonomy=term.taxonomy,
            name=term.name,
            slug=term.slug
        ))
    
    def to_wire(self) -> Dict[str, Any]:
        """Render the JSON body sent back to the caller."""
        return self.model_dump()

"""
Extension points for SST.

Behaviour that callers may want to override is exposed through small
interfaces injected into the components at construction time. Every method
has a pass-through default, so subclasses only override what they need.
"""

from typing import TYPE_CHECKING, Any, Dict, Optional, Union

from .errors import SSTError
from .models import Post, Request, Reference, ResponseObject

if TYPE_CHECKING:
    from .engine.context import RequestContext, ResolvedObject

    Outcome = Union[ResolvedObject, SSTError]


class ReferenceInterceptor:
    """
    Hooks around the resolution of each reference.
    """

    def before(self, reference: Reference, index: int,
               context: "RequestContext") -> Optional["Outcome"]:
        """
        Called before a reference is dispatched to its resolver.

        Returning anything other than None skips the resolver and is used as
        the outcome. Returning an SSTError records a non-fatal error.
        """
        return None

    def after(self, reference: Reference, outcome: "Outcome",
              context: "RequestContext") -> "Outcome":
        """Called with the resolver's outcome; may transform or replace it."""
        return outcome

    def complete(self, reference: Reference, outcome: "Outcome",
                 context: "RequestContext") -> None:
        """Called once per reference with the final outcome, success or failure."""
        pass

    def pre_resolve_post(self, reference: Reference,
                         context: "RequestContext") -> Optional[Union[Post, SSTError]]:
        """
        Supply an existing post or attachment for a reference.

        Called by the post and attachment resolvers after their cache and
        lookup checks, before anything is created.
        """
        return None


class MetaFilter:
    """
    Pre-save filters for metadata payloads.

    ``object_kind`` is "post" or "term", so posts and terms can be filtered
    independently.
    """

    def filter_meta(self, object_kind: str, object_id: int,
                    meta: Dict[str, Any]) -> Dict[str, Any]:
        """Filter a flat meta map before it is written."""
        return meta

    def filter_nested_meta(self, object_kind: str, object_id: int,
                           nested_meta: Dict[str, Any]) -> Dict[str, Any]:
        """Filter a nested meta map before it is written."""
        return nested_meta


class TokenExtension:
    """
    Extensions to placeholder token resolution.
    """

    def image_size(self, size: str, local_id: int, context: str) -> str:
        """Rewrite the image size chosen for a "to url" token."""
        return size

    def resolve_instruction(self, result: str, instruction: str, local_id: int,
                            context: str) -> Optional[str]:
        """
        Resolve an instruction other than "to id" and "to url".

        Args:
            result: The substitution so far ("" by default)
            instruction: The instruction segment of the token
            local_id: Local ID the token's source ID resolved to
            context: Where the token was found (e.g. "content" or a meta key path)

        Returns:
            The substitution text
        """
        return result


class RequestFilter:
    """
    Hooks that can answer a whole request before anything is written.
    """

    def pre_create(self, request: Request) -> Optional[ResponseObject]:
        """Return a response to short-circuit a create request."""
        return None

    def pre_update(self, post_id: int, request: Request) -> Optional[ResponseObject]:
        """Return a response to short-circuit an update request."""
        return None


class SSTHooks(ReferenceInterceptor, MetaFilter, TokenExtension, RequestFilter):
    """
    All extension points in one object, for callers that override several.
    """
    pass

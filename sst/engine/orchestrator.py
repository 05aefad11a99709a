"""
Reference orchestration for SST.

Processes a request's references in order, routing each to its resolver
and collecting results. A failing reference is recorded and skipped; it
never stops the remaining references.
"""

import logging
from typing import List, Optional, Union

from ..database import ContentStore, OVERWRITE
from ..errors import ReferenceResolutionError, SSTError
from ..hooks import ReferenceInterceptor
from ..models import Post, Reference, Term
from .context import RequestContext, ResolvedObject
from .resolvers import AttachmentResolver, BaseResolver, PostResolver, TermResolver, SOURCE_ID_META_KEY


Outcome = Union[ResolvedObject, SSTError]


class ReferenceOrchestrator:
    """
    Runs every reference of a request through the matching resolver.
    """
    
    def __init__(self, store: ContentStore,
                 attachment_resolver: AttachmentResolver,
                 post_resolver: PostResolver,
                 term_resolver: TermResolver,
                 interceptor: Optional[ReferenceInterceptor] = None):
        """
        Initialize the orchestrator.
        
        Args:
            store: Content store (used for save_to_meta and response entries)
            attachment_resolver: Resolver for post/attachment references
            post_resolver: Resolver for other post references
            term_resolver: Resolver for term references
            interceptor: Optional before/after/complete hooks
        """
        self.store = store
        self.attachment_resolver = attachment_resolver
        self.post_resolver = post_resolver
        self.term_resolver = term_resolver
        self.interceptor = interceptor or ReferenceInterceptor()
    
    def run(self, references: List[Reference], context: RequestContext) -> RequestContext:
        """
        Process references in order.
        
        Successful references are added to ``context.response``; failures are
        appended to ``context.response.errors`` with their index.
        
        Args:
            references: The request's references
            context: The request context (main object ID, table, response)
            
        Returns:
            The same context, updated
        """
        for index, reference in enumerate(references):
            outcome = self._process(index, reference, context)
            
            if isinstance(outcome, SSTError):
                message = f"Reference {index} ({reference.type}/{reference.subtype}): {outcome.message}"
                context.response.errors.append(message)
                logging.warning(message)
                continue
            
            self._add_to_response(outcome, context)
            
            if reference.save_to_meta and context.main_id:
                self.store.set_meta("post", context.main_id, reference.save_to_meta, outcome.local_id, OVERWRITE)
        
        return context
    
    def _process(self, index: int, reference: Reference, context: RequestContext) -> Outcome:
        try:
            outcome = self.interceptor.before(reference, index, context)
            if outcome is None:
                outcome = self._dispatch(reference, context)
            outcome = self._normalize(outcome)
        except SSTError as e:
            outcome = e
        except Exception as e:
            outcome = self._unexpected(index, e)
        
        try:
            outcome = self._normalize(self.interceptor.after(reference, outcome, context))
        except SSTError as e:
            outcome = e
        except Exception as e:
            outcome = self._unexpected(index, e)
        
        try:
            self.interceptor.complete(reference, outcome, context)
        except Exception as e:
            outcome = self._unexpected(index, e)
        return outcome
    
    def _unexpected(self, index: int, error: Exception) -> SSTError:
        logging.exception(f"Unexpected error resolving reference {index}")
        return SSTError("unexpected-error", f"Unexpected error: {error}", status=500)
    
    def _route(self, reference: Reference) -> Optional[BaseResolver]:
        if reference.type == "post":
            if reference.subtype == "attachment":
                return self.attachment_resolver
            return self.post_resolver
        if reference.type == "term":
            return self.term_resolver
        return None
    
    def _dispatch(self, reference: Reference, context: RequestContext) -> ResolvedObject:
        resolver = self._route(reference)
        if resolver is None or not reference.subtype:
            raise ReferenceResolutionError(
                "invalid-reference",
                f"Unsupported reference type `{reference.type}` / subtype `{reference.subtype}`."
            )
        return resolver.resolve(reference, context)
    
    def _normalize(self, outcome) -> Outcome:
        """Accept bare posts and terms from hooks by wrapping them in a handle."""
        if isinstance(outcome, Post):
            return ResolvedObject(local_id=outcome.id, obj=outcome)
        if isinstance(outcome, Term):
            return ResolvedObject(local_id=outcome.term_id, obj=outcome)
        if isinstance(outcome, (ResolvedObject, SSTError)):
            return outcome
        raise SSTError("invalid-outcome", f"Unexpected reference outcome: {outcome!r}", status=500)
    
    def _add_to_response(self, resolved: ResolvedObject, context: RequestContext) -> None:
        if isinstance(resolved.obj, Term):
            context.response.add_term(resolved.obj)
        else:
            source_id = self.store.get_meta("post", resolved.local_id, SOURCE_ID_META_KEY)
            if source_id is None:
                source_id = resolved.source_id
            context.response.add_post(resolved.obj, str(source_id) if source_id is not None else None)

"""
Request coordination for SST.

The coordinator runs the create and update flows end to end:

    validate -> upsert main object -> resolve references
             -> substitute tokens in body content -> apply main meta
             -> assemble response

Validation errors and content-store errors on the main object abort the
request before any reference is processed. Reference errors are collected
into the response instead.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..config import config
from ..database import ContentStore
from ..errors import NotFoundError, RequestValidationError
from ..hooks import SSTHooks
from ..media import HttpMediaFetcher, MediaFetcher
from ..models import Post, Request, ResponseObject
from .context import RequestContext
from .meta import MetadataApplier
from .orchestrator import ReferenceOrchestrator
from .resolvers import AttachmentResolver, PostResolver, TermResolver, SOURCE_ID_META_KEY
from .tokens import PlaceholderResolver


class RequestCoordinator:
    """
    Entry point of the ingest core: handles create and update requests.
    """

    def __init__(self, store: ContentStore, fetcher: Optional[MediaFetcher] = None,
                 hooks: Optional[SSTHooks] = None, max_term_depth: Optional[int] = None):
        """
        Initialize the coordinator and wire up its components.

        Args:
            store: Content store holding posts, terms and meta
            fetcher: Media fetcher for attachments (defaults to HttpMediaFetcher)
            hooks: Optional extension hooks
            max_term_depth: Nesting bound for inline term parents (defaults to config value)
        """
        self.store = store
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or HttpMediaFetcher()
        self.hooks = hooks or SSTHooks()

        self.token_resolver = PlaceholderResolver(store, self.hooks)
        self.meta_applier = MetadataApplier(store, self.token_resolver, self.hooks)
        self.orchestrator = ReferenceOrchestrator(
            store,
            AttachmentResolver(store, self.meta_applier, self.fetcher, self.hooks),
            PostResolver(store, self.meta_applier, self.hooks),
            TermResolver(
                store, self.meta_applier, self.hooks,
                max_depth=max_term_depth if max_term_depth is not None else config.max_term_depth
            ),
            self.hooks
        )

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def close(self):
        """Close the media fetcher if this coordinator created it."""
        if self._owns_fetcher:
            self.fetcher.close()

    @staticmethod
    def parse(payload: Dict[str, Any]) -> Request:
        """
        Parse a wire payload into a Request.

        Args:
            payload: Decoded JSON body

        Returns:
            The parsed request

        Raises:
            RequestValidationError: If the payload does not match the request schema
        """
        if not isinstance(payload, dict):
            raise RequestValidationError("rest_invalid_param", "Request body must be a JSON object.")
        try:
            return Request.model_validate(payload)
        except ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in e.errors()
            )
            raise RequestValidationError("rest_invalid_param", f"Invalid parameter(s): {details}")

    def _validate(self, request: Request, creating: bool) -> None:
        """
        Check required fields and term assignments.

        Runs before anything is written to the content store.

        Raises:
            RequestValidationError: On the first missing or invalid field
        """
        if creating and request.id:
            raise RequestValidationError("rest_post_exists", "Cannot create existing post.")
        if creating and not request.source_id:
            raise RequestValidationError(
                "empty-source_id",
                "Post is missing source ID (`meta.sst_source_id`)"
            )
        if not request.title:
            raise RequestValidationError("empty-title", "Post is missing title (`title`)")
        if not request.type:
            raise RequestValidationError("empty-type", "Post is missing post type (`type`)")
        if not self.store.post_type_exists(request.type):
            raise RequestValidationError("invalid-type", f"Invalid post type (`{request.type}`)")

        for taxonomy, term_ids in self._term_assignments(request).items():
            for term_id in term_ids:
                term = self.store.get_term(term_id)
                if not term or term.taxonomy != taxonomy:
                    raise RequestValidationError(
                        "rest_invalid_param",
                        f"Invalid term ID {term_id} for taxonomy `{taxonomy}`."
                    )

    def _term_assignments(self, request: Request) -> Dict[str, List[int]]:
        """Term id lists keyed by a registered taxonomy; other extra keys are ignored."""
        return {
            taxonomy: term_ids
            for taxonomy, term_ids in request.term_assignments().items()
            if self.store.taxonomy_exists(taxonomy)
        }

    def create(self, request: Union[Request, Dict[str, Any]]) -> ResponseObject:
        """
        Create the main object and everything it references.

        Args:
            request: Parsed request or decoded JSON body

        Returns:
            Response with status 201

        Raises:
            RequestValidationError: If the request is invalid
            StoreError: If the main object cannot be created
        """
        if not isinstance(request, Request):
            request = self.parse(request)
        self._validate(request, creating=True)

        short_circuit = self.hooks.pre_create(request)
        if short_circuit is not None:
            return short_circuit

        post = self.store.create(request.type, request.post_fields())
        logging.info(f"Created main {post.post_type} {post.id} for {request.source_id}")

        return self._process(post, request, status=201)

    def update(self, post_id: int, request: Union[Request, Dict[str, Any]]) -> ResponseObject:
        """
        Update an existing main object and everything it references.

        Args:
            post_id: Local ID of the main object
            request: Parsed request or decoded JSON body

        Returns:
            Response with status 200

        Raises:
            NotFoundError: If the main object does not exist
            RequestValidationError: If the request is invalid
            StoreError: If the main object cannot be updated
        """
        existing = self.store.get(post_id)
        if not existing:
            raise NotFoundError("rest_post_invalid_id", "Invalid post ID.")

        if not isinstance(request, Request):
            request = self.parse(request)
        self._validate(request, creating=False)

        short_circuit = self.hooks.pre_update(post_id, request)
        if short_circuit is not None:
            return short_circuit

        fields = request.post_fields()
        fields["post_type"] = request.type
        post = self.store.update(existing.id, fields)
        logging.info(f"Updated main {post.post_type} {post.id}")

        response = self._process(post, request, status=200)

        if post.id != existing.id:
            response.add_post(existing, self._source_id(existing.id))

        return response

    def _process(self, post: Post, request: Request, status: int) -> ResponseObject:
        context = RequestContext(main_id=post.id)

        for taxonomy, term_ids in self._term_assignments(request).items():
            self.store.set_object_terms(post.id, term_ids, taxonomy)

        self.orchestrator.run(request.references, context)

        # Tokens can only be resolved once every reference is in the table
        current = self.store.get(post.id)
        content = self.token_resolver.resolve(current.content, context.table, "content")
        if content is not None:
            current = self.store.update(post.id, {"content": content})

        meta = dict(request.meta)
        if request.source_id:
            meta[SOURCE_ID_META_KEY] = request.source_id
        self.meta_applier.apply("post", post.id, meta, request.nested_meta, context.table)

        response = context.response
        response.add_post(current, self._source_id(post.id), first=True)
        response.status = status

        logging.info(
            f"Processed {post.post_type} {post.id}: {len(response.posts)} posts, "
            f"{len(response.terms)} terms, {len(response.errors)} errors"
        )
        return response

    def _source_id(self, post_id: int) -> Optional[str]:
        value = self.store.get_meta("post", post_id, SOURCE_ID_META_KEY)
        return str(value) if value is not None else None

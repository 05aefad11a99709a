"""
Reference resolvers for SST.

Each resolver turns one reference into a created or reused object and
records it in the request's resolved-reference table. All three share one
rule: a source ID already in the table returns the stored handle without
touching the content store.

    unresolved -> cache hit                      -> return stored handle
               -> lookup miss -> create        \
               -> lookup hit  -> update         -> resolved, recorded
               -> store/fetch error             -> failed, not recorded
"""

import logging
from typing import Any, Dict, Optional

from ..config import config
from ..database import ContentStore
from ..errors import ReferenceResolutionError, SSTError, TermExistsError
from ..hooks import ReferenceInterceptor
from ..media import MediaFetcher
from ..models import Post, Reference, ReferenceArgs
from .context import RequestContext, ResolvedObject
from .meta import MetadataApplier


SOURCE_ID_META_KEY = "sst_source_id"
ALT_TEXT_META_KEY = "_wp_attachment_image_alt"


class BaseResolver:
    """
    Shared plumbing for the reference resolvers.
    """

    def __init__(self, store: ContentStore, meta_applier: MetadataApplier,
                 interceptor: Optional[ReferenceInterceptor] = None):
        self.store = store
        self.meta_applier = meta_applier
        self.interceptor = interceptor or ReferenceInterceptor()

    def resolve(self, reference: Reference, context: RequestContext) -> ResolvedObject:
        """
        Resolve a reference to an object.

        Raises:
            SSTError: If the reference cannot be resolved
        """
        raise NotImplementedError

    def _supplied_post(self, reference: Reference, context: RequestContext) -> Optional[Post]:
        """Ask the interceptor for a pre-existing post; errors it returns are raised."""
        supplied = self.interceptor.pre_resolve_post(reference, context)
        if isinstance(supplied, SSTError):
            raise supplied
        return supplied

    def _meta_with_source_id(self, args: ReferenceArgs, source_id: Optional[str]) -> Dict[str, Any]:
        meta = dict(args.meta)
        if source_id:
            meta[SOURCE_ID_META_KEY] = source_id
        return meta

    def _record_post(self, post: Post, source_id: str, context: RequestContext) -> ResolvedObject:
        return context.table.record(source_id, ResolvedObject(local_id=post.id, obj=post, source_id=source_id))


class AttachmentResolver(BaseResolver):
    """
    Resolves post references of subtype "attachment" by downloading the file.
    """

    def __init__(self, store: ContentStore, meta_applier: MetadataApplier,
                 fetcher: MediaFetcher, interceptor: Optional[ReferenceInterceptor] = None):
        super().__init__(store, meta_applier, interceptor)
        self.fetcher = fetcher

    def resolve(self, reference: Reference, context: RequestContext) -> ResolvedObject:
        args = reference.args
        source_id = reference.sst_source_id or args.url
        if not source_id:
            raise ReferenceResolutionError(
                "missing-url",
                "Attachment references require a URL (`args.url`)."
            )

        cached = context.table.get(source_id)
        if cached is not None:
            return cached

        # Cross-request idempotency: reuse an attachment already imported
        attachment = self.store.find_by_upstream_id("attachment", source_id)
        if attachment:
            logging.info(f"Reusing attachment {attachment.id} for {source_id}")
        else:
            attachment = self._supplied_post(reference, context)

        if attachment is None and reference.id:
            existing = self.store.get(reference.id)
            if existing and existing.post_type == "attachment":
                attachment = existing
                if args.title:
                    attachment = self.store.update(existing.id, {"title": args.title})
                logging.info(f"Updated attachment {attachment.id} in place")

        if attachment is None:
            if not args.url:
                raise ReferenceResolutionError(
                    "missing-url",
                    "Attachment references require a URL (`args.url`)."
                )
            attachment_id = self.fetcher.download_and_attach(
                self.store,
                args.url,
                context.main_id,
                title=args.title,
                description=args.description
            )
            attachment = self.store.get(attachment_id)
            if attachment is None:
                raise ReferenceResolutionError(
                    "missing-attachment",
                    f"Downloaded attachment {attachment_id} could not be loaded."
                )

        meta = self._meta_with_source_id(args, source_id)
        default_alt = args.title or args.description
        if (
            default_alt
            and not meta.get(ALT_TEXT_META_KEY)
            and self.store.is_image(attachment.id)
            and not self.store.get_meta("post", attachment.id, ALT_TEXT_META_KEY)
        ):
            meta[ALT_TEXT_META_KEY] = default_alt

        self.meta_applier.apply("post", attachment.id, meta, args.nested_meta, context.table)
        return self._record_post(attachment, source_id, context)


class PostResolver(BaseResolver):
    """
    Resolves post references of any subtype other than "attachment".
    """

    def resolve(self, reference: Reference, context: RequestContext) -> ResolvedObject:
        args = reference.args
        source_id = reference.sst_source_id
        if not source_id:
            raise ReferenceResolutionError(
                "missing-source-id",
                "Post references require a source ID (`sst_source_id`)."
            )

        cached = context.table.get(source_id)
        if cached is not None:
            return cached

        if not self.store.post_type_exists(reference.subtype):
            raise ReferenceResolutionError(
                "invalid-post-type",
                f"Invalid post type `{reference.subtype}`."
            )

        if isinstance(args.parent, ReferenceArgs):
            raise ReferenceResolutionError(
                "invalid-parent",
                "Post references only accept a local ID as `args.parent`."
            )

        post = self._supplied_post(reference, context)
        if post is None:
            fields = self._fields(args)
            target = self._find_existing(reference, source_id)

            if target:
                fields["post_type"] = reference.subtype
                post = self.store.update(target.id, fields)
                logging.info(f"Updated {reference.subtype} {post.id} for {source_id}")
            else:
                fields.setdefault("title", source_id)
                fields.setdefault("status", config.default_status)
                post = self.store.create(reference.subtype, fields)
                logging.info(f"Created {reference.subtype} {post.id} for {source_id}")

        meta = self._meta_with_source_id(args, source_id)
        self.meta_applier.apply("post", post.id, meta, args.nested_meta, context.table)
        return self._record_post(post, source_id, context)

    def _fields(self, args: ReferenceArgs) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        if args.title:
            fields["title"] = args.title
        if args.status:
            fields["status"] = args.status
        if args.slug:
            fields["slug"] = args.slug
        if isinstance(args.parent, int):
            fields["parent"] = args.parent
        return fields

    def _find_existing(self, reference: Reference, source_id: str) -> Optional[Post]:
        """
        Find the post a reference should update.

        A known local ID wins only if the stored source ID matches; otherwise
        the most recent post of the subtype carrying the source ID is used.
        """
        if reference.id:
            candidate = self.store.get(reference.id)
            if candidate and self.store.get_meta("post", candidate.id, SOURCE_ID_META_KEY) == source_id:
                return candidate
        return self.store.find_by_upstream_id(reference.subtype, source_id)


class TermResolver(BaseResolver):
    """
    Resolves term references, creating inline parents first.

    The table key for a term is its source ID when one is given, otherwise
    its name (title, falling back to slug). Terms without an upstream ID are
    therefore de-duplicated by name within a request.
    """

    def __init__(self, store: ContentStore, meta_applier: MetadataApplier,
                 interceptor: Optional[ReferenceInterceptor] = None,
                 max_depth: Optional[int] = None):
        super().__init__(store, meta_applier, interceptor)
        self.max_depth = max_depth if max_depth is not None else config.max_term_depth

    def resolve(self, reference: Reference, context: RequestContext) -> ResolvedObject:
        return self._resolve_term(reference.subtype, reference.sst_source_id, reference.args, context, 0)

    @staticmethod
    def lookup_key(source_id: Optional[str], args: ReferenceArgs) -> Optional[str]:
        """The key a term is cached under: source ID, else title, else slug."""
        return source_id or args.title or args.slug or None

    def _resolve_term(self, taxonomy: str, source_id: Optional[str], args: ReferenceArgs,
                      context: RequestContext, depth: int) -> ResolvedObject:
        if depth > self.max_depth:
            raise ReferenceResolutionError(
                "term-depth-exceeded",
                f"Term parents are nested deeper than {self.max_depth} levels."
            )

        key = self.lookup_key(source_id, args)
        if not key:
            raise ReferenceResolutionError(
                "invalid-term",
                "Term references require a source ID, title, or slug."
            )

        cached = context.table.get(key)
        if cached is not None:
            return cached

        if not self.store.taxonomy_exists(taxonomy):
            raise ReferenceResolutionError(
                "invalid-taxonomy",
                f"Invalid taxonomy `{taxonomy}`."
            )

        parent_id = 0
        if isinstance(args.parent, ReferenceArgs):
            parent_key = self.lookup_key(args.parent.sst_source_id, args.parent)
            already_resolved = parent_key in context.table
            parent = self._resolve_term(taxonomy, args.parent.sst_source_id, args.parent, context, depth + 1)
            if not already_resolved:
                context.response.add_term(parent.obj)
            parent_id = parent.local_id
        elif isinstance(args.parent, int):
            parent_id = args.parent

        name = args.title or args.slug or source_id
        term_args = {
            "slug": args.slug,
            "description": args.description,
            "parent": parent_id
        }

        try:
            term = self.store.create_term(name, taxonomy, term_args)
        except TermExistsError as e:
            term = self.store.get_term(e.term_id)
            logging.info(f"Reusing {taxonomy} term {term.term_id} ({term.name})")

        if context.main_id:
            self.store.attach_term(context.main_id, term.term_id, taxonomy)

        meta = self._meta_with_source_id(args, source_id)
        self.meta_applier.apply("term", term.term_id, meta, args.nested_meta, context.table)

        return context.table.record(key, ResolvedObject(local_id=term.term_id, obj=term, source_id=source_id))

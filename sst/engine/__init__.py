"""Reference resolution and idempotent upsert engine."""

from .context import RequestContext, ResolvedObject, ResolvedReferenceTable
from .tokens import PlaceholderResolver
from .meta import MetadataApplier
from .resolvers import AttachmentResolver, PostResolver, TermResolver
from .orchestrator import ReferenceOrchestrator
from .coordinator import RequestCoordinator

__all__ = [
    "RequestContext",
    "ResolvedObject",
    "ResolvedReferenceTable",
    "PlaceholderResolver",
    "MetadataApplier",
    "AttachmentResolver",
    "PostResolver",
    "TermResolver",
    "ReferenceOrchestrator",
    "RequestCoordinator"
]

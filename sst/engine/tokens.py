"""
Placeholder token resolution for SST.

Body content and meta values may embed tokens of the form

    {{ <source-id> | <instruction> [| <modifier>] }}

which are substituted once every reference in the request has resolved.
Supported instructions are "to id" and "to url" (with an optional
"size <name>" modifier for images). Other instructions are handed to the
TokenExtension. Tokens whose source ID never resolved become "".
"""

import re
from typing import List, Optional

from ..database import ContentStore
from ..hooks import TokenExtension
from .context import ResolvedObject, ResolvedReferenceTable


TOKEN_PATTERN = re.compile(r"\{\{ (.+?) \}\}")
SEGMENT_SEPARATOR = " | "


class PlaceholderResolver:
    """
    Substitutes placeholder tokens against a resolved-reference table.
    """
    
    def __init__(self, store: ContentStore, extension: Optional[TokenExtension] = None):
        """
        Initialize the resolver.
        
        Args:
            store: Content store used to compute URLs
            extension: Optional token extension for sizes and custom instructions
        """
        self.store = store
        self.extension = extension or TokenExtension()
    
    def resolve(self, text: str, table: ResolvedReferenceTable, context: str = "") -> Optional[str]:
        """
        Replace every token in a string.
        
        Args:
            text: The string to scan
            table: Resolved references for the current request
            context: Where the string came from, passed to extensions
            
        Returns:
            The substituted string, or None if there were no tokens or nothing changed
        """
        if not isinstance(text, str) or "{{ " not in text:
            return None
        
        replaced = TOKEN_PATTERN.sub(
            lambda match: self._substitute(match.group(1), table, context),
            text
        )
        return None if replaced == text else replaced
    
    def _substitute(self, token: str, table: ResolvedReferenceTable, context: str) -> str:
        segments = token.split(SEGMENT_SEPARATOR)
        if len(segments) < 2:
            return ""
        
        resolved = table.get(segments[0])
        if resolved is None:
            return ""
        
        instruction = segments[1]
        if instruction == "to id":
            return str(resolved.local_id)
        if instruction == "to url":
            return self._url(resolved, segments[2:], context)
        
        result = self.extension.resolve_instruction("", instruction, resolved.local_id, context)
        return str(result) if result is not None else ""
    
    def _url(self, resolved: ResolvedObject, modifiers: List[str], context: str) -> str:
        if resolved.kind == "term":
            return self.store.term_url(resolved.local_id)
        
        if not resolved.is_attachment:
            return self.store.canonical_url(resolved.local_id)
        
        if not self.store.is_image(resolved.local_id):
            return self.store.file_url(resolved.local_id)
        
        size = "full"
        for modifier in modifiers:
            if modifier.startswith("size "):
                size = modifier[len("size "):].strip() or size
        size = self.extension.image_size(size, resolved.local_id, context)
        return self.store.image_url(resolved.local_id, size)

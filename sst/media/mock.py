"""
Mock media fetcher for SST.

Creates attachments without touching the network, for tests and offline
dry runs.
"""

import mimetypes
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Set
from urllib.parse import urlparse

from ..database import ContentStore
from ..errors import MediaFetchError
from .base import MediaFetcher


class MockMediaFetcher(MediaFetcher):
    """
    Mock fetcher that records calls and fabricates attachments.
    """
    
    def __init__(self, failing_urls: Optional[Set[str]] = None):
        """
        Initialize the mock fetcher.
        
        Args:
            failing_urls: URLs whose download should fail
        """
        self.failing_urls = set(failing_urls or [])
        self.calls: List[Dict[str, Optional[str]]] = []
    
    def download_and_attach(self, store: ContentStore, url: str, parent_id: Optional[int],
                            title: Optional[str] = None,
                            description: Optional[str] = None) -> int:
        self.calls.append({"url": url, "parent_id": parent_id, "title": title})
        
        if not url or url in self.failing_urls:
            raise MediaFetchError("http_request_failed", f"Failed to download {url}")
        
        filename = PurePosixPath(urlparse(url).path).name or "file"
        attachment = store.create("attachment", {
            "title": title or PurePosixPath(filename).stem,
            "content": description or "",
            "parent": parent_id,
            "mime_type": mimetypes.guess_type(filename)[0] or "application/octet-stream",
            "file_path": f"mock/{filename}"
        })
        return attachment.id

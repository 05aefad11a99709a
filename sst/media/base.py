"""
Base media fetcher interface for SST.

This module defines the abstract interface the attachment resolver uses to
turn a remote URL into a stored attachment.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..database import ContentStore


class MediaFetcher(ABC):
    """
    Abstract base class for media fetchers.
    
    The content store is passed explicitly on every call, so a fetcher never
    depends on which store happens to be "active".
    """
    
    def __enter__(self):
        """Context manager entry."""
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
    
    def close(self):
        """Release resources held by the fetcher."""
        pass
    
    @abstractmethod
    def download_and_attach(self, store: ContentStore, url: str, parent_id: Optional[int],
                            title: Optional[str] = None,
                            description: Optional[str] = None) -> int:
        """
        Download a file and store it as an attachment.
        
        Args:
            store: Content store receiving the attachment
            url: URL of the file to download
            parent_id: Local ID of the object the attachment belongs to
            title: Optional attachment title
            description: Optional attachment description
            
        Returns:
            Local ID of the created attachment
            
        Raises:
            MediaFetchError: If the file cannot be downloaded or stored
        """
        pass

"""
HTTP media fetcher for SST.

Downloads remote files with httpx, writes them under the upload directory
and registers them as attachments in the content store.
"""

import httpx
import logging
import mimetypes
import re
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import urlparse, unquote

from ..config import config
from ..database import ContentStore
from ..errors import MediaFetchError, SSTError
from .base import MediaFetcher


def _safe_filename(name: str) -> str:
    name = re.sub(r"[^A-Za-z0-9._-]+", "-", name).strip("-.")
    return name or "file"


class HttpMediaFetcher(MediaFetcher):
    """
    Fetches media over HTTP(S).
    """
    
    def __init__(self, upload_dir: Optional[str] = None, timeout: Optional[float] = None,
                 client: Optional[httpx.Client] = None):
        """
        Initialize the media fetcher.
        
        Args:
            upload_dir: Directory files are written to (defaults to config value)
            timeout: Download timeout in seconds (defaults to config value)
            client: Optional preconfigured httpx client
        """
        self.upload_dir = Path(upload_dir or config.upload_dir)
        self.client = client or httpx.Client(
            timeout=timeout or config.media_timeout,
            follow_redirects=True,
            headers={"User-Agent": config.media_user_agent}
        )
    
    def close(self):
        """Close the HTTP client."""
        self.client.close()
    
    def _target_path(self, url: str) -> Path:
        """
        Pick a collision-free path for a downloaded file.
        
        Files go to <upload_dir>/YYYY/MM/, with -1, -2, ... appended to the
        stem when the name is taken.
        """
        filename = _safe_filename(unquote(PurePosixPath(urlparse(url).path).name))
        directory = self.upload_dir / datetime.now().strftime("%Y/%m")
        directory.mkdir(parents=True, exist_ok=True)
        
        candidate = directory / filename
        counter = 1
        while candidate.exists():
            candidate = directory / f"{Path(filename).stem}-{counter}{Path(filename).suffix}"
            counter += 1
        return candidate
    
    def download_and_attach(self, store: ContentStore, url: str, parent_id: Optional[int],
                            title: Optional[str] = None,
                            description: Optional[str] = None) -> int:
        parsed = urlparse(url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise MediaFetchError("invalid_url", f"Invalid URL: {url}")
        if not PurePosixPath(parsed.path).name:
            raise MediaFetchError("invalid_url", f"URL does not name a file: {url}")
        
        try:
            response = self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise MediaFetchError("http_404" if e.response.status_code == 404 else "http_request_failed",
                                  f"Failed to download {url}: {e}")
        except httpx.RequestError as e:
            raise MediaFetchError("http_request_failed", f"Failed to download {url}: {e}")
        
        target = self._target_path(url)
        try:
            target.write_bytes(response.content)
        except OSError as e:
            target.unlink(missing_ok=True)
            raise MediaFetchError("upload_error", f"Could not write file for {url}: {e}")
        
        mime_type = response.headers.get("content-type", "").split(";")[0].strip()
        if not mime_type or mime_type == "application/octet-stream":
            mime_type = mimetypes.guess_type(target.name)[0] or "application/octet-stream"
        
        try:
            attachment = store.create("attachment", {
                "title": title or target.stem,
                "content": description or "",
                "parent": parent_id,
                "mime_type": mime_type,
                "file_path": target.relative_to(self.upload_dir).as_posix()
            })
        except SSTError as e:
            target.unlink(missing_ok=True)
            raise MediaFetchError(e.code, f"Could not store attachment for {url}: {e.message}")
        
        logging.info(f"Downloaded {url} as attachment {attachment.id} ({mime_type})")
        return attachment.id

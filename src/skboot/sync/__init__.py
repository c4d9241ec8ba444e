"""
Sync -- mirror a directory tree to and from the object store.

Small files travel KMS-encrypted, large files travel raw. Every push
lands under a stable revision and an immutable timestamp snapshot.
"""

from .downloader import Downloader
from .engine import SyncEngine, load_config
from .uploader import Uploader

__all__ = ["Downloader", "SyncEngine", "Uploader", "load_config"]

"""
Object-store backends -- where the tree travels.

The sync core needs three calls: put a body under a key, get a body back
as a stream, and list every key under a prefix. Keys ending in ``/`` are
directory placeholders some S3 tools create; callers filter them.

S3: boto3 client, paginated listing, streaming bodies.
Local: a plain directory standing in for the bucket. For air-gapped hosts,
NAS mounts, and tests.
"""

from __future__ import annotations

import logging
import re
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, BinaryIO, Optional, Union

from .errors import ArgumentError, StoreError
from .models import BootConfig, StoreBackendType

logger = logging.getLogger("skboot.storage")

Body = Union[bytes, BinaryIO]

_S3_URL = re.compile(r"^s3://([^/]+)(/(.*))?$")


def parse_s3_url(url: str) -> tuple[str, str]:
    """Split ``s3://bucket/some/prefix`` into bucket and prefix.

    Args:
        url: S3 URL. The prefix part is optional.

    Returns:
        Tuple of (bucket, prefix) with surrounding slashes removed from prefix.

    Raises:
        ArgumentError: If the URL is not an s3:// URL with a bucket.
    """
    match = _S3_URL.match(url.strip())
    if not match:
        raise ArgumentError("config:s3_url", url, "expected s3://bucket[/prefix]")
    return match.group(1), (match.group(3) or "").strip("/")


class ObjectStore(ABC):
    """Abstract object store holding one bucket."""

    @abstractmethod
    def put(self, key: str, body: Body) -> None:
        """Store ``body`` under ``key``, replacing any existing object."""

    @abstractmethod
    def get(self, key: str) -> BinaryIO:
        """Open the object at ``key`` for reading. The caller closes it."""

    @abstractmethod
    def list_keys(self, prefix: str) -> list[str]:
        """Return every key starting with ``prefix``."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable location, e.g. ``s3://bucket``."""


class S3ObjectStore(ObjectStore):
    """Amazon S3 (or any S3-compatible endpoint) via boto3.

    Args:
        bucket: Bucket name.
        region: AWS region for the client.
        client: Pre-built boto3 S3 client. Created lazily when omitted.
    """

    def __init__(self, bucket: str, region: str, client: Any = None) -> None:
        self.bucket = bucket
        self._region = region
        self._client = client

    @property
    def name(self) -> str:
        return f"s3://{self.bucket}"

    def _s3_client(self) -> Any:
        if self._client is None:
            import boto3

            self._client = boto3.client("s3", region_name=self._region)
        return self._client

    def put(self, key: str, body: Body) -> None:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            self._s3_client().put_object(Bucket=self.bucket, Key=key, Body=body)
        except (BotoCoreError, ClientError) as exc:
            raise StoreError("s3:put_object", key, str(exc)) from exc

    def get(self, key: str) -> BinaryIO:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            out = self._s3_client().get_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StoreError("s3:get_object", key, str(exc)) from exc
        return out["Body"]

    def list_keys(self, prefix: str) -> list[str]:
        from botocore.exceptions import BotoCoreError, ClientError

        keys: list[str] = []
        try:
            paginator = self._s3_client().get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                keys.extend(item["Key"] for item in page.get("Contents", []))
        except (BotoCoreError, ClientError) as exc:
            raise StoreError("s3:list_objects", prefix, str(exc)) from exc
        return keys


class LocalObjectStore(ObjectStore):
    """A directory used as a bucket; object keys are relative paths.

    Args:
        root: Directory holding the objects. Created if missing.
    """

    def __init__(self, root: Path) -> None:
        self.root = root.expanduser().resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    @property
    def name(self) -> str:
        return f"file://{self.root}"

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if path == self.root or self.root not in path.parents:
            raise StoreError("local:key", key, "key escapes the store root")
        return path

    def put(self, key: str, body: Body) -> None:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(body, bytes):
                path.write_bytes(body)
            else:
                with open(path, "wb") as out:
                    shutil.copyfileobj(body, out)
        except OSError as exc:
            raise StoreError("local:put", key, str(exc)) from exc

    def get(self, key: str) -> BinaryIO:
        path = self._path(key)
        try:
            return open(path, "rb")
        except OSError as exc:
            raise StoreError("local:get", key, str(exc)) from exc

    def list_keys(self, prefix: str) -> list[str]:
        try:
            keys = [
                p.relative_to(self.root).as_posix()
                for p in self.root.rglob("*")
                if p.is_file()
            ]
        except OSError as exc:
            raise StoreError("local:list", prefix, str(exc)) from exc
        return sorted(k for k in keys if k.startswith(prefix))


def create_store(config: BootConfig, client: Optional[Any] = None) -> ObjectStore:
    """Factory for the configured object-store backend.

    Args:
        config: Boot configuration.
        client: Optional pre-built boto3 S3 client (s3 backend only).

    Returns:
        Instantiated ObjectStore.

    Raises:
        ArgumentError: If the backend is unknown or misconfigured.
    """
    if config.store_backend == StoreBackendType.S3:
        if not config.s3_bucket:
            raise ArgumentError("config:s3_bucket", detail="an s3 bucket is required")
        return S3ObjectStore(config.s3_bucket, config.region, client=client)
    if config.store_backend == StoreBackendType.LOCAL:
        if not config.local_store_path:
            raise ArgumentError(
                "config:local_store_path", detail="a local store path is required"
            )
        return LocalObjectStore(config.local_store_path)
    raise ArgumentError(
        "config:store_backend", detail=f"unsupported backend {config.store_backend}"
    )

"""Tests for object-store backends and s3:// URL parsing.

S3 calls are mocked -- no real bucket required.
"""

from __future__ import annotations

import io
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from skboot.errors import ArgumentError, StoreError
from skboot.models import BootConfig, StoreBackendType
from skboot.storage import (
    LocalObjectStore,
    S3ObjectStore,
    create_store,
    parse_s3_url,
)


class TestParseS3Url:
    """Tests for parse_s3_url."""

    @pytest.mark.parametrize(
        "url,bucket,prefix",
        [
            ("s3://hello/world", "hello", "world"),
            ("s3://bucket/a/b/c", "bucket", "a/b/c"),
            ("s3://bucket", "bucket", ""),
            ("s3://bucket/", "bucket", ""),
            ("s3://bucket/a/b/", "bucket", "a/b"),
        ],
    )
    def test_split(self, url: str, bucket: str, prefix: str) -> None:
        assert parse_s3_url(url) == (bucket, prefix)

    @pytest.mark.parametrize("url", ["bucket/prefix", "s3://", "https://bucket/x"])
    def test_rejects_invalid(self, url: str) -> None:
        with pytest.raises(ArgumentError):
            parse_s3_url(url)


class TestS3ObjectStore:
    """Tests for the boto3-backed store."""

    def test_put(self) -> None:
        client = MagicMock()
        store = S3ObjectStore("bucket", "us-east-1", client=client)
        store.put("dev/latest/a.txt", b"data")
        client.put_object.assert_called_once_with(
            Bucket="bucket", Key="dev/latest/a.txt", Body=b"data"
        )

    def test_get_returns_body_stream(self) -> None:
        client = MagicMock()
        client.get_object.return_value = {"Body": io.BytesIO(b"data")}
        store = S3ObjectStore("bucket", "us-east-1", client=client)
        assert store.get("k").read() == b"data"

    def test_list_follows_pages(self) -> None:
        client = MagicMock()
        client.get_paginator.return_value.paginate.return_value = [
            {"Contents": [{"Key": "dev/latest/a"}, {"Key": "dev/latest/b"}]},
            {"Contents": [{"Key": "dev/latest/c"}]},
            {},
        ]
        store = S3ObjectStore("bucket", "us-east-1", client=client)

        assert store.list_keys("dev/latest/") == ["dev/latest/a", "dev/latest/b", "dev/latest/c"]
        client.get_paginator.assert_called_once_with("list_objects_v2")
        client.get_paginator.return_value.paginate.assert_called_once_with(
            Bucket="bucket", Prefix="dev/latest/"
        )

    def test_client_error_names_key(self) -> None:
        client = MagicMock()
        client.get_object.side_effect = ClientError(
            {"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject"
        )
        store = S3ObjectStore("bucket", "us-east-1", client=client)
        with pytest.raises(StoreError, match="dev/latest/gone.txt"):
            store.get("dev/latest/gone.txt")

    def test_name(self) -> None:
        assert S3ObjectStore("bucket", "us-east-1", client=MagicMock()).name == "s3://bucket"


class TestLocalObjectStore:
    """Tests for the directory-backed store."""

    def test_put_get_bytes(self, tmp_path: Path) -> None:
        store = LocalObjectStore(tmp_path / "bucket")
        store.put("dev/latest/a.txt", b"hello")
        with store.get("dev/latest/a.txt") as fh:
            assert fh.read() == b"hello"

    def test_put_stream(self, tmp_path: Path) -> None:
        store = LocalObjectStore(tmp_path / "bucket")
        store.put("dev/latest/big.bin", io.BytesIO(b"x" * 10000))
        assert (tmp_path / "bucket" / "dev" / "latest" / "big.bin").stat().st_size == 10000

    def test_list_filters_by_prefix(self, tmp_path: Path) -> None:
        store = LocalObjectStore(tmp_path / "bucket")
        for key in ("dev/latest/b", "dev/latest/a", "dev/other/c", "prod/latest/d"):
            store.put(key, b"")
        assert store.list_keys("dev/latest/") == ["dev/latest/a", "dev/latest/b"]

    def test_get_missing_is_store_error(self, tmp_path: Path) -> None:
        store = LocalObjectStore(tmp_path / "bucket")
        with pytest.raises(StoreError, match="local:get"):
            store.get("nope")

    def test_key_cannot_escape_root(self, tmp_path: Path) -> None:
        store = LocalObjectStore(tmp_path / "bucket")
        with pytest.raises(StoreError, match="escapes"):
            store.put("../outside", b"x")


class TestFactory:
    """Tests for create_store."""

    def test_s3_requires_bucket(self) -> None:
        with pytest.raises(ArgumentError, match="bucket"):
            create_store(BootConfig())

    def test_s3_backend(self) -> None:
        store = create_store(BootConfig(s3_bucket="b"), client=MagicMock())
        assert isinstance(store, S3ObjectStore)

    def test_local_backend(self, tmp_path: Path) -> None:
        config = BootConfig(store_backend=StoreBackendType.LOCAL, local_store_path=tmp_path)
        assert isinstance(create_store(config), LocalObjectStore)

    def test_local_requires_path(self) -> None:
        with pytest.raises(ArgumentError):
            create_store(BootConfig(store_backend="local"))

"""Shared test fixtures for skboot."""

from __future__ import annotations

import io
from pathlib import Path
from typing import BinaryIO

import pytest

from skboot.envelope import EnvelopeCodec
from skboot.kms import KeyManager, KeyManagerError
from skboot.models import BootConfig
from skboot.storage import Body, ObjectStore


class MemoryObjectStore(ObjectStore):
    """Dict-backed object store that records every call."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.gets: list[str] = []
        self.puts: list[str] = []

    @property
    def name(self) -> str:
        return "mem://bucket"

    def put(self, key: str, body: Body) -> None:
        data = body if isinstance(body, bytes) else body.read()
        self.objects[key] = data
        self.puts.append(key)

    def get(self, key: str) -> BinaryIO:
        self.gets.append(key)
        return io.BytesIO(self.objects[key])

    def list_keys(self, prefix: str) -> list[str]:
        return sorted(k for k in self.objects if k.startswith(prefix))


class FakeKeyManager(KeyManager):
    """Reversible key manager: ciphertext is a tagged copy of the plaintext."""

    TAG = b"FAKEKMS|"

    def __init__(self) -> None:
        self.encrypt_calls = 0
        self.decrypt_calls = 0

    @property
    def name(self) -> str:
        return "fake"

    def encrypt(self, key_id: str, plaintext: bytes) -> bytes:
        self.encrypt_calls += 1
        return self.TAG + key_id.encode() + b"|" + plaintext[::-1]

    def decrypt(self, ciphertext: bytes) -> bytes:
        self.decrypt_calls += 1
        if not ciphertext.startswith(self.TAG):
            raise KeyManagerError("InvalidCiphertextException")
        _, _, body = ciphertext[len(self.TAG):].partition(b"|")
        return body[::-1]


@pytest.fixture
def store() -> MemoryObjectStore:
    """Provide an empty in-memory object store."""
    return MemoryObjectStore()


@pytest.fixture
def kms() -> FakeKeyManager:
    """Provide a reversible fake key manager."""
    return FakeKeyManager()


@pytest.fixture
def codec(kms: FakeKeyManager) -> EnvelopeCodec:
    """Provide an envelope codec over the fake key manager."""
    return EnvelopeCodec(kms)


@pytest.fixture
def config(tmp_path: Path) -> BootConfig:
    """Provide a config rooted at a fresh local directory."""
    root = tmp_path / "tree"
    root.mkdir()
    return BootConfig(
        env="dev",
        s3_prefix="app",
        revision="latest",
        kms_key_id="alias/boot",
        s3_bucket="bucket",
        dir=root,
    )

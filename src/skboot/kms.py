"""
Key-management backends.

The sync core only needs two calls: encrypt a small blob under a key id,
and decrypt a blob that carries its own key reference. AWS KMS provides
both natively. The local backend reproduces the contract offline with
HKDF-derived Fernet keys, for development machines and tests.

Backends:
    aws    boto3 ``kms`` client (Encrypt / Decrypt)
    local  HKDF-SHA256 + Fernet, keyed by passphrase and key id
"""

from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from .errors import ArgumentError
from .models import BootConfig, KmsBackendType

logger = logging.getLogger("skboot.kms")

KEY_REF_SEPARATOR = b"\0"
KEY_INFO_PREFIX = "skboot:kms:"


class KeyManagerError(Exception):
    """Raised by a backend when an encrypt or decrypt call fails."""


class KeyManager(ABC):
    """Minimal key-management capability used by the envelope codec."""

    @abstractmethod
    def encrypt(self, key_id: str, plaintext: bytes) -> bytes:
        """Encrypt ``plaintext`` under ``key_id`` and return raw ciphertext."""

    @abstractmethod
    def decrypt(self, ciphertext: bytes) -> bytes:
        """Decrypt ciphertext produced by :meth:`encrypt`."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend name."""


class AwsKeyManager(KeyManager):
    """AWS KMS via boto3.

    Credentials come from the standard boto3 chain: environment variables,
    ~/.aws/credentials, or the container's IAM role.

    Args:
        region: AWS region of the key.
        client: Pre-built boto3 KMS client. Created lazily when omitted.
    """

    def __init__(self, region: str, client: Any = None) -> None:
        self._region = region
        self._client = client

    @property
    def name(self) -> str:
        return "aws"

    def _kms_client(self) -> Any:
        if self._client is None:
            import boto3

            self._client = boto3.client("kms", region_name=self._region)
        return self._client

    def encrypt(self, key_id: str, plaintext: bytes) -> bytes:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            out = self._kms_client().encrypt(KeyId=key_id, Plaintext=plaintext)
        except (BotoCoreError, ClientError) as exc:
            raise KeyManagerError(f"kms encrypt failed: {exc}") from exc
        return out["CiphertextBlob"]

    def decrypt(self, ciphertext: bytes) -> bytes:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            out = self._kms_client().decrypt(CiphertextBlob=ciphertext)
        except (BotoCoreError, ClientError) as exc:
            raise KeyManagerError(f"kms decrypt failed: {exc}") from exc
        return out["Plaintext"]


def _fernet_key(passphrase: bytes, key_id: str) -> bytes:
    """Derive the Fernet key for one key id from the local passphrase.

    HKDF-SHA256 with ``skboot:kms:<key_id>`` as the info string, so every
    key id gets an independent key and a token sealed under one id never
    opens under another.

    Returns:
        32 key bytes, urlsafe-base64 encoded as Fernet expects.
    """
    from cryptography.hazmat.primitives.hashes import SHA256
    from cryptography.hazmat.primitives.kdf.hkdf import HKDF

    info = f"{KEY_INFO_PREFIX}{key_id}".encode("utf-8")
    raw = HKDF(algorithm=SHA256(), length=32, salt=None, info=info).derive(passphrase)
    return base64.urlsafe_b64encode(raw)


class LocalKeyManager(KeyManager):
    """Offline key manager keyed by a passphrase.

    Each key id gets its own Fernet key, derived with HKDF from the
    passphrase. Ciphertext is ``<key_id> NUL <fernet token>`` so that,
    as with AWS KMS, decryption needs no key id from the caller.

    Args:
        passphrase: Master secret all key ids derive from.
    """

    def __init__(self, passphrase: str) -> None:
        if not passphrase:
            raise ArgumentError("kms:local", detail="a passphrase is required")
        self._material = passphrase.encode("utf-8")

    @property
    def name(self) -> str:
        return "local"

    def _fernet(self, key_id: str):
        from cryptography.fernet import Fernet

        return Fernet(_fernet_key(self._material, key_id))

    def encrypt(self, key_id: str, plaintext: bytes) -> bytes:
        ref = key_id.encode("utf-8")
        if not ref or KEY_REF_SEPARATOR in ref:
            raise KeyManagerError(f"invalid key id: {key_id!r}")
        token = self._fernet(key_id).encrypt(plaintext)
        return ref + KEY_REF_SEPARATOR + token

    def decrypt(self, ciphertext: bytes) -> bytes:
        from cryptography.fernet import InvalidToken

        ref, sep, token = ciphertext.partition(KEY_REF_SEPARATOR)
        if not sep or not ref:
            raise KeyManagerError("ciphertext carries no key reference")
        try:
            key_id = ref.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise KeyManagerError("ciphertext key reference is corrupt") from exc
        try:
            return self._fernet(key_id).decrypt(token)
        except InvalidToken as exc:
            raise KeyManagerError(
                f"ciphertext rejected for key {key_id!r}"
            ) from exc


def create_key_manager(
    config: BootConfig, client: Optional[Any] = None
) -> KeyManager:
    """Factory for the configured key-management backend.

    Args:
        config: Boot configuration.
        client: Optional pre-built boto3 KMS client (aws backend only).

    Returns:
        Instantiated KeyManager.

    Raises:
        ArgumentError: If the backend is unknown or misconfigured.
    """
    if config.kms_backend == KmsBackendType.AWS:
        return AwsKeyManager(config.region, client=client)
    if config.kms_backend == KmsBackendType.LOCAL:
        return LocalKeyManager(config.local_kms_passphrase or "")
    raise ArgumentError("kms:backend", detail=f"unsupported backend {config.kms_backend}")

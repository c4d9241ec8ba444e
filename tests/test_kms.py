"""Tests for key-management backends.

AWS calls are mocked -- no real KMS required.
"""

from __future__ import annotations

import base64
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from skboot.errors import ArgumentError
from skboot.kms import (
    AwsKeyManager,
    KeyManagerError,
    LocalKeyManager,
    _fernet_key,
    create_key_manager,
)
from skboot.models import BootConfig, KmsBackendType


def _client_error(code: str, op: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, op)


class TestAwsKeyManager:
    """Tests for the boto3-backed key manager."""

    def test_encrypt_passes_key_id(self) -> None:
        client = MagicMock()
        client.encrypt.return_value = {"CiphertextBlob": b"cipher"}
        km = AwsKeyManager("us-east-1", client=client)

        assert km.encrypt("alias/boot", b"plain") == b"cipher"
        client.encrypt.assert_called_once_with(KeyId="alias/boot", Plaintext=b"plain")

    def test_decrypt_passes_blob(self) -> None:
        client = MagicMock()
        client.decrypt.return_value = {"Plaintext": b"plain"}
        km = AwsKeyManager("us-east-1", client=client)

        assert km.decrypt(b"cipher") == b"plain"
        client.decrypt.assert_called_once_with(CiphertextBlob=b"cipher")

    def test_client_error_is_wrapped(self) -> None:
        client = MagicMock()
        client.decrypt.side_effect = _client_error("InvalidCiphertextException", "Decrypt")
        km = AwsKeyManager("us-east-1", client=client)

        with pytest.raises(KeyManagerError, match="InvalidCiphertext"):
            km.decrypt(b"cipher")

    def test_name(self) -> None:
        assert AwsKeyManager("us-east-1", client=MagicMock()).name == "aws"


class TestLocalKeyManager:
    """Tests for the HKDF + Fernet offline key manager."""

    def test_round_trip(self) -> None:
        km = LocalKeyManager("passphrase")
        assert km.decrypt(km.encrypt("alias/boot", b"secret")) == b"secret"

    def test_ciphertext_carries_key_reference(self) -> None:
        km = LocalKeyManager("passphrase")
        assert km.encrypt("alias/boot", b"secret").startswith(b"alias/boot\0")

    def test_wrong_passphrase_rejected(self) -> None:
        blob = LocalKeyManager("one").encrypt("alias/boot", b"secret")
        with pytest.raises(KeyManagerError, match="alias/boot"):
            LocalKeyManager("two").decrypt(blob)

    def test_key_ids_are_isolated(self) -> None:
        km = LocalKeyManager("passphrase")
        blob = km.encrypt("alias/a", b"secret")
        forged = b"alias/b" + blob[len(b"alias/a"):]
        with pytest.raises(KeyManagerError):
            km.decrypt(forged)

    def test_missing_reference_rejected(self) -> None:
        with pytest.raises(KeyManagerError, match="key reference"):
            LocalKeyManager("passphrase").decrypt(b"no-separator-here")

    def test_empty_key_id_rejected(self) -> None:
        with pytest.raises(KeyManagerError):
            LocalKeyManager("passphrase").encrypt("", b"secret")

    def test_passphrase_required(self) -> None:
        with pytest.raises(ArgumentError):
            LocalKeyManager("")

    def test_fernet_key_bound_to_key_id(self) -> None:
        key = _fernet_key(b"master", "alias/boot")
        assert key == _fernet_key(b"master", "alias/boot")
        assert key != _fernet_key(b"master", "alias/other")
        assert key != _fernet_key(b"other", "alias/boot")
        assert len(base64.urlsafe_b64decode(key)) == 32


class TestFactory:
    """Tests for create_key_manager."""

    def test_aws_backend(self) -> None:
        km = create_key_manager(BootConfig(), client=MagicMock())
        assert isinstance(km, AwsKeyManager)

    def test_local_backend(self) -> None:
        config = BootConfig(kms_backend=KmsBackendType.LOCAL, local_kms_passphrase="pw")
        assert isinstance(create_key_manager(config), LocalKeyManager)

    def test_local_backend_without_passphrase(self) -> None:
        config = BootConfig(kms_backend="local")
        with pytest.raises(ArgumentError, match="passphrase"):
            create_key_manager(config)
